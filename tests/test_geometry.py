#!/usr/bin/env python

"""Unittests for the mesh and the geometry cache

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import unittest

import numpy as np

from py_euler_fv.geometry import NUM_GAUSS
from py_euler_fv.geometry import GeometryCache
from py_euler_fv.mesh import INTERIOR_MARKER
from py_euler_fv.mesh import Mesh
from py_euler_fv.mesh import create_annulus_mesh
from py_euler_fv.mesh import create_rectangle_mesh


class TestMesh(unittest.TestCase):
    """Tests for the mesh"""

    def test_rectangle(self) -> None:
        """Counts, areas and face ordering of a rectangle mesh"""
        mesh = create_rectangle_mesh(4, 3, upper=(2., 1.5), triangulate=True)
        self.assertEqual(mesh.num_cells, 24)
        self.assertEqual(mesh.num_nodes, 20)
        self.assertEqual(mesh.num_boundary_faces, 14)
        self.assertEqual(mesh.num_faces, 14 + mesh.num_interior_faces)
        np.testing.assert_allclose(np.sum(mesh.cell_areas), 3.)
        np.testing.assert_array_equal(mesh.face_cells[:14, 1], -1)
        self.assertTrue(np.all(mesh.face_cells[14:, 1] >= 0))
        np.testing.assert_array_equal(mesh.face_markers[14:], INTERIOR_MARKER)
        self.assertEqual(set(mesh.face_markers[:14].tolist()), {1, 2, 3, 4})

    def test_closed_cells(self) -> None:
        """The scaled normals of every cell sum up to zero"""
        mesh = create_rectangle_mesh(5, 4, triangulate=True, perturbation=0.3, seed=1)
        scaled_normals = mesh.face_normals * mesh.face_lengths
        total = np.zeros((2, mesh.num_cells))
        nbface = mesh.num_boundary_faces
        np.add.at(total, (slice(None), mesh.face_cells[:, 0]), scaled_normals)
        np.subtract.at(
            total, (slice(None), mesh.face_cells[nbface:, 1]), scaled_normals[:, nbface:])
        np.testing.assert_allclose(total, 0., atol=1e-13)

    def test_outward_normals(self) -> None:
        """Normals point from the owner to the neighbor"""
        mesh = create_rectangle_mesh(3, 3, perturbation=0.2, seed=2)
        centroids = GeometryCache(mesh).cell_centroids
        nbface = mesh.num_boundary_faces
        owners, neighbors = mesh.face_cells[nbface:].T
        self.assertTrue(np.all(np.sum(
            (centroids[:, neighbors] - centroids[:, owners]) * mesh.face_normals[:, nbface:],
            axis=0,
        ) > 0.))
        bottom = mesh.face_normals[:, mesh.face_markers == 1]
        np.testing.assert_allclose(bottom, np.broadcast_to([[0.], [-1.]], bottom.shape), atol=1e-14)

    def test_periodic(self) -> None:
        """Periodic rectangles have no boundary faces and shifted neighbors"""
        mesh = create_rectangle_mesh(3, 4, periodic=True)
        self.assertEqual(mesh.num_boundary_faces, 0)
        self.assertEqual(mesh.num_faces, 2 * mesh.num_cells)
        counts = np.bincount(mesh.face_cells.ravel(), minlength=mesh.num_cells)
        np.testing.assert_array_equal(counts, 4)
        shifted = np.any(mesh.face_shifts != 0., axis=0)
        self.assertEqual(np.count_nonzero(shifted), 3 + 4)

    def test_read_only(self) -> None:
        """Mesh arrays cannot be modified"""
        mesh = create_rectangle_mesh(2, 2)
        with self.assertRaises(ValueError):
            mesh.nodes[0, 0] = 1.
        with self.assertRaises(ValueError):
            mesh.cell_areas[0] = 1.

    def test_zero_length_face(self) -> None:
        """Degenerate faces are rejected"""
        nodes = np.array([[0., 1., 1., 0.], [0., 0., 1., 1.]])
        with self.assertRaisesRegex(ValueError, "zero length"):
            Mesh(nodes, [[0, 1, 2, 3]], [[0, -1]], [[1, 1]], [1])

    def test_unpaired_periodic(self) -> None:
        """Periodic boundary faces without partner are rejected"""
        with self.assertRaisesRegex(ValueError, "no partner"):
            Mesh.from_cells(
                np.array([[0., 1., 0.], [0., 0., 1.]]), [[0, 1, 2]], lambda x, y: None)

    def test_hybrid(self) -> None:
        """Triangles and quadrilaterals can be mixed in one mesh"""
        mesh = create_rectangle_mesh(
            4, 3, upper=(2., 1.5), hybrid=True, perturbation=0.3, seed=4)
        self.assertEqual(mesh.num_cells, 12 + 6)
        self.assertEqual(mesh.cells.shape, (18, 4))
        np.testing.assert_array_equal(np.bincount(mesh.cell_num_nodes), [0, 0, 0, 12, 6])
        np.testing.assert_array_equal(mesh.cells[mesh.cell_num_nodes == 3, 3], -1)
        np.testing.assert_allclose(np.sum(mesh.cell_areas), 3.)
        self.assertTrue(np.all(mesh.cell_areas > 0.))
        scaled_normals = mesh.face_normals * mesh.face_lengths
        total = np.zeros((2, mesh.num_cells))
        nbface = mesh.num_boundary_faces
        np.add.at(total, (slice(None), mesh.face_cells[:, 0]), scaled_normals)
        np.subtract.at(
            total, (slice(None), mesh.face_cells[nbface:, 1]), scaled_normals[:, nbface:])
        np.testing.assert_allclose(total, 0., atol=1e-13)

    def test_varying_cell_sizes(self) -> None:
        """Cells with varying number of nodes are padded and oriented counter-clockwise"""
        nodes = np.array([[0., 1., 1., 0., 2.], [0., 0., 1., 1., 0.5]])
        mesh = Mesh.from_cells(nodes, [[0, 1, 2, 3], [2, 4, 1]], lambda x, y: 1)
        np.testing.assert_array_equal(mesh.cells, [[0, 1, 2, 3], [1, 4, 2, -1]])
        np.testing.assert_array_equal(mesh.cell_num_nodes, [4, 3])
        np.testing.assert_allclose(mesh.cell_areas, [1., 0.5])
        self.assertEqual(mesh.num_boundary_faces, 5)
        np.testing.assert_array_equal(mesh.face_cells[5:], [[0, 1]])

    def test_invalid_padding(self) -> None:
        """Cells with less than three nodes or interior padding are rejected"""
        nodes = np.array([[0., 1., 1., 0.], [0., 0., 1., 1.]])
        with self.assertRaisesRegex(ValueError, "at least three nodes"):
            Mesh.from_cells(nodes, [[0, 1]], lambda x, y: 1)
        with self.assertRaisesRegex(ValueError, "at least three nodes"):
            Mesh.from_cells(nodes, np.array([[0, -1, 1, 2]]), lambda x, y: 1)

    def test_annulus(self) -> None:
        """Areas and markers of the quarter annulus"""
        mesh = create_annulus_mesh(8, 16, 1., 1.384)
        np.testing.assert_allclose(
            np.sum(mesh.cell_areas), np.pi / 4 * (1.384**2 - 1.), rtol=1e-2)
        midpoints = mesh.face_midpoints[:, :mesh.num_boundary_faces]
        markers = mesh.face_markers[:mesh.num_boundary_faces]
        np.testing.assert_allclose(midpoints[0, markers == 10], 0., atol=1e-12)
        np.testing.assert_allclose(midpoints[1, markers == 5], 0., atol=1e-12)
        self.assertEqual(np.count_nonzero(markers == 2), 2 * 16)


class TestGeometryCache(unittest.TestCase):
    """Tests for the geometry cache"""

    def setUp(self) -> None:
        """Preparation done for each test"""
        self.mesh = create_rectangle_mesh(4, 4, triangulate=True, perturbation=0.3, seed=3)

    def test_centroids(self) -> None:
        """Centroids are the node averages"""
        geometry = GeometryCache(self.mesh)
        np.testing.assert_allclose(
            geometry.cell_centroids[:, 0], np.mean(self.mesh.nodes[:, self.mesh.cells[0]], axis=1))
        self.assertEqual(geometry.gauss_points.shape, (2, NUM_GAUSS, self.mesh.num_faces))
        np.testing.assert_allclose(geometry.gauss_points[:, 0], self.mesh.face_midpoints)

    def test_hybrid_centroids(self) -> None:
        """Centroids of hybrid meshes average over the nodes of each cell only"""
        mesh = create_rectangle_mesh(2, 1, hybrid=True)
        centroids = GeometryCache(mesh).cell_centroids
        for cell, (cell_nodes, num_nodes) in enumerate(zip(mesh.cells, mesh.cell_num_nodes)):
            np.testing.assert_allclose(
                centroids[:, cell], np.mean(mesh.nodes[:, cell_nodes[:num_nodes]], axis=1))
        np.testing.assert_allclose(centroids[:, 2], [0.75, 0.5])

    def test_ghost_centroids(self) -> None:
        """Ghost centroids mirror the owner centroid about the face midpoint or the face"""
        nbface = self.mesh.num_boundary_faces
        owners = self.mesh.face_cells[:nbface, 0]
        midpoints = self.mesh.face_midpoints[:, :nbface]
        normals = self.mesh.face_normals[:, :nbface]
        midpoint = GeometryCache(self.mesh, "midpoint")
        np.testing.assert_allclose(
            0.5 * (midpoint.ghost_centroids + midpoint.cell_centroids[:, owners]), midpoints)
        face = GeometryCache(self.mesh, "face")
        offsets = face.ghost_centroids - face.cell_centroids[:, owners]
        # mirrored along the normal with the face halfway in between
        np.testing.assert_allclose(offsets[0] * normals[1] - offsets[1] * normals[0], 0.,
                                   atol=1e-13)
        np.testing.assert_allclose(
            np.sum((0.5 * (face.ghost_centroids + face.cell_centroids[:, owners]) - midpoints)
                   * normals, axis=0),
            0., atol=1e-13,
        )

    def test_periodic_deltas(self) -> None:
        """Neighbor centroids across periodic faces are shifted into the owner's frame"""
        mesh = create_rectangle_mesh(4, 4, periodic=True)
        geometry = GeometryCache(mesh)
        np.testing.assert_allclose(geometry.face_deltas, 0.25 * mesh.face_normals, atol=1e-13)

    def test_unknown_policy(self) -> None:
        """Unknown ghost centroid policies are rejected"""
        with self.assertRaisesRegex(ValueError, "policy"):
            GeometryCache(self.mesh, "nearest")


if __name__ == "__main__":
    unittest.main()
