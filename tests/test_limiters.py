#!/usr/bin/env python

"""Unittests for the limiters

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import unittest

import numpy as np

from py_euler_fv.config import LIMITERS
from py_euler_fv.config import ConfigurationError
from py_euler_fv.geometry import GeometryCache
from py_euler_fv.limiters import VanAlbadaLimiter
from py_euler_fv.limiters import create_limiter
from py_euler_fv.mesh import create_rectangle_mesh
from py_euler_fv.reconstruction import WeightedLeastSquaresReconstruction
from py_euler_fv.reconstruction import get_neighbor_states

BOUNDED_LIMITERS = ("BARTHJESPERSEN", "VENKATAKRISHNAN", "WENO")


class TestLimiters(unittest.TestCase):
    """Tests for the limiters"""

    def setUp(self) -> None:
        """Preparation done for each test

        Creates a perturbed triangular mesh with random cell and ghost states and their
        least-squares gradients.
        """
        self.rng = np.random.default_rng(seed=1)
        self.mesh = create_rectangle_mesh(6, 5, triangulate=True, perturbation=0.4, seed=1)
        self.geometry = GeometryCache(self.mesh)
        self.cells = self.rng.random((2, self.mesh.num_cells))
        self.ghosts = self.rng.random((2, self.mesh.num_boundary_faces))
        self.gradients = WeightedLeastSquaresReconstruction(
            self.mesh, self.geometry).compute_gradients(self.cells, self.ghosts)

    def test_boundedness(self) -> None:
        """Limited face values stay within the minimum and maximum of the cell neighborhoods"""
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        for name in BOUNDED_LIMITERS:
            limiter = create_limiter(name, self.mesh, self.geometry, venkatakrishnan_constant=0.)
            minimum, maximum = limiter.get_bounds(self.cells, self.ghosts)
            uleft, uright = limiter.compute_face_values(self.cells, self.ghosts, *self.gradients)
            interior = neighbors[nbface:]
            with self.subTest(limiter=name):
                self.assertTrue(np.all(uleft >= minimum[:, owners] - 1e-10))
                self.assertTrue(np.all(uleft <= maximum[:, owners] + 1e-10))
                self.assertTrue(np.all(uright[:, nbface:] >= minimum[:, interior] - 1e-10))
                self.assertTrue(np.all(uright[:, nbface:] <= maximum[:, interior] + 1e-10))
                np.testing.assert_array_equal(uright[:, :nbface], self.ghosts)

    def test_unlimited_exceeds_bounds(self) -> None:
        """Unlimited extrapolation of the random field leaves the bounds"""
        owners = self.mesh.face_cells[:, 0]
        limiter = create_limiter("NONE", self.mesh, self.geometry)
        _, maximum = limiter.get_bounds(self.cells, self.ghosts)
        uleft, _ = limiter.compute_face_values(self.cells, self.ghosts, *self.gradients)
        self.assertTrue(np.any(uleft > maximum[:, owners] + 1e-3))

    def test_venkatakrishnan_constant(self) -> None:
        """Large Venkatakrishnan constants approach the unlimited extrapolation"""
        unlimited = create_limiter("NONE", self.mesh, self.geometry).compute_face_values(
            self.cells, self.ghosts, *self.gradients)
        limited = create_limiter(
            "VENKATAKRISHNAN", self.mesh, self.geometry, venkatakrishnan_constant=1e3,
        ).compute_face_values(self.cells, self.ghosts, *self.gradients)
        np.testing.assert_allclose(limited[0], unlimited[0], atol=1e-4)
        np.testing.assert_allclose(limited[1], unlimited[1], atol=1e-4)

    def test_van_albada(self) -> None:
        """Van Albada face values lie between the adjacent cell values"""
        nbface = self.mesh.num_boundary_faces
        owners = self.mesh.face_cells[:, 0]
        uleft, uright = VanAlbadaLimiter(self.mesh, self.geometry).compute_face_values(
            self.cells, self.ghosts, *self.gradients)
        neighbor_states = get_neighbor_states(self.mesh, self.cells, self.ghosts)
        lower = np.minimum(self.cells[:, owners], neighbor_states) - 1e-10
        upper = np.maximum(self.cells[:, owners], neighbor_states) + 1e-10
        self.assertTrue(np.all((uleft >= lower) & (uleft <= upper)))
        self.assertTrue(np.all(
            (uright[:, nbface:] >= lower[:, nbface:]) & (uright[:, nbface:] <= upper[:, nbface:])))

    def test_linear_field(self) -> None:
        """All limiters reduce to the linear extrapolation of linear fields on uniform meshes"""
        mesh = create_rectangle_mesh(5, 4)
        geometry = GeometryCache(mesh)
        slope = np.array([[0.7], [-0.4]])

        def get_field(points: np.ndarray) -> np.ndarray:
            return 1. + slope[0] * points[0] + slope[1] * points[1]

        cells = get_field(geometry.cell_centroids)[None]
        ghosts = get_field(geometry.ghost_centroids)[None]
        dudx = np.full_like(cells, slope[0, 0])
        dudy = np.full_like(cells, slope[1, 0])
        nbface = mesh.num_boundary_faces
        expected = get_field(mesh.face_midpoints)[None]
        for name in LIMITERS:
            with self.subTest(limiter=name):
                uleft, uright = create_limiter(name, mesh, geometry).compute_face_values(
                    cells, ghosts, dudx, dudy)
                np.testing.assert_allclose(uleft, expected, atol=1e-12)
                np.testing.assert_allclose(uright[:, nbface:], expected[:, nbface:], atol=1e-12)
                np.testing.assert_allclose(uright[:, :nbface], ghosts, atol=1e-12)

    def test_unknown_limiter(self) -> None:
        """Unknown limiter names fail with a configuration error"""
        with self.assertRaisesRegex(ConfigurationError, "MINMOD"):
            create_limiter("MINMOD", self.mesh, self.geometry)


if __name__ == "__main__":
    unittest.main()
