"""Geometric quantities derived from the mesh

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging

import numpy as np

from .mesh import Mesh

logger = logging.getLogger(__name__)

# Number of quadrature points per face
NUM_GAUSS = 1

GHOST_CENTROID_POLICIES = ("midpoint", "face")


class GeometryCache:
    """Cell centroids, ghost cell centroids and face quadrature points

    Computed once at construction, all arrays are read-only afterward. Ghost cells are the mirror
    images of the boundary cells across the boundary faces, either as point reflection about the
    face midpoint (``"midpoint"``) or as reflection about the face line (``"face"``).
    """

    cell_centroids: np.ndarray
    ghost_centroids: np.ndarray
    gauss_points: np.ndarray
    neighbor_centroids: np.ndarray

    def __init__(self, mesh: Mesh, ghost_centroids: str = "midpoint") -> None:
        """Initialize the cache

        Args:
            mesh: Mesh.
            ghost_centroids: Policy for placing the ghost cell centroids.

        Raises:
            ValueError: If the policy is unknown.
        """
        if ghost_centroids not in GHOST_CENTROID_POLICIES:
            msg = (f"Unknown ghost centroid policy '{ghost_centroids}', "
                   f"expected one of {GHOST_CENTROID_POLICIES}")
            raise ValueError(msg)
        self.mesh = mesh
        self.ghost_policy = ghost_centroids
        # node average, excluding the padding of cells with fewer nodes
        self.cell_centroids = np.sum(
            mesh.nodes[:, mesh.cells] * (mesh.cells >= 0), axis=2) / mesh.cell_num_nodes
        nbface = mesh.num_boundary_faces
        owners = mesh.face_cells[:nbface, 0]
        start_points = mesh.nodes[:, mesh.face_nodes[:nbface, 0]]
        if ghost_centroids == "midpoint":
            self.ghost_centroids = (
                2. * mesh.face_midpoints[:, :nbface] - self.cell_centroids[:, owners]
            )
        else:
            normals = mesh.face_normals[:, :nbface]
            distance = np.sum((self.cell_centroids[:, owners] - start_points) * normals, axis=0)
            self.ghost_centroids = self.cell_centroids[:, owners] - 2. * distance * normals
        start_points = mesh.nodes[:, mesh.face_nodes[:, 0]]
        end_points = mesh.nodes[:, mesh.face_nodes[:, 1]]
        fractions = np.arange(1, NUM_GAUSS + 1) / (NUM_GAUSS + 1)
        self.gauss_points = (
            start_points[:, None, :]
            + fractions[None, :, None] * (end_points - start_points)[:, None, :]
        )
        neighbors = mesh.face_cells[nbface:, 1]
        self.neighbor_centroids = np.concatenate([
            self.ghost_centroids,
            self.cell_centroids[:, neighbors] + mesh.face_shifts[:, nbface:],
        ], axis=1)
        for array in (
            self.cell_centroids, self.ghost_centroids, self.gauss_points, self.neighbor_centroids,
        ):
            array.flags.writeable = False
        logger.debug(
            "Geometry of %d cells and %d faces cached with '%s' ghost centroids",
            mesh.num_cells, mesh.num_faces, ghost_centroids,
        )

    @property
    def face_deltas(self) -> np.ndarray:
        """Vectors from the owner centroid to the neighbor (or ghost) centroid

        In shape ``(NUM_DIM,num_faces)``.
        """
        return self.neighbor_centroids - self.cell_centroids[:, self.mesh.face_cells[:, 0]]

    @property
    def owner_offsets(self) -> np.ndarray:
        """Vectors from the owner centroid to the face quadrature point

        In shape ``(NUM_DIM,num_faces)``.
        """
        return self.gauss_points[:, 0] - self.cell_centroids[:, self.mesh.face_cells[:, 0]]

    @property
    def neighbor_offsets(self) -> np.ndarray:
        """Vectors from the neighbor (or ghost) centroid to the face quadrature point

        In shape ``(NUM_DIM,num_faces)``.
        """
        return self.gauss_points[:, 0] - self.neighbor_centroids
