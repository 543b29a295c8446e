"""Gradient reconstruction from cell averages

This module implements the strategies estimating the cell gradients of a state field from the
averages of the cells and the ghost cells. All strategies operate on variable-major arrays with an
arbitrary number of variables, i.e. states in shape ``(num_var,num_cells)`` and ghost states in
shape ``(num_var,num_boundary_faces)``.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from abc import ABC
from abc import abstractmethod

import numpy as np

from .config import ConfigurationError
from .config import RECONSTRUCTIONS
from .geometry import GeometryCache
from .mesh import Mesh

logger = logging.getLogger(__name__)


def get_neighbor_states(
    mesh: Mesh,
    cell_states: np.ndarray,
    ghost_states: np.ndarray,
) -> np.ndarray:
    """Gets the states across each face as seen from the owner

    Args:
        mesh: Mesh.
        cell_states: States in shape ``(num_var,num_cells)``.
        ghost_states: Ghost states in shape ``(num_var,num_boundary_faces)``.

    Returns:
        Ghost states for boundary faces and neighbor states for interior faces in shape
        ``(num_var,num_faces)``.
    """
    return np.concatenate(
        [ghost_states, cell_states[:, mesh.face_cells[mesh.num_boundary_faces:, 1]]], axis=1,
    )


class Reconstruction(ABC):
    """Base class for gradient reconstructions"""

    def __init__(self, mesh: Mesh, geometry: GeometryCache) -> None:
        self.mesh = mesh
        self.geometry = geometry

    @abstractmethod
    def compute_gradients(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Computes the cell gradients

        Args:
            cell_states: States in shape ``(num_var,num_cells)``.
            ghost_states: Ghost states in shape ``(num_var,num_boundary_faces)``.

        Returns:
            Derivatives in x- and y-direction, each in shape ``(num_var,num_cells)``.
        """


class ConstantReconstruction(Reconstruction):
    """Piecewise constant reconstruction with zero gradients (first order)"""

    def compute_gradients(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        return np.zeros_like(cell_states), np.zeros_like(cell_states)


class GreenGaussReconstruction(Reconstruction):
    """Green-Gauss reconstruction

    Integrates the face values times the outward normal over the cell boundary. Face values are
    inverse-distance weighted averages of the adjacent cell (or ghost cell) values.
    """

    def __init__(self, mesh: Mesh, geometry: GeometryCache) -> None:
        super().__init__(mesh, geometry)
        owner_distance = np.hypot(*geometry.owner_offsets)
        neighbor_distance = np.hypot(*geometry.neighbor_offsets)
        self._owner_weights = neighbor_distance / (owner_distance + neighbor_distance)
        self._scaled_normals = mesh.face_normals * mesh.face_lengths

    def compute_gradients(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        mesh = self.mesh
        nbface = mesh.num_boundary_faces
        owners, neighbors = mesh.face_cells.T
        face_values = (
            self._owner_weights * cell_states[:, owners]
            + (1. - self._owner_weights) * get_neighbor_states(mesh, cell_states, ghost_states)
        )
        gradients = []
        for scaled_normal in self._scaled_normals:
            face_integral = face_values * scaled_normal
            gradient = np.zeros_like(cell_states)
            np.add.at(gradient, (slice(None), owners), face_integral)
            np.subtract.at(gradient, (slice(None), neighbors[nbface:]), face_integral[:, nbface:])
            gradients.append(gradient / mesh.cell_areas)
        return gradients[0], gradients[1]


class WeightedLeastSquaresReconstruction(Reconstruction):
    """Weighted least-squares reconstruction

    Fits a linear field through the face neighbors (and ghost cells) of each cell, weighted by the
    inverse squared distance between the centroids. The normal equations are factored once at
    construction. Cells whose normal matrix is singular relative to its diagonal, e.g. due to
    collinear neighbor centroids, get a zero gradient and are reported by a warning.
    """

    singularity_tolerance: float = 1e-10

    def __init__(self, mesh: Mesh, geometry: GeometryCache) -> None:
        super().__init__(mesh, geometry)
        deltas = geometry.face_deltas
        self._weights = 1. / np.sum(deltas**2, axis=0)
        matrix = np.zeros((3, mesh.num_cells))
        for entry, product in enumerate((
            deltas[0] * deltas[0], deltas[0] * deltas[1], deltas[1] * deltas[1],
        )):
            self._scatter(matrix[entry:entry + 1], self._weights * product[None])
        matrix_xx, matrix_xy, matrix_yy = matrix
        determinant = matrix_xx * matrix_yy - matrix_xy**2
        self.singular_cells = np.flatnonzero(
            determinant <= self.singularity_tolerance * matrix_xx * matrix_yy)
        determinant[self.singular_cells] = 1.
        # inverse of the normal matrix, zeroed for singular cells
        self._inverse = np.stack([matrix_yy, -matrix_xy, matrix_xx]) / determinant
        self._inverse[:, self.singular_cells] = 0.
        if len(self.singular_cells) > 0:
            logger.warning(
                "Least-squares normal matrix is singular in %d cells, zero gradient will be used",
                len(self.singular_cells),
            )

    def _scatter(self, target: np.ndarray, face_values: np.ndarray) -> None:
        """Adds face contributions to both adjacent cells"""
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        np.add.at(target, (slice(None), owners), face_values)
        np.add.at(target, (slice(None), neighbors[nbface:]), face_values[:, nbface:])

    def compute_gradients(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        owners = self.mesh.face_cells[:, 0]
        differences = (
            get_neighbor_states(self.mesh, cell_states, ghost_states) - cell_states[:, owners]
        ) * self._weights
        rhs_x = np.zeros_like(cell_states)
        rhs_y = np.zeros_like(cell_states)
        self._scatter(rhs_x, differences * self.geometry.face_deltas[0])
        self._scatter(rhs_y, differences * self.geometry.face_deltas[1])
        if len(self.singular_cells) > 0:
            logger.debug(
                "Zero gradient used in %d cells with singular least-squares system",
                len(self.singular_cells),
            )
        inverse_xx, inverse_xy, inverse_yy = self._inverse
        return (
            inverse_xx * rhs_x + inverse_xy * rhs_y,
            inverse_xy * rhs_x + inverse_yy * rhs_y,
        )


def create_reconstruction(name: str, mesh: Mesh, geometry: GeometryCache) -> Reconstruction:
    """Creates the gradient reconstruction

    Args:
        name: One of ``NONE``, ``GREENGAUSS`` or ``LEASTSQUARES``.
        mesh: Mesh.
        geometry: Geometry cache of the mesh.

    Returns:
        Reconstruction.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    if name == "NONE":
        return ConstantReconstruction(mesh, geometry)
    if name == "GREENGAUSS":
        return GreenGaussReconstruction(mesh, geometry)
    if name == "LEASTSQUARES":
        return WeightedLeastSquaresReconstruction(mesh, geometry)
    msg = f"Unknown reconstruction '{name}', expected one of {', '.join(RECONSTRUCTIONS)}"
    raise ConfigurationError(msg)
