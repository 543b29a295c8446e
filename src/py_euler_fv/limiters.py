"""Slope limiters for the face-extrapolated states

This module implements the strategies computing the left and right states at each face from the
cell averages and the reconstructed cell gradients. The left state is extrapolated from the
owner, the right state from the neighbor. For boundary faces the right state is the ghost state.

Limited variants keep the extrapolated face values within the minimum and maximum of the cell and
its face neighbors, where ghost cells take the place of missing neighbors. They reduce to the
unlimited linear extrapolation for linear fields on regular meshes.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from abc import ABC
from abc import abstractmethod

import numpy as np

from .config import ConfigurationError
from .config import LIMITERS
from .geometry import GeometryCache
from .mesh import Mesh
from .reconstruction import get_neighbor_states

logger = logging.getLogger(__name__)


class Limiter(ABC):
    """Base class for limiters"""

    def __init__(self, mesh: Mesh, geometry: GeometryCache) -> None:
        self.mesh = mesh
        self.geometry = geometry
        self._owner_offsets = geometry.owner_offsets
        self._neighbor_offsets = geometry.neighbor_offsets[:, mesh.num_boundary_faces:]

    @abstractmethod
    def compute_face_values(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        dudx: np.ndarray,
        dudy: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Computes the left and right face states

        Args:
            cell_states: States in shape ``(num_var,num_cells)``.
            ghost_states: Ghost states in shape ``(num_var,num_boundary_faces)``.
            dudx: Derivatives in x-direction in shape ``(num_var,num_cells)``.
            dudy: Derivatives in y-direction in shape ``(num_var,num_cells)``.

        Returns:
            Left and right face states, each in shape ``(num_var,num_faces)``.
        """

    def _get_increments(
        self,
        dudx: np.ndarray,
        dudy: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Gets the unlimited increments from the cell centroids to the face quadrature points

        Returns:
            Increments of the owners in shape ``(num_var,num_faces)`` and of the neighbors in shape
            ``(num_var,num_interior_faces)``.
        """
        owners = self.mesh.face_cells[:, 0]
        neighbors = self.mesh.face_cells[self.mesh.num_boundary_faces:, 1]
        return (
            dudx[:, owners] * self._owner_offsets[0] + dudy[:, owners] * self._owner_offsets[1],
            dudx[:, neighbors] * self._neighbor_offsets[0]
            + dudy[:, neighbors] * self._neighbor_offsets[1],
        )

    def _extrapolate(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        owner_increments: np.ndarray,
        neighbor_increments: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Adds the increments to the cell states"""
        owners = self.mesh.face_cells[:, 0]
        neighbors = self.mesh.face_cells[self.mesh.num_boundary_faces:, 1]
        uleft = cell_states[:, owners] + owner_increments
        uright = np.concatenate(
            [ghost_states, cell_states[:, neighbors] + neighbor_increments], axis=1)
        return uleft, uright

    def get_bounds(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Gets the minimum and maximum over each cell and its face neighbors

        Args:
            cell_states: States in shape ``(num_var,num_cells)``.
            ghost_states: Ghost states in shape ``(num_var,num_boundary_faces)``.

        Returns:
            Minimum and maximum, each in shape ``(num_var,num_cells)``.
        """
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        neighbor_states = get_neighbor_states(self.mesh, cell_states, ghost_states)
        minimum = cell_states.copy()
        maximum = cell_states.copy()
        for ufunc, bound in ((np.minimum, minimum), (np.maximum, maximum)):
            ufunc.at(bound, (slice(None), owners), neighbor_states)
            ufunc.at(bound, (slice(None), neighbors[nbface:]), cell_states[:, owners[nbface:]])
        return minimum, maximum


class NoLimiter(Limiter):
    """Unlimited linear extrapolation"""

    def compute_face_values(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        dudx: np.ndarray,
        dudy: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        return self._extrapolate(cell_states, ghost_states, *self._get_increments(dudx, dudy))


class BarthJespersenLimiter(Limiter):
    """Barth-Jespersen limiter

    Scales the gradient of each cell by the largest factor in ``[0,1]`` keeping all of its
    extrapolated face values within the local bounds.
    """

    def _get_face_factors(
        self,
        bound_increments: np.ndarray,
        increments: np.ndarray,
        cells: np.ndarray,
    ) -> np.ndarray:
        """Gets the limiter factors of the cells at the faces

        Args:
            bound_increments: Differences between the active bound and the cell value.
            increments: Unlimited increments from the cell centroid to the face.
            cells: Cell of each increment.

        Returns:
            Limiter factors in the shape of ``increments``.
        """
        with np.errstate(divide="ignore", invalid="ignore"):
            ratios = np.where(increments != 0., bound_increments / increments, 1.)
        return np.minimum(1., ratios)

    def _get_cell_factors(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        owner_increments: np.ndarray,
        neighbor_increments: np.ndarray,
    ) -> np.ndarray:
        """Gets the limiter factors of the cells as minimum over their faces"""
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        minimum, maximum = self.get_bounds(cell_states, ghost_states)
        factors = np.ones_like(cell_states)
        for cells, increments in ((owners, owner_increments), (neighbors[nbface:],
                                                                neighbor_increments)):
            bound_increments = np.where(
                increments > 0., maximum[:, cells], minimum[:, cells]) - cell_states[:, cells]
            np.minimum.at(
                factors, (slice(None), cells),
                self._get_face_factors(bound_increments, increments, cells),
            )
        return factors

    def compute_face_values(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        dudx: np.ndarray,
        dudy: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        owner_increments, neighbor_increments = self._get_increments(dudx, dudy)
        factors = self._get_cell_factors(
            cell_states, ghost_states, owner_increments, neighbor_increments)
        owners = self.mesh.face_cells[:, 0]
        neighbors = self.mesh.face_cells[self.mesh.num_boundary_faces:, 1]
        return self._extrapolate(
            cell_states, ghost_states,
            factors[:, owners] * owner_increments,
            factors[:, neighbors] * neighbor_increments,
        )


class VenkatakrishnanLimiter(BarthJespersenLimiter):
    """Venkatakrishnan limiter

    Replaces the minimum function of Barth-Jespersen by a smooth function with the threshold
    `ε² = (K⋅h)³`, where `h` is the square-root of the cell area. The limited values stay within
    the local bounds only for `K = 0`, larger `K` trade boundedness for convergence. In particular
    the default `K = 5` does not guarantee bounded face values, and for large `K` the limiter
    approaches the unlimited extrapolation.
    """

    def __init__(self, mesh: Mesh, geometry: GeometryCache, constant: float = 5.) -> None:
        super().__init__(mesh, geometry)
        self.constant = constant
        self._thresholds = (constant * np.sqrt(mesh.cell_areas))**3

    def _get_face_factors(
        self,
        bound_increments: np.ndarray,
        increments: np.ndarray,
        cells: np.ndarray,
    ) -> np.ndarray:
        threshold = self._thresholds[cells]
        numerator = bound_increments**2 + threshold + 2. * bound_increments * increments
        denominator = (
            bound_increments**2 + 2. * increments**2 + bound_increments * increments + threshold
        )
        with np.errstate(divide="ignore", invalid="ignore"):
            factors = np.where(increments != 0., numerator / denominator, 1.)
        return np.minimum(1., factors)


class VanAlbadaLimiter(Limiter):
    """Van Albada limiter for the MUSCL extrapolation

    Blends the centered difference across the face with the upwind-biased difference given by the
    gradient, using `κ = 1/3`. The face values lie between the two adjacent cell values.
    """

    kappa: float = 1. / 3.
    epsilon: float = 1e-12

    def _get_increment(self, upwind: np.ndarray, central: np.ndarray) -> np.ndarray:
        """Gets the limited MUSCL increment from the upwind and central differences"""
        ratio = np.maximum(
            0., (2. * upwind * central + self.epsilon)
            / (upwind**2 + central**2 + self.epsilon))
        return ratio / 4. * ((1. - self.kappa) * upwind + (1. + self.kappa) * central)

    def compute_face_values(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        dudx: np.ndarray,
        dudy: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        deltas = self.geometry.face_deltas
        neighbor_states = get_neighbor_states(self.mesh, cell_states, ghost_states)
        central = neighbor_states - cell_states[:, owners]
        owner_upwind = 2. * (
            dudx[:, owners] * deltas[0] + dudy[:, owners] * deltas[1]) - central
        neighbors = neighbors[nbface:]
        neighbor_upwind = 2. * (
            dudx[:, neighbors] * deltas[0, nbface:] + dudy[:, neighbors] * deltas[1, nbface:]
        ) - central[:, nbface:]
        uleft = cell_states[:, owners] + self._get_increment(owner_upwind, central)
        uright = np.concatenate([
            ghost_states,
            cell_states[:, neighbors] - self._get_increment(neighbor_upwind, central[:, nbface:]),
        ], axis=1)
        return uleft, uright


class WENOLimiter(BarthJespersenLimiter):
    """Weighted essentially non-oscillatory limiter

    Replaces the gradient of each cell by a nonlinear weighted average of its own gradient and the
    gradients of its face neighbors. The weights are `λ/(ε + β)^γ` with the oscillation indicator
    `β = |∇u|²`, the linear weight `λ` being large for the central stencil and unity for the
    neighbors. The blended gradient is finally safeguarded by the Barth-Jespersen limiter.
    """

    central_weight: float = 1000.
    epsilon: float = 1e-5
    power: float = 4.

    def _get_weights(self, dudx: np.ndarray, dudy: np.ndarray) -> np.ndarray:
        return (self.epsilon + dudx**2 + dudy**2)**-self.power

    def compute_face_values(
        self,
        cell_states: np.ndarray,
        ghost_states: np.ndarray,
        dudx: np.ndarray,
        dudy: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells[nbface:].T
        weights = self._get_weights(dudx, dudy)
        weight_sum = self.central_weight * weights
        blended_x = weight_sum * dudx
        blended_y = weight_sum * dudy
        for cells, others in ((owners, neighbors), (neighbors, owners)):
            np.add.at(weight_sum, (slice(None), cells), weights[:, others])
            np.add.at(blended_x, (slice(None), cells), weights[:, others] * dudx[:, others])
            np.add.at(blended_y, (slice(None), cells), weights[:, others] * dudy[:, others])
        return super().compute_face_values(
            cell_states, ghost_states, blended_x / weight_sum, blended_y / weight_sum)


def create_limiter(
    name: str,
    mesh: Mesh,
    geometry: GeometryCache,
    venkatakrishnan_constant: float = 5.,
) -> Limiter:
    """Creates the limiter

    Args:
        name: One of ``NONE``, ``WENO``, ``VANALBADA``, ``BARTHJESPERSEN`` or
            ``VENKATAKRISHNAN``.
        mesh: Mesh.
        geometry: Geometry cache of the mesh.
        venkatakrishnan_constant: Constant `K` of the Venkatakrishnan limiter.

    Returns:
        Limiter.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    if name == "NONE":
        return NoLimiter(mesh, geometry)
    if name == "WENO":
        return WENOLimiter(mesh, geometry)
    if name == "VANALBADA":
        return VanAlbadaLimiter(mesh, geometry)
    if name == "BARTHJESPERSEN":
        return BarthJespersenLimiter(mesh, geometry)
    if name == "VENKATAKRISHNAN":
        return VenkatakrishnanLimiter(mesh, geometry, venkatakrishnan_constant)
    msg = f"Unknown limiter '{name}', expected one of {', '.join(LIMITERS)}"
    raise ConfigurationError(msg)
