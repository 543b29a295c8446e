"""Model diffusion equation

Cell-centered finite volume discretization of the scalar diffusion equation `-ν⋅Δu = S` with
Dirichlet boundary conditions, sharing the mesh, geometry, reconstruction, matrix backends and the
matrix-free operator with the flow discretization. It serves as a linear model problem for the
convergence of the discretization.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from collections.abc import Callable

import numpy as np

from .config import RECONSTRUCTIONS
from .config import BoundaryMarkerError
from .config import ConfigurationError
from .config import check_option
from .core import SpatialDiscretization
from .geometry import GeometryCache
from .jacobian import BlockMatrix
from .mesh import Mesh
from .reconstruction import create_reconstruction

logger = logging.getLogger(__name__)

BoundaryValue = float | Callable[[np.ndarray], np.ndarray]


class DiffusionDiscretization(SpatialDiscretization):
    """Scalar diffusion with a source term

    The residual of each cell is `R = ∑(-ν⋅∇u⋅n)⋅l - S⋅A`, where the face gradient is the average
    of the reconstructed cell gradients, corrected along the line connecting the adjacent
    centroids by the difference quotient of the cell values. The Dirichlet value `g` is imposed by
    the ghost value `2g - u`. The Jacobian is the thin-layer linearization, which is exact on
    meshes whose faces are orthogonal to the lines connecting the centroids.
    """

    num_var = 1

    def __init__(
        self,
        mesh: Mesh,
        diffusivity: float = 1.,
        source: Callable[[np.ndarray], np.ndarray] | None = None,
        dirichlet_values: dict[int, BoundaryValue] | None = None,
        reconstruction: str = "LEASTSQUARES",
    ) -> None:
        """Initialize the discretization

        Args:
            mesh: Mesh.
            diffusivity: Diffusivity `ν`.
            source: Source term as function of coordinates in shape ``(NUM_DIM,...)``. Zero if
                not provided.
            dirichlet_values: Boundary value per boundary marker, either a constant or a function
                of the face midpoints.
            reconstruction: Gradient reconstruction, ``"LEASTSQUARES"`` or ``"GREENGAUSS"``.

        Raises:
            ConfigurationError: If the diffusivity is not positive or the reconstruction unknown.
            BoundaryMarkerError: If boundary faces carry markers without value.
        """
        if diffusivity <= 0.:
            msg = f"Diffusivity must be positive, got {diffusivity}"
            raise ConfigurationError(msg)
        check_option("reconstruction", reconstruction, RECONSTRUCTIONS[1:])
        self.mesh = mesh
        self.diffusivity = diffusivity
        self.geometry = GeometryCache(mesh, "midpoint")
        self.reconstruction = create_reconstruction(reconstruction, mesh, self.geometry)
        centroids = self.geometry.cell_centroids
        self.source = np.zeros(mesh.num_cells) if source is None else np.asarray(
            source(centroids), dtype=float)
        self.boundary_values = self._get_boundary_values(dirichlet_values or {})
        deltas = self.geometry.face_deltas
        self._distances = np.hypot(*deltas)
        self._directions = deltas / self._distances
        self._orthogonality = np.sum(self._directions * mesh.face_normals, axis=0)
        logger.info(
            "Diffusion discretization: diffusivity %g, %s reconstruction, %d cells",
            diffusivity, reconstruction, mesh.num_cells,
        )

    def _get_boundary_values(self, dirichlet_values: dict[int, BoundaryValue]) -> np.ndarray:
        """Evaluates the Dirichlet values at the boundary faces"""
        nbface = self.mesh.num_boundary_faces
        markers = self.mesh.face_markers[:nbface]
        unknown = sorted(set(np.unique(markers).tolist()) - set(dirichlet_values))
        if unknown:
            msg = f"No Dirichlet value configured for markers {unknown}"
            raise BoundaryMarkerError(msg)
        midpoints = self.mesh.face_midpoints[:, :nbface]
        values = np.zeros(nbface)
        for marker, value in dirichlet_values.items():
            faces = markers == marker
            values[faces] = value(midpoints[:, faces]) if callable(value) else value
        return values

    def compute_ghost_states(self, state: np.ndarray) -> np.ndarray:
        """Computes the ghost values `2g - u` in shape ``(1,num_boundary_faces)``"""
        owners = self.mesh.face_cells[:self.mesh.num_boundary_faces, 0]
        return 2. * self.boundary_values - state[:, owners]

    def compute_face_fluxes(self, state: np.ndarray) -> np.ndarray:
        """Computes the diffusive fluxes `-ν⋅∇u⋅n` through all faces

        Args:
            state: Cell values in shape ``(1,num_cells)``.

        Returns:
            Fluxes in shape ``(1,num_faces)``.
        """
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        ghost_states = self.compute_ghost_states(state)
        gradients = np.stack(self.reconstruction.compute_gradients(state, ghost_states), axis=1)
        right = np.concatenate([ghost_states, state[:, neighbors[nbface:]]], axis=1)
        right_gradients = np.concatenate(
            [gradients[..., owners[:nbface]], gradients[..., neighbors[nbface:]]], axis=2)
        average = 0.5 * (gradients[..., owners] + right_gradients)
        quotient = (right - state[:, owners]) / self._distances
        correction = quotient - np.sum(average * self._directions, axis=1)
        face_gradients = average + correction[:, None] * self._directions
        return -self.diffusivity * np.sum(face_gradients * self.mesh.face_normals, axis=1)

    def compute_residual(
        self,
        state: np.ndarray,
        compute_timestep: bool = False,
    ) -> tuple[np.ndarray, np.ndarray | None]:
        """Computes the residual and the local time-step bounds

        The local time-step bound is `0.5⋅A/∑(ν⋅l/d)` with the centroid distance `d` per face.

        Args:
            state: Cell values in shape ``(1,num_cells)``.
            compute_timestep: Whether to compute the local time-step bounds.

        Returns:
            Residual in shape ``(1,num_cells)`` and, if requested, the local time-step bound per
            cell in shape ``(num_cells)``, otherwise ``None``.
        """
        self._check_array(state, self.state_shape)
        mesh = self.mesh
        owners, neighbors = mesh.face_cells.T
        interior = neighbors >= 0
        flux = self.compute_face_fluxes(state) * mesh.face_lengths
        residual = np.zeros(self.state_shape, dtype=flux.dtype)
        np.add.at(residual, (0, owners), flux[0])
        np.subtract.at(residual, (0, neighbors[interior]), flux[0, interior])
        residual[0] -= self.source * mesh.cell_areas
        if not compute_timestep:
            return residual, None
        conductance = self.diffusivity * mesh.face_lengths / self._distances
        integral = np.zeros(mesh.num_cells)
        np.add.at(integral, owners, conductance)
        np.add.at(integral, neighbors[interior], conductance[interior])
        return residual, 0.5 * mesh.cell_areas / integral

    def compute_jacobian(
        self,
        state: np.ndarray,
        matrix: BlockMatrix | None = None,
    ) -> BlockMatrix:
        """Computes the thin-layer Jacobian of the residual

        Uses the flux `-ν⋅(uᵣ - uₗ)/d⋅(e⋅n)` with the unit vector `e` between the centroids. At
        boundary faces, the dependence of the ghost value on the interior value is included.

        Args:
            state: Cell values in shape ``(1,num_cells)``.
            matrix: Matrix into which to store the Jacobian. Its previous content is discarded. If
                not provided, newly-allocated diagonal, lower and upper blocks will be returned.

        Returns:
            Jacobian.
        """
        self._check_array(state, self.state_shape)
        mesh = self.mesh
        nbface = mesh.num_boundary_faces
        if matrix is None:
            matrix = self.create_matrix()
        else:
            matrix.set_all_zero()
        owners, neighbors = mesh.face_cells.T
        d_left = (self.diffusivity * self._orthogonality / self._distances
                  * mesh.face_lengths)[None, None]
        matrix.update_diagonal_blocks(owners[:nbface], 2. * d_left[..., :nbface])
        lower = -d_left[..., nbface:]
        upper = lower
        matrix.insert_face_blocks(
            np.arange(mesh.num_interior_faces), owners[nbface:], neighbors[nbface:], lower, upper)
        matrix.update_diagonal_blocks(owners[nbface:], -lower)
        matrix.update_diagonal_blocks(neighbors[nbface:], -upper)
        return matrix
