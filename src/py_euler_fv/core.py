"""Finite volume spatial discretizations

This module provides the base class of the spatial discretizations, implementing the matrix-free
Jacobian-vector product, and the discretization of the 2D compressible Euler and Navier-Stokes
equations.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from abc import ABC
from abc import abstractmethod

import numpy as np
from scipy.sparse.linalg import LinearOperator

from .boundary import BoundaryConditions
from .config import ConfigurationError
from .config import FlowNumericsConfig
from .config import FlowPhysicsConfig
from .fluxes import create_inviscid_flux
from .geometry import GeometryCache
from .jacobian import BlockDiagonalLowerUpper
from .jacobian import BlockMatrix
from .jacobian import SparseBlockMatrix
from .limiters import create_limiter
from .mesh import Mesh
from .parallel import map_chunks
from .parallel import reduce_chunks
from .physics import NUM_VAR
from .physics import VORTEX_INNER_RADIUS
from .physics import get_conserved
from .physics import get_free_stream_state
from .physics import get_normal_velocity
from .physics import get_primitive
from .physics import get_sound_speed
from .physics import get_supersonic_vortex_state
from .physics import get_supersonic_vortex_velocity
from .reconstruction import create_reconstruction
from .viscous import ViscousFlux
from .viscous import get_viscous_variables

logger = logging.getLogger(__name__)


class SpatialDiscretization(ABC):
    """Base class of cell-centered finite volume discretizations

    A discretization maps the cell averaged states `𝓤` to the residual `𝓡(𝓤)`, the sum of the
    fluxes leaving each cell, such that the semi-discrete system reads `A⋅d𝓤/dt + 𝓡(𝓤) = 0` with
    the diagonal matrix of cell areas `A`. Implementations provide the residual and its Jacobian
    `∂𝓡/∂𝓤`, this class adds the matrix-free approximation of the Jacobian-vector product.

    Discretizations hold no state between calls: every evaluation is a function of the given
    states and the configuration only.
    """

    num_var: int
    mesh: Mesh
    num_threads: int = 1

    @property
    def num_cells(self) -> int:
        """Number of cells"""
        return self.mesh.num_cells

    @property
    def state_shape(self) -> tuple[int, int]:
        """Shape of state and residual arrays ``(num_var,num_cells)``"""
        return self.num_var, self.mesh.num_cells

    @staticmethod
    def _check_array(array: np.ndarray, shape: tuple) -> None:
        """Checks if the array has the shape of a state

        Args:
            array: Array to be checked.
            shape: Required shape.

        Raises:
             RuntimeError: If the array has an incorrect shape.
        """
        if np.shape(array) != shape:
            msg = f"Incorrect shape. Got {np.shape(array)}, expected {shape}"
            raise RuntimeError(msg)

    @abstractmethod
    def compute_residual(
        self,
        state: np.ndarray,
        compute_timestep: bool = False,
    ) -> tuple[np.ndarray, np.ndarray | None]:
        """Computes the residual

        Args:
            state: Cell states in shape ``(num_var,num_cells)``.
            compute_timestep: Whether to compute the local time-step bounds.

        Returns:
            Residual in shape ``(num_var,num_cells)`` and, if requested, the local time-step bound
            per cell in shape ``(num_cells)``, otherwise ``None``.
        """

    @abstractmethod
    def compute_jacobian(
        self,
        state: np.ndarray,
        matrix: BlockMatrix | None = None,
    ) -> BlockMatrix:
        """Computes the Jacobian of the residual with respect to the states

        Args:
            state: Cell states in shape ``(num_var,num_cells)``.
            matrix: Matrix into which to store the Jacobian. Its previous content is discarded. If
                not provided, newly-allocated diagonal, lower and upper blocks will be returned.

        Returns:
            Jacobian.
        """

    def create_matrix(self, sparse: bool = False) -> BlockMatrix:
        """Creates an empty matrix for the Jacobian

        Args:
            sparse: Whether to create a matrix with arbitrary block positions instead of diagonal,
                lower and upper blocks.

        Returns:
            Matrix.
        """
        if sparse:
            return SparseBlockMatrix(self.num_cells, self.num_var)
        return BlockDiagonalLowerUpper(
            self.num_cells, self.mesh.face_cells[self.mesh.num_boundary_faces:], self.num_var)

    def compute_jacobian_vector_product(
        self,
        res_base: np.ndarray,
        state: np.ndarray,
        direction: np.ndarray,
        add_time_term: bool = False,
        timestep: np.ndarray | None = None,
    ) -> np.ndarray:
        """Computes the Jacobian-vector product matrix-free

        Approximates `∂𝓡/∂𝓤⋅v ≈ (𝓡(𝓤 + ε/‖v‖⋅v) - 𝓡(𝓤))/(ε/‖v‖)` by forward difference with
        `ε = √(machine epsilon)/10`. A zero direction yields a zero product.

        Args:
            res_base: Residual at ``state`` in shape ``(num_var,num_cells)``.
            state: Cell states in shape ``(num_var,num_cells)``.
            direction: Direction `v` in shape ``(num_var,num_cells)``.
            add_time_term: Whether to add the time term `A/Δt⋅v`.
            timestep: Time steps per cell in shape ``(num_cells)``, required for the time term.

        Returns:
            Product in shape ``(num_var,num_cells)``.

        Raises:
            ValueError: If the time term is requested without time steps.
        """
        self._check_array(res_base, self.state_shape)
        self._check_array(state, self.state_shape)
        self._check_array(direction, self.state_shape)
        if add_time_term and timestep is None:
            msg = "Time steps are required for the time term"
            raise ValueError(msg)
        norm = np.linalg.norm(direction)
        if norm == 0.:
            logger.debug("Zero direction in matrix-free Jacobian-vector product")
            return np.zeros(self.state_shape)
        perturbation = np.sqrt(np.finfo(float).eps) / 10. / norm
        res_perturbed, _ = self.compute_residual(state + perturbation * direction)
        product = (res_perturbed - res_base) / perturbation
        if add_time_term:
            product += self.mesh.cell_areas / timestep * direction
        return product

    def compute_jacobian_vector_product_affine(
        self,
        scale: float,
        res_base: np.ndarray,
        state: np.ndarray,
        direction: np.ndarray,
        shift: float,
        offset: np.ndarray,
        add_time_term: bool = False,
        timestep: np.ndarray | None = None,
    ) -> np.ndarray:
        """Computes the affine combination `a⋅∂𝓡/∂𝓤⋅v + b⋅w` matrix-free

        Args:
            scale: Factor `a` of the Jacobian-vector product.
            res_base: Residual at ``state`` in shape ``(num_var,num_cells)``.
            state: Cell states in shape ``(num_var,num_cells)``.
            direction: Direction `v` in shape ``(num_var,num_cells)``.
            shift: Factor `b` of the offset.
            offset: Offset `w` in shape ``(num_var,num_cells)``.
            add_time_term: Whether to add the time term `A/Δt⋅v` to the Jacobian-vector product.
            timestep: Time steps per cell in shape ``(num_cells)``, required for the time term.

        Returns:
            Affine combination in shape ``(num_var,num_cells)``.
        """
        self._check_array(offset, self.state_shape)
        return scale * self.compute_jacobian_vector_product(
            res_base, state, direction, add_time_term, timestep,
        ) + shift * offset

    def as_linear_operator(
        self,
        state: np.ndarray,
        res_base: np.ndarray | None = None,
        add_time_term: bool = False,
        timestep: np.ndarray | None = None,
    ) -> LinearOperator:
        """Wraps the matrix-free Jacobian-vector product as linear operator

        Vectors are the states flattened cell by cell, matching the assembled Jacobians.

        Args:
            state: Cell states at which to linearize in shape ``(num_var,num_cells)``.
            res_base: Residual at ``state``. Computed if not provided.
            add_time_term: Whether to add the time term `A/Δt⋅v`.
            timestep: Time steps per cell in shape ``(num_cells)``, required for the time term.

        Returns:
            Linear operator for Krylov solvers.
        """
        if res_base is None:
            res_base, _ = self.compute_residual(state)
        size = self.num_var * self.num_cells

        def matvec(vector: np.ndarray) -> np.ndarray:
            direction = np.reshape(vector, self.state_shape, order="F")
            return self.compute_jacobian_vector_product(
                res_base, state, direction, add_time_term, timestep,
            ).ravel(order="F")

        return LinearOperator((size, size), matvec=matvec, dtype=float)


class FlowDiscretization(SpatialDiscretization):
    """Spatial discretization of the 2D compressible Euler and Navier-Stokes equations

    Cell-centered finite volume discretization on unstructured meshes of the conserved variables
    `𝓤 = (ϱ, ϱvₓ, ϱv_y, ϱE)`. For second order, the face states are extrapolated from gradients
    reconstructed in each cell and limited, otherwise they are the cell states. Boundary conditions
    are imposed by ghost states. The residual of each cell is the sum of the numerical fluxes
    through its faces, scaled by the face lengths.

    The Jacobian is the first-order linearization: it differentiates the Jacobian flux with respect
    to the cell states, and the ghost states are treated as constant. It is exact for first order
    discretizations using the same flux for residual and Jacobian without boundary faces, and an
    approximation suitable for inexact Newton methods otherwise.
    """

    num_var = NUM_VAR

    def __init__(
        self,
        mesh: Mesh,
        physics: FlowPhysicsConfig | None = None,
        numerics: FlowNumericsConfig | None = None,
    ) -> None:
        """Initialize the discretization

        Args:
            mesh: Mesh.
            physics: Physical parameters and boundary markers.
            numerics: Numerical schemes.

        Raises:
            ConfigurationError: If the configuration is invalid.
            BoundaryMarkerError: If boundary faces carry markers without boundary condition.
        """
        self.mesh = mesh
        self.physics = physics if physics is not None else FlowPhysicsConfig()
        self.numerics = numerics if numerics is not None else FlowNumericsConfig()
        self.num_threads = self.numerics.num_threads
        self.geometry = GeometryCache(mesh, self.numerics.ghost_centroids)
        self.free_stream_state = get_free_stream_state(
            self.physics.mach_number, self.physics.angle_of_attack)
        self.free_stream_state.flags.writeable = False
        self.boundary = BoundaryConditions(mesh, self.physics, self.free_stream_state)
        self.reconstruction = create_reconstruction(
            self.numerics.reconstruction, mesh, self.geometry)
        self.limiter = create_limiter(
            self.numerics.limiter, mesh, self.geometry, self.numerics.venkatakrishnan_constant)
        self.inviscid_flux = create_inviscid_flux(self.numerics.inviscid_flux)
        self.jacobian_flux = create_inviscid_flux(self.numerics.jacobian_flux)
        self.viscous_flux = ViscousFlux(self.physics) if self.physics.viscous else None
        if not self.numerics.second_order and self.numerics.limiter != "NONE":
            logger.warning(
                "Limiter %s has no effect without reconstruction", self.numerics.limiter)
        logger.info(
            "Flow discretization: %s flux, %s flux for the Jacobian, %s reconstruction of %s "
            "variables, %s limiter, %s",
            self.numerics.inviscid_flux, self.numerics.jacobian_flux,
            self.numerics.reconstruction,
            "primitive" if self.numerics.reconstruct_primitive else "conserved",
            self.numerics.limiter, "viscous" if self.physics.viscous else "inviscid",
        )

    def initialize_unknowns(self, kind: str = "free_stream") -> np.ndarray:
        """Creates initial cell states

        Args:
            kind: ``"free_stream"`` for the free-stream state in all cells, or
                ``"supersonic_vortex"`` for the state at the inner radius of the supersonic vortex
                with the velocity turned into the local circumferential direction. This is the
                free-stream state at the vortex' inner Mach number, but scaled to the vortex
                non-dimensionalization of unit inner sound speed, such that it is consistent with
                the supersonic vortex ghost states: the momentum is scaled by the inner Mach
                number and the energy by its square.

        Returns:
            Cell states in shape ``(NUM_VAR,num_cells)``.

        Raises:
            ConfigurationError: If the kind is unknown.
        """
        if kind == "free_stream":
            return np.repeat(self.free_stream_state[:, None], self.num_cells, axis=1)
        if kind == "supersonic_vortex":
            inner_state = get_supersonic_vortex_state(VORTEX_INNER_RADIUS)
            state = np.repeat(inner_state[:, None], self.num_cells, axis=1)
            state[1:3] = get_supersonic_vortex_velocity(
                inner_state[1], self.geometry.cell_centroids)
            return state
        msg = f"Unknown initial condition '{kind}', expected 'free_stream' or 'supersonic_vortex'"
        raise ConfigurationError(msg)

    def compute_ghost_states(self, state: np.ndarray) -> np.ndarray:
        """Computes the ghost states from the states of the cells adjacent to the boundary

        Args:
            state: Cell states in shape ``(NUM_VAR,num_cells)``.

        Returns:
            Ghost states in shape ``(NUM_VAR,num_boundary_faces)``.
        """
        owners = self.mesh.face_cells[:self.mesh.num_boundary_faces, 0]
        return self.boundary.compute_boundary_states(state[:, owners])

    def compute_face_states(self, state: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Computes the left and right states at all faces

        For second order, the ghost states are computed from the cell states, the gradients are
        reconstructed and the limited face states are extrapolated. For first order, the face
        states are the adjacent cell states. Finally, the right states at boundary faces are set to
        the ghost states of the left states.

        Args:
            state: Cell states in shape ``(NUM_VAR,num_cells)``.

        Returns:
            Left and right states, each in shape ``(NUM_VAR,num_faces)``.
        """
        self._check_array(state, self.state_shape)
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        if self.numerics.second_order:
            ghost_states = self.compute_ghost_states(state)
            if self.numerics.reconstruct_primitive:
                cell_values, ghost_values = get_primitive(state), get_primitive(ghost_states)
            else:
                cell_values, ghost_values = state, ghost_states
            dudx, dudy = self.reconstruction.compute_gradients(cell_values, ghost_values)
            uleft, uright = self.limiter.compute_face_values(
                cell_values, ghost_values, dudx, dudy)
            if self.numerics.reconstruct_primitive:
                uleft, uright = get_conserved(uleft), get_conserved(uright)
        else:
            uleft = state[:, owners]
            uright = np.empty_like(uleft)
            uright[:, nbface:] = state[:, neighbors[nbface:]]
        uright[:, :nbface] = self.boundary.compute_boundary_states(uleft[:, :nbface])
        return uleft, uright

    def _compute_viscous_data(self, state: np.ndarray) -> tuple[np.ndarray, ...]:
        """Computes the cell states and the gradients across each face for the viscous flux"""
        nbface = self.mesh.num_boundary_faces
        owners, neighbors = self.mesh.face_cells.T
        ghost_states = self.compute_ghost_states(state)
        mach_number = self.physics.mach_number
        gradients = np.stack(self.reconstruction.compute_gradients(
            get_viscous_variables(state, mach_number),
            get_viscous_variables(ghost_states, mach_number),
        ), axis=1)
        right_states = np.concatenate([ghost_states, state[:, neighbors[nbface:]]], axis=1)
        right_gradients = np.concatenate(
            [gradients[..., owners[:nbface]], gradients[..., neighbors[nbface:]]], axis=2)
        return state[:, owners], right_states, gradients[..., owners], right_gradients

    def compute_residual(
        self,
        state: np.ndarray,
        compute_timestep: bool = False,
    ) -> tuple[np.ndarray, np.ndarray | None]:
        """Computes the residual and the local time-step bounds

        The residual of each cell is the sum of the numerical fluxes leaving it, scaled by the face
        lengths. The local time-step bound is the cell area divided by the integral of the largest
        wave speed `|vₙ| + c` over the cell's faces.

        Args:
            state: Cell states in shape ``(NUM_VAR,num_cells)``.
            compute_timestep: Whether to compute the local time-step bounds.

        Returns:
            Residual in shape ``(NUM_VAR,num_cells)`` and, if requested, the local time-step bound
            per cell in shape ``(num_cells)``, otherwise ``None``.
        """
        mesh = self.mesh
        uleft, uright = self.compute_face_states(state)
        viscous_data = self._compute_viscous_data(state) if self.viscous_flux else None
        owners, neighbors = mesh.face_cells.T
        normals = mesh.face_normals
        deltas = self.geometry.face_deltas

        def accumulate(faces: slice) -> tuple[np.ndarray, np.ndarray]:
            flux = self.inviscid_flux.get_flux(uleft[:, faces], uright[:, faces], normals[:, faces])
            if viscous_data is not None:
                flux -= self.viscous_flux.get_flux(
                    *(array[..., faces] for array in viscous_data),
                    deltas[:, faces], normals[:, faces],
                )
            flux *= mesh.face_lengths[faces]
            speed_l = (
                np.abs(get_normal_velocity(uleft[:, faces], normals[:, faces]))
                + get_sound_speed(uleft[:, faces])
            ) * mesh.face_lengths[faces]
            speed_r = (
                np.abs(get_normal_velocity(uright[:, faces], normals[:, faces]))
                + get_sound_speed(uright[:, faces])
            ) * mesh.face_lengths[faces]
            interior = neighbors[faces] >= 0
            residual = np.zeros(self.state_shape, dtype=flux.dtype)
            integral = np.zeros(mesh.num_cells, dtype=speed_l.dtype)
            np.add.at(residual, (slice(None), owners[faces]), flux)
            np.subtract.at(residual, (slice(None), neighbors[faces][interior]), flux[:, interior])
            np.add.at(integral, owners[faces], speed_l)
            np.add.at(integral, neighbors[faces][interior], speed_r[interior])
            return residual, integral

        residual, integral = reduce_chunks(accumulate, mesh.num_faces, self.num_threads)
        if not compute_timestep:
            return residual, None
        return residual, mesh.cell_areas / integral

    def compute_jacobian(
        self,
        state: np.ndarray,
        matrix: BlockMatrix | None = None,
    ) -> BlockMatrix:
        """Computes the Jacobian of the residual with respect to the states

        The lower block of each interior face is `L = -∂F/∂𝓤ₗ⋅l` at (neighbor row, owner column),
        the upper block is `U = ∂F/∂𝓤ᵣ⋅l` at (owner row, neighbor column), and `-L` and `-U` are
        added to the owner's and neighbor's diagonal block. Boundary faces add `∂F/∂𝓤ₗ⋅l` to the
        owner's diagonal block, without differentiating the ghost state.

        Args:
            state: Cell states in shape ``(NUM_VAR,num_cells)``.
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
        right_states = np.concatenate(
            [self.compute_ghost_states(state), state[:, neighbors[nbface:]]], axis=1)
        deltas = self.geometry.face_deltas

        def linearize(faces: slice) -> tuple[np.ndarray, np.ndarray]:
            left = state[:, owners[faces]]
            right = right_states[:, faces]
            normals = mesh.face_normals[:, faces]
            d_left, d_right = self.jacobian_flux.get_jacobian(left, right, normals)
            if self.viscous_flux is not None:
                d_left_viscous, d_right_viscous = self.viscous_flux.get_jacobian(
                    left, right, deltas[:, faces], normals)
                d_left = d_left - d_left_viscous
                d_right = d_right - d_right_viscous
            return d_left * mesh.face_lengths[faces], d_right * mesh.face_lengths[faces]

        chunks = map_chunks(linearize, mesh.num_faces, self.num_threads)
        d_left = np.concatenate([chunk[0] for chunk in chunks], axis=2)
        d_right = np.concatenate([chunk[1] for chunk in chunks], axis=2)
        lower = -d_left[..., nbface:]
        upper = d_right[..., nbface:]
        matrix.update_diagonal_blocks(owners[:nbface], d_left[..., :nbface])
        matrix.insert_face_blocks(
            np.arange(mesh.num_interior_faces), owners[nbface:], neighbors[nbface:], lower, upper)
        matrix.update_diagonal_blocks(owners[nbface:], -lower)
        matrix.update_diagonal_blocks(neighbors[nbface:], -upper)
        return matrix
