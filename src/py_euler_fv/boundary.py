"""Boundary conditions by ghost states

This module implements the synthesis of the exterior (ghost) states at boundary faces from the
interior states, dispatched by the boundary marker of each face. Each ghost state depends only on
its face's interior state and constants, such that faces can be processed in any order.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging

import numpy as np

from .config import BoundaryMarkerError
from .config import FlowPhysicsConfig
from .mesh import Mesh
from .physics import get_energy_from_temperature
from .physics import get_normal_velocity
from .physics import get_sound_speed
from .physics import get_supersonic_vortex_state
from .physics import get_temperature

logger = logging.getLogger(__name__)

# Boundary condition kinds by marker field of ``FlowPhysicsConfig``
BOUNDARY_KINDS = {
    "slip_wall_marker": "slip_wall",
    "farfield_marker": "farfield",
    "inflow_outflow_marker": "inflow_outflow",
    "extrapolation_marker": "extrapolation",
    "periodic_marker": "periodic",
    "isothermal_wall_marker": "isothermal_wall",
    "adiabatic_wall_marker": "adiabatic_wall",
    "supersonic_vortex_marker": "supersonic_vortex",
}


class BoundaryConditions:
    """Ghost state synthesis for the flow discretization

    Supported boundary conditions:
        * ``slip_wall``: mirrors the normal velocity, density and energy are kept.
        * ``isothermal_wall``: imposes the tangential wall velocity, zero for stationary walls,
          keeps the density and sets the wall temperature. With ``reflect_wall_velocity``, the
          interior velocity is mirrored about the wall velocity instead, such that the face
          average is the wall velocity.
        * ``adiabatic_wall``: as the isothermal wall, but keeps the interior temperature.
        * ``farfield``: free-stream state, irrespective of the interior state.
        * ``inflow_outflow``: free-stream state for subsonic normal Mach numbers, interior state
          otherwise. This characteristic variant has not been validated and should be treated as
          experimental, ``farfield`` is the recommended policy.
        * ``extrapolation``: interior state.
        * ``supersonic_vortex``: exact supersonic vortex state with the face midpoint's
          y-coordinate as radius, i.e. for inflow through the y-axis.

    Periodic boundaries are resolved by the mesh. A boundary face left with the periodic marker is
    an error.
    """

    def __init__(
        self,
        mesh: Mesh,
        physics: FlowPhysicsConfig,
        free_stream_state: np.ndarray,
    ) -> None:
        """Initialize the boundary conditions

        Args:
            mesh: Mesh.
            physics: Physics configuration holding the markers and wall parameters.
            free_stream_state: Conserved free-stream state in shape ``(NUM_VAR)``.

        Raises:
            BoundaryMarkerError: If a boundary face's marker has no boundary condition, or is the
                periodic marker.
        """
        self.mesh = mesh
        self.physics = physics
        self.free_stream_state = np.asarray(free_stream_state)
        nbface = mesh.num_boundary_faces
        markers = mesh.face_markers[:nbface]
        kinds = {
            marker: BOUNDARY_KINDS[name] for name, marker in physics.markers.items()
        }
        unknown = sorted(set(np.unique(markers).tolist()) - set(kinds))
        if unknown:
            msg = f"No boundary condition configured for markers {unknown}"
            raise BoundaryMarkerError(msg)
        if physics.periodic_marker is not None and np.any(markers == physics.periodic_marker):
            msg = (f"Boundary faces carry the periodic marker {physics.periodic_marker}, "
                   f"periodic faces must be paired by the mesh")
            raise BoundaryMarkerError(msg)
        self.face_groups = {
            kind: np.flatnonzero(markers == marker)
            for marker, kind in kinds.items()
            if np.any(markers == marker)
        }
        normals = mesh.face_normals[:, :nbface]
        self._normals = normals
        self._tangents = np.stack([-normals[1], normals[0]])
        self._radii = mesh.face_midpoints[1, :nbface]
        logger.debug(
            "Boundary conditions: %s",
            ", ".join(f"{kind} ({len(faces)} faces)" for kind, faces in self.face_groups.items()),
        )

    def compute_boundary_states(self, interior_states: np.ndarray) -> np.ndarray:
        """Computes the ghost states of all boundary faces

        Args:
            interior_states: Interior states in shape ``(NUM_VAR,num_boundary_faces)``.

        Returns:
            Ghost states in shape ``(NUM_VAR,num_boundary_faces)``.
        """
        ghost_states = np.empty_like(interior_states)
        for kind, faces in self.face_groups.items():
            ghost_states[:, faces] = getattr(self, f"_get_{kind}_states")(
                interior_states[:, faces], faces)
        return ghost_states

    def compute_boundary_state(self, face: int, interior_state: np.ndarray) -> np.ndarray:
        """Computes the ghost state of a single boundary face

        Args:
            face: Boundary face index.
            interior_state: Interior state in shape ``(NUM_VAR)``.

        Returns:
            Ghost state in shape ``(NUM_VAR)``.
        """
        for kind, faces in self.face_groups.items():
            if face in faces:
                return getattr(self, f"_get_{kind}_states")(
                    np.asarray(interior_state)[:, None], np.array([face]))[:, 0]
        msg = f"Face {face} is not a boundary face"
        raise IndexError(msg)

    def _get_slip_wall_states(self, interior: np.ndarray, faces: np.ndarray) -> np.ndarray:
        normals = self._normals[:, faces]
        normal_momentum = interior[1] * normals[0] + interior[2] * normals[1]
        ghost = interior.copy()
        ghost[1:3] -= 2. * normal_momentum * normals
        return ghost

    def _get_wall_states(
        self,
        interior: np.ndarray,
        faces: np.ndarray,
        wall_velocity: float,
        temperature: np.ndarray,
    ) -> np.ndarray:
        """Gets the ghost states of no-slip walls with given ghost temperature"""
        velocity = wall_velocity * self._tangents[:, faces] * np.ones_like(interior[0])
        if self.physics.reflect_wall_velocity:
            velocity = 2. * velocity - interior[1:3] / interior[0]
        ghost = np.empty_like(interior)
        ghost[0] = interior[0]
        ghost[1:3] = interior[0] * velocity
        ghost[3] = get_energy_from_temperature(
            interior[0], velocity, temperature, self.physics.mach_number)
        return ghost

    def _get_isothermal_wall_states(
        self,
        interior: np.ndarray,
        faces: np.ndarray,
    ) -> np.ndarray:
        return self._get_wall_states(
            interior, faces, self.physics.isothermal_wall_velocity,
            np.full(len(faces), self.physics.wall_temperature),
        )

    def _get_adiabatic_wall_states(
        self,
        interior: np.ndarray,
        faces: np.ndarray,
    ) -> np.ndarray:
        return self._get_wall_states(
            interior, faces, self.physics.adiabatic_wall_velocity,
            get_temperature(interior, self.physics.mach_number),
        )

    def _get_farfield_states(self, interior: np.ndarray, faces: np.ndarray) -> np.ndarray:
        return np.repeat(self.free_stream_state[:, None], len(faces), axis=1).astype(
            interior.dtype)

    def _get_inflow_outflow_states(self, interior: np.ndarray, faces: np.ndarray) -> np.ndarray:
        normal_mach = (
            get_normal_velocity(interior, self._normals[:, faces]) / get_sound_speed(interior))
        return np.where(
            np.real(normal_mach) < 1., self._get_farfield_states(interior, faces), interior)

    def _get_extrapolation_states(self, interior: np.ndarray, faces: np.ndarray) -> np.ndarray:
        return interior.copy()

    def _get_supersonic_vortex_states(
        self,
        interior: np.ndarray,
        faces: np.ndarray,
    ) -> np.ndarray:
        return get_supersonic_vortex_state(self._radii[faces]).astype(interior.dtype)
