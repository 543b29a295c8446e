"""Viscous fluxes of the Navier-Stokes equations

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import numpy as np

from .config import FlowPhysicsConfig
from .fluxes import get_complex_step_jacobian
from .physics import HEAT_RATIO
from .physics import get_temperature
from .physics import get_viscosity


def get_viscous_variables(state: np.ndarray, mach_number: float) -> np.ndarray:
    """Converts conserved variables to density, velocity and temperature `(ϱ,vₓ,v_y,T)`"""
    return np.stack([
        state[0], state[1] / state[0], state[2] / state[0], get_temperature(state, mach_number),
    ])


class ViscousFlux:
    """Viscous flux of a Newtonian fluid with Fourier heat conduction

    The face gradient of the variables `(ϱ,vₓ,v_y,T)` is the modified average of the cell
    gradients: the average is corrected along the line connecting the adjacent centroids by the
    difference quotient of the cell values. Without cell gradients this reduces to the thin-layer
    approximation, which is also the linearization used for the Jacobians.
    """

    def __init__(self, physics: FlowPhysicsConfig) -> None:
        self.physics = physics
        self._conductivity_factor = 1. / (
            physics.prandtl_number * (HEAT_RATIO - 1.) * physics.mach_number**2)

    def get_flux(
        self,
        left: np.ndarray,
        right: np.ndarray,
        left_gradients: np.ndarray | None,
        right_gradients: np.ndarray | None,
        deltas: np.ndarray,
        normal: np.ndarray,
    ) -> np.ndarray:
        """Gets the viscous flux

        Args:
            left: Left (owner) cell states in shape ``(NUM_VAR,...)``.
            right: Right (neighbor or ghost) cell states in shape ``(NUM_VAR,...)``.
            left_gradients: Gradients of `(ϱ,vₓ,v_y,T)` at the owner in shape
                ``(NUM_VAR,NUM_DIM,...)``, or ``None`` for the thin-layer approximation.
            right_gradients: Gradients at the neighbor, or ``None``.
            deltas: Vectors from the left to the right centroid in shape ``(NUM_DIM,...)``.
            normal: Unit normals in shape ``(NUM_DIM,...)``.

        Returns:
            Viscous flux in shape ``(NUM_VAR,...)``, to be subtracted from the inviscid flux.
        """
        mach_number = self.physics.mach_number
        variables_l = get_viscous_variables(left, mach_number)
        variables_r = get_viscous_variables(right, mach_number)
        distance = np.sqrt(deltas[0]**2 + deltas[1]**2)
        direction = deltas / distance
        quotient = (variables_r - variables_l) / distance
        if left_gradients is None:
            gradients = quotient[:, None] * direction[None]
        else:
            average = 0.5 * (left_gradients + right_gradients)
            correction = quotient - np.sum(average * direction[None], axis=1)
            gradients = average + correction[:, None] * direction[None]
        _, velocity_x, velocity_y, temperature = 0.5 * (variables_l + variables_r)
        viscosity = get_viscosity(
            temperature, self.physics.free_stream_temperature,
            self.physics.constant_viscosity) / self.physics.reynolds_number
        (_, _), (du_dx, du_dy), (dv_dx, dv_dy), (dt_dx, dt_dy) = gradients
        divergence = du_dx + dv_dy
        stress_xx = viscosity * (2. * du_dx - 2. / 3. * divergence)
        stress_yy = viscosity * (2. * dv_dy - 2. / 3. * divergence)
        stress_xy = viscosity * (du_dy + dv_dx)
        conductivity = viscosity * self._conductivity_factor
        return np.stack([
            np.zeros_like(stress_xx),
            stress_xx * normal[0] + stress_xy * normal[1],
            stress_xy * normal[0] + stress_yy * normal[1],
            (velocity_x * stress_xx + velocity_y * stress_xy + conductivity * dt_dx) * normal[0]
            + (velocity_x * stress_xy + velocity_y * stress_yy + conductivity * dt_dy) * normal[1],
        ])

    def get_jacobian(
        self,
        left: np.ndarray,
        right: np.ndarray,
        deltas: np.ndarray,
        normal: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Gets the thin-layer Jacobians of the viscous flux

        Args:
            left: Left (owner) cell states in shape ``(NUM_VAR,...)``.
            right: Right (neighbor or ghost) cell states in shape ``(NUM_VAR,...)``.
            deltas: Vectors from the left to the right centroid in shape ``(NUM_DIM,...)``.
            normal: Unit normals in shape ``(NUM_DIM,...)``.

        Returns:
            Jacobians with respect to the left and right states, each in shape
            ``(NUM_VAR,NUM_VAR,...)``.
        """
        deltas = np.asarray(deltas)[:, None]
        normal = np.asarray(normal)[:, None]
        return get_complex_step_jacobian(
            lambda left_, right_: self.get_flux(left_, right_, None, None, deltas, normal),
            left, right,
        )
