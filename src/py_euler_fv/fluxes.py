"""Numerical inviscid fluxes

This module implements the approximate Riemann solvers computing the numerical flux across a face
from the left (owner) and right (neighbor) states, in direction of the unit normal pointing out of
the owner. All fluxes are vectorized over trailing axes and complex-safe, such that their Jacobians
are obtained exactly (up to round-off) by complex-step unless an analytic Jacobian is provided.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Callable

import numpy as np

from .config import ConfigurationError
from .config import INVISCID_FLUXES
from .physics import HEAT_RATIO
from .physics import NUM_VAR
from .physics import complex_abs
from .physics import complex_max
from .physics import complex_min
from .physics import get_physical_flux
from .physics import get_physical_flux_jacobian
from .physics import get_pressure

logger = logging.getLogger(__name__)

COMPLEX_STEP = 1e-20


def get_complex_step_jacobian(
    function: Callable[[np.ndarray, np.ndarray], np.ndarray],
    left: np.ndarray,
    right: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Differentiates a face flux function by complex-step

    The states are perturbed along an additional second axis, such that ``function`` must
    broadcast its other arguments accordingly, i.e. expect states in shape
    ``(num_var,num_var,...)``.

    Args:
        function: Flux function of the left and right state.
        left: Left states in shape ``(num_var,...)``.
        right: Right states in shape ``(num_var,...)``.

    Returns:
        Jacobians with respect to the left and right states, each in shape
        ``(num_var,num_var,...)``.
    """
    num_var = left.shape[0]
    perturbation = 1j * COMPLEX_STEP * np.eye(num_var).reshape(
        (num_var, num_var) + (1,) * (left.ndim - 1))
    with np.errstate(divide="ignore", invalid="ignore"):
        d_left = function(left[:, None] + perturbation, right[:, None]).imag / COMPLEX_STEP
        d_right = function(left[:, None], right[:, None] + perturbation).imag / COMPLEX_STEP
    return d_left, d_right


def _get_face_quantities(state: np.ndarray, normal: np.ndarray) -> tuple:
    """Gets density, velocity, normal velocity, pressure, sound speed and enthalpy"""
    density = state[0]
    velocity_x = state[1] / density
    velocity_y = state[2] / density
    normal_velocity = velocity_x * normal[0] + velocity_y * normal[1]
    pressure = get_pressure(state)
    sound_speed = np.sqrt(HEAT_RATIO * pressure / density)
    enthalpy = (state[3] + pressure) / density
    return density, velocity_x, velocity_y, normal_velocity, pressure, sound_speed, enthalpy


def _get_roe_averages(left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> tuple:
    """Gets the Roe-averaged density, velocity, normal velocity, sound speed and enthalpy"""
    density_l, velocity_x_l, velocity_y_l, _, _, _, enthalpy_l = _get_face_quantities(left, normal)
    density_r, velocity_x_r, velocity_y_r, _, _, _, enthalpy_r = _get_face_quantities(
        right, normal)
    ratio = np.sqrt(density_r / density_l)
    density = ratio * density_l
    velocity_x = (velocity_x_l + ratio * velocity_x_r) / (1. + ratio)
    velocity_y = (velocity_y_l + ratio * velocity_y_r) / (1. + ratio)
    enthalpy = (enthalpy_l + ratio * enthalpy_r) / (1. + ratio)
    sound_speed = np.sqrt((HEAT_RATIO - 1.) * (
        enthalpy - 0.5 * (velocity_x**2 + velocity_y**2)))
    normal_velocity = velocity_x * normal[0] + velocity_y * normal[1]
    return density, velocity_x, velocity_y, normal_velocity, sound_speed, enthalpy


class InviscidFlux(ABC):
    """Base class for numerical inviscid fluxes"""

    @abstractmethod
    def get_flux(self, left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> np.ndarray:
        """Gets the numerical flux

        Args:
            left: Left (owner) states in shape ``(NUM_VAR,...)``.
            right: Right (neighbor) states in shape ``(NUM_VAR,...)``.
            normal: Unit normals in shape ``(NUM_DIM,...)``, pointing from left to right.

        Returns:
            Numerical flux in shape ``(NUM_VAR,...)``.
        """

    def get_jacobian(
        self,
        left: np.ndarray,
        right: np.ndarray,
        normal: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Gets the Jacobians of the numerical flux

        Args:
            left: Left (owner) states in shape ``(NUM_VAR,...)``.
            right: Right (neighbor) states in shape ``(NUM_VAR,...)``.
            normal: Unit normals in shape ``(NUM_DIM,...)``, pointing from left to right.

        Returns:
            Jacobians `∂F/∂𝓤ₗ` and `∂F/∂𝓤ᵣ`, each in shape ``(NUM_VAR,NUM_VAR,...)``.
        """
        normal = np.asarray(normal)[:, None]
        return get_complex_step_jacobian(
            lambda left_, right_: self.get_flux(left_, right_, normal), left, right)


class VanLeerFlux(InviscidFlux):
    """Van Leer flux vector splitting"""

    @staticmethod
    def _get_split_flux(state: np.ndarray, normal: np.ndarray, sign: float) -> np.ndarray:
        """Gets the positive (``sign=1``) or negative (``sign=-1``) split flux"""
        density, velocity_x, velocity_y, normal_velocity, _, sound_speed, _ = (
            _get_face_quantities(state, normal))
        mach = normal_velocity / sound_speed
        mass_flux = sign * density * sound_speed * (mach + sign)**2 / 4.
        velocity_shift = (-normal_velocity + sign * 2. * sound_speed) / HEAT_RATIO
        subsonic = mass_flux * np.stack(np.broadcast_arrays(
            1.,
            velocity_x + normal[0] * velocity_shift,
            velocity_y + normal[1] * velocity_shift,
            0.5 * (velocity_x**2 + velocity_y**2 - normal_velocity**2)
            + ((HEAT_RATIO - 1.) * normal_velocity + sign * 2. * sound_speed)**2
            / (2. * (HEAT_RATIO**2 - 1.)),
        ))
        supersonic = np.where(
            sign * np.real(mach) > 0., get_physical_flux(state, normal), 0.)
        return np.where(np.abs(np.real(mach)) < 1., subsonic, supersonic)

    def get_flux(self, left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> np.ndarray:
        return self._get_split_flux(left, normal, 1.) + self._get_split_flux(right, normal, -1.)


class RoeFlux(InviscidFlux):
    """Roe flux with Harten's entropy fix

    The acoustic eigenvalues are smoothed below the threshold `δ = 0.1⋅c̃` of the Roe-averaged
    speed of sound.
    """

    entropy_fix: float = 0.1

    def get_flux(self, left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> np.ndarray:
        density, velocity_x, velocity_y, normal_velocity, sound_speed, enthalpy = (
            _get_roe_averages(left, right, normal))
        tangent_x, tangent_y = -normal[1], normal[0]
        d_density = right[0] - left[0]
        d_pressure = get_pressure(right) - get_pressure(left)
        velocity_l = left[1:3] / left[0]
        velocity_r = right[1:3] / right[0]
        d_normal_velocity = (
            (velocity_r[0] - velocity_l[0]) * normal[0]
            + (velocity_r[1] - velocity_l[1]) * normal[1])
        d_tangent_velocity = (
            (velocity_r[0] - velocity_l[0]) * tangent_x
            + (velocity_r[1] - velocity_l[1]) * tangent_y)
        threshold = self.entropy_fix * sound_speed

        def get_acoustic_speed(eigenvalue: np.ndarray) -> np.ndarray:
            speed = complex_abs(eigenvalue)
            return np.where(
                np.real(speed) < np.real(threshold),
                (eigenvalue**2 + threshold**2) / (2. * threshold),
                speed,
            )

        strengths = (
            get_acoustic_speed(normal_velocity - sound_speed)
            * (d_pressure - density * sound_speed * d_normal_velocity) / (2. * sound_speed**2),
            complex_abs(normal_velocity) * (d_density - d_pressure / sound_speed**2),
            get_acoustic_speed(normal_velocity + sound_speed)
            * (d_pressure + density * sound_speed * d_normal_velocity) / (2. * sound_speed**2),
            complex_abs(normal_velocity) * density * d_tangent_velocity,
        )
        zero = np.zeros_like(density)
        eigenvectors = (
            (1. + zero, velocity_x - sound_speed * normal[0],
             velocity_y - sound_speed * normal[1], enthalpy - sound_speed * normal_velocity),
            (1. + zero, velocity_x, velocity_y, 0.5 * (velocity_x**2 + velocity_y**2)),
            (1. + zero, velocity_x + sound_speed * normal[0],
             velocity_y + sound_speed * normal[1], enthalpy + sound_speed * normal_velocity),
            (zero, tangent_x + zero, tangent_y + zero,
             velocity_x * tangent_x + velocity_y * tangent_y),
        )
        dissipation = sum(
            strength * np.stack(np.broadcast_arrays(*eigenvector))
            for strength, eigenvector in zip(strengths, eigenvectors)
        )
        return 0.5 * (
            get_physical_flux(left, normal) + get_physical_flux(right, normal) - dissipation)


class HLLFlux(InviscidFlux):
    """Harten-Lax-van Leer flux with Einfeldt's wave speed estimates"""

    @staticmethod
    def get_wave_speeds(
        left: np.ndarray,
        right: np.ndarray,
        normal: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Gets the smallest and largest signal speed estimates"""
        _, _, _, normal_velocity, sound_speed, _ = _get_roe_averages(left, right, normal)
        _, _, _, normal_velocity_l, _, sound_speed_l, _ = _get_face_quantities(left, normal)
        _, _, _, normal_velocity_r, _, sound_speed_r, _ = _get_face_quantities(right, normal)
        return (
            complex_min(normal_velocity_l - sound_speed_l, normal_velocity - sound_speed),
            complex_max(normal_velocity_r + sound_speed_r, normal_velocity + sound_speed),
        )

    def get_flux(self, left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> np.ndarray:
        speed_l, speed_r = self.get_wave_speeds(left, right, normal)
        flux_l = get_physical_flux(left, normal)
        flux_r = get_physical_flux(right, normal)
        with np.errstate(divide="ignore", invalid="ignore"):
            flux_star = (
                speed_r * flux_l - speed_l * flux_r + speed_l * speed_r * (right - left)
            ) / (speed_r - speed_l)
        return np.where(
            np.real(speed_l) >= 0., flux_l,
            np.where(np.real(speed_r) <= 0., flux_r, flux_star),
        )


class HLLCFlux(InviscidFlux):
    """Harten-Lax-van Leer-Contact flux

    Restores the contact wave missing in the HLL flux by two intermediate states separated by the
    contact speed `s*`. Uses Einfeldt's wave speed estimates.
    """

    @staticmethod
    def _get_star_flux(
        state: np.ndarray,
        normal: np.ndarray,
        wave_speed: np.ndarray,
        contact_speed: np.ndarray,
    ) -> np.ndarray:
        """Gets the flux of the intermediate state adjacent to ``state``"""
        density, velocity_x, velocity_y, normal_velocity, pressure, _, _ = (
            _get_face_quantities(state, normal))
        factor = density * (wave_speed - normal_velocity) / (wave_speed - contact_speed)
        star_state = factor * np.stack(np.broadcast_arrays(
            1.,
            velocity_x + (contact_speed - normal_velocity) * normal[0],
            velocity_y + (contact_speed - normal_velocity) * normal[1],
            state[3] / density + (contact_speed - normal_velocity) * (
                contact_speed + pressure / (density * (wave_speed - normal_velocity))),
        ))
        return get_physical_flux(state, normal) + wave_speed * (star_state - state)

    def get_flux(self, left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> np.ndarray:
        speed_l, speed_r = HLLFlux.get_wave_speeds(left, right, normal)
        density_l, _, _, normal_velocity_l, pressure_l, _, _ = _get_face_quantities(left, normal)
        density_r, _, _, normal_velocity_r, pressure_r, _, _ = _get_face_quantities(right, normal)
        mass_l = density_l * (speed_l - normal_velocity_l)
        mass_r = density_r * (speed_r - normal_velocity_r)
        contact_speed = (
            pressure_r - pressure_l + mass_l * normal_velocity_l - mass_r * normal_velocity_r
        ) / (mass_l - mass_r)
        with np.errstate(divide="ignore", invalid="ignore"):
            star_flux_l = self._get_star_flux(left, normal, speed_l, contact_speed)
            star_flux_r = self._get_star_flux(right, normal, speed_r, contact_speed)
        return np.where(
            np.real(speed_l) >= 0., get_physical_flux(left, normal),
            np.where(
                np.real(contact_speed) >= 0., star_flux_l,
                np.where(np.real(speed_r) > 0., star_flux_r, get_physical_flux(right, normal)),
            ),
        )


class LocalLaxFriedrichsFlux(InviscidFlux):
    """Local Lax-Friedrichs (Rusanov) flux

    Provides an analytic Jacobian, treating the maximum wave speed as a function of the side
    attaining it.
    """

    @staticmethod
    def _get_wave_speeds(
        left: np.ndarray,
        right: np.ndarray,
        normal: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        _, _, _, normal_velocity_l, _, sound_speed_l, _ = _get_face_quantities(left, normal)
        _, _, _, normal_velocity_r, _, sound_speed_r, _ = _get_face_quantities(right, normal)
        return (
            complex_abs(normal_velocity_l) + sound_speed_l,
            complex_abs(normal_velocity_r) + sound_speed_r,
        )

    def get_flux(self, left: np.ndarray, right: np.ndarray, normal: np.ndarray) -> np.ndarray:
        speed = complex_max(*self._get_wave_speeds(left, right, normal))
        return 0.5 * (
            get_physical_flux(left, normal) + get_physical_flux(right, normal)
            - speed * (right - left)
        )

    @staticmethod
    def _get_wave_speed_derivative(state: np.ndarray, normal: np.ndarray) -> np.ndarray:
        """Gets the derivative of `|vₙ| + c` with respect to the conserved variables"""
        density, velocity_x, velocity_y, normal_velocity, pressure, sound_speed, _ = (
            _get_face_quantities(state, normal))
        zero = np.zeros_like(density)
        d_normal_velocity = np.stack(np.broadcast_arrays(
            -normal_velocity / density, normal[0] / density, normal[1] / density, zero))
        d_pressure = (HEAT_RATIO - 1.) * np.stack(np.broadcast_arrays(
            0.5 * (velocity_x**2 + velocity_y**2), -velocity_x, -velocity_y, 1. + zero))
        d_pressure[0] -= pressure / density
        d_sound_speed = HEAT_RATIO / (2. * sound_speed * density) * d_pressure
        return np.sign(np.real(normal_velocity)) * d_normal_velocity + d_sound_speed

    def get_jacobian(
        self,
        left: np.ndarray,
        right: np.ndarray,
        normal: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        speed_l, speed_r = self._get_wave_speeds(left, right, normal)
        left_active = np.real(speed_l) >= np.real(speed_r)
        speed = np.where(left_active, speed_l, speed_r)
        identity = np.eye(NUM_VAR).reshape((NUM_VAR, NUM_VAR) + (1,) * (left.ndim - 1))
        difference = right - left
        d_speed_l = np.where(left_active, self._get_wave_speed_derivative(left, normal), 0.)
        d_speed_r = np.where(left_active, 0., self._get_wave_speed_derivative(right, normal))
        d_left = 0.5 * (
            get_physical_flux_jacobian(left, normal) + speed * identity
            - difference[:, None] * d_speed_l[None, :]
        )
        d_right = 0.5 * (
            get_physical_flux_jacobian(right, normal) - speed * identity
            - difference[:, None] * d_speed_r[None, :]
        )
        return d_left, d_right


def create_inviscid_flux(name: str) -> InviscidFlux:
    """Creates the numerical inviscid flux

    Args:
        name: One of ``VANLEER``, ``ROE``, ``HLL``, ``HLLC`` or ``LLF``.

    Returns:
        Numerical flux.

    Raises:
        ConfigurationError: If the name is unknown.
    """
    fluxes = {
        "VANLEER": VanLeerFlux,
        "ROE": RoeFlux,
        "HLL": HLLFlux,
        "HLLC": HLLCFlux,
        "LLF": LocalLaxFriedrichsFlux,
    }
    if name not in fluxes:
        msg = f"Unknown inviscid flux '{name}', expected one of {', '.join(INVISCID_FLUXES)}"
        raise ConfigurationError(msg)
    return fluxes[name]()
