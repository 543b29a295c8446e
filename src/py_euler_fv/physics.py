"""Gas dynamics of the 2D compressible Euler and Navier-Stokes equations

This module implements the thermodynamic relations, physical fluxes and reference states in the
non-dimensionalization used throughout the package: free-stream density and free-stream speed are
unity, hence the free-stream pressure is `pₒₒ = 1/(γ⋅Maₒₒ²)` and the temperature `T = γ⋅Maₒₒ²⋅p/ϱ`
is unity in the free-stream.

All functions operate on variable-major arrays, i.e. conserved variables in shape ``(NUM_VAR,...)``
and normals in shape ``(NUM_DIM,...)``, and broadcast over all trailing axes. All functions accept
complex arrays, such that they can be differentiated by complex-step.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

import numpy as np

NUM_DIM = 2
NUM_VAR = 4
HEAT_RATIO = 1.4

# Sutherland's constant in Kelvin
SUTHERLAND_TEMPERATURE = 110.5

# Supersonic vortex of Krivodonova and Berger: inner radius, inner Mach number, inner density
VORTEX_INNER_RADIUS = 1.
VORTEX_INNER_MACH = 2.25
VORTEX_INNER_DENSITY = 1.


def complex_abs(value: np.ndarray) -> np.ndarray:
    """Absolute value compatible with complex-step differentiation"""
    return np.where(np.real(value) < 0., -value, value)


def complex_max(value_a: np.ndarray, value_b: np.ndarray) -> np.ndarray:
    """Element-wise maximum compatible with complex-step differentiation"""
    return np.where(np.real(value_a) >= np.real(value_b), value_a, value_b)


def complex_min(value_a: np.ndarray, value_b: np.ndarray) -> np.ndarray:
    """Element-wise minimum compatible with complex-step differentiation"""
    return np.where(np.real(value_a) <= np.real(value_b), value_a, value_b)


def get_pressure(state: np.ndarray) -> np.ndarray:
    """Gets the pressure from the ideal gas law

    Args:
        state: Conserved variables in shape ``(NUM_VAR,...)``.

    Returns:
        Pressure in shape ``(...)``.
    """
    density, momentum_x, momentum_y, energy = state
    return (HEAT_RATIO - 1.) * (energy - 0.5 * (momentum_x**2 + momentum_y**2) / density)


def get_sound_speed(state: np.ndarray) -> np.ndarray:
    """Gets the speed of sound `c = √(γ⋅p/ϱ)`"""
    return np.sqrt(HEAT_RATIO * get_pressure(state) / state[0])


def get_velocity(state: np.ndarray) -> np.ndarray:
    """Gets the velocity in shape ``(NUM_DIM,...)``"""
    return state[1:3] / state[0]


def get_normal_velocity(state: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """Gets the velocity component along the unit normal"""
    return (state[1] * normal[0] + state[2] * normal[1]) / state[0]


def get_temperature(state: np.ndarray, mach_number: float) -> np.ndarray:
    """Gets the non-dimensional temperature `T = γ⋅Maₒₒ²⋅p/ϱ`

    Args:
        state: Conserved variables in shape ``(NUM_VAR,...)``.
        mach_number: Free-stream Mach number.

    Returns:
        Temperature in shape ``(...)``, unity in the free-stream.
    """
    return HEAT_RATIO * mach_number**2 * get_pressure(state) / state[0]


def get_energy_from_temperature(
    density: np.ndarray,
    velocity: np.ndarray,
    temperature: np.ndarray,
    mach_number: float,
) -> np.ndarray:
    """Gets the total energy density from density, velocity and non-dimensional temperature"""
    pressure = density * temperature / (HEAT_RATIO * mach_number**2)
    return pressure / (HEAT_RATIO - 1.) + 0.5 * density * (velocity[0]**2 + velocity[1]**2)


def get_primitive(state: np.ndarray) -> np.ndarray:
    """Converts conserved variables to primitive variables `(ϱ,vₓ,v_y,p)`"""
    return np.stack([state[0], state[1] / state[0], state[2] / state[0], get_pressure(state)])


def get_conserved(primitive: np.ndarray) -> np.ndarray:
    """Converts primitive variables `(ϱ,vₓ,v_y,p)` to conserved variables"""
    density, velocity_x, velocity_y, pressure = primitive
    return np.stack([
        density,
        density * velocity_x,
        density * velocity_y,
        pressure / (HEAT_RATIO - 1.) + 0.5 * density * (velocity_x**2 + velocity_y**2),
    ])


def get_physical_flux(state: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """Gets the physical flux projected onto a unit normal

    Args:
        state: Conserved variables in shape ``(NUM_VAR,...)``.
        normal: Unit normal in shape ``(NUM_DIM,...)``.

    Returns:
        Normal flux `F(𝓤)⋅n` in shape ``(NUM_VAR,...)``.
    """
    density, momentum_x, momentum_y, energy = state
    normal_velocity = get_normal_velocity(state, normal)
    pressure = get_pressure(state)
    return np.stack([
        density * normal_velocity,
        momentum_x * normal_velocity + pressure * normal[0],
        momentum_y * normal_velocity + pressure * normal[1],
        (energy + pressure) * normal_velocity,
    ])


def get_physical_flux_jacobian(state: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """Gets the Jacobian of the normal physical flux with respect to the conserved variables

    Args:
        state: Conserved variables in shape ``(NUM_VAR,...)``.
        normal: Unit normal in shape ``(NUM_DIM,...)``.

    Returns:
        Jacobian `∂(F⋅n)/∂𝓤` in shape ``(NUM_VAR,NUM_VAR,...)``.
    """
    gm1 = HEAT_RATIO - 1.
    normal_x, normal_y = normal
    velocity_x, velocity_y = get_velocity(state)
    normal_velocity = velocity_x * normal_x + velocity_y * normal_y
    phi = 0.5 * gm1 * (velocity_x**2 + velocity_y**2)
    enthalpy = (state[3] + get_pressure(state)) / state[0]
    zero = np.zeros_like(normal_velocity)
    rows = [
        [zero, normal_x + zero, normal_y + zero, zero],
        [
            phi * normal_x - velocity_x * normal_velocity,
            normal_velocity - (HEAT_RATIO - 2.) * velocity_x * normal_x,
            velocity_x * normal_y - gm1 * velocity_y * normal_x,
            gm1 * normal_x + zero,
        ],
        [
            phi * normal_y - velocity_y * normal_velocity,
            velocity_y * normal_x - gm1 * velocity_x * normal_y,
            normal_velocity - (HEAT_RATIO - 2.) * velocity_y * normal_y,
            gm1 * normal_y + zero,
        ],
        [
            normal_velocity * (phi - enthalpy),
            enthalpy * normal_x - gm1 * velocity_x * normal_velocity,
            enthalpy * normal_y - gm1 * velocity_y * normal_velocity,
            HEAT_RATIO * normal_velocity,
        ],
    ]
    return np.stack([np.stack(np.broadcast_arrays(*row)) for row in rows])


def get_free_stream_state(mach_number: float, angle_of_attack: float) -> np.ndarray:
    """Gets the free-stream state

    Args:
        mach_number: Free-stream Mach number.
        angle_of_attack: Free-stream angle of attack in degree.

    Returns:
        Conserved variables in shape ``(NUM_VAR)``.
    """
    angle = np.deg2rad(angle_of_attack)
    pressure = 1. / (HEAT_RATIO * mach_number**2)
    return np.array([
        1.,
        np.cos(angle),
        np.sin(angle),
        pressure / (HEAT_RATIO - 1.) + 0.5,
    ])


def get_viscosity(
    temperature: np.ndarray,
    free_stream_temperature: float,
    constant_viscosity: bool = False,
) -> np.ndarray:
    """Gets the non-dimensional dynamic viscosity

    Uses Sutherland's law normalized by the free-stream viscosity, or unity if
    ``constant_viscosity`` is set.

    Args:
        temperature: Non-dimensional temperature.
        free_stream_temperature: Free-stream temperature in Kelvin.
        constant_viscosity: Whether to use a constant viscosity.

    Returns:
        Viscosity in the shape of ``temperature``.
    """
    if constant_viscosity:
        return np.ones_like(temperature)
    sutherland = SUTHERLAND_TEMPERATURE / free_stream_temperature
    return (1. + sutherland) / (temperature + sutherland) * temperature**1.5


def get_supersonic_vortex_state(radius: np.ndarray) -> np.ndarray:
    """Gets the exact state of the supersonic vortex

    The supersonic vortex of Krivodonova and Berger is an isentropic flow between two concentric
    circular arcs. Its non-dimensionalization differs from the free-stream one: the pressure is
    `p = ϱ^γ/γ`, such that the speed of sound at the inner radius is unity.

    Args:
        radius: Distance from the vortex center in shape ``(...)``.

    Returns:
        Conserved variables in shape ``(NUM_VAR,...)``, where the momentum is reported in the
        local tangential direction (first momentum component).
    """
    radius = np.asarray(radius)
    pressure = 1. + (HEAT_RATIO - 1.) * 0.5 * VORTEX_INNER_MACH**2 * (
        1. - VORTEX_INNER_RADIUS**2 / radius**2)
    density = VORTEX_INNER_DENSITY * pressure**(1. / (HEAT_RATIO - 1.))
    inner_sound_speed = np.sqrt(VORTEX_INNER_DENSITY**(HEAT_RATIO - 1.))
    speed = inner_sound_speed * VORTEX_INNER_MACH / radius
    pressure = density**HEAT_RATIO / HEAT_RATIO
    return np.stack([
        density,
        density * speed,
        np.zeros_like(density),
        pressure / (HEAT_RATIO - 1.) + 0.5 * density * speed**2,
    ])


def get_supersonic_vortex_velocity(
    speed: np.ndarray,
    points: np.ndarray,
) -> np.ndarray:
    """Gets the clockwise vortex velocity of magnitude ``speed`` at ``points``

    Args:
        speed: Velocity magnitude in shape ``(...)``.
        points: Coordinates in shape ``(NUM_DIM,...)``.

    Returns:
        Velocity in shape ``(NUM_DIM,...)``.
    """
    theta = np.arctan2(points[1], points[0]) - np.pi / 2
    return np.stack([speed * np.cos(theta), speed * np.sin(theta)])


def get_supersonic_vortex_field(points: np.ndarray) -> np.ndarray:
    """Gets the exact supersonic vortex state in Cartesian momentum components

    Args:
        points: Coordinates in shape ``(NUM_DIM,...)``.

    Returns:
        Conserved variables in shape ``(NUM_VAR,...)``.
    """
    radius = np.hypot(points[0], points[1])
    state = get_supersonic_vortex_state(radius)
    state[1:3] = get_supersonic_vortex_velocity(state[1], points)
    return state
