"""Configuration of the flow discretization

This module implements the immutable physics and numerics configurations and the errors raised for
invalid setups. Option names are validated on construction, such that a misconfiguration fails
before any discretization is set up.

Copyright (C) 2025 Simon Ehrmanntraut - All Rights Reserved
"""

from dataclasses import dataclass
from dataclasses import fields

INVISCID_FLUXES = ("VANLEER", "ROE", "HLL", "HLLC", "LLF")
RECONSTRUCTIONS = ("NONE", "GREENGAUSS", "LEASTSQUARES")
LIMITERS = ("NONE", "WENO", "VANALBADA", "BARTHJESPERSEN", "VENKATAKRISHNAN")


class ConfigurationError(ValueError):
    """Raised for invalid or inconsistent configurations"""


class BoundaryMarkerError(ConfigurationError):
    """Raised if boundary faces carry markers without configured boundary condition"""


def check_option(name: str, value: str, options: tuple[str, ...]) -> str:
    """Checks that an option is one of the accepted values

    Args:
        name: Name of the option for the error message.
        value: Value of the option.
        options: Accepted values.

    Returns:
        The value.

    Raises:
        ConfigurationError: If the value is not accepted.
    """
    if value not in options:
        msg = f"Unknown {name} '{value}', expected one of {', '.join(options)}"
        raise ConfigurationError(msg)
    return value


@dataclass(frozen=True)
class FlowPhysicsConfig:
    """Physical parameters and boundary condition markers

    Markers set to ``None`` are not used. Temperatures of walls are non-dimensional, i.e. relative
    to the free-stream temperature, and wall velocities are tangential, positive in the direction
    of the face traversal with respect to the interior. No-slip wall ghost states carry the wall
    velocity, unless ``reflect_wall_velocity`` mirrors the interior velocity about it.
    """

    mach_number: float = 0.5
    angle_of_attack: float = 0.
    viscous: bool = False
    reynolds_number: float | None = None
    prandtl_number: float = 0.72
    free_stream_temperature: float = 288.15
    constant_viscosity: bool = False
    slip_wall_marker: int | None = None
    farfield_marker: int | None = None
    inflow_outflow_marker: int | None = None
    extrapolation_marker: int | None = None
    periodic_marker: int | None = None
    isothermal_wall_marker: int | None = None
    adiabatic_wall_marker: int | None = None
    supersonic_vortex_marker: int | None = None
    wall_temperature: float = 1.
    isothermal_wall_velocity: float = 0.
    adiabatic_wall_velocity: float = 0.
    reflect_wall_velocity: bool = False

    def __post_init__(self) -> None:
        if self.mach_number <= 0.:
            msg = f"Mach number must be positive, got {self.mach_number}"
            raise ConfigurationError(msg)
        if self.viscous and (self.reynolds_number is None or self.reynolds_number <= 0.):
            msg = "Viscous flows require a positive Reynolds number"
            raise ConfigurationError(msg)
        if self.wall_temperature <= 0.:
            msg = f"Wall temperature must be positive, got {self.wall_temperature}"
            raise ConfigurationError(msg)
        markers = self.markers
        if len(set(markers.values())) != len(markers):
            msg = f"Boundary markers must be distinct, got {markers}"
            raise ConfigurationError(msg)

    @property
    def markers(self) -> dict[str, int]:
        """Configured boundary markers by field name"""
        return {
            field.name: getattr(self, field.name)
            for field in fields(self)
            if field.name.endswith("_marker") and getattr(self, field.name) is not None
        }


@dataclass(frozen=True)
class FlowNumericsConfig:
    """Numerical schemes

    The Jacobian flux defaults to the residual flux. A different, cheaper flux for the Jacobian
    results in an approximate Jacobian suitable for inexact Newton methods.
    """

    inviscid_flux: str = "ROE"
    jacobian_flux: str | None = None
    reconstruction: str = "NONE"
    limiter: str = "NONE"
    reconstruct_primitive: bool = False
    ghost_centroids: str = "midpoint"
    venkatakrishnan_constant: float = 5.
    num_threads: int = 1

    def __post_init__(self) -> None:
        check_option("inviscid flux", self.inviscid_flux, INVISCID_FLUXES)
        if self.jacobian_flux is None:
            object.__setattr__(self, "jacobian_flux", self.inviscid_flux)
        check_option("Jacobian flux", self.jacobian_flux, INVISCID_FLUXES)
        check_option("reconstruction", self.reconstruction, RECONSTRUCTIONS)
        check_option("limiter", self.limiter, LIMITERS)
        check_option("ghost centroid policy", self.ghost_centroids, ("midpoint", "face"))
        if self.num_threads < 1:
            msg = f"Number of threads must be positive, got {self.num_threads}"
            raise ConfigurationError(msg)
        if self.venkatakrishnan_constant < 0.:
            msg = "Venkatakrishnan constant must be non-negative"
            raise ConfigurationError(msg)

    @property
    def second_order(self) -> bool:
        """Whether the face states are reconstructed"""
        return self.reconstruction != "NONE"
