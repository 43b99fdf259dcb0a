"""Environment models for ascent simulation.

Provides the spherical gravitating body, point-mass gravity and the
geographic coordinate conversion shared by the simulator and the planner.

Example:
    >>> from ascent.environment import EARTH
    >>>
    >>> position = EARTH.surface_position(0.0, 90.0)
    >>> g = EARTH.gravity_acceleration(position)  # km/s^2
"""

from ascent.environment.body import (
    EARTH,
    MU_EARTH,
    R_EARTH,
    CelestialBody,
    GeoCoordinate,
    InvalidCoordinateError,
)

__all__ = [
    "EARTH",
    "MU_EARTH",
    "R_EARTH",
    "CelestialBody",
    "GeoCoordinate",
    "InvalidCoordinateError",
]
