"""Gravitating body model for ascent simulation.

A single spherical body with its centre fixed at the frame origin. Provides
point-mass gravity, altitude, and the conversion between geographic
coordinates and surface positions. Core functions are numba-compiled so the
flight kernels can call them without leaving nopython mode.

Frame convention (shared by the optimizer and every caller):
- Origin at the body centre
- +Z through the north pole (latitude +90)
- +X through latitude 0, longitude 0
- +Y through latitude 0, longitude +90
- Latitude measured from the equatorial plane, longitude counter-clockwise
  about +Z, returned in (-180, 180]

Units are km, s and km/s^2 throughout.

Example:
    >>> from ascent.environment import EARTH, GeoCoordinate
    >>>
    >>> pad = EARTH.surface_position(0.0, 90.0)  # [0, 6371, 0] km
    >>> g = EARTH.gravity_acceleration(pad)  # ~0.0098 km/s^2 toward centre
    >>> EARTH.geo_coordinates(pad)
    GeoCoordinate(latitude=0.0, longitude=90.0)
"""

import math
from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numba import njit
from numpy.typing import NDArray

# =============================================================================
# Constants
# =============================================================================

MU_EARTH: float = 398600.4418  # Gravitational parameter [km^3/s^2]
R_EARTH: float = 6371.0  # Mean radius [km]

# Below this length a vector is treated as zero
ZERO_LENGTH: float = 1e-12


class InvalidCoordinateError(ValueError):
    """Latitude or longitude outside its valid range."""


# =============================================================================
# Numba-Optimized Core Functions
# =============================================================================


@njit(cache=True, fastmath=True)
def _point_mass_gravity(
    x: float, y: float, z: float,
    mu: float,
) -> tuple[float, float, float]:
    """Numba-optimized point-mass gravity.

    g = -mu/r^2 * r_hat, zero at the centre where r_hat is undefined.
    """
    r_sq = x*x + y*y + z*z
    r = np.sqrt(r_sq)

    if r < ZERO_LENGTH:
        return (0.0, 0.0, 0.0)

    g_over_r = mu / (r_sq * r)

    return (-g_over_r * x, -g_over_r * y, -g_over_r * z)


@njit(cache=True)
def _geo_to_cartesian(
    lat: float, lon: float, radius: float,
) -> tuple[float, float, float]:
    """Spherical to Cartesian on a sphere of given radius (angles in rad)."""
    cos_lat = np.cos(lat)
    return (
        radius * cos_lat * np.cos(lon),
        radius * cos_lat * np.sin(lon),
        radius * np.sin(lat),
    )


@njit(cache=True)
def _cartesian_to_geo(x: float, y: float, z: float) -> tuple[float, float]:
    """Cartesian to (latitude, longitude) in rad.

    atan2 on both angles keeps the inverse well conditioned at the poles.
    """
    p = np.sqrt(x*x + y*y)
    return (np.arctan2(z, p), np.arctan2(y, x))


# =============================================================================
# Geographic Coordinates
# =============================================================================


@beartype
@dataclass(frozen=True, slots=True)
class GeoCoordinate:
    """A point on the body surface in degrees.

    Attributes:
        latitude: Latitude in [-90, 90] [deg]
        longitude: Longitude in [-180, 180] [deg]
    """
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        """Reject out-of-range input instead of wrapping it."""
        if not math.isfinite(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise InvalidCoordinateError(
                f"latitude must be within [-90, 90] degrees, got {self.latitude}"
            )
        if not math.isfinite(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise InvalidCoordinateError(
                f"longitude must be within [-180, 180] degrees, got {self.longitude}"
            )

    def to_position(self, body: "CelestialBody") -> NDArray[np.float64]:
        """Surface position of this coordinate on ``body`` [km]."""
        return body.surface_position(self.latitude, self.longitude)


# =============================================================================
# Celestial Body
# =============================================================================


@beartype
@dataclass(frozen=True, slots=True)
class CelestialBody:
    """Spherical gravitating body centred at the origin.

    Immutable once created.

    Attributes:
        radius: Surface radius [km]
        mu: Standard gravitational parameter [km^3/s^2]
    """
    radius: float = R_EARTH
    mu: float = MU_EARTH

    def __post_init__(self) -> None:
        """Validate body constants."""
        if not self.radius > 0:
            raise ValueError(f"radius must be > 0, got {self.radius}")
        if not self.mu > 0:
            raise ValueError(f"mu must be > 0, got {self.mu}")

    @classmethod
    def from_mass(cls, radius: float, mass: float, g_constant: float = 6.67430e-20) -> "CelestialBody":
        """Create a body from its mass [kg] and G [km^3/(kg s^2)]."""
        return cls(radius=radius, mu=mass * g_constant)

    def gravity_acceleration(self, position: NDArray[np.float64]) -> NDArray[np.float64]:
        """Compute gravitational acceleration at position.

        Args:
            position: Position vector [x, y, z] [km]

        Returns:
            Acceleration vector [km/s^2]; the zero vector at the exact centre
        """
        gx, gy, gz = _point_mass_gravity(
            float(position[0]), float(position[1]), float(position[2]), self.mu,
        )
        return np.array([gx, gy, gz])

    def gravity_magnitude(self, altitude: float) -> float:
        """Gravity magnitude at altitude above the surface [km/s^2]."""
        r = self.radius + altitude
        return self.mu / (r * r)

    def altitude(self, position: NDArray[np.float64]) -> float:
        """Height above the surface [km], negative below it."""
        return float(np.linalg.norm(position)) - self.radius

    def surface_position(self, latitude: float, longitude: float) -> NDArray[np.float64]:
        """Convert geographic coordinates to a surface position.

        Args:
            latitude: Latitude [deg], within [-90, 90]
            longitude: Longitude [deg], within [-180, 180]

        Returns:
            Position vector on the surface [km]

        Raises:
            InvalidCoordinateError: If either angle is out of range
        """
        GeoCoordinate(latitude, longitude)
        x, y, z = _geo_to_cartesian(
            math.radians(latitude), math.radians(longitude), self.radius,
        )
        return np.array([x, y, z])

    def geo_coordinates(self, position: NDArray[np.float64]) -> GeoCoordinate:
        """Convert a position to the geographic coordinates beneath it.

        Exact inverse of :meth:`surface_position` for surface points. The
        centre maps to (0, 0).
        """
        lat, lon = _cartesian_to_geo(
            float(position[0]), float(position[1]), float(position[2]),
        )
        return GeoCoordinate(
            latitude=min(max(math.degrees(lat), -90.0), 90.0),
            longitude=min(max(math.degrees(lon), -180.0), 180.0),
        )

    def project_to_surface(self, position: NDArray[np.float64]) -> NDArray[np.float64]:
        """Point on the surface along the radial line through position."""
        r = float(np.linalg.norm(position))
        if r < ZERO_LENGTH:
            return np.zeros(3)
        return position * (self.radius / r)

    def surface_distance(self, a: NDArray[np.float64], b: NDArray[np.float64]) -> float:
        """Great-circle distance between the surface points below a and b [km]."""
        na = float(np.linalg.norm(a))
        nb = float(np.linalg.norm(b))
        if na < ZERO_LENGTH or nb < ZERO_LENGTH:
            return 0.0
        cos_angle = float(np.dot(a, b)) / (na * nb)
        return self.radius * math.acos(min(max(cos_angle, -1.0), 1.0))


EARTH = CelestialBody(radius=R_EARTH, mu=MU_EARTH)
