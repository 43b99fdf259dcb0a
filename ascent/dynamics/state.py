"""Vehicle state and launch parameters for point-mass ascent simulation.

The vehicle is a point mass: thrust is an acceleration and there is no
attitude state. Thrust direction is derived every tick from the local
vertical and the launch parameters (see ``ascent.simulation.simulator``).

State contents:
- Position, velocity (3 each): body-centred frame [km], [km/s]
- Thrust, gravity (3 each): accelerations applied on the last tick [km/s^2]
- Initial position (3): launch point, used for the touchdown guard [km]
- Travelled (3): per-axis unsigned distance covered [km]
- Altitude, max altitude [km], flight time [s]
- Incline accumulators: incline duration [s] and incline angle [rad]
- Landed flag: terminal, never reset

Vector convention:
- Normalising a vector shorter than 1e-12 yields the zero vector
- Rotating about a zero axis leaves the vector unchanged
"""

import math
from dataclasses import dataclass, replace

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from ascent.environment.body import ZERO_LENGTH, CelestialBody

# =============================================================================
# Vector Utilities
# =============================================================================


@beartype
def normalize(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unit vector along v, or the zero vector when v has no length."""
    norm = float(np.linalg.norm(v))
    if norm < ZERO_LENGTH:
        return np.zeros_like(v)
    return v / norm


@beartype
def project_on_plane(
    v: NDArray[np.float64],
    normal: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Remove the component of v along the plane normal.

    Args:
        v: Vector to project
        normal: Plane normal (need not be unit length)

    Returns:
        Projection of v onto the plane; v itself if the normal is zero
    """
    n = normalize(normal)
    return v - np.dot(v, n) * n


@beartype
def rotate_about_axis(
    v: NDArray[np.float64],
    axis: NDArray[np.float64],
    angle: float,
) -> NDArray[np.float64]:
    """Rotate v by angle [rad] about axis (Rodrigues' formula).

    Right-handed: positive angles turn counter-clockwise looking down the
    axis. A zero axis leaves v unchanged.
    """
    k = normalize(axis)
    if not np.any(k):
        return v.copy()

    cos_a = math.cos(angle)
    sin_a = math.sin(angle)

    return (
        v * cos_a
        + np.cross(k, v) * sin_a
        + k * np.dot(k, v) * (1.0 - cos_a)
    )


# =============================================================================
# Launch Parameters
# =============================================================================


@beartype
@dataclass(frozen=True, eq=False)
class LaunchParameters:
    """The six values that fully determine one flight from a given pad.

    This is the unit the trajectory optimizer evolves.

    Attributes:
        target_direction: Straight-line direction toward the destination at
            launch (unit vector, or zero for "no bearing")
        incline_start_altitude: Altitude above which the thrust starts to
            incline [km]
        incline_max_duration: Cap on the accumulated incline time [s]
        incline_rate: Incline angular rate [rad/s]
        fuel_duration: Burn duration [s]
        max_thrust: Peak thrust acceleration [km/s^2]
    """
    target_direction: NDArray[np.float64]
    incline_start_altitude: float = 8.0
    incline_max_duration: float = 160.0
    incline_rate: float = math.radians(0.5)
    fuel_duration: float = 535.0
    max_thrust: float = 0.05

    def __post_init__(self) -> None:
        """Normalize the direction and validate scalar fields."""
        direction = np.asarray(self.target_direction, dtype=np.float64)
        if direction.shape != (3,):
            raise ValueError(f"target_direction must be shape (3,), got {direction.shape}")
        object.__setattr__(self, "target_direction", normalize(direction))

        for name in (
            "incline_start_altitude",
            "incline_max_duration",
            "incline_rate",
            "fuel_duration",
            "max_thrust",
        ):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be finite and >= 0, got {value}")

    @classmethod
    def toward(
        cls,
        start: NDArray[np.float64],
        target: NDArray[np.float64],
        **fields: float,
    ) -> "LaunchParameters":
        """Parameters aimed along the straight line from start to target.

        Args:
            start: Launch position [km]
            target: Destination position [km]
            **fields: Overrides for the scalar fields
        """
        return cls(target_direction=normalize(target - start), **fields)

    def replace(self, **changes: object) -> "LaunchParameters":
        """Copy with some fields changed (re-validated)."""
        return replace(self, **changes)

    def as_dict(self) -> dict[str, float]:
        """Flat numeric view, used for reports and dataframes."""
        dx, dy, dz = (float(c) for c in self.target_direction)
        return {
            "direction_x": dx,
            "direction_y": dy,
            "direction_z": dz,
            "incline_start_altitude": self.incline_start_altitude,
            "incline_max_duration": self.incline_max_duration,
            "incline_rate": self.incline_rate,
            "fuel_duration": self.fuel_duration,
            "max_thrust": self.max_thrust,
        }


# =============================================================================
# Vehicle State
# =============================================================================


@beartype
@dataclass
class VehicleState:
    """Point-mass vehicle state.

    Attributes:
        position: [x, y, z] position [km]
        velocity: [vx, vy, vz] velocity [km/s]
        thrust: Thrust acceleration applied on the last tick [km/s^2]
        gravity: Gravity acceleration at the last tick [km/s^2]
        initial_position: Launch point [km]
        travelled: Per-axis unsigned distance covered [km]
        altitude: Height above the surface [km]
        max_altitude: Highest altitude reached [km]
        flight_time: Time since launch [s]
        landed: Terminal flag, never reset once set
        incline_duration: Accumulated incline time [s]
        incline_angle: Current incline angle from vertical [rad]
    """
    position: NDArray[np.float64]
    velocity: NDArray[np.float64]
    thrust: NDArray[np.float64]
    gravity: NDArray[np.float64]
    initial_position: NDArray[np.float64]
    travelled: NDArray[np.float64]
    altitude: float = 0.0
    max_altitude: float = 0.0
    flight_time: float = 0.0
    landed: bool = False
    incline_duration: float = 0.0
    incline_angle: float = 0.0

    def __post_init__(self) -> None:
        """Validate vector shapes."""
        for name in ("position", "velocity", "thrust", "gravity", "initial_position", "travelled"):
            value = getattr(self, name)
            if value.shape != (3,):
                raise ValueError(f"{name} must be shape (3,), got {value.shape}")

    @classmethod
    def at_launch(cls, position: NDArray[np.float64], body: CelestialBody) -> "VehicleState":
        """Vehicle at rest on the pad.

        Args:
            position: Launch position [km]
            body: Body the vehicle stands on

        Returns:
            State with every dynamic quantity zero
        """
        return cls(
            position=position.copy(),
            velocity=np.zeros(3),
            thrust=np.zeros(3),
            gravity=np.zeros(3),
            initial_position=position.copy(),
            travelled=np.zeros(3),
            altitude=body.altitude(position),
            max_altitude=0.0,
        )

    def copy(self) -> "VehicleState":
        """Create a copy of this state."""
        return VehicleState(
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            thrust=self.thrust.copy(),
            gravity=self.gravity.copy(),
            initial_position=self.initial_position.copy(),
            travelled=self.travelled.copy(),
            altitude=self.altitude,
            max_altitude=self.max_altitude,
            flight_time=self.flight_time,
            landed=self.landed,
            incline_duration=self.incline_duration,
            incline_angle=self.incline_angle,
        )

    @property
    def speed(self) -> float:
        """Speed magnitude [km/s]."""
        return float(np.linalg.norm(self.velocity))

    @property
    def displacement(self) -> NDArray[np.float64]:
        """Vector from the launch point to the current position [km]."""
        return self.position - self.initial_position

    @property
    def distance_from_start(self) -> float:
        """Straight-line distance from the launch point [km]."""
        return float(np.linalg.norm(self.displacement))

    @property
    def travelled_distance(self) -> float:
        """Magnitude of the per-axis travelled tracker [km]."""
        return float(np.linalg.norm(self.travelled))

    @property
    def thrust_magnitude(self) -> float:
        """Current thrust acceleration [km/s^2]."""
        return float(np.linalg.norm(self.thrust))
