"""Bounded flight trail for presentation and analysis.

Keeps the most recent snapshots of one vehicle; once the limit is reached the
oldest snapshot is dropped for each new one. Exports to a Polars DataFrame.
"""

from collections import deque

import numpy as np
import polars as pl
from beartype import beartype
from numpy.typing import NDArray

from ascent.dynamics.state import VehicleState

DEFAULT_TRAIL_LIMIT: int = 5000


@beartype
class FlightRecorder:
    """Rolling history of vehicle snapshots.

    Example:
        >>> recorder = FlightRecorder(limit=1000)
        >>> recorder.record(sim.state)
        >>> recorder.to_dataframe().select(["time", "altitude"])
    """

    def __init__(self, limit: int = DEFAULT_TRAIL_LIMIT) -> None:
        """Initialize recorder.

        Args:
            limit: Maximum number of snapshots kept
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.limit = limit
        self._states: deque[VehicleState] = deque(maxlen=limit)

    def record(self, state: VehicleState) -> None:
        """Append a copy of state, evicting the oldest snapshot if full."""
        self._states.append(state.copy())

    def clear(self) -> None:
        """Drop every snapshot."""
        self._states.clear()

    def __len__(self) -> int:
        return len(self._states)

    @property
    def states(self) -> list[VehicleState]:
        """Recorded snapshots, oldest first."""
        return list(self._states)

    @property
    def last(self) -> VehicleState | None:
        """Most recent snapshot."""
        return self._states[-1] if self._states else None

    @property
    def time(self) -> NDArray[np.float64]:
        """Flight time history [s]."""
        return np.array([s.flight_time for s in self._states], dtype=np.float64)

    @property
    def position(self) -> NDArray[np.float64]:
        """Position history [km], shape (N, 3)."""
        return np.array([s.position for s in self._states], dtype=np.float64).reshape(-1, 3)

    @property
    def velocity(self) -> NDArray[np.float64]:
        """Velocity history [km/s], shape (N, 3)."""
        return np.array([s.velocity for s in self._states], dtype=np.float64).reshape(-1, 3)

    @property
    def altitude(self) -> NDArray[np.float64]:
        """Altitude history [km]."""
        return np.array([s.altitude for s in self._states], dtype=np.float64)

    @property
    def speed(self) -> NDArray[np.float64]:
        """Speed history [km/s]."""
        return np.array([s.speed for s in self._states], dtype=np.float64)

    @property
    def thrust(self) -> NDArray[np.float64]:
        """Thrust magnitude history [km/s^2]."""
        return np.array([s.thrust_magnitude for s in self._states], dtype=np.float64)

    def to_dataframe(self) -> pl.DataFrame:
        """Convert to Polars DataFrame."""
        position = self.position
        velocity = self.velocity
        return pl.DataFrame({
            "time": self.time,
            "altitude": self.altitude,
            "speed": self.speed,
            "thrust": self.thrust,
            "x": position[:, 0],
            "y": position[:, 1],
            "z": position[:, 2],
            "vx": velocity[:, 0],
            "vy": velocity[:, 1],
            "vz": velocity[:, 2],
            "landed": [s.landed for s in self._states],
        })
