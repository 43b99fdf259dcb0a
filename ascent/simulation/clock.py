"""Fixed-tick clock decoupling physics from presentation frame rate.

Each frame the host reports how much real time has passed. The clock scales
that by the time multiplier, converts it into a whole number of fixed ticks
and carries the remainder to the next frame. The remainder, as a fraction of
a tick, is the interpolation alpha between the previous and current vehicle
snapshot.

Example:
    >>> clock = SimulationClock(tick=1.0, time_multiplier=60.0)
    >>> step = clock.advance(1 / 60)  # one display frame
    >>> for _ in range(step.ticks):
    ...     sim.step()
    >>> drawn = sim.interpolated_position(step.alpha)
"""

import math
from typing import NamedTuple

from beartype import beartype


class ClockStep(NamedTuple):
    """Ticks to apply this frame and the leftover interpolation fraction."""
    ticks: int
    alpha: float


@beartype
class SimulationClock:
    """Accumulator turning variable frame deltas into fixed ticks.

    Attributes:
        tick: Simulated seconds per tick
        max_ticks_per_frame: Optional cap on ticks emitted in one frame; time
            beyond the cap is dropped so a long stall cannot snowball
    """

    def __init__(
        self,
        tick: float = 1.0,
        time_multiplier: float = 1.0,
        max_ticks_per_frame: int | None = None,
    ) -> None:
        """Initialize clock.

        Args:
            tick: Simulated seconds per tick [s]
            time_multiplier: Simulated seconds per real second
            max_ticks_per_frame: Cap on ticks per frame (None for no cap)
        """
        if not tick > 0:
            raise ValueError(f"tick must be > 0, got {tick}")
        if max_ticks_per_frame is not None and max_ticks_per_frame < 1:
            raise ValueError(f"max_ticks_per_frame must be >= 1, got {max_ticks_per_frame}")

        self.tick = tick
        self.max_ticks_per_frame = max_ticks_per_frame
        self.time_multiplier = time_multiplier

        self._accumulator = 0.0
        self._alpha = 0.0
        self._ticks = 0

    @property
    def time_multiplier(self) -> float:
        """Simulated seconds per real second."""
        return self._time_multiplier

    @time_multiplier.setter
    def time_multiplier(self, value: float) -> None:
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"time_multiplier must be finite and >= 0, got {value}")
        self._time_multiplier = value

    def advance(self, frame_delta: float) -> ClockStep:
        """Account for one frame of real time.

        Args:
            frame_delta: Real seconds since the previous frame

        Returns:
            ClockStep with the ticks to run now and alpha in [0, 1]
        """
        if not math.isfinite(frame_delta) or frame_delta < 0:
            raise ValueError(f"frame_delta must be finite and >= 0, got {frame_delta}")

        self._accumulator += frame_delta * self._time_multiplier
        ticks = int(self._accumulator // self.tick)
        self._accumulator -= ticks * self.tick

        if self.max_ticks_per_frame is not None and ticks > self.max_ticks_per_frame:
            ticks = self.max_ticks_per_frame

        self._ticks += ticks
        self._alpha = min(max(self._accumulator / self.tick, 0.0), 1.0)
        return ClockStep(ticks=ticks, alpha=self._alpha)

    def reset(self) -> None:
        """Forget accumulated time and tick count."""
        self._accumulator = 0.0
        self._alpha = 0.0
        self._ticks = 0

    @property
    def alpha(self) -> float:
        """Interpolation fraction from the latest frame."""
        return self._alpha

    @property
    def total_ticks(self) -> int:
        """Ticks emitted since creation or the last reset."""
        return self._ticks

    @property
    def simulated_time(self) -> float:
        """Simulated seconds covered by emitted ticks."""
        return self._ticks * self.tick
