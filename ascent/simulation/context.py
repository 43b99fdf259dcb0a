"""Registry of live vehicles advanced together each frame.

The context owns the clock and the set of active simulators; callers add and
remove vehicles explicitly and hand the context to whatever needs to
enumerate them (e.g. a renderer).
"""

import logging
from collections.abc import Iterator

from beartype import beartype

from ascent.simulation.clock import ClockStep, SimulationClock
from ascent.simulation.simulator import FlightSimulator

logger = logging.getLogger(__name__)


@beartype
class SimulationContext:
    """Active simulators plus the clock that drives them.

    Example:
        >>> context = SimulationContext(SimulationClock(time_multiplier=10.0))
        >>> vehicle_id = context.add(FlightSimulator.launch(start, params))
        >>> step = context.update(frame_delta)
        >>> for sim in context:
        ...     draw(sim.interpolated_position(step.alpha))
    """

    def __init__(self, clock: SimulationClock | None = None) -> None:
        self.clock = clock or SimulationClock()
        self._simulators: dict[int, FlightSimulator] = {}

    def add(self, simulator: FlightSimulator) -> int:
        """Register a simulator and return its vehicle id."""
        if simulator.vehicle_id in self._simulators:
            raise ValueError(f"vehicle {simulator.vehicle_id} is already registered")
        self._simulators[simulator.vehicle_id] = simulator
        logger.debug("Registered vehicle %d (%d active)", simulator.vehicle_id, len(self._simulators))
        return simulator.vehicle_id

    def remove(self, vehicle_id: int) -> FlightSimulator:
        """Unregister a vehicle.

        Raises:
            KeyError: If no vehicle with that id is registered
        """
        simulator = self._simulators.pop(vehicle_id)
        logger.debug("Removed vehicle %d (%d active)", vehicle_id, len(self._simulators))
        return simulator

    def get(self, vehicle_id: int) -> FlightSimulator | None:
        """Look up a registered vehicle."""
        return self._simulators.get(vehicle_id)

    def remove_landed(self) -> list[int]:
        """Unregister every vehicle that has touched down."""
        landed = [vid for vid, sim in self._simulators.items() if sim.landed]
        for vid in landed:
            self.remove(vid)
        return landed

    def update(self, frame_delta: float) -> ClockStep:
        """Advance the clock one frame and step every vehicle accordingly.

        Args:
            frame_delta: Real seconds since the previous frame

        Returns:
            The ClockStep applied, whose alpha callers use for interpolation
        """
        step = self.clock.advance(frame_delta)
        if step.ticks:
            for simulator in list(self._simulators.values()):
                simulator.advance(step.ticks)
        return step

    def __contains__(self, vehicle_id: object) -> bool:
        return vehicle_id in self._simulators

    def __len__(self) -> int:
        return len(self._simulators)

    def __iter__(self) -> Iterator[FlightSimulator]:
        return iter(list(self._simulators.values()))
