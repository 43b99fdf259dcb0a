"""Simulation module for powered ascent.

Provides the pure step function, the live FlightSimulator, the fixed-tick
clock that converts frame time into ticks, and the context that advances a
set of vehicles together.

Example:
    >>> from ascent.simulation import FlightSimulator, SimulationClock, SimulationContext
    >>>
    >>> context = SimulationContext(SimulationClock(time_multiplier=20.0))
    >>> context.add(FlightSimulator.launch(start, params))
    >>>
    >>> # Presentation loop
    >>> step = context.update(frame_delta)
    >>> for sim in context:
    ...     draw(sim.interpolated_position(step.alpha))
"""

from ascent.simulation.clock import ClockStep, SimulationClock
from ascent.simulation.context import SimulationContext
from ascent.simulation.recorder import FlightRecorder
from ascent.simulation.simulator import (
    LANDING_DISPLACEMENT,
    FlightOutcome,
    FlightResult,
    FlightSimulator,
    SimConfig,
    simulate_flight,
    step,
)

__all__ = [
    "LANDING_DISPLACEMENT",
    "ClockStep",
    "FlightOutcome",
    "FlightRecorder",
    "FlightResult",
    "FlightSimulator",
    "SimConfig",
    "SimulationClock",
    "SimulationContext",
    "simulate_flight",
    "step",
]
