"""Ascent - Point-mass powered ascent simulation.

Simulates a vehicle climbing away from a spherical body under a sinusoidal
burn and a gravity-turn-like incline, with a fixed-tick clock for driving a
presentation loop.

Example:
    >>> from ascent import EARTH, FlightSimulator, LaunchParameters
    >>>
    >>> start = EARTH.surface_position(0.0, 90.0)
    >>> target = EARTH.surface_position(10.0, 100.0)
    >>> sim = FlightSimulator.launch(start, LaunchParameters.toward(start, target))
    >>> result = sim.run_until_landed()
    >>> print(f"Landed after {result.state.flight_time:.0f} s")
"""

__version__ = "0.1.0"

from ascent.dynamics import LaunchParameters, VehicleState
from ascent.environment import (
    EARTH,
    CelestialBody,
    GeoCoordinate,
    InvalidCoordinateError,
)
from ascent.simulation import (
    ClockStep,
    FlightOutcome,
    FlightRecorder,
    FlightResult,
    FlightSimulator,
    SimConfig,
    SimulationClock,
    SimulationContext,
    simulate_flight,
    step,
)

__all__ = [
    "__version__",
    # Environment
    "EARTH",
    "CelestialBody",
    "GeoCoordinate",
    "InvalidCoordinateError",
    # Dynamics
    "LaunchParameters",
    "VehicleState",
    # Simulation
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
