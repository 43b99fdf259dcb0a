"""Fixed-tick flight simulation for powered ascent.

The vehicle climbs vertically, then once above the incline altitude tilts its
thrust from the local vertical toward the launch bearing at a constant rate
until the incline cap is reached, a gravity-turn-like manoeuvre. Thrust
follows a single sinusoidal arch over the burn duration.

Architecture:
    - step(state, params, body, dt) -> new state: pure transition function
    - FlightSimulator: owns one live state, keeps the previous snapshot for
      interpolation, optionally records a trail
    - simulate_flight(...): compiled "fly until landed" loop used by the
      optimizer, equivalent to repeated step() calls

State machine:
    ASCENDING --(moved > 10 km from the pad and altitude <= 0)--> LANDED

    LANDED is absorbing: stepping a landed vehicle returns it unchanged and
    its flight time no longer advances.

Example:
    >>> from ascent.environment import EARTH
    >>> from ascent.dynamics import LaunchParameters
    >>> from ascent.simulation import FlightSimulator
    >>>
    >>> start = EARTH.surface_position(0.0, 90.0)
    >>> target = EARTH.surface_position(10.0, 100.0)
    >>> sim = FlightSimulator.launch(start, LaunchParameters.toward(start, target))
    >>> while not sim.landed:
    ...     sim.step()
"""

import itertools
from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np
from beartype import beartype
from numba import njit
from numpy.typing import NDArray

from ascent.dynamics.state import LaunchParameters, VehicleState
from ascent.environment.body import EARTH, ZERO_LENGTH, CelestialBody, _point_mass_gravity
from ascent.simulation.recorder import FlightRecorder

# =============================================================================
# Constants
# =============================================================================

# Distance from the pad the vehicle must cover before touchdown counts [km]
LANDING_DISPLACEMENT: float = 10.0

_vehicle_ids = itertools.count(1)


# =============================================================================
# Configuration
# =============================================================================


@beartype
@dataclass
class SimConfig:
    """Simulation configuration.

    Attributes:
        tick: Fixed simulation step [s]
        max_ticks: Tick budget for runs to landing
    """
    tick: float = 1.0
    max_ticks: int = 20_000

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.tick > 0:
            raise ValueError(f"tick must be > 0, got {self.tick}")
        if self.max_ticks < 1:
            raise ValueError(f"max_ticks must be >= 1, got {self.max_ticks}")


# =============================================================================
# Numba-Optimized Kernels
# =============================================================================


@njit(cache=True, fastmath=True)
def _normalize3(x: float, y: float, z: float) -> tuple[float, float, float]:
    """Unit vector, zero for degenerate input."""
    n = np.sqrt(x*x + y*y + z*z)
    if n < ZERO_LENGTH:
        return (0.0, 0.0, 0.0)
    return (x / n, y / n, z / n)


@njit(cache=True, fastmath=True)
def _rotate3(
    vx: float, vy: float, vz: float,
    kx: float, ky: float, kz: float,
    angle: float,
) -> tuple[float, float, float]:
    """Rodrigues rotation of v about unit axis k; no-op for a zero axis."""
    if kx == 0.0 and ky == 0.0 and kz == 0.0:
        return (vx, vy, vz)

    c = np.cos(angle)
    s = np.sin(angle)
    kdotv = kx*vx + ky*vy + kz*vz

    # k x v
    cx = ky*vz - kz*vy
    cy = kz*vx - kx*vz
    cz = kx*vy - ky*vx

    return (
        vx*c + cx*s + kx*kdotv*(1.0 - c),
        vy*c + cy*s + ky*kdotv*(1.0 - c),
        vz*c + cz*s + kz*kdotv*(1.0 - c),
    )


@njit(cache=True, fastmath=True)
def _step_core(
    # State
    px: float, py: float, pz: float,
    vx: float, vy: float, vz: float,
    p0x: float, p0y: float, p0z: float,
    trx: float, try_: float, trz: float,
    max_altitude: float,
    flight_time: float,
    incline_duration: float,
    incline_angle: float,
    # Launch parameters
    dx: float, dy: float, dz: float,
    incline_start_altitude: float,
    incline_max_duration: float,
    incline_rate: float,
    fuel_duration: float,
    max_thrust: float,
    # Body
    radius: float,
    mu: float,
    # Time step
    dt: float,
) -> tuple:
    """Advance an ascending vehicle by one tick.

    Returns:
        (px, py, pz, vx, vy, vz, thx, thy, thz, gx, gy, gz,
         trx, try, trz, altitude, max_altitude, flight_time,
         landed, incline_duration, incline_angle)
    """
    # 1. Altitude and gravity at the current position
    r = np.sqrt(px*px + py*py + pz*pz)
    altitude = r - radius
    if altitude > max_altitude:
        max_altitude = altitude

    gx, gy, gz = _point_mass_gravity(px, py, pz, mu)

    # 2-3. Thrust: sinusoidal arch, inclined from vertical toward the bearing
    thx = 0.0
    thy = 0.0
    thz = 0.0
    if flight_time < fuel_duration:
        magnitude = max_thrust * np.sin(np.pi * flight_time / fuel_duration)

        ux, uy, uz = _normalize3(-gx, -gy, -gz)

        if altitude > incline_start_altitude:
            incline_duration = min(incline_duration + dt, incline_max_duration)
        incline_angle = incline_rate * incline_duration

        # Bearing: launch direction flattened onto the local horizontal
        nx, ny, nz = _normalize3(gx, gy, gz)
        d_dot_n = dx*nx + dy*ny + dz*nz
        fx, fy, fz = _normalize3(dx - d_dot_n*nx, dy - d_dot_n*ny, dz - d_dot_n*nz)

        # Axis up x bearing turns "up" toward the bearing for positive angles
        ax, ay, az = _normalize3(uy*fz - uz*fy, uz*fx - ux*fz, ux*fy - uy*fx)

        ex, ey, ez = _rotate3(ux, uy, uz, ax, ay, az, incline_angle)
        thx = ex * magnitude
        thy = ey * magnitude
        thz = ez * magnitude

    # 4. Touchdown
    ddx = px - p0x
    ddy = py - p0y
    ddz = pz - p0z
    displacement = np.sqrt(ddx*ddx + ddy*ddy + ddz*ddz)
    if displacement > LANDING_DISPLACEMENT and altitude <= 0.0:
        if r > ZERO_LENGTH:
            scale = radius / r
            px *= scale
            py *= scale
            pz *= scale
        altitude = np.sqrt(px*px + py*py + pz*pz) - radius
        return (
            px, py, pz, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, gx, gy, gz,
            trx, try_, trz, altitude, max_altitude, flight_time,
            True, incline_duration, incline_angle,
        )

    # 5. Semi-implicit Euler, held on the pad until thrust beats gravity
    thrust_sq = thx*thx + thy*thy + thz*thz
    gravity_sq = gx*gx + gy*gy + gz*gz
    moving = vx != 0.0 or vy != 0.0 or vz != 0.0
    if thrust_sq > gravity_sq or moving:
        vx += (gx + thx) * dt
        vy += (gy + thy) * dt
        vz += (gz + thz) * dt

        px += vx * dt
        py += vy * dt
        pz += vz * dt

        trx += abs(vx) * dt
        try_ += abs(vy) * dt
        trz += abs(vz) * dt

    # 6. Clock
    flight_time += dt

    altitude = np.sqrt(px*px + py*py + pz*pz) - radius
    if altitude > max_altitude:
        max_altitude = altitude

    return (
        px, py, pz, vx, vy, vz, thx, thy, thz, gx, gy, gz,
        trx, try_, trz, altitude, max_altitude, flight_time,
        False, incline_duration, incline_angle,
    )


@njit(cache=True, fastmath=True)
def _fly_core(
    px: float, py: float, pz: float,
    dx: float, dy: float, dz: float,
    incline_start_altitude: float,
    incline_max_duration: float,
    incline_rate: float,
    fuel_duration: float,
    max_thrust: float,
    radius: float,
    mu: float,
    dt: float,
    max_ticks: int,
    tx: float, ty: float, tz: float,
) -> tuple:
    """Fly from rest at p until landed or the tick budget runs out.

    Returns:
        (px, py, pz, flight_time, landed, max_altitude, closest, ticks)
        where closest is the smallest distance to (tx, ty, tz) seen.
    """
    p0x = px
    p0y = py
    p0z = pz
    vx = 0.0
    vy = 0.0
    vz = 0.0
    trx = 0.0
    try_ = 0.0
    trz = 0.0
    max_altitude = 0.0
    flight_time = 0.0
    incline_duration = 0.0
    incline_angle = 0.0
    landed = False

    cx = px - tx
    cy = py - ty
    cz = pz - tz
    closest = np.sqrt(cx*cx + cy*cy + cz*cz)

    ticks = 0
    while ticks < max_ticks and not landed:
        out = _step_core(
            px, py, pz, vx, vy, vz, p0x, p0y, p0z, trx, try_, trz,
            max_altitude, flight_time, incline_duration, incline_angle,
            dx, dy, dz, incline_start_altitude, incline_max_duration,
            incline_rate, fuel_duration, max_thrust,
            radius, mu, dt,
        )
        px, py, pz = out[0], out[1], out[2]
        vx, vy, vz = out[3], out[4], out[5]
        trx, try_, trz = out[12], out[13], out[14]
        max_altitude = out[16]
        flight_time = out[17]
        landed = out[18]
        incline_duration = out[19]
        incline_angle = out[20]
        ticks += 1

        cx = px - tx
        cy = py - ty
        cz = pz - tz
        d = np.sqrt(cx*cx + cy*cy + cz*cz)
        if d < closest:
            closest = d

    return (px, py, pz, flight_time, landed, max_altitude, closest, ticks)


# =============================================================================
# Pure Step Function
# =============================================================================


@beartype
def step(
    state: VehicleState,
    params: LaunchParameters,
    body: CelestialBody,
    dt: float,
) -> VehicleState:
    """Advance a vehicle by one tick without touching the input state.

    Args:
        state: Current vehicle state
        params: Launch parameters steering the flight
        body: Body whose gravity acts on the vehicle
        dt: Tick duration [s]

    Returns:
        New state; a copy of the input if the vehicle has already landed
    """
    if state.landed:
        return state.copy()

    d = params.target_direction
    out = _step_core(
        float(state.position[0]), float(state.position[1]), float(state.position[2]),
        float(state.velocity[0]), float(state.velocity[1]), float(state.velocity[2]),
        float(state.initial_position[0]), float(state.initial_position[1]),
        float(state.initial_position[2]),
        float(state.travelled[0]), float(state.travelled[1]), float(state.travelled[2]),
        state.max_altitude,
        state.flight_time,
        state.incline_duration,
        state.incline_angle,
        float(d[0]), float(d[1]), float(d[2]),
        params.incline_start_altitude,
        params.incline_max_duration,
        params.incline_rate,
        params.fuel_duration,
        params.max_thrust,
        body.radius,
        body.mu,
        dt,
    )

    return VehicleState(
        position=np.array([out[0], out[1], out[2]]),
        velocity=np.array([out[3], out[4], out[5]]),
        thrust=np.array([out[6], out[7], out[8]]),
        gravity=np.array([out[9], out[10], out[11]]),
        initial_position=state.initial_position.copy(),
        travelled=np.array([out[12], out[13], out[14]]),
        altitude=float(out[15]),
        max_altitude=float(out[16]),
        flight_time=float(out[17]),
        landed=bool(out[18]),
        incline_duration=float(out[19]),
        incline_angle=float(out[20]),
    )


# =============================================================================
# Compiled Flight
# =============================================================================


class FlightOutcome(NamedTuple):
    """Summary of a flight flown to completion by :func:`simulate_flight`."""
    final_position: NDArray[np.float64]  # Where the vehicle ended [km]
    flight_time: float                   # Time of landing or budget end [s]
    landed: bool                         # Whether touchdown happened
    max_altitude: float                  # Apex [km]
    closest_approach: float              # Closest distance to the reference point [km]
    ticks: int                           # Ticks simulated


@beartype
def simulate_flight(
    start: NDArray[np.float64],
    params: LaunchParameters,
    body: CelestialBody = EARTH,
    config: SimConfig | None = None,
    reference: NDArray[np.float64] | None = None,
) -> FlightOutcome:
    """Fly a fresh vehicle from start until it lands or the budget runs out.

    Runs entirely in compiled code on private state. Equivalent to stepping a
    :class:`FlightSimulator` launched from the same pad.

    Args:
        start: Launch position [km]
        params: Launch parameters
        body: Gravitating body
        config: Tick size and budget
        reference: Point to track the closest approach to (defaults to start)

    Returns:
        FlightOutcome with the final position and flight summary
    """
    config = config or SimConfig()
    ref = start if reference is None else reference
    d = params.target_direction

    px, py, pz, flight_time, landed, max_altitude, closest, ticks = _fly_core(
        float(start[0]), float(start[1]), float(start[2]),
        float(d[0]), float(d[1]), float(d[2]),
        params.incline_start_altitude,
        params.incline_max_duration,
        params.incline_rate,
        params.fuel_duration,
        params.max_thrust,
        body.radius,
        body.mu,
        config.tick,
        config.max_ticks,
        float(ref[0]), float(ref[1]), float(ref[2]),
    )

    return FlightOutcome(
        final_position=np.array([px, py, pz]),
        flight_time=float(flight_time),
        landed=bool(landed),
        max_altitude=float(max_altitude),
        closest_approach=float(closest),
        ticks=int(ticks),
    )


# =============================================================================
# Simulator
# =============================================================================


@beartype
@dataclass
class FlightResult:
    """Result of running a live simulator to landing."""
    state: VehicleState
    ticks: int
    landed: bool


@beartype
@dataclass
class FlightSimulator:
    """One live vehicle advanced tick by tick.

    Holds the externally visible state read by presentation code. The
    previous state is kept so a renderer can interpolate between the last two
    ticks with the clock's alpha.

    Example:
        >>> sim = FlightSimulator.launch(start, params, record=True)
        >>> result = sim.run_until_landed()
        >>> df = sim.recorder.to_dataframe()
    """
    state: VehicleState
    params: LaunchParameters
    body: CelestialBody = EARTH
    config: SimConfig = field(default_factory=SimConfig)
    recorder: FlightRecorder | None = None

    # Internal
    vehicle_id: int = field(init=False)
    _previous: VehicleState = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Assign an id and seed the interpolation snapshot."""
        self.vehicle_id = next(_vehicle_ids)
        self._previous = self.state.copy()
        if self.recorder is not None:
            self.recorder.record(self.state)

    @classmethod
    def launch(
        cls,
        start: NDArray[np.float64],
        params: LaunchParameters,
        body: CelestialBody = EARTH,
        config: SimConfig | None = None,
        record: bool = False,
    ) -> "FlightSimulator":
        """Create a simulator with the vehicle at rest on the pad.

        Args:
            start: Launch position [km]
            params: Launch parameters
            body: Gravitating body
            config: Simulation configuration
            record: Keep a bounded trail of every tick
        """
        return cls(
            state=VehicleState.at_launch(start, body),
            params=params,
            body=body,
            config=config or SimConfig(),
            recorder=FlightRecorder() if record else None,
        )

    def step(self, dt: float | None = None) -> VehicleState:
        """Advance one tick (default: the configured tick)."""
        if self.state.landed:
            return self.state

        self._previous = self.state
        self.state = step(self.state, self.params, self.body, self.config.tick if dt is None else dt)

        if self.recorder is not None:
            self.recorder.record(self.state)

        return self.state

    def advance(self, ticks: int) -> VehicleState:
        """Advance several ticks, stopping early once landed."""
        for _ in range(ticks):
            if self.state.landed:
                break
            self.step()
        return self.state

    def run_until_landed(self, max_ticks: int | None = None) -> FlightResult:
        """Step until touchdown or until the tick budget is spent.

        Args:
            max_ticks: Tick budget (defaults to config.max_ticks)
        """
        budget = self.config.max_ticks if max_ticks is None else max_ticks
        ticks = 0
        while ticks < budget and not self.state.landed:
            self.step()
            ticks += 1
        return FlightResult(state=self.state, ticks=ticks, landed=self.state.landed)

    def get_state(self) -> VehicleState:
        """Get a copy of the current state."""
        return self.state.copy()

    def interpolated_position(self, alpha: float) -> NDArray[np.float64]:
        """Position between the previous and current tick.

        Args:
            alpha: Fraction in [0, 1] from the simulation clock
        """
        a = min(max(alpha, 0.0), 1.0)
        return self._previous.position + (self.state.position - self._previous.position) * a

    @property
    def previous(self) -> VehicleState:
        """State before the most recent tick."""
        return self._previous

    @property
    def landed(self) -> bool:
        """Whether the vehicle has touched down."""
        return self.state.landed

    @property
    def time(self) -> float:
        """Flight time [s]."""
        return self.state.flight_time

    @property
    def altitude(self) -> float:
        """Current altitude [km]."""
        return self.state.altitude
