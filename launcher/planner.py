"""Launch planning: pick a pad and a target, search, then fly the result.

The Launcher is the single entry point a front end talks to. It keeps at
most one search in flight: planning again supersedes (cancels) the previous
search, so a stale search can never report progress for an old request.

Example:
    >>> launcher = Launcher()
    >>> launcher.set_start(GeoCoordinate(0.0, 90.0))
    >>> launcher.set_target(GeoCoordinate(10.0, 100.0))
    >>>
    >>> async def main():
    ...     task = launcher.plan(on_progress=lambda p, pct: print(f"{pct:.0f}%"))
    ...     await task
    ...     return launcher.create_simulator()
"""

import logging

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from ascent.dynamics.state import LaunchParameters
from ascent.environment.body import EARTH, CelestialBody, GeoCoordinate
from ascent.simulation.simulator import FlightSimulator, SimConfig
from launcher.genome import GenomeBounds
from launcher.optimizer import (
    InvalidRequestError,
    OptimizationResult,
    OptimizationTask,
    OptimizerConfig,
    ProgressCallback,
    TrajectoryOptimizer,
)

logger = logging.getLogger(__name__)


@beartype
class Launcher:
    """Start/target selection and the search that connects them.

    Attributes:
        body: Body the pad and target are on
        optimizer: Search used by :meth:`plan`
        start: Launch position on the surface [km], or None
        target: Target position on the surface [km], or None
        params: Genome from the last finished search, or None
    """

    def __init__(
        self,
        body: CelestialBody = EARTH,
        config: OptimizerConfig | None = None,
        bounds: GenomeBounds | None = None,
    ) -> None:
        self.body = body
        self.optimizer = TrajectoryOptimizer(body, config, bounds)
        self.start: NDArray[np.float64] | None = None
        self.target: NDArray[np.float64] | None = None
        self.params: LaunchParameters | None = None
        self.result: OptimizationResult | None = None
        self._task: OptimizationTask | None = None

    def _surface_point(self, point: NDArray[np.float64] | GeoCoordinate) -> NDArray[np.float64]:
        if isinstance(point, GeoCoordinate):
            return point.to_position(self.body)
        return self.body.project_to_surface(point)

    def set_start(self, point: NDArray[np.float64] | GeoCoordinate) -> None:
        """Place the pad; positions are projected onto the surface."""
        self.start = self._surface_point(point)

    def set_target(self, point: NDArray[np.float64] | GeoCoordinate) -> None:
        """Place the target; positions are projected onto the surface."""
        self.target = self._surface_point(point)

    def clear(self) -> None:
        """Forget the pad and the target."""
        self.start = None
        self.target = None

    @property
    def planning(self) -> bool:
        """Whether a search is in flight."""
        return self._task is not None and not self._task.done()

    def plan(self, on_progress: ProgressCallback | None = None) -> OptimizationTask:
        """Start a search from the pad to the target.

        Any search still in flight is cancelled first. Must be called from
        within a coroutine.

        Args:
            on_progress: Called with (best_params, progress) per generation

        Returns:
            Handle on the new search

        Raises:
            InvalidRequestError: If the pad or the target is not set
        """
        self.optimizer.validate_request(self.start, self.target)

        if self._task is not None:
            self._adopt(self._task)
        if self.cancel():
            logger.info("Superseded in-flight trajectory search")

        task = self.optimizer.start(self.start, self.target, on_progress)
        task.add_done_callback(self._adopt)
        self._task = task
        return task

    def _adopt(self, task: OptimizationTask) -> None:
        """Keep the result of a search that finished normally."""
        if task is not self._task or task.outcome is None:
            return
        self.result = task.outcome
        self.params = self.result.params

    def cancel(self) -> bool:
        """Cancel the in-flight search, if any.

        Returns:
            True if a running search was cancelled
        """
        if self._task is None or self._task.done():
            return False
        return self._task.cancel()

    def create_simulator(self, config: SimConfig | None = None, record: bool = False) -> FlightSimulator:
        """Live vehicle on the pad flying the last planned genome.

        Raises:
            InvalidRequestError: If no search has finished yet
        """
        if self._task is not None:
            self._adopt(self._task)
        if self.params is None or self.start is None:
            raise InvalidRequestError("no planned trajectory to fly")
        return FlightSimulator.launch(self.start, self.params, self.body, config, record)
