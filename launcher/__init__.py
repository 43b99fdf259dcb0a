"""Launcher - Trajectory planning for point-mass ascent.

Searches for launch parameters whose simulated flight lands on a chosen
target, reporting progress while the search runs on an asyncio event loop.

Example:
    >>> import asyncio
    >>> from ascent import EARTH, GeoCoordinate
    >>> from launcher import OptimizerConfig, TrajectoryOptimizer
    >>>
    >>> start = GeoCoordinate(0.0, 90.0).to_position(EARTH)
    >>> target = GeoCoordinate(10.0, 100.0).to_position(EARTH)
    >>> optimizer = TrajectoryOptimizer(config=OptimizerConfig(seed=7))
    >>> result = asyncio.run(optimizer.optimize(start, target))
    >>> print(f"Best miss: {result.fitness:.1f} km")
"""

__version__ = "0.1.0"

from launcher.genome import GenomeBounds, crossover, random_axis
from launcher.optimizer import (
    GenerationReport,
    InvalidRequestError,
    OptimizationResult,
    OptimizationRun,
    OptimizationTask,
    OptimizerConfig,
    TrajectoryCandidate,
    TrajectoryOptimizer,
    evaluate_genome,
)
from launcher.planner import Launcher

__all__ = [
    "__version__",
    # Genome
    "GenomeBounds",
    "crossover",
    "random_axis",
    # Optimizer
    "GenerationReport",
    "InvalidRequestError",
    "OptimizationResult",
    "OptimizationRun",
    "OptimizationTask",
    "OptimizerConfig",
    "TrajectoryCandidate",
    "TrajectoryOptimizer",
    "evaluate_genome",
    # Planning
    "Launcher",
]
