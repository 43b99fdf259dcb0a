"""Population-based search for launch parameters that land on a target.

Each candidate genome is flown on its own private vehicle with the compiled
flight loop until it lands or runs out of ticks; its fitness is the distance
from where it ended to the target (lower is better, ties go to the shorter
flight). A real-coded genetic algorithm (tournament selection, uniform
crossover, annealed Gaussian/rotation mutation, elitism) evolves the
population until the best candidate is within the convergence threshold or
the generation budget is spent.

Architecture:
    - evaluate_genome(): pure, picklable fitness evaluation
    - TrajectoryOptimizer.iter_generations(): synchronous generator, one
      GenerationReport per generation
    - TrajectoryOptimizer.optimize(): coroutine yielding to the event loop
      between evaluation batches and reporting progress
    - TrajectoryOptimizer.start(): wraps optimize() in an OptimizationTask
      with a cancellation handle

Example:
    >>> optimizer = TrajectoryOptimizer(config=OptimizerConfig(seed=1))
    >>> result = asyncio.run(optimizer.optimize(start, target, on_progress=print))
    >>> print(f"Missed by {result.fitness:.1f} km")
"""

import asyncio
import logging
import math
from collections.abc import Callable, Iterator
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import polars as pl
from beartype import beartype
from numpy.typing import NDArray

from ascent.dynamics.state import LaunchParameters
from ascent.environment.body import EARTH, CelestialBody
from ascent.simulation.simulator import SimConfig, simulate_flight
from launcher.genome import GenomeBounds, crossover

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[LaunchParameters, float], None]


class InvalidRequestError(ValueError):
    """Raised when a search is requested without a usable start or target."""


# =============================================================================
# Configuration
# =============================================================================


@beartype
@dataclass
class OptimizerConfig:
    """Search configuration.

    Attributes:
        population_size: Genomes per generation
        generations: Generation budget
        elite_count: Best candidates carried unchanged into the next generation
        tournament_size: Contestants per parent selection
        mutation_rate: Per-gene mutation probability
        mutation_scale: Initial mutation step, as a fraction of each range
        final_mutation_scale: Step reached on the last generation (linear)
        convergence_threshold: Stop once the best miss distance is below this [km]
        seed: Random seed (None for fresh entropy)
        batch_size: Candidates evaluated between yields to the event loop
        workers: Evaluation processes (1 evaluates in-process)
        sim: Tick size and per-flight tick budget
    """
    population_size: int = 50
    generations: int = 100
    elite_count: int = 2
    tournament_size: int = 3
    mutation_rate: float = 0.4
    mutation_scale: float = 0.1
    final_mutation_scale: float = 0.002
    convergence_threshold: float = 1.0
    seed: int | None = None
    batch_size: int = 10
    workers: int = 1
    sim: SimConfig = field(default_factory=SimConfig)

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.population_size < 2:
            raise ValueError(f"population_size must be >= 2, got {self.population_size}")
        if self.generations < 1:
            raise ValueError(f"generations must be >= 1, got {self.generations}")
        if not 1 <= self.elite_count < self.population_size:
            raise ValueError(
                f"elite_count must be in [1, population_size), got {self.elite_count}"
            )
        if not 1 <= self.tournament_size <= self.population_size:
            raise ValueError(
                f"tournament_size must be in [1, population_size], got {self.tournament_size}"
            )
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise ValueError(f"mutation_rate must be in [0, 1], got {self.mutation_rate}")
        if self.mutation_scale < 0 or self.final_mutation_scale < 0:
            raise ValueError("mutation scales must be >= 0")
        if not math.isfinite(self.convergence_threshold) or self.convergence_threshold < 0:
            raise ValueError(
                f"convergence_threshold must be finite and >= 0, got {self.convergence_threshold}"
            )
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")

    def mutation_scale_at(self, generation: int) -> float:
        """Annealed mutation step for a generation."""
        if self.generations == 1:
            return self.mutation_scale
        fraction = min(generation / (self.generations - 1), 1.0)
        return self.mutation_scale + (self.final_mutation_scale - self.mutation_scale) * fraction


# =============================================================================
# Evaluation
# =============================================================================


@beartype
@dataclass(frozen=True, eq=False)
class TrajectoryCandidate:
    """A genome and the outcome of flying it.

    Attributes:
        params: The genome
        final_position: Where the flight ended [km]
        closest_approach: Closest the flight came to the target [km]
        fitness: Distance from final position to the target [km]
        flight_time: Duration of the flight [s]
        landed: Whether the flight touched down within the tick budget
    """
    params: LaunchParameters
    final_position: NDArray[np.float64]
    closest_approach: float
    fitness: float
    flight_time: float
    landed: bool

    @property
    def rank_key(self) -> tuple[float, float]:
        """Sort key: fitness, then flight time."""
        return (self.fitness, self.flight_time)


@beartype
def evaluate_genome(
    params: LaunchParameters,
    start: NDArray[np.float64],
    target: NDArray[np.float64],
    body: CelestialBody = EARTH,
    sim: SimConfig | None = None,
) -> TrajectoryCandidate:
    """Fly one genome on a private vehicle and score it against the target.

    Args:
        params: Genome to evaluate
        start: Launch position [km]
        target: Target position [km]
        body: Gravitating body
        sim: Tick size and tick budget

    Returns:
        TrajectoryCandidate with the flight outcome and fitness
    """
    outcome = simulate_flight(start, params, body, sim, reference=target)
    return TrajectoryCandidate(
        params=params,
        final_position=outcome.final_position,
        closest_approach=outcome.closest_approach,
        fitness=float(np.linalg.norm(outcome.final_position - target)),
        flight_time=outcome.flight_time,
        landed=outcome.landed,
    )


# =============================================================================
# Run Bookkeeping
# =============================================================================


@dataclass
class GenerationReport:
    """Snapshot emitted after each generation.

    Attributes:
        generation: Zero-based generation index
        best: Best candidate found so far
        mean_fitness: Mean fitness of this generation
        landed_fraction: Share of this generation's flights that landed
        progress: Percentage of the budget consumed, 100 on the final report
        converged: Whether the best fitness is below the threshold
    """
    generation: int
    best: TrajectoryCandidate
    mean_fitness: float
    landed_fraction: float
    progress: float
    converged: bool


@dataclass
class OptimizationRun:
    """Mutable state of one search; discarded when the search finishes."""
    start: NDArray[np.float64]
    target: NDArray[np.float64]
    rng: np.random.Generator
    generation: int = 0
    population: list[TrajectoryCandidate] = field(default_factory=list)
    best: TrajectoryCandidate | None = None
    progress: float = 0.0
    history: list[GenerationReport] = field(default_factory=list)


@dataclass
class OptimizationResult:
    """Outcome of a completed search.

    Not converging is not an error: the best candidate is returned with its
    fitness so the caller can judge it.
    """
    best: TrajectoryCandidate
    generations: int
    converged: bool
    history: list[GenerationReport]
    progress: float = 100.0

    @property
    def params(self) -> LaunchParameters:
        """Best genome found."""
        return self.best.params

    @property
    def fitness(self) -> float:
        """Miss distance of the best genome [km]."""
        return self.best.fitness

    def to_dataframe(self) -> pl.DataFrame:
        """Per-generation history as a Polars DataFrame."""
        data: dict[str, list] = {
            "generation": [],
            "best_fitness": [],
            "mean_fitness": [],
            "landed_fraction": [],
            "progress": [],
            "best_flight_time": [],
        }
        for report in self.history:
            data["generation"].append(report.generation)
            data["best_fitness"].append(report.best.fitness)
            data["mean_fitness"].append(report.mean_fitness)
            data["landed_fraction"].append(report.landed_fraction)
            data["progress"].append(report.progress)
            data["best_flight_time"].append(report.best.flight_time)
        return pl.DataFrame(data)

    def to_csv(self, path: str | Path) -> None:
        """Export the per-generation history to a CSV file."""
        self.to_dataframe().write_csv(path)


# =============================================================================
# Optimizer
# =============================================================================


@beartype
class TrajectoryOptimizer:
    """Genetic search over launch parameters.

    The optimizer never touches a caller's live vehicle; every evaluation
    flies a fresh private one.
    """

    def __init__(
        self,
        body: CelestialBody = EARTH,
        config: OptimizerConfig | None = None,
        bounds: GenomeBounds | None = None,
    ) -> None:
        self.body = body
        self.config = config or OptimizerConfig()
        self.bounds = bounds or GenomeBounds()

    # -------------------------------------------------------------------------
    # Search steps
    # -------------------------------------------------------------------------

    def validate_request(
        self,
        start: NDArray[np.float64] | None,
        target: NDArray[np.float64] | None,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Check that both endpoints are present and finite.

        Raises:
            InvalidRequestError: If either endpoint is missing or malformed
        """
        if start is None or target is None:
            missing = " and ".join(
                name for name, value in (("start", start), ("target", target)) if value is None
            )
            raise InvalidRequestError(f"cannot plan a trajectory without a {missing} position")
        for name, value in (("start", start), ("target", target)):
            if value.shape != (3,) or not np.all(np.isfinite(value)):
                raise InvalidRequestError(f"{name} must be a finite 3-vector, got {value}")
        return start.copy(), target.copy()

    def _begin(self, start: NDArray[np.float64], target: NDArray[np.float64]) -> OptimizationRun:
        logger.info(
            "Starting trajectory search: population %d, %d generations, threshold %.3f km",
            self.config.population_size,
            self.config.generations,
            self.config.convergence_threshold,
        )
        return OptimizationRun(start=start, target=target, rng=np.random.default_rng(self.config.seed))

    def _initial_genomes(self, run: OptimizationRun) -> list[LaunchParameters]:
        """Straight-line seed plus random samples around its direction."""
        seed = self.bounds.clip(LaunchParameters.toward(run.start, run.target))
        genomes = [seed]
        while len(genomes) < self.config.population_size:
            genomes.append(self.bounds.sample(seed, run.rng))
        return genomes

    def _evaluate(self, run: OptimizationRun, params: LaunchParameters) -> TrajectoryCandidate:
        return evaluate_genome(params, run.start, run.target, self.body, self.config.sim)

    def _tournament(self, run: OptimizationRun) -> TrajectoryCandidate:
        # Population is sorted best-first, so the lowest index wins
        picks = run.rng.integers(0, len(run.population), size=self.config.tournament_size)
        return run.population[int(picks.min())]

    def _breed(self, run: OptimizationRun) -> tuple[list[TrajectoryCandidate], list[LaunchParameters]]:
        """Next generation: elites carried over and children to evaluate."""
        cfg = self.config
        elites = run.population[: cfg.elite_count]
        scale = cfg.mutation_scale_at(run.generation + 1)

        children = []
        for _ in range(cfg.population_size - len(elites)):
            a = self._tournament(run)
            b = self._tournament(run)
            child = crossover(a.params, b.params, run.rng)
            children.append(self.bounds.mutate(child, run.rng, cfg.mutation_rate, scale))
        return elites, children

    def _conclude(self, run: OptimizationRun, candidates: list[TrajectoryCandidate]) -> GenerationReport:
        """Rank the generation, update the best and build its report."""
        cfg = self.config
        run.population = sorted(candidates, key=lambda c: c.rank_key)

        leader = run.population[0]
        if run.best is None or leader.rank_key < run.best.rank_key:
            run.best = leader

        converged = run.best.fitness < cfg.convergence_threshold
        final = converged or run.generation == cfg.generations - 1
        run.progress = 100.0 if final else 100.0 * (run.generation + 1) / cfg.generations

        report = GenerationReport(
            generation=run.generation,
            best=run.best,
            mean_fitness=float(np.mean([c.fitness for c in run.population])),
            landed_fraction=float(np.mean([c.landed for c in run.population])),
            progress=run.progress,
            converged=converged,
        )
        run.history.append(report)

        logger.debug(
            "Generation %d: best %.3f km, mean %.1f km, %.0f%% landed",
            run.generation,
            report.best.fitness,
            report.mean_fitness,
            100.0 * report.landed_fraction,
        )
        return report

    def _finish(self, run: OptimizationRun) -> OptimizationResult:
        last = run.history[-1]
        logger.info(
            "Trajectory search %s after %d generations: best miss %.3f km",
            "converged" if last.converged else "stopped",
            len(run.history),
            last.best.fitness,
        )
        return OptimizationResult(
            best=last.best,
            generations=len(run.history),
            converged=last.converged,
            history=run.history,
        )

    # -------------------------------------------------------------------------
    # Drivers
    # -------------------------------------------------------------------------

    def iter_generations(
        self,
        start: NDArray[np.float64] | None,
        target: NDArray[np.float64] | None,
    ) -> Iterator[GenerationReport]:
        """Run the search synchronously, yielding after each generation.

        The request is validated before anything is evaluated.

        Args:
            start: Launch position [km]
            target: Target position [km]

        Yields:
            GenerationReport per generation; the last one has progress 100
        """
        start, target = self.validate_request(start, target)
        return self._generations(self._begin(start, target))

    def _generations(self, run: OptimizationRun) -> Iterator[GenerationReport]:
        elites: list[TrajectoryCandidate] = []
        genomes = self._initial_genomes(run)
        while True:
            candidates = elites + [self._evaluate(run, g) for g in genomes]
            report = self._conclude(run, candidates)
            yield report
            if report.progress >= 100.0:
                return
            elites, genomes = self._breed(run)
            run.generation += 1

    def run(
        self,
        start: NDArray[np.float64] | None,
        target: NDArray[np.float64] | None,
    ) -> OptimizationResult:
        """Run the search to completion, blocking the caller."""
        start, target = self.validate_request(start, target)
        run = self._begin(start, target)
        for _ in self._generations(run):
            pass
        return self._finish(run)

    async def optimize(
        self,
        start: NDArray[np.float64] | None,
        target: NDArray[np.float64] | None,
        on_progress: ProgressCallback | None = None,
    ) -> OptimizationResult:
        """Run the search cooperatively on the event loop.

        Control returns to the loop after every ``batch_size`` evaluations.
        ``on_progress(best_params, progress)`` is called once per generation
        with strictly increasing progress, ending at 100. Cancelling the
        awaiting task stops the search; no callback runs after that.

        Args:
            start: Launch position [km]
            target: Target position [km]
            on_progress: Per-generation callback

        Returns:
            OptimizationResult with the best genome found

        Raises:
            InvalidRequestError: If start or target is missing (before any
                evaluation or callback)
        """
        start, target = self.validate_request(start, target)
        run = self._begin(start, target)

        pool = ProcessPoolExecutor(max_workers=self.config.workers) if self.config.workers > 1 else None
        try:
            elites: list[TrajectoryCandidate] = []
            genomes = self._initial_genomes(run)
            while True:
                candidates = elites + await self._evaluate_batched(run, genomes, pool)
                report = self._conclude(run, candidates)
                if on_progress is not None:
                    on_progress(report.best.params, report.progress)
                if report.progress >= 100.0:
                    break
                elites, genomes = self._breed(run)
                run.generation += 1
                await asyncio.sleep(0)
        except asyncio.CancelledError:
            logger.info("Trajectory search cancelled at generation %d", run.generation)
            raise
        finally:
            if pool is not None:
                pool.shutdown(wait=False, cancel_futures=True)

        return self._finish(run)

    async def _evaluate_batched(
        self,
        run: OptimizationRun,
        genomes: list[LaunchParameters],
        pool: ProcessPoolExecutor | None,
    ) -> list[TrajectoryCandidate]:
        loop = asyncio.get_running_loop()
        size = self.config.batch_size
        results: list[TrajectoryCandidate] = []
        for i in range(0, len(genomes), size):
            batch = genomes[i:i + size]
            if pool is None:
                results.extend(self._evaluate(run, g) for g in batch)
                await asyncio.sleep(0)
            else:
                futures = [
                    loop.run_in_executor(
                        pool, evaluate_genome, g, run.start, run.target, self.body, self.config.sim
                    )
                    for g in batch
                ]
                results.extend(await asyncio.gather(*futures))
        return results

    def start(
        self,
        start: NDArray[np.float64] | None,
        target: NDArray[np.float64] | None,
        on_progress: ProgressCallback | None = None,
    ) -> "OptimizationTask":
        """Schedule :meth:`optimize` on the running loop.

        Must be called from within a coroutine. The request is validated
        immediately so a bad request raises here rather than in the task.

        Returns:
            OptimizationTask handle
        """
        self.validate_request(start, target)
        return OptimizationTask(self, start, target, on_progress)


# =============================================================================
# Task Handle
# =============================================================================


class OptimizationTask:
    """Handle on a search running in the background.

    Tracks the latest best genome and progress, and can be cancelled. Await
    it (or :meth:`result`) for the OptimizationResult.
    """

    def __init__(
        self,
        optimizer: TrajectoryOptimizer,
        start: NDArray[np.float64],
        target: NDArray[np.float64],
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.progress = 0.0
        self.best: LaunchParameters | None = None
        self._on_progress = on_progress
        self._task = asyncio.get_running_loop().create_task(
            optimizer.optimize(start, target, self._record)
        )

    def _record(self, params: LaunchParameters, progress: float) -> None:
        self.best = params
        self.progress = progress
        if self._on_progress is not None:
            self._on_progress(params, progress)

    def cancel(self) -> bool:
        """Request cancellation; False if the search already finished."""
        return self._task.cancel()

    def cancelled(self) -> bool:
        return self._task.cancelled()

    def done(self) -> bool:
        return self._task.done()

    @property
    def outcome(self) -> OptimizationResult | None:
        """Result if the search finished normally, else None."""
        if not self._task.done() or self._task.cancelled() or self._task.exception() is not None:
            return None
        return self._task.result()

    def add_done_callback(self, fn: Callable[["OptimizationTask"], None]) -> None:
        """Call fn with this handle once the search finishes or is cancelled."""
        self._task.add_done_callback(lambda _: fn(self))

    async def result(self) -> OptimizationResult:
        """Wait for the search to finish."""
        return await self._task

    def __await__(self):
        return self._task.__await__()
