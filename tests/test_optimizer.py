"""Unit tests for the trajectory optimizer.

Tests fitness evaluation, the generation loop (elitism, progress ordering,
convergence), the asyncio driver and cancellation.
"""

import asyncio
import dataclasses
import logging

import numpy as np
import polars as pl
import pytest
from numpy.testing import assert_allclose

from ascent.dynamics import LaunchParameters, VehicleState
from ascent.environment import EARTH, GeoCoordinate
from ascent.simulation import SimConfig, simulate_flight
from launcher import (
    GenerationReport,
    InvalidRequestError,
    OptimizationResult,
    OptimizerConfig,
    TrajectoryOptimizer,
    evaluate_genome,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def start():
    return EARTH.surface_position(0.0, 90.0)


@pytest.fixture
def target():
    return EARTH.surface_position(2.0, 92.0)


@pytest.fixture
def small_config():
    """Quick search: small population, short tick budget."""
    return OptimizerConfig(
        population_size=12,
        generations=6,
        seed=3,
        batch_size=4,
        convergence_threshold=0.0,
        sim=SimConfig(tick=1.0, max_ticks=3000),
    )


# =============================================================================
# Configuration Tests
# =============================================================================


class TestOptimizerConfig:
    """Test configuration validation."""

    @pytest.mark.parametrize(
        "kwargs, match",
        [
            ({"population_size": 1}, "population_size"),
            ({"generations": 0}, "generations"),
            ({"elite_count": 0}, "elite_count"),
            ({"population_size": 4, "elite_count": 4}, "elite_count"),
            ({"tournament_size": 0}, "tournament_size"),
            ({"population_size": 4, "tournament_size": 5}, "tournament_size"),
            ({"mutation_rate": 1.5}, "mutation_rate"),
            ({"mutation_scale": -0.1}, "mutation scales"),
            ({"convergence_threshold": -1.0}, "convergence_threshold"),
            ({"batch_size": 0}, "batch_size"),
            ({"workers": 0}, "workers"),
        ],
    )
    def test_rejects_invalid(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            OptimizerConfig(**kwargs)

    def test_mutation_scale_anneals(self):
        config = OptimizerConfig(generations=11, mutation_scale=0.2, final_mutation_scale=0.0)
        assert config.mutation_scale_at(0) == pytest.approx(0.2)
        assert config.mutation_scale_at(5) == pytest.approx(0.1)
        assert config.mutation_scale_at(10) == pytest.approx(0.0)
        assert config.mutation_scale_at(50) == pytest.approx(0.0)

    def test_single_generation_scale(self):
        config = OptimizerConfig(generations=1, mutation_scale=0.3)
        assert config.mutation_scale_at(0) == 0.3


# =============================================================================
# Evaluation Tests
# =============================================================================


class TestEvaluateGenome:
    """Fitness is the final distance to the target."""

    def test_fitness_is_final_distance(self, start, target):
        params = LaunchParameters.toward(start, target, max_thrust=0.03, fuel_duration=100.0)
        candidate = evaluate_genome(params, start, target)

        outcome = simulate_flight(start, params, EARTH, reference=target)
        assert candidate.landed == outcome.landed
        assert_allclose(candidate.final_position, outcome.final_position)
        assert candidate.fitness == pytest.approx(np.linalg.norm(outcome.final_position - target))
        assert candidate.closest_approach <= candidate.fitness + 1e-9
        assert candidate.params is params

    def test_grounded_vehicle_scores_pad_distance(self, start, target):
        """A vehicle that never lifts off ends where it started."""
        params = LaunchParameters.toward(start, target, max_thrust=0.001)
        candidate = evaluate_genome(params, start, target, sim=SimConfig(max_ticks=100))
        assert not candidate.landed
        assert candidate.fitness == pytest.approx(np.linalg.norm(start - target))

    def test_does_not_touch_live_state(self, start, target):
        """Evaluation runs on private state."""
        live = VehicleState.at_launch(start, EARTH)
        before = live.copy()
        params = LaunchParameters.toward(start, target, max_thrust=0.03, fuel_duration=100.0)

        evaluate_genome(params, live.position, target)

        assert_allclose(live.position, before.position, atol=0.0)
        assert live.flight_time == 0.0

    def test_rank_key_breaks_ties_on_time(self, start):
        """Equal fitness: shorter flight ranks first."""
        hover = LaunchParameters.toward(start, start.copy(), max_thrust=0.001)
        quick = evaluate_genome(hover, start, start, sim=SimConfig(max_ticks=10))
        slow = evaluate_genome(hover, start, start, sim=SimConfig(max_ticks=20))
        assert quick.fitness == slow.fitness == 0.0
        assert quick.rank_key < slow.rank_key


# =============================================================================
# Generation Loop Tests
# =============================================================================


class TestIterGenerations:
    """Test the synchronous generation loop."""

    def test_one_report_per_generation(self, start, target, small_config):
        optimizer = TrajectoryOptimizer(config=small_config)
        reports = list(optimizer.iter_generations(start, target))

        assert len(reports) == small_config.generations
        assert [r.generation for r in reports] == list(range(small_config.generations))
        assert all(isinstance(r, GenerationReport) for r in reports)

    def test_fitness_monotonic(self, start, target, small_config):
        """Elitism: the best fitness never gets worse."""
        reports = list(TrajectoryOptimizer(config=small_config).iter_generations(start, target))
        fitness = [r.best.fitness for r in reports]
        assert all(b <= a for a, b in zip(fitness, fitness[1:]))

    def test_progress_strictly_increasing_to_100(self, start, target, small_config):
        reports = list(TrajectoryOptimizer(config=small_config).iter_generations(start, target))
        progress = [r.progress for r in reports]
        assert all(b > a for a, b in zip(progress, progress[1:]))
        assert progress[-1] == 100.0
        assert progress[0] == pytest.approx(100.0 / small_config.generations)

    def test_deterministic_with_seed(self, start, target, small_config):
        a = TrajectoryOptimizer(config=small_config).run(start, target)
        b = TrajectoryOptimizer(config=small_config).run(start, target)
        assert a.fitness == b.fitness
        assert_allclose(a.params.target_direction, b.params.target_direction)

    def test_improves_on_straight_line_seed(self, start, target, small_config):
        """The search does at least as well as the straight-line guess."""
        optimizer = TrajectoryOptimizer(config=small_config)
        seed = optimizer.bounds.clip(LaunchParameters.toward(start, target))
        baseline = evaluate_genome(seed, start, target, sim=small_config.sim)

        result = optimizer.run(start, target)
        assert result.fitness <= baseline.fitness

    def test_validates_before_iterating(self, target):
        """A missing endpoint raises at the call, not on first next()."""
        with pytest.raises(InvalidRequestError, match="start"):
            TrajectoryOptimizer().iter_generations(None, target)


class TestConvergence:
    """Start == target converges to a vertical hop back onto the pad."""

    def test_same_start_and_target(self, start):
        config = OptimizerConfig(
            population_size=20,
            generations=10,
            seed=11,
            convergence_threshold=1.0,
            sim=SimConfig(tick=1.0, max_ticks=5000),
        )
        result = TrajectoryOptimizer(config=config).run(start, start.copy())

        assert result.converged
        assert result.fitness == pytest.approx(0.0, abs=1e-3)
        assert result.generations <= 10
        assert result.progress == 100.0
        assert result.history[-1].progress == 100.0

    def test_early_stop_reports_100(self, start):
        """Converging before the budget still ends at exactly 100."""
        config = OptimizerConfig(population_size=16, generations=50, seed=1, convergence_threshold=1.0)
        reports = list(TrajectoryOptimizer(config=config).iter_generations(start, start.copy()))
        assert len(reports) < 50
        assert reports[-1].converged
        assert reports[-1].progress == 100.0

    def test_not_converging_is_not_an_error(self, start, target, small_config):
        """An unreachable threshold still resolves with the best candidate."""
        result = TrajectoryOptimizer(config=small_config).run(start, target)
        assert not result.converged
        assert result.generations == small_config.generations
        assert np.isfinite(result.fitness)
        assert isinstance(result.params, LaunchParameters)


# =============================================================================
# Async Driver Tests
# =============================================================================


class TestOptimize:
    """Test the asyncio driver."""

    def test_progress_events(self, start, target, small_config):
        events = []
        result = asyncio.run(
            TrajectoryOptimizer(config=small_config).optimize(
                start, target, on_progress=lambda params, pct: events.append((params, pct))
            )
        )

        assert isinstance(result, OptimizationResult)
        assert len(events) == small_config.generations
        progress = [pct for _, pct in events]
        assert all(b > a for a, b in zip(progress, progress[1:]))
        assert progress[-1] == 100.0
        assert events[-1][0] is result.params

    def test_matches_sync_driver(self, start, target, small_config):
        sync = TrajectoryOptimizer(config=small_config).run(start, target)
        result = asyncio.run(TrajectoryOptimizer(config=small_config).optimize(start, target))
        assert result.fitness == pytest.approx(sync.fitness)

    def test_process_pool_matches_in_process(self, start, target, small_config):
        """Evaluating in worker processes gives the same search."""
        def search(config):
            events = []
            result = asyncio.run(
                TrajectoryOptimizer(config=config).optimize(
                    start, target, on_progress=lambda params, pct: events.append(pct)
                )
            )
            return result, events

        local, local_events = search(small_config)
        pooled, pooled_events = search(dataclasses.replace(small_config, workers=2))

        assert pooled.fitness == pytest.approx(local.fitness)
        assert pooled_events == local_events
        assert [r.best.fitness for r in pooled.history] == pytest.approx(
            [r.best.fitness for r in local.history]
        )

    def test_yields_to_event_loop(self, start, target, small_config):
        """Other coroutines run while the search is in progress."""
        ticks = []

        async def heartbeat():
            while True:
                ticks.append(None)
                await asyncio.sleep(0)

        async def main():
            beat = asyncio.create_task(heartbeat())
            await TrajectoryOptimizer(config=small_config).optimize(start, target)
            beat.cancel()

        asyncio.run(main())
        # At least one yield per batch
        batches = small_config.generations * small_config.population_size // small_config.batch_size
        assert len(ticks) >= batches // 2

    def test_invalid_request_emits_nothing(self, target):
        events = []
        with pytest.raises(InvalidRequestError):
            asyncio.run(TrajectoryOptimizer().optimize(None, target, on_progress=lambda *a: events.append(a)))
        assert events == []

    def test_missing_both(self):
        with pytest.raises(InvalidRequestError, match="start and target"):
            asyncio.run(TrajectoryOptimizer().optimize(None, None))

    def test_non_finite_endpoint(self, start):
        with pytest.raises(InvalidRequestError, match="finite"):
            asyncio.run(TrajectoryOptimizer().optimize(start, np.array([np.nan, 0.0, 0.0])))


class TestOptimizationTask:
    """Test the background task handle."""

    def test_await_result(self, start, target, small_config):
        async def main():
            task = TrajectoryOptimizer(config=small_config).start(start, target)
            result = await task
            return task, result

        task, result = asyncio.run(main())
        assert task.done()
        assert not task.cancelled()
        assert task.progress == 100.0
        assert task.best is result.params
        assert task.outcome is result

    def test_cancel_stops_callbacks(self, start, target):
        config = OptimizerConfig(population_size=20, generations=200, seed=5, convergence_threshold=0.0, batch_size=5)
        events = []

        async def main():
            task = TrajectoryOptimizer(config=config).start(
                start, target, on_progress=lambda p, pct: events.append(pct)
            )
            while not events:
                await asyncio.sleep(0)
            assert task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            seen = len(events)
            for _ in range(50):
                await asyncio.sleep(0)
            return task, seen

        task, seen = asyncio.run(main())
        assert task.cancelled()
        assert task.outcome is None
        assert len(events) == seen
        assert events[-1] < 100.0

    def test_start_validates_immediately(self, target):
        async def main():
            TrajectoryOptimizer().start(None, target)

        with pytest.raises(InvalidRequestError):
            asyncio.run(main())


# =============================================================================
# Result and Logging Tests
# =============================================================================


class TestOptimizationResult:
    """Test result export."""

    def test_to_dataframe(self, start, target, small_config):
        result = TrajectoryOptimizer(config=small_config).run(start, target)
        df = result.to_dataframe()

        assert isinstance(df, pl.DataFrame)
        assert df.height == result.generations
        assert {"generation", "best_fitness", "mean_fitness", "progress"} <= set(df.columns)
        assert df["progress"][-1] == 100.0
        assert df["best_fitness"][-1] == pytest.approx(result.fitness)

    def test_to_csv(self, start, target, small_config, tmp_path):
        result = TrajectoryOptimizer(config=small_config).run(start, target)
        path = tmp_path / "history.csv"
        result.to_csv(path)
        assert pl.read_csv(path).height == result.generations


class TestLogging:
    def test_logs_start_and_finish(self, start, target, small_config, caplog):
        with caplog.at_level(logging.INFO, logger="launcher.optimizer"):
            TrajectoryOptimizer(config=small_config).run(start, target)
        messages = [r.getMessage() for r in caplog.records]
        assert any("Starting trajectory search" in m for m in messages)
        assert any("after 6 generations" in m for m in messages)

    def test_geo_endpoints(self, small_config):
        """Endpoints built from GeoCoordinates work end to end."""
        start = GeoCoordinate(0.0, 90.0).to_position(EARTH)
        target = GeoCoordinate(1.0, 91.0).to_position(EARTH)
        result = TrajectoryOptimizer(config=small_config).run(start, target)
        assert result.generations == small_config.generations
