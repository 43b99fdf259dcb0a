"""Tests for the Launcher planning front end, including end-to-end scenarios."""

import asyncio
import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose

from ascent.environment import EARTH, GeoCoordinate
from ascent.simulation import FlightSimulator, SimConfig, SimulationClock, SimulationContext
from launcher import InvalidRequestError, Launcher, OptimizerConfig


@pytest.fixture
def quick_config():
    return OptimizerConfig(
        population_size=10,
        generations=4,
        seed=9,
        batch_size=5,
        convergence_threshold=0.0,
        sim=SimConfig(tick=1.0, max_ticks=3000),
    )


@pytest.fixture
def launcher(quick_config):
    launcher = Launcher(EARTH, quick_config)
    launcher.set_start(GeoCoordinate(0.0, 90.0))
    launcher.set_target(GeoCoordinate(3.0, 93.0))
    return launcher


async def _plan(launcher):
    return await launcher.plan()


# =============================================================================
# Start / Target Selection
# =============================================================================


class TestSelection:
    """Test pad and target placement."""

    def test_from_geo(self):
        launcher = Launcher()
        launcher.set_start(GeoCoordinate(10.0, 20.0))
        assert_allclose(launcher.start, EARTH.surface_position(10.0, 20.0))

    def test_position_projected_to_surface(self):
        launcher = Launcher()
        launcher.set_target(np.array([0.0, 0.0, 10_000.0]))
        assert_allclose(launcher.target, [0.0, 0.0, EARTH.radius])

    def test_clear(self, launcher):
        launcher.clear()
        assert launcher.start is None
        assert launcher.target is None


# =============================================================================
# Planning
# =============================================================================


class TestPlan:
    """Test search lifecycle through the Launcher."""

    def test_missing_target(self):
        launcher = Launcher()
        launcher.set_start(GeoCoordinate(0.0, 0.0))
        with pytest.raises(InvalidRequestError, match="target"):
            launcher.plan()

    def test_missing_start(self):
        launcher = Launcher()
        launcher.set_target(GeoCoordinate(0.0, 0.0))
        with pytest.raises(InvalidRequestError, match="start"):
            launcher.plan()

    def test_nothing_to_fly_before_planning(self, launcher):
        with pytest.raises(InvalidRequestError, match="no planned trajectory"):
            launcher.create_simulator()

    def test_plan_then_fly(self, launcher):
        events = []

        async def main():
            task = launcher.plan(on_progress=lambda p, pct: events.append(pct))
            assert launcher.planning
            return await task

        result = asyncio.run(main())

        assert not launcher.planning
        assert launcher.result is result
        assert launcher.params is result.params
        assert events[-1] == 100.0

        sim = launcher.create_simulator()
        assert isinstance(sim, FlightSimulator)
        assert sim.params is result.params
        assert_allclose(sim.state.position, launcher.start)
        assert sim.time == 0.0

    def test_replan_supersedes(self, launcher, caplog):
        """A second plan cancels the first; only the second reports from then on."""
        first_events = []
        second_events = []

        async def main():
            first = launcher.plan(on_progress=lambda p, pct: first_events.append(pct))
            await asyncio.sleep(0)
            second = launcher.plan(on_progress=lambda p, pct: second_events.append(pct))
            result = await second
            return first, second, result

        with caplog.at_level(logging.INFO, logger="launcher.planner"):
            first, second, result = asyncio.run(main())

        assert first.cancelled()
        assert first_events == []
        assert second_events[-1] == 100.0
        assert launcher.params is result.params
        assert any("Superseded" in r.getMessage() for r in caplog.records)

    def test_cancel(self, launcher):
        async def main():
            task = launcher.plan()
            cancelled = launcher.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return cancelled

        assert asyncio.run(main())
        assert launcher.params is None
        assert not launcher.cancel()

    def test_cancel_keeps_previous_plan(self, launcher):
        """A cancelled replan leaves the last finished plan in place."""
        async def main():
            done = await launcher.plan()
            task = launcher.plan()
            launcher.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return done

        done = asyncio.run(main())
        assert launcher.params is done.params


# =============================================================================
# End-to-End Scenarios
# =============================================================================


class TestEndToEnd:
    """Plan, then fly the result through the clock like a presentation loop."""

    def test_fly_plan_through_clock(self, launcher):
        asyncio.run(_plan(launcher))

        context = SimulationContext(SimulationClock(tick=1.0, time_multiplier=100.0))
        vehicle_id = context.add(launcher.create_simulator(record=True))
        sim = context.get(vehicle_id)

        frames = 0
        while not sim.landed and frames < 1000:
            step = context.update(1 / 30)
            position = sim.interpolated_position(step.alpha)
            assert np.all(np.isfinite(position))
            frames += 1

        assert sim.recorder.time[-1] == pytest.approx(sim.time)

    @pytest.mark.slow
    def test_antipodal_landing(self):
        """Start (0, 90) to target (0, -90): land within 50 km of the target."""
        config = OptimizerConfig(population_size=50, generations=100, seed=2024)
        launcher = Launcher(EARTH, config)
        launcher.set_start(GeoCoordinate(0.0, 90.0))
        launcher.set_target(GeoCoordinate(0.0, -90.0))

        result = asyncio.run(_plan(launcher))

        flight = launcher.create_simulator().run_until_landed()
        assert flight.landed
        assert np.linalg.norm(flight.state.position - launcher.target) < 50.0
        assert result.progress == 100.0
