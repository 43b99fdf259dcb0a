"""Unit tests for the flight recorder."""

import numpy as np
import polars as pl
import pytest

from ascent.dynamics import LaunchParameters
from ascent.environment import EARTH
from ascent.simulation import FlightRecorder, FlightSimulator


@pytest.fixture
def sim():
    start = EARTH.surface_position(0.0, 90.0)
    target = EARTH.surface_position(5.0, 95.0)
    params = LaunchParameters.toward(start, target, max_thrust=0.03, fuel_duration=100.0)
    return FlightSimulator.launch(start, params, record=True)


class TestFlightRecorder:
    """Test the bounded trail."""

    def test_empty(self):
        recorder = FlightRecorder()
        assert len(recorder) == 0
        assert recorder.last is None
        assert recorder.position.shape == (0, 3)

    def test_records_copies(self, sim):
        """Later steps do not alter recorded snapshots."""
        sim.advance(50)
        first = sim.recorder.states[0]
        assert first.flight_time == 0.0
        assert np.allclose(first.position, sim.state.initial_position)

    def test_limit_drops_oldest(self, sim):
        recorder = FlightRecorder(limit=10)
        for _ in range(25):
            recorder.record(sim.step())
        assert len(recorder) == 10
        assert recorder.time[0] == pytest.approx(16.0)
        assert recorder.last.flight_time == pytest.approx(25.0)

    def test_array_accessors(self, sim):
        sim.advance(60)
        recorder = sim.recorder
        n = len(recorder)
        assert recorder.time.shape == (n,)
        assert recorder.position.shape == (n, 3)
        assert recorder.velocity.shape == (n, 3)
        assert np.all(np.diff(recorder.time) > 0)
        assert recorder.altitude[-1] == pytest.approx(sim.altitude)
        assert recorder.speed[-1] == pytest.approx(sim.state.speed)

    def test_to_dataframe(self, sim):
        sim.advance(40)
        df = sim.recorder.to_dataframe()

        assert isinstance(df, pl.DataFrame)
        assert df.height == 41
        assert df.columns == [
            "time", "altitude", "speed", "thrust",
            "x", "y", "z", "vx", "vy", "vz", "landed",
        ]
        assert df["time"][-1] == pytest.approx(40.0)
        assert not df["landed"].any()

    def test_clear(self, sim):
        sim.advance(5)
        sim.recorder.clear()
        assert len(sim.recorder) == 0

    def test_rejects_bad_limit(self):
        with pytest.raises(ValueError, match="limit"):
            FlightRecorder(limit=0)
