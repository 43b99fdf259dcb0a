#!/usr/bin/env python
"""Example: Plan a surface-to-surface ascent, then fly it in real time.

This script demonstrates the split between:
- The plant (ascent/) - gravity, vehicle state, the fixed-tick simulator
- The planner (launcher/) - the genetic search for launch parameters

Steps:
1. Pick a pad and a target (lat/lon in degrees)
2. Search for launch parameters, with a progress bar fed by progress events
3. Fly the winning genome through a SimulationClock, as a renderer would

Usage:
    uv run python scripts/plan_trajectory.py --start 0 90 --target 10 100
    uv run python scripts/plan_trajectory.py --start 0 90 --target 0 -90 --generations 100
"""

import argparse
import asyncio
import logging
from pathlib import Path

from tqdm import tqdm

from ascent.environment import EARTH, GeoCoordinate
from ascent.plotting import plot_convergence, plot_flight_profile, plot_ground_track
from ascent.simulation import SimulationClock, SimulationContext
from launcher import Launcher, OptimizerConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Plan an ascent between two points on Earth and fly it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--start", nargs=2, type=float, default=[0.0, 90.0], metavar=("LAT", "LON"),
        help="Launch site in degrees (default: 0 90)",
    )
    parser.add_argument(
        "--target", nargs=2, type=float, default=[10.0, 100.0], metavar=("LAT", "LON"),
        help="Target in degrees (default: 10 100)",
    )
    parser.add_argument("--population", type=int, default=50, help="Genomes per generation")
    parser.add_argument("--generations", type=int, default=100, help="Generation budget")
    parser.add_argument("--threshold", type=float, default=1.0, help="Convergence threshold [km]")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--workers", type=int, default=1, help="Evaluation processes")
    parser.add_argument(
        "--multiplier", type=float, default=200.0,
        help="Simulated seconds per real second when flying the result",
    )
    parser.add_argument("--fps", type=float, default=30.0, help="Presentation frame rate")
    parser.add_argument("--output", type=Path, default=None, help="Directory for plots and CSV")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every generation")
    return parser.parse_args()


async def plan(launcher: Launcher):
    """Run the search with a progress bar."""
    with tqdm(total=100.0, desc="Planning", unit="%", bar_format="{l_bar}{bar}| {n:.0f}/{total:.0f}%") as bar:
        def on_progress(params, progress):
            bar.update(progress - bar.n)

        return await launcher.plan(on_progress=on_progress)


async def fly(launcher: Launcher, multiplier: float, fps: float):
    """Fly the planned genome through the clock, as a presentation loop would."""
    context = SimulationContext(SimulationClock(time_multiplier=multiplier))
    sim = launcher.create_simulator(record=True)
    context.add(sim)

    frame = 1.0 / fps
    last_report = -60.0
    while not sim.landed and sim.time < sim.config.max_ticks * sim.config.tick:
        step = context.update(frame)
        if sim.time - last_report >= 60.0:
            position = sim.interpolated_position(step.alpha)
            here = EARTH.geo_coordinates(position)
            print(
                f"  T+{sim.time:6.0f}s  alt {sim.altitude:8.1f} km  "
                f"speed {sim.state.speed:5.2f} km/s  "
                f"({here.latitude:6.2f}, {here.longitude:7.2f})"
            )
            last_report = sim.time
        await asyncio.sleep(0)
    return sim


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    start = GeoCoordinate(*args.start)
    target = GeoCoordinate(*args.target)

    print("=" * 60)
    print("TRAJECTORY PLANNING")
    print("=" * 60)
    print(f"  Start:  {start.latitude:.2f}°, {start.longitude:.2f}°")
    print(f"  Target: {target.latitude:.2f}°, {target.longitude:.2f}°")

    config = OptimizerConfig(
        population_size=args.population,
        generations=args.generations,
        convergence_threshold=args.threshold,
        seed=args.seed,
        workers=args.workers,
    )
    launcher = Launcher(EARTH, config)
    launcher.set_start(start)
    launcher.set_target(target)

    result = asyncio.run(plan(launcher))

    print("\nBEST GENOME:")
    for name, value in result.params.as_dict().items():
        print(f"  {name:24s} {value:.6g}")
    print(f"  Miss distance: {result.fitness:.2f} km "
          f"({'converged' if result.converged else 'not converged'} after {result.generations} generations)")

    print("\nFLIGHT:")
    print("-" * 60)
    sim = asyncio.run(fly(launcher, args.multiplier, args.fps))
    print("-" * 60)

    landing = EARTH.geo_coordinates(sim.state.position)
    miss = EARTH.surface_distance(sim.state.position, launcher.target)
    print(f"  {'Landed' if sim.landed else 'Still flying'} at T+{sim.time:.0f}s")
    print(f"  Final position: {landing.latitude:.2f}°, {landing.longitude:.2f}°")
    print(f"  Apex: {sim.state.max_altitude:.1f} km")
    print(f"  Ground distance to target: {miss:.2f} km")

    if args.output is not None:
        args.output.mkdir(parents=True, exist_ok=True)
        result.to_csv(args.output / "convergence.csv")
        sim.recorder.to_dataframe().write_csv(args.output / "flight.csv")
        plot_convergence(result.to_dataframe(), args.threshold).savefig(
            args.output / "convergence.png", dpi=150, bbox_inches="tight"
        )
        plot_flight_profile(sim.recorder).savefig(
            args.output / "flight_profile.png", dpi=150, bbox_inches="tight"
        )
        plot_ground_track(sim.recorder, EARTH, start, target).savefig(
            args.output / "ground_track.png", dpi=150, bbox_inches="tight"
        )
        print(f"\nOutputs written to {args.output}")


if __name__ == "__main__":
    main()
