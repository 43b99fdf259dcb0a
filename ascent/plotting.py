"""Visualization for ascent flights and trajectory searches.

Provides plotting functions for:
- Search convergence (best and mean miss distance per generation)
- Flight profiles (altitude, speed and thrust vs time)
- Ground track of a recorded flight

All plots use matplotlib and return the Figure; nothing is shown or saved.
"""

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
from beartype import beartype
from matplotlib.figure import Figure

from ascent.environment.body import EARTH, CelestialBody, GeoCoordinate
from ascent.simulation.recorder import FlightRecorder

# =============================================================================
# Plot Style Configuration
# =============================================================================

COLORS = {
    "primary": "#2E86AB",  # Steel blue
    "secondary": "#A23B72",  # Berry
    "accent": "#F18F01",  # Orange
    "text": "#333333",
}

DEFAULT_FIGSIZE = (12.0, 6.0)


def _setup_style() -> None:
    """Configure matplotlib style for consistent appearance."""
    plt.rcParams.update(
        {
            "font.family": "sans-serif",
            "font.sans-serif": ["Helvetica", "Arial", "DejaVu Sans"],
            "font.size": 11,
            "axes.titlesize": 14,
            "axes.labelsize": 12,
            "axes.edgecolor": COLORS["text"],
            "axes.labelcolor": COLORS["text"],
            "legend.fontsize": 10,
            "grid.alpha": 0.5,
        }
    )


# =============================================================================
# Convergence
# =============================================================================


@beartype
def plot_convergence(
    history: pl.DataFrame,
    convergence_threshold: float | None = None,
    figsize: tuple[float, float] = (10.0, 6.0),
) -> Figure:
    """Plot miss distance per generation of a trajectory search.

    Args:
        history: Per-generation frame from ``OptimizationResult.to_dataframe()``
            (columns ``generation``, ``best_fitness``, ``mean_fitness``)
        convergence_threshold: Draw the convergence threshold [km] if given
        figsize: Figure size

    Returns:
        matplotlib Figure
    """
    _setup_style()

    fig, ax = plt.subplots(figsize=figsize)

    generation = history["generation"].to_numpy()
    ax.plot(
        generation,
        history["best_fitness"].to_numpy(),
        color=COLORS["primary"],
        linewidth=2,
        marker="o",
        markersize=3,
        label="Best",
    )
    if "mean_fitness" in history.columns:
        ax.plot(
            generation,
            history["mean_fitness"].to_numpy(),
            color=COLORS["accent"],
            linewidth=1.5,
            alpha=0.7,
            label="Population mean",
        )
    if convergence_threshold is not None:
        ax.axhline(
            y=convergence_threshold,
            color=COLORS["secondary"],
            linestyle="--",
            alpha=0.7,
            label="Convergence threshold",
        )

    # Fitness can reach exactly zero
    ax.set_yscale("symlog", linthresh=1.0)
    ax.set_xlabel("Generation")
    ax.set_ylabel("Miss distance (km)")
    ax.set_title("Trajectory Search Convergence")
    ax.grid(True, alpha=0.3)
    ax.legend()

    fig.tight_layout()
    return fig


# =============================================================================
# Flight Profile
# =============================================================================


@beartype
def plot_flight_profile(
    recorder: FlightRecorder,
    title: str = "Flight Profile",
    figsize: tuple[float, float] = DEFAULT_FIGSIZE,
) -> Figure:
    """Plot altitude, speed and thrust vs time for a recorded flight.

    Args:
        recorder: Recorder attached to a FlightSimulator
        title: Figure title
        figsize: Figure size

    Returns:
        matplotlib Figure with two subplots
    """
    _setup_style()

    t = recorder.time

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=figsize)

    ax1.plot(t, recorder.altitude, color=COLORS["primary"], linewidth=2)
    ax1.set_xlabel("Time (s)")
    ax1.set_ylabel("Altitude (km)")
    ax1.set_title("Altitude")
    ax1.grid(True, alpha=0.3)

    ax2.plot(t, recorder.speed, color=COLORS["accent"], linewidth=2, label="Speed")
    ax2.set_xlabel("Time (s)")
    ax2.set_ylabel("Speed (km/s)")
    ax2.set_title("Speed and Thrust")
    ax2.grid(True, alpha=0.3)

    ax3 = ax2.twinx()
    ax3.plot(
        t,
        recorder.thrust * 1000.0,
        color=COLORS["secondary"],
        linewidth=1.5,
        linestyle="--",
        label="Thrust",
    )
    ax3.set_ylabel("Thrust (m/s²)")

    lines = ax2.get_lines() + ax3.get_lines()
    ax2.legend(lines, [line.get_label() for line in lines])

    fig.suptitle(title, fontsize=14, y=1.02)
    fig.tight_layout()
    return fig


@beartype
def plot_ground_track(
    recorder: FlightRecorder,
    body: CelestialBody = EARTH,
    start: GeoCoordinate | None = None,
    target: GeoCoordinate | None = None,
    figsize: tuple[float, float] = (10.0, 6.0),
) -> Figure:
    """Plot the sub-vehicle point of a recorded flight in longitude/latitude.

    Args:
        recorder: Recorder attached to a FlightSimulator
        body: Body the flight took place over
        start: Launch site marker
        target: Target marker
        figsize: Figure size

    Returns:
        matplotlib Figure
    """
    _setup_style()

    track = [body.geo_coordinates(p) for p in recorder.position]
    lat = np.array([g.latitude for g in track])
    lon = np.array([g.longitude for g in track])

    fig, ax = plt.subplots(figsize=figsize)
    ax.scatter(lon, lat, s=4, color=COLORS["primary"], label="Track")

    if start is not None:
        ax.plot(start.longitude, start.latitude, "o", color=COLORS["primary"],
                markersize=10, markerfacecolor="none", label="Start")
    if target is not None:
        ax.plot(target.longitude, target.latitude, "o", color=COLORS["secondary"],
                markersize=10, markerfacecolor="none", label="Target")

    ax.set_xlim(-180, 180)
    ax.set_ylim(-90, 90)
    ax.set_xlabel("Longitude (deg)")
    ax.set_ylabel("Latitude (deg)")
    ax.set_title("Ground Track")
    ax.grid(True, alpha=0.3)
    ax.legend()

    fig.tight_layout()
    return fig
