"""Point-mass vehicle state and launch parameters.

Example:
    >>> from ascent.dynamics import LaunchParameters, VehicleState
    >>> from ascent.environment import EARTH
    >>>
    >>> start = EARTH.surface_position(0.0, 90.0)
    >>> state = VehicleState.at_launch(start, EARTH)
    >>> params = LaunchParameters.toward(start, EARTH.surface_position(5.0, 95.0))
"""

from ascent.dynamics.state import (
    LaunchParameters,
    VehicleState,
    normalize,
    project_on_plane,
    rotate_about_axis,
)

__all__ = [
    "LaunchParameters",
    "VehicleState",
    "normalize",
    "project_on_plane",
    "rotate_about_axis",
]
