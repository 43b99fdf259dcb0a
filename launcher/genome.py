"""Search space and variation operators for launch-parameter genomes.

A genome is one :class:`~ascent.dynamics.LaunchParameters`. The five scalar
fields are searched inside per-field ranges; the direction gene is varied by
rotating it about a random axis, so it keeps unit length and a zero
direction ("no bearing") stays zero.
"""

import math
from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from ascent.dynamics.state import LaunchParameters, normalize, rotate_about_axis

SCALAR_GENES: tuple[str, ...] = (
    "incline_start_altitude",
    "incline_max_duration",
    "incline_rate",
    "fuel_duration",
    "max_thrust",
)


@beartype
def random_axis(rng: np.random.Generator) -> NDArray[np.float64]:
    """Uniformly distributed unit vector."""
    axis = normalize(rng.normal(size=3))
    while not np.any(axis):
        axis = normalize(rng.normal(size=3))
    return axis


@beartype
@dataclass
class GenomeBounds:
    """Search ranges for each genome field.

    Attributes:
        incline_start_altitude: (low, high) [km]
        incline_max_duration: (low, high) [s]
        incline_rate: (low, high) [rad/s]
        fuel_duration: (low, high) [s]
        max_thrust: (low, high) [km/s^2]
        max_tilt: Largest rotation applied to the seed direction when
            sampling; mutation steps are a fraction of it [rad]
    """
    incline_start_altitude: tuple[float, float] = (0.0, 50.0)
    incline_max_duration: tuple[float, float] = (0.0, 300.0)
    incline_rate: tuple[float, float] = (0.0, math.radians(2.0))
    fuel_duration: tuple[float, float] = (60.0, 900.0)
    max_thrust: tuple[float, float] = (0.01, 0.08)
    max_tilt: float = math.radians(45.0)

    def __post_init__(self) -> None:
        """Validate ranges."""
        for name in SCALAR_GENES:
            low, high = getattr(self, name)
            if not (math.isfinite(low) and math.isfinite(high)) or low < 0 or high < low:
                raise ValueError(f"{name} bounds must satisfy 0 <= low <= high, got ({low}, {high})")
        if not math.isfinite(self.max_tilt) or self.max_tilt < 0:
            raise ValueError(f"max_tilt must be finite and >= 0, got {self.max_tilt}")

    def span(self, name: str) -> float:
        """Width of the range for a scalar gene."""
        low, high = getattr(self, name)
        return high - low

    def clip(self, params: LaunchParameters) -> LaunchParameters:
        """Clamp every scalar gene into its range."""
        changes = {}
        for name in SCALAR_GENES:
            low, high = getattr(self, name)
            changes[name] = min(max(getattr(params, name), low), high)
        return params.replace(**changes)

    def sample(self, seed: LaunchParameters, rng: np.random.Generator) -> LaunchParameters:
        """Draw a random genome around the seed's direction.

        Scalars are uniform over their ranges. The direction is the seed's
        tilted by up to ``max_tilt`` about a random axis.

        Args:
            seed: Genome supplying the base direction
            rng: Random generator

        Returns:
            New genome inside the bounds
        """
        scalars = {}
        for name in SCALAR_GENES:
            low, high = getattr(self, name)
            scalars[name] = float(rng.uniform(low, high))

        direction = rotate_about_axis(
            seed.target_direction,
            random_axis(rng),
            float(rng.uniform(0.0, self.max_tilt)),
        )
        return LaunchParameters(target_direction=direction, **scalars)

    def mutate(
        self,
        params: LaunchParameters,
        rng: np.random.Generator,
        rate: float,
        scale: float,
    ) -> LaunchParameters:
        """Perturb each gene independently with probability ``rate``.

        Args:
            params: Genome to perturb
            rng: Random generator
            rate: Per-gene mutation probability
            scale: Step size as a fraction of each range (and of max_tilt
                for the direction)

        Returns:
            Mutated genome, clipped into the bounds
        """
        changes: dict[str, object] = {}
        for name in SCALAR_GENES:
            if rng.random() < rate:
                low, high = getattr(self, name)
                value = getattr(params, name) + float(rng.normal(0.0, scale * (high - low)))
                changes[name] = min(max(value, low), high)

        if rng.random() < rate:
            angle = float(rng.normal(0.0, scale * self.max_tilt))
            changes["target_direction"] = rotate_about_axis(
                params.target_direction, random_axis(rng), angle
            )

        if not changes:
            return params
        return params.replace(**changes)


@beartype
def crossover(
    a: LaunchParameters,
    b: LaunchParameters,
    rng: np.random.Generator,
) -> LaunchParameters:
    """Uniform crossover: each gene comes from either parent with equal odds.

    The direction is inherited whole from one parent.
    """
    genes = {
        name: getattr(a if rng.random() < 0.5 else b, name)
        for name in SCALAR_GENES
    }
    direction = (a if rng.random() < 0.5 else b).target_direction
    return LaunchParameters(target_direction=direction.copy(), **genes)
