from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import GlobeProfile

__all__ = [
    "GOLDEN_ANGLE",
    "GlobePoint",
    "spiral_position",
    "build_points",
]

# pi * (3 - sqrt(5)), increment de longitude entre deux points successifs
GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


@dataclass(frozen=True)
class GlobePoint:
    """One decorative dot: a fixed unit vector plus its random look."""

    unit_position: Tuple[float, float, float]
    phase: float
    amplitude: float
    speed: float
    color: str
    base_size: float


def spiral_position(index: int, count: int) -> Tuple[float, float, float]:
    """Return the equal-area spiral position of ``index`` among ``count`` points.

    Latitude decreases linearly from the north pole (``y = 1``) to the south
    pole (``y = -1``) while the longitude advances by the golden angle, which
    keeps the coverage even without clustering at the poles.
    """

    y = 1.0 - (2.0 * index) / max(count - 1, 1)
    r = math.sqrt(max(0.0, 1.0 - y * y))
    phi = index * GOLDEN_ANGLE
    return (math.cos(phi) * r, y, math.sin(phi) * r)


def build_points(
    profile: GlobeProfile,
    count: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[GlobePoint]:
    """Generate a fresh point set for ``profile``.

    Positions only depend on ``count`` and the index; the other attributes are
    drawn from ``rng`` (the module-level generator when omitted).
    """

    n = profile.count if count is None else int(count)
    rand = rng if rng is not None else random
    points: List[GlobePoint] = []
    for i in range(max(0, n)):
        points.append(
            GlobePoint(
                unit_position=spiral_position(i, n),
                phase=rand.random() * math.pi * 2.0,
                amplitude=profile.amp_base + rand.random() * profile.amp_range,
                speed=profile.speed_base + rand.random() * profile.speed_range,
                color=rand.choice(profile.palette),
                base_size=profile.size_base + rand.random() * profile.size_range,
            )
        )
    return points
