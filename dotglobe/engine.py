from __future__ import annotations

import random
from typing import List, Optional

from .animator import AnimationState
from .config import GlobeProfile
from .projection import RenderItem, Viewport, project_points
from .sphere_points import GlobePoint, build_points

__all__ = ["GlobeEngine"]


class GlobeEngine:
    """Owns the point set and the projected frame for one surface."""

    def __init__(self, profile: GlobeProfile, rng: Optional[random.Random] = None) -> None:
        self.profile = profile
        self._rng = rng if rng is not None else random.Random()
        self.points: List[GlobePoint] = []
        self.viewport = Viewport.for_size(0, 0, profile)
        self.items: List[RenderItem] = []
        self.draw_count = 0
        self.rebuild_count = 0
        self._last_point_count = -1

    def _debug(self, message: str) -> None:
        print(f"[DotGlobe][DEBUG] {message}", flush=True)

    def resize(self, width: int, height: int) -> None:
        """Adopt the new surface size and replace the whole point set."""

        self.viewport = Viewport.for_size(width, height, self.profile)
        self.points = build_points(self.profile, rng=self._rng)
        self.items = []
        self.rebuild_count += 1
        count = len(self.points)
        if count != self._last_point_count:
            self._debug(
                "rebuild produced %d points (%s, %dx%d, radius=%.1f)"
                % (count, self.profile.variant, width, height, self.viewport.radius_px)
            )
            self._last_point_count = count

    def render(self, state: AnimationState) -> List[RenderItem]:
        if self.viewport.width <= 0 or self.viewport.height <= 0:
            self.items = []
        else:
            self.items = project_points(
                self.points,
                state.rot_x,
                state.rot_y,
                state.elapsed,
                self.viewport,
                self.profile,
            )
        self.draw_count += 1
        return self.items
