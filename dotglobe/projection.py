"""Rotation, bounce and perspective projection of the globe dots.

Everything here is a plain function of its arguments so the frame loop can
call it with the state record it owns and tests can call it directly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .config import GlobeProfile
from .sphere_points import GlobePoint

__all__ = [
    "Vec3",
    "Viewport",
    "RenderItem",
    "clamp",
    "rotate",
    "unrotate",
    "bounce_factor",
    "project_point",
    "depth_sort",
    "project_points",
]

Vec3 = Tuple[float, float, float]

# Plus petit denominateur de perspective autorise (en pixels)
_MIN_DEPTH_ROOM = 1.0


@dataclass(frozen=True)
class Viewport:
    """Size of the drawing surface and the derived projection constants."""

    width: float
    height: float
    radius_px: float
    perspective: float

    @property
    def cx(self) -> float:
        return self.width / 2.0

    @property
    def cy(self) -> float:
        return self.height / 2.0

    @classmethod
    def for_size(cls, width: float, height: float, profile: GlobeProfile) -> "Viewport":
        width = max(0.0, float(width))
        height = max(0.0, float(height))
        return cls(
            width=width,
            height=height,
            radius_px=min(width, height) * profile.radius_ratio,
            perspective=profile.perspective,
        )


@dataclass
class RenderItem:
    """Structure describing a dot projected on screen."""

    sx: float
    sy: float
    depth: float
    size: float
    color: str
    alpha: float


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def rotate(v: Vec3, ax: float, ay: float) -> Vec3:
    """Rotate ``v`` by ``ax`` around the X axis, then by ``ay`` around Y."""

    cos_y, sin_y = math.cos(ay), math.sin(ay)
    cos_x, sin_x = math.cos(ax), math.sin(ax)
    x, y, z = v

    y1 = y * cos_x - z * sin_x
    z1 = y * sin_x + z * cos_x

    x2 = x * cos_y + z1 * sin_y
    z2 = -x * sin_y + z1 * cos_y
    return (x2, y1, z2)


def unrotate(v: Vec3, ax: float, ay: float) -> Vec3:
    """Inverse of :func:`rotate`: undo the Y rotation, then the X rotation."""

    cos_y, sin_y = math.cos(ay), math.sin(ay)
    cos_x, sin_x = math.cos(ax), math.sin(ax)
    x, y, z = v

    x1 = x * cos_y - z * sin_y
    z1 = x * sin_y + z * cos_y

    y2 = y * cos_x + z1 * sin_x
    z2 = -y * sin_x + z1 * cos_x
    return (x1, y2, z2)


def bounce_factor(point: GlobePoint, elapsed: float) -> float:
    return 1.0 + point.amplitude * math.sin(elapsed * point.speed + point.phase)


def project_point(
    point: GlobePoint,
    rot_x: float,
    rot_y: float,
    elapsed: float,
    viewport: Viewport,
    profile: GlobeProfile,
) -> RenderItem:
    bounce = bounce_factor(point, elapsed)
    rx, ry, rz = rotate(point.unit_position, rot_x, rot_y)

    scale_px = viewport.radius_px * bounce
    px = rx * scale_px
    py = ry * scale_px
    pz = rz * scale_px

    room = max(viewport.perspective - pz, _MIN_DEPTH_ROOM)
    scale = viewport.perspective / room
    if viewport.radius_px > 0.0:
        depth_ratio = pz / viewport.radius_px
    else:
        depth_ratio = 0.0
    alpha = clamp(
        profile.alpha_base + depth_ratio * profile.alpha_depth,
        profile.alpha_min,
        profile.alpha_max,
    )
    return RenderItem(
        sx=px * scale + viewport.cx,
        sy=py * scale + viewport.cy,
        depth=pz,
        size=point.base_size * scale,
        color=point.color,
        alpha=alpha,
    )


def depth_sort(items: Iterable[RenderItem]) -> List[RenderItem]:
    """Farthest first, so nearer dots are painted last and cover the others."""

    return sorted(items, key=lambda item: item.depth)


def project_points(
    points: Sequence[GlobePoint],
    rot_x: float,
    rot_y: float,
    elapsed: float,
    viewport: Viewport,
    profile: GlobeProfile,
) -> List[RenderItem]:
    return depth_sort(
        project_point(point, rot_x, rot_y, elapsed, viewport, profile) for point in points
    )
