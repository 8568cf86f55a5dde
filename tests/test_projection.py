from __future__ import annotations

import math
import random

import pytest

from dotglobe.config import load_profile
from dotglobe.projection import (
    RenderItem,
    Viewport,
    bounce_factor,
    depth_sort,
    project_point,
    project_points,
    rotate,
    unrotate,
)
from dotglobe.sphere_points import GlobePoint, build_points

ANGLES = [(0.0, 0.0), (0.3, -1.2), (math.pi, 0.5), (-2.5, 7.0), (0.002, 0.006)]


def _still(position, size: float = 2.0) -> GlobePoint:
    return GlobePoint(unit_position=position, phase=0.0, amplitude=0.0, speed=1.0, color="#ffffff", base_size=size)


def test_rotate_by_zero_is_identity() -> None:
    v = (0.2, -0.5, 0.84)
    assert rotate(v, 0.0, 0.0) == pytest.approx(v)


@pytest.mark.parametrize("ax,ay", ANGLES)
def test_unrotate_undoes_rotate(ax: float, ay: float) -> None:
    for v in [(1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.3, -0.4, 0.866)]:
        assert unrotate(rotate(v, ax, ay), ax, ay) == pytest.approx(v, abs=1e-12)


def test_rotate_applies_x_then_y() -> None:
    # +Y tourne vers +Z autour de X, puis +Z vers +X autour de Y
    assert rotate((0.0, 1.0, 0.0), math.pi / 2, math.pi / 2) == pytest.approx((1.0, 0.0, 0.0), abs=1e-12)


def test_bounce_factor_follows_sine() -> None:
    point = GlobePoint((0.0, 1.0, 0.0), phase=0.5, amplitude=0.05, speed=0.8, color="#fff", base_size=1.0)
    assert bounce_factor(point, 2.0) == pytest.approx(1.0 + 0.05 * math.sin(2.0 * 0.8 + 0.5))


def test_viewport_uses_profile_radius_ratio() -> None:
    assert Viewport.for_size(800, 600, load_profile(False)).radius_px == pytest.approx(240.0)
    assert Viewport.for_size(800, 600, load_profile(True)).radius_px == pytest.approx(210.0)


def test_front_and_back_points_project_with_perspective() -> None:
    profile = load_profile(False)
    viewport = Viewport.for_size(800, 600, profile)

    front = project_point(_still((0.0, 0.0, 1.0)), 0.0, 0.0, 0.0, viewport, profile)
    assert front.sx == pytest.approx(400.0)
    assert front.sy == pytest.approx(300.0)
    assert front.depth == pytest.approx(240.0)
    assert front.size == pytest.approx(2.0 * 600.0 / 360.0)
    assert front.alpha == pytest.approx(1.0)

    back = project_point(_still((0.0, 0.0, -1.0)), 0.0, 0.0, 0.0, viewport, profile)
    assert back.size == pytest.approx(2.0 * 600.0 / 840.0)
    assert back.alpha == pytest.approx(0.6)

    side = project_point(_still((1.0, 0.0, 0.0)), 0.0, 0.0, 0.0, viewport, profile)
    assert side.sx == pytest.approx(640.0)
    assert side.alpha == pytest.approx(0.8)


def test_alpha_is_clamped_to_floor() -> None:
    profile = load_profile(False, overrides={"common": {"alphaMin": 0.7}})
    viewport = Viewport.for_size(800, 600, profile)
    back = project_point(_still((0.0, 0.0, -1.0)), 0.0, 0.0, 0.0, viewport, profile)
    assert back.alpha == pytest.approx(0.7)


def test_oversized_viewport_never_divides_by_zero() -> None:
    profile = load_profile(False)
    viewport = Viewport(width=4000, height=4000, radius_px=600.0, perspective=600.0)
    item = project_point(_still((0.0, 0.0, 1.0)), 0.0, 0.0, 0.0, viewport, profile)
    assert math.isfinite(item.sx) and math.isfinite(item.size)


def test_depth_sort_orders_farthest_first() -> None:
    items = [RenderItem(0, 0, depth, 1.0, "#fff", 1.0) for depth in (5.0, -3.0, 12.0, 0.0, -3.0)]
    ordered = depth_sort(items)
    assert [item.depth for item in ordered] == [-3.0, -3.0, 0.0, 5.0, 12.0]
    assert sorted(map(id, ordered)) == sorted(map(id, items))


def test_project_points_is_a_sorted_permutation() -> None:
    profile = load_profile(False)
    points = build_points(profile, count=200, rng=random.Random(5))
    viewport = Viewport.for_size(640, 480, profile)
    items = project_points(points, 0.4, 1.1, 3.0, viewport, profile)
    assert len(items) == len(points)
    depths = [item.depth for item in items]
    assert depths == sorted(depths)
    assert sorted(item.color for item in items) == sorted(point.color for point in points)
