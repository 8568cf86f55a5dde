"""Constant tables for the dot globe and the profile built from them.

``DEFAULTS`` mirrors the nested layout used by the view: a ``common`` section
shared by both device classes plus ``desktop`` and ``mobile`` sections that
override it.  ``load_profile`` flattens the relevant sections, applies optional
JSON overrides and returns an immutable :class:`GlobeProfile`.
"""

from __future__ import annotations

import copy
import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

__all__ = [
    "DEFAULTS",
    "GlobeProfile",
    "load_profile",
    "env_flag",
    "env_backend",
]

DEFAULTS = dict(
    common=dict(
        ampBase=0.03, ampRange=0.05,
        speedBase=0.5, speedRange=0.8,
        timeStep=0.012, ease=0.03,
        alphaBase=0.8, alphaDepth=0.2, alphaMin=0.4, alphaMax=1.0,
        glowBlur=2.0,
        pointerSensX=0.1, pointerSensY=0.2,
        pointerThrottleMs=32, pointerIdleMs=3000,
        resizeDebounceMs=250, visibilityThreshold=0.1,
        dprClamp=2.0, refreshIntervalMs=16,
    ),
    desktop=dict(
        N=600, fps=45, spinX=0.002, spinY=0.006,
        palette=["#2e7d32", "#4caf50", "#8bc34a", "#ffd700",
                 "#4a90e2", "#1976d2", "#ff9800", "#ffffff"],
        sizeBase=1.5, sizeRange=0.8,
        perspective=600.0, radiusRatio=0.4, interactive=True,
    ),
    mobile=dict(
        N=300, fps=30, spinX=0.001, spinY=0.004,
        palette=["#4a90e2", "#2e7d32", "#8bc34a", "#ffd700",
                 "#ff9800", "#ffffff"],
        sizeBase=1.2, sizeRange=0.6,
        perspective=500.0, radiusRatio=0.35, interactive=False,
    ),
)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class GlobeProfile:
    """Every constant the renderer needs for one device class."""

    mobile: bool
    count: int
    fps: float
    spin_x: float
    spin_y: float
    palette: Tuple[str, ...]
    size_base: float
    size_range: float
    perspective: float
    radius_ratio: float
    interactive: bool
    amp_base: float
    amp_range: float
    speed_base: float
    speed_range: float
    time_step: float
    ease: float
    alpha_base: float
    alpha_depth: float
    alpha_min: float
    alpha_max: float
    glow_blur: float
    pointer_sens_x: float
    pointer_sens_y: float
    pointer_throttle_ms: float
    pointer_idle_ms: float
    resize_debounce_ms: int
    visibility_threshold: float
    dpr_clamp: float
    refresh_interval_ms: int

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.fps

    @property
    def variant(self) -> str:
        return "mobile" if self.mobile else "desktop"


def _coerce_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        try:
            result = float(str(value))
        except (TypeError, ValueError):
            return default
    return result if math.isfinite(result) else default


def _coerce_int(value: object, default: int, minimum: int = 0) -> int:
    return max(minimum, int(_coerce_float(value, float(default))))


def _coerce_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        token = value.strip().lower()
        if token in _TRUTHY:
            return True
        if token in {"0", "false", "no", "off"}:
            return False
    return default


def _coerce_palette(value: object, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [token for token in value.replace(";", ",").split(",")]
    if not isinstance(value, (list, tuple)):
        return default
    colors = tuple(str(item).strip() for item in value if str(item).strip().startswith("#"))
    return colors or default


def _merge(base: Dict[str, dict], payload: Mapping[str, object]) -> None:
    for key, value in payload.items():
        if isinstance(base.get(key), dict) and isinstance(value, Mapping):
            base[key].update(value)


def _read_overrides(path: Path) -> Mapping[str, object]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Fichier de configuration illisible : {path} ({exc})") from exc
    if not isinstance(data, Mapping):
        raise ValueError(f"Configuration invalide (objet JSON attendu) : {path}")
    return data


def load_profile(
    mobile: bool = False,
    overrides: Optional[Mapping[str, object]] = None,
    path: Optional[os.PathLike] = None,
) -> GlobeProfile:
    """Return the :class:`GlobeProfile` for ``mobile`` or desktop.

    Parameters
    ----------
    mobile:
        Selects the ``mobile`` section instead of ``desktop``.
    overrides:
        Mapping shaped like ``DEFAULTS`` merged over the defaults.
    path:
        Optional JSON file with the same shape, applied before ``overrides``.

    Values that cannot be coerced fall back to the defaults; an unreadable
    file raises ``ValueError``.
    """

    state: Dict[str, dict] = copy.deepcopy(DEFAULTS)
    if path is not None:
        _merge(state, _read_overrides(Path(path)))
    if overrides:
        _merge(state, overrides)

    fallback = DEFAULTS["mobile" if mobile else "desktop"]
    merged = dict(DEFAULTS["common"])
    merged.update(state["common"])
    merged.update(state["mobile" if mobile else "desktop"])
    common = DEFAULTS["common"]

    def _f(key: str) -> float:
        default = fallback[key] if key in fallback else common[key]
        return _coerce_float(merged.get(key), float(default))

    alpha_min = _f("alphaMin")
    alpha_max = max(alpha_min, _f("alphaMax"))
    return GlobeProfile(
        mobile=bool(mobile),
        count=_coerce_int(merged.get("N"), fallback["N"]),
        fps=max(1.0, _f("fps")),
        spin_x=_f("spinX"),
        spin_y=_f("spinY"),
        palette=_coerce_palette(merged.get("palette"), tuple(fallback["palette"])),
        size_base=max(0.0, _f("sizeBase")),
        size_range=max(0.0, _f("sizeRange")),
        perspective=max(1.0, _f("perspective")),
        radius_ratio=max(0.0, _f("radiusRatio")),
        interactive=_coerce_bool(merged.get("interactive"), fallback["interactive"]),
        amp_base=_f("ampBase"),
        amp_range=_f("ampRange"),
        speed_base=_f("speedBase"),
        speed_range=_f("speedRange"),
        time_step=_f("timeStep"),
        ease=min(1.0, max(0.0, _f("ease"))),
        alpha_base=_f("alphaBase"),
        alpha_depth=_f("alphaDepth"),
        alpha_min=alpha_min,
        alpha_max=alpha_max,
        glow_blur=max(0.0, _f("glowBlur")),
        pointer_sens_x=_f("pointerSensX"),
        pointer_sens_y=_f("pointerSensY"),
        pointer_throttle_ms=max(0.0, _f("pointerThrottleMs")),
        pointer_idle_ms=max(0.0, _f("pointerIdleMs")),
        resize_debounce_ms=_coerce_int(merged.get("resizeDebounceMs"), common["resizeDebounceMs"]),
        visibility_threshold=min(1.0, max(0.0, _f("visibilityThreshold"))),
        dpr_clamp=max(1.0, _f("dprClamp")),
        refresh_interval_ms=_coerce_int(merged.get("refreshIntervalMs"), common["refreshIntervalMs"], 1),
    )


def env_flag(name: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get(name, "").strip().lower() in _TRUTHY


def env_backend(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    env = os.environ if environ is None else environ
    value = env.get("DOTGLOBE_FORCE_BACKEND", "").strip().lower()
    return value if value in {"opengl", "raster"} else None
