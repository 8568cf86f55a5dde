"""Qt surfaces and the controller animating a dot globe on them.

A surface is an inert widget created by :func:`GlobeViewWidget`.  It only
paints the items of the engine currently attached to it.  :func:`init_globe`
looks a surface up by ``objectName`` and attaches a :class:`GlobeController`
which owns the engine, the frame loop and the Qt plumbing feeding it:

* a single-shot ``QTimer`` standing in for the display-refresh callback,
* an event filter turning show/hide/minimise/move events into visibility
  commands (visible when at least ``visibility_threshold`` of the surface
  area is exposed),
* an application-wide filter turning mouse moves inside the hosting window
  into pointer commands (desktop profiles only),
* a debounce timer turning resize bursts into a single rebuild.

Everything is torn down by :meth:`GlobeController.dispose`.
"""

from __future__ import annotations

import os
import random
import sys
from typing import Callable, List, Optional, Sequence, Tuple

from PyQt5 import QtCore, QtGui, QtWidgets

from ..animator import AnimationState, FrameLoop, PointerMoved, Resized, VisibilityChanged, advance_state
from ..config import GlobeProfile, env_backend, load_profile
from ..engine import GlobeEngine
from ..projection import RenderItem, clamp

__all__ = [
    "GlobeViewWidget",
    "GlobeController",
    "QtFrameScheduler",
    "init_globe",
    "paint_items",
    "visible_ratio",
    "render_frames_to_image",
    "surfaces_named",
]


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def _warn(message: str) -> None:
    print(f"[DotGlobe][WARN] {message}", file=sys.stderr, flush=True)


def _debug(message: str) -> None:
    print(f"[DotGlobe][DEBUG] {message}", flush=True)


# ---------------------------------------------------------------------------
# OpenGL helpers


def _create_opengl_functions() -> Tuple[Optional[object], Optional[BaseException]]:
    """Safely instantiate ``QOpenGLFunctions`` when available.

    Returns ``(functions, error)``; ``functions`` is ``None`` when the binding
    is missing or the runtime refuses to initialise it.
    """

    factory = getattr(QtGui, "QOpenGLFunctions", None)
    if factory is None:
        return None, AttributeError("PyQt5.QtGui has no attribute 'QOpenGLFunctions'")
    try:
        functions = factory()
    except Exception as exc:  # pragma: no cover - depends on bindings
        return None, exc
    try:
        functions.initializeOpenGLFunctions()
    except Exception as exc:  # pragma: no cover - depends on runtime GL state
        return None, exc
    return functions, None


# ---------------------------------------------------------------------------
# Painting


def paint_items(painter: QtGui.QPainter, items: Sequence[RenderItem], glow: float) -> None:
    """Draw depth-sorted ``items`` as filled circles surrounded by a soft glow."""

    painter.setRenderHint(QtGui.QPainter.Antialiasing, True)
    painter.setCompositionMode(QtGui.QPainter.CompositionMode_SourceOver)
    painter.setPen(QtCore.Qt.NoPen)
    for item in items:
        radius = max(0.0, item.size)
        if radius <= 0.0:
            continue
        alpha = clamp01(item.alpha)
        centre = QtCore.QPointF(item.sx, item.sy)
        if glow > 0.0:
            halo = radius + glow
            inner = QtGui.QColor(item.color)
            inner.setAlphaF(alpha * 0.6)
            outer = QtGui.QColor(item.color)
            outer.setAlphaF(0.0)
            gradient = QtGui.QRadialGradient(centre, halo)
            gradient.setColorAt(0.0, inner)
            gradient.setColorAt(radius / halo, inner)
            gradient.setColorAt(1.0, outer)
            painter.setBrush(QtGui.QBrush(gradient))
            painter.drawEllipse(centre, halo, halo)
        color = QtGui.QColor(item.color)
        color.setAlphaF(alpha)
        painter.setBrush(color)
        painter.drawEllipse(centre, radius, radius)


def visible_ratio(widget: QtWidgets.QWidget) -> float:
    """Fraction of ``widget`` currently exposed on screen (0 when hidden)."""

    if not widget.isVisible():
        return 0.0
    window = widget.window()
    if window is not None and window.isMinimized():
        return 0.0
    area = widget.width() * widget.height()
    if area <= 0:
        return 0.0
    region = widget.visibleRegion()
    covered = sum(rect.width() * rect.height() for rect in region.rects())
    return clamp01(covered / float(area))


def render_frames_to_image(
    width: int,
    height: int,
    frames: int = 1,
    profile: Optional[GlobeProfile] = None,
    rng: Optional[random.Random] = None,
    device_pixel_ratio: float = 1.0,
) -> QtGui.QImage:
    """Advance a globe ``frames`` times and paint the last frame on an image."""

    profile = profile or load_profile(False)
    dpr = clamp(float(device_pixel_ratio), 1.0, profile.dpr_clamp)
    engine = GlobeEngine(profile, rng)
    engine.resize(width, height)
    state = AnimationState()
    frame_ms = profile.frame_interval_ms
    for index in range(max(1, int(frames))):
        advance_state(state, profile, index * frame_ms)
    engine.render(state)

    image = QtGui.QImage(
        max(1, int(width * dpr)), max(1, int(height * dpr)), QtGui.QImage.Format_ARGB32_Premultiplied
    )
    image.setDevicePixelRatio(dpr)
    image.fill(QtCore.Qt.transparent)
    painter = QtGui.QPainter(image)
    try:
        paint_items(painter, engine.items, profile.glow_blur)
    finally:
        painter.end()
    return image


# ---------------------------------------------------------------------------
# Scheduling


class QtFrameScheduler(QtCore.QObject):
    """Display-refresh stand-in: one pending single-shot tick at a time."""

    def __init__(self, interval_ms: int = 16, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._clock = QtCore.QElapsedTimer()
        self._clock.start()
        self._timer = QtCore.QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(1, int(interval_ms)))
        self._timer.timeout.connect(self._fire)
        self._callback: Optional[Callable[[float], None]] = None
        self._serial = 0

    def now_ms(self) -> float:
        return self._clock.nsecsElapsed() / 1_000_000.0

    def request(self, callback: Callable[[float], None]) -> int:
        self._serial += 1
        self._callback = callback
        self._timer.start()
        return self._serial

    def cancel(self, handle: int) -> None:
        if handle != self._serial:
            return
        self._timer.stop()
        self._callback = None

    def _fire(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            callback(self.now_ms())


# ---------------------------------------------------------------------------
# Controller


_VISIBILITY_EVENTS = {
    QtCore.QEvent.Show,
    QtCore.QEvent.Hide,
    QtCore.QEvent.WindowStateChange,
    QtCore.QEvent.Move,
    QtCore.QEvent.Resize,
    QtCore.QEvent.ParentChange,
}


class GlobeController(QtCore.QObject):
    """Animate one surface until :meth:`dispose` is called."""

    def __init__(
        self,
        surface: QtWidgets.QWidget,
        profile: GlobeProfile,
        *,
        scheduler=None,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__(surface)
        self.surface = surface
        self.profile = profile
        self.engine = GlobeEngine(profile, rng)
        self.scheduler = scheduler if scheduler is not None else QtFrameScheduler(
            profile.refresh_interval_ms, self
        )
        self.loop = FrameLoop(profile, self.scheduler, self._render, on_resize=self.engine.resize)
        self._window = surface.window()
        self._visibility_queued = False

        self._resize_timer = QtCore.QTimer(self)
        self._resize_timer.setSingleShot(True)
        self._resize_timer.setInterval(profile.resize_debounce_ms)
        self._resize_timer.timeout.connect(self._flush_resize)

        surface.installEventFilter(self)
        self.loop.add_detacher(lambda: surface.removeEventFilter(self))
        if self._window is not None and self._window is not surface:
            self._window.installEventFilter(self)
            window = self._window
            self.loop.add_detacher(lambda: window.removeEventFilter(self))
        if profile.interactive:
            app = QtWidgets.QApplication.instance()
            if app is not None:
                surface.setMouseTracking(True)
                if self._window is not None:
                    self._window.setMouseTracking(True)
                app.installEventFilter(self)
                self.loop.add_detacher(lambda: app.removeEventFilter(self))
        self.loop.add_detacher(self._resize_timer.stop)
        self.loop.add_detacher(self._detach_surface)

        surface.attach_engine(self.engine)
        self.engine.resize(max(0, surface.width()), max(0, surface.height()))
        self.loop.start()
        self._queue_visibility_check()

    # ------------------------------------------------------------------ status
    @property
    def disposed(self) -> bool:
        return self.loop.disposed

    def _now_ms(self) -> float:
        return float(self.scheduler.now_ms())

    # ------------------------------------------------------------------ loop hooks
    def _render(self, state: AnimationState) -> None:
        self.engine.render(state)
        self.surface.update()

    def _detach_surface(self) -> None:
        self.surface.attach_engine(None)
        self.surface.update()

    def _flush_resize(self) -> None:
        self.loop.dispatch(Resized(self.surface.width(), self.surface.height()))
        self.surface.update()

    def _queue_visibility_check(self) -> None:
        if self._visibility_queued or self.disposed:
            return
        self._visibility_queued = True
        QtCore.QTimer.singleShot(0, self._check_visibility)

    def _check_visibility(self) -> None:
        self._visibility_queued = False
        if self.disposed:
            return
        visible = visible_ratio(self.surface) >= self.profile.visibility_threshold
        if visible != self.loop.state.visible:
            _debug(f"{self.surface.objectName() or 'globe'} visible={visible}")
            self.loop.dispatch(VisibilityChanged(visible))

    # ------------------------------------------------------------------ Qt events
    def eventFilter(self, watched: QtCore.QObject, event: QtCore.QEvent) -> bool:
        if self.disposed:
            return False
        etype = event.type()
        if etype == QtCore.QEvent.MouseMove:
            self._handle_pointer(watched, event)
            return False
        if watched is self.surface or watched is self._window:
            if etype == QtCore.QEvent.Resize and watched is self.surface:
                self._resize_timer.start()
            if etype in _VISIBILITY_EVENTS:
                self._queue_visibility_check()
        return False

    def _handle_pointer(self, watched: QtCore.QObject, event: QtCore.QEvent) -> None:
        window = self._window
        if window is None or not isinstance(watched, QtWidgets.QWidget):
            return
        if watched.window() is not window:
            return
        pos = window.mapFromGlobal(event.globalPos())
        self.loop.dispatch(
            PointerMoved(float(pos.x()), float(pos.y()), float(window.width()), float(window.height()), self._now_ms())
        )

    # ------------------------------------------------------------------ API
    def dispatch(self, command) -> None:
        self.loop.dispatch(command)

    def dispose(self) -> None:
        """Stop scheduling and detach every observer; safe to call repeatedly."""

        self.loop.dispose()


# ---------------------------------------------------------------------------
# Surfaces


class _ViewWidgetBase:
    """Common behaviour shared by both the OpenGL and raster backends."""

    def _init_view_widget(self) -> None:
        self.setAttribute(QtCore.Qt.WA_NoSystemBackground, True)
        self.setAttribute(QtCore.Qt.WA_TranslucentBackground, True)
        self.setAttribute(QtCore.Qt.WA_OpaquePaintEvent, False)
        self.setAutoFillBackground(False)
        self._gl: Optional[object] = None
        self._engine: Optional[GlobeEngine] = None
        self.controller: Optional[GlobeController] = None

    def attach_engine(self, engine: Optional[GlobeEngine]) -> None:
        self._engine = engine

    @property
    def engine(self) -> Optional[GlobeEngine]:
        return self._engine

    def _render_with_painter(self, painter: QtGui.QPainter) -> None:
        painter.setCompositionMode(QtGui.QPainter.CompositionMode_Source)
        painter.fillRect(self.rect(), QtCore.Qt.transparent)
        engine = self._engine
        if engine is None or not engine.items:
            return
        paint_items(painter, engine.items, engine.profile.glow_blur)


class _OpenGLViewWidget(QtWidgets.QOpenGLWidget, _ViewWidgetBase):
    """OpenGL-backed surface when the system can create a GL context."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QOpenGLWidget.__init__(self, parent)
        self._init_view_widget()

    def initializeGL(self) -> None:  # pragma: no cover - requires GUI context
        self._gl, error = _create_opengl_functions()
        if error is not None:
            _warn(f"OpenGL initialisation failed: {error}. Falling back to raster clear handling.")
        if self._gl is not None:
            self._gl.glClearColor(0.0, 0.0, 0.0, 0.0)

    def paintGL(self) -> None:  # pragma: no cover - requires GUI context
        if self._gl is not None:
            try:
                # GL_COLOR_BUFFER_BIT
                self._gl.glClear(0x00004000)
            except Exception as exc:
                _warn(f"glClear failed: {exc!r}")
                self._gl = None
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()


class _RasterViewWidget(QtWidgets.QWidget, _ViewWidgetBase):
    """Fallback surface using the traditional raster ``QWidget`` backend."""

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        QtWidgets.QWidget.__init__(self, parent)
        self._init_view_widget()

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        del event
        painter = QtGui.QPainter(self)
        try:
            self._render_with_painter(painter)
        finally:
            painter.end()


def _should_use_opengl(force_backend: Optional[str]) -> bool:
    if force_backend == "raster":
        return False
    if force_backend == "opengl":
        return True
    env = env_backend()
    if env is not None:
        return env == "opengl"
    if os.environ.get("QT_QPA_PLATFORM", "").strip().lower() in {"offscreen", "minimal"}:
        return False
    return hasattr(QtWidgets, "QOpenGLWidget")


def GlobeViewWidget(
    parent: Optional[QtWidgets.QWidget] = None,
    *,
    object_name: str = "globe",
    force_backend: Optional[str] = None,
) -> QtWidgets.QWidget:
    """Factory returning an inert globe surface on the best available backend.

    Parameters
    ----------
    parent:
        Parent widget used by Qt for ownership.
    object_name:
        Identifier used by :func:`init_globe` to find the surface.
    force_backend:
        ``"opengl"`` or ``"raster"``; otherwise ``DOTGLOBE_FORCE_BACKEND``
        and the platform decide.
    """

    widget: Optional[QtWidgets.QWidget] = None
    if _should_use_opengl(force_backend):
        try:
            widget = _OpenGLViewWidget(parent)
            setattr(widget, "backend_name", "opengl")
        except Exception as exc:
            _warn(f"Unable to initialise OpenGL backend ({exc!r}). Using raster widget instead.")
            widget = None
    if widget is None:
        widget = _RasterViewWidget(parent)
        setattr(widget, "backend_name", "raster")
    widget.setObjectName(object_name)
    return widget


def _find_surface(root: Optional[QtCore.QObject], surface_id: str) -> Optional[QtWidgets.QWidget]:
    if root is None:
        return None
    if root.objectName() == surface_id:
        candidate = root
    else:
        candidate = root.findChild(QtWidgets.QWidget, surface_id)
    if isinstance(candidate, _ViewWidgetBase):
        return candidate
    return None


def init_globe(
    root: Optional[QtCore.QObject],
    surface_id: str,
    mobile: bool = False,
    profile: Optional[GlobeProfile] = None,
    *,
    scheduler=None,
    rng: Optional[random.Random] = None,
) -> Optional[GlobeController]:
    """Start a globe on the surface named ``surface_id`` below ``root``.

    Returns ``None`` without raising when no such surface exists.  A surface
    that is already animated keeps its current controller.
    """

    surface = _find_surface(root, surface_id)
    if surface is None:
        _debug(f"no globe surface named {surface_id!r}; skipping")
        return None
    current = surface.controller
    if current is not None and not current.disposed:
        return current
    controller = GlobeController(
        surface,
        profile or load_profile(mobile),
        scheduler=scheduler,
        rng=rng,
    )
    surface.controller = controller
    return controller


def surfaces_named(root: QtCore.QObject, names: Sequence[str]) -> List[QtWidgets.QWidget]:
    found: List[QtWidgets.QWidget] = []
    for name in names:
        surface = _find_surface(root, name)
        if surface is not None:
            found.append(surface)
    return found
