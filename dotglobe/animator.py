"""Animation state, update functions and the frame loop state machine.

The frame loop does not know about Qt.  It talks to a *scheduler* object that
exposes ``request(callback) -> handle`` and ``cancel(handle)``; the callback
receives a monotonic timestamp in milliseconds.  The view provides a
``QTimer`` based scheduler while tests drive the loop with a fake one.

External signals reach the loop as small command objects passed to
:meth:`FrameLoop.dispatch`, each one mutating the single
:class:`AnimationState` owned by the loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from .config import GlobeProfile

__all__ = [
    "IDLE",
    "SCHEDULED",
    "RUNNING",
    "PAUSED",
    "DISPOSED",
    "AnimationState",
    "Throttle",
    "PointerMoved",
    "VisibilityChanged",
    "Resized",
    "Dispose",
    "advance_state",
    "apply_pointer",
    "FrameLoop",
]

IDLE = "idle"
SCHEDULED = "scheduled"
RUNNING = "running"
PAUSED = "paused"
DISPOSED = "disposed"


@dataclass
class AnimationState:
    rot_x: float = 0.0
    rot_y: float = 0.0
    target_rot_x: float = 0.0
    target_rot_y: float = 0.0
    elapsed: float = 0.0
    visible: bool = True
    pointer_deadline_ms: Optional[float] = None
    frames: int = 0


class Throttle:
    """Leading-edge rate limiter: accepts a call, then ignores calls for ``limit_ms``."""

    def __init__(self, limit_ms: float) -> None:
        self.limit_ms = float(limit_ms)
        self._open_at: Optional[float] = None

    def allow(self, now_ms: float) -> bool:
        if self._open_at is not None and now_ms < self._open_at:
            return False
        self._open_at = now_ms + self.limit_ms
        return True


# ---------------------------------------------------------------------------
# Commands


@dataclass(frozen=True)
class PointerMoved:
    x: float
    y: float
    width: float
    height: float
    now_ms: float


@dataclass(frozen=True)
class VisibilityChanged:
    visible: bool


@dataclass(frozen=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True)
class Dispose:
    pass


# ---------------------------------------------------------------------------
# Update functions


def advance_state(state: AnimationState, profile: GlobeProfile, now_ms: float) -> None:
    """Apply one accepted frame to ``state``: spin, eased pull, time step."""

    state.rot_y += profile.spin_y
    state.rot_x += profile.spin_x

    if profile.interactive:
        deadline = state.pointer_deadline_ms
        if deadline is not None and now_ms >= deadline:
            state.pointer_deadline_ms = None
        if state.pointer_deadline_ms is None:
            # pas de mouvement recent : la cible suit la rotation courante
            state.target_rot_x = state.rot_x
            state.target_rot_y = state.rot_y
        else:
            state.rot_y += (state.target_rot_y - state.rot_y) * profile.ease
            state.rot_x += (state.target_rot_x - state.rot_x) * profile.ease

    state.elapsed += profile.time_step
    state.frames += 1


def apply_pointer(state: AnimationState, profile: GlobeProfile, command: PointerMoved) -> bool:
    """Point the target rotation toward the pointer offset from the centre.

    Returns ``False`` when the command is ignored (non interactive profile or
    a degenerate window size).
    """

    if not profile.interactive or command.width <= 0 or command.height <= 0:
        return False
    nx = (command.x / command.width) * 2.0 - 1.0
    ny = (command.y / command.height) * 2.0 - 1.0
    state.target_rot_y = state.rot_y + nx * profile.pointer_sens_y
    state.target_rot_x = state.rot_x - ny * profile.pointer_sens_x
    state.pointer_deadline_ms = command.now_ms + profile.pointer_idle_ms
    return True


# ---------------------------------------------------------------------------
# Frame loop


class FrameLoop:
    """Drive ``render`` once per accepted display-refresh callback.

    Parameters
    ----------
    profile:
        Supplies the target frame rate, spin and pointer constants.
    scheduler:
        Object with ``request(callback)`` and ``cancel(handle)``.
    render:
        Called with the state after each accepted update.
    on_resize:
        Called with ``(width, height)`` for :class:`Resized` commands.
    """

    def __init__(
        self,
        profile: GlobeProfile,
        scheduler,
        render: Callable[[AnimationState], None],
        on_resize: Optional[Callable[[int, int], None]] = None,
        state: Optional[AnimationState] = None,
    ) -> None:
        self.profile = profile
        self.state = state if state is not None else AnimationState()
        self._scheduler = scheduler
        self._render = render
        self._on_resize = on_resize
        self._pointer_throttle = Throttle(profile.pointer_throttle_ms)
        self._handle = None
        self._last_frame_ms: Optional[float] = None
        self._detachers: List[Callable[[], None]] = []
        self.phase = IDLE

    # ------------------------------------------------------------------ status
    @property
    def disposed(self) -> bool:
        return self.phase == DISPOSED

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def add_detacher(self, detach: Callable[[], None]) -> None:
        """Register a callable run once on disposal (observer disconnection)."""

        if self.disposed:
            detach()
            return
        self._detachers.append(detach)

    # ------------------------------------------------------------------ lifecycle
    def start(self) -> None:
        if self.disposed:
            return
        if not self.state.visible:
            self.phase = PAUSED
            return
        if self._handle is None:
            self._request()
        else:
            self.phase = SCHEDULED

    def _request(self) -> None:
        self._handle = self._scheduler.request(self._on_frame)
        self.phase = SCHEDULED

    def _on_frame(self, now_ms: float) -> None:
        self._handle = None
        if self.disposed:
            return
        if not self.state.visible:
            self.phase = PAUSED
            return
        last = self._last_frame_ms
        if last is None or now_ms - last >= self.profile.frame_interval_ms:
            self.phase = RUNNING
            advance_state(self.state, self.profile, now_ms)
            self._render(self.state)
            self._last_frame_ms = now_ms
            if self.disposed:
                return
        self._request()

    def dispose(self) -> None:
        if self.disposed:
            return
        self.phase = DISPOSED
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None
        detachers, self._detachers = self._detachers, []
        for detach in detachers:
            detach()

    # ------------------------------------------------------------------ commands
    def dispatch(self, command) -> None:
        if self.disposed:
            return
        if isinstance(command, PointerMoved):
            if self._pointer_throttle.allow(command.now_ms):
                apply_pointer(self.state, self.profile, command)
        elif isinstance(command, VisibilityChanged):
            self.state.visible = bool(command.visible)
            if self.state.visible:
                self.start()
            else:
                self.phase = PAUSED
        elif isinstance(command, Resized):
            if self._on_resize is not None:
                self._on_resize(int(command.width), int(command.height))
        elif isinstance(command, Dispose):
            self.dispose()
        else:
            raise TypeError(f"Unsupported command: {command!r}")
