# -*- coding: utf-8 -*-
from __future__ import annotations

import argparse
import io
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, Sequence, Tuple


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    raise SystemExit(
        f"DotGlobe a besoin de PyQt5 (pip install PyQt5) : {exc}"
    ) from exc


try:
    from PyQt5 import QtCore, QtGui, QtWidgets
    from PyQt5.QtCore import Qt
except ImportError as exc:  # pragma: no cover - dépendances environnementales
    _handle_qt_import_error(exc)

from .config import env_backend, env_flag, load_profile
from .view import GlobeController, GlobeViewWidget, init_globe, render_frames_to_image, surfaces_named

ROOT = Path(__file__).resolve().parents[1]

# (identifiant de surface, variante mobile)
PAGE_SURFACES: Tuple[Tuple[str, bool], ...] = (("globe", False), ("mobile-globe", True))
# conteneurs masqués avec leurs surfaces en mouvement réduit
PAGE_CONTAINERS: Tuple[str, ...] = ("globe-container", "mobile-globe-container")
DEBUG_MARKER = "[DotGlobe][DEBUG]"


class _DebugSilencer(io.TextIOBase):
    """Drop complete lines carrying ``marker`` before they reach ``target``."""

    def __init__(self, target, marker: str) -> None:
        super().__init__()
        self.target = target
        self.marker = marker
        self._partial = ""

    def write(self, text: str) -> int:  # type: ignore[override]
        lines = (self._partial + text).splitlines(keepends=True)
        self._partial = lines.pop() if lines and not lines[-1].endswith("\n") else ""
        kept = "".join(line for line in lines if self.marker not in line)
        if kept:
            self.target.write(kept)
        return len(text)

    def flush(self) -> None:  # type: ignore[override]
        pending, self._partial = self._partial, ""
        if pending and self.marker not in pending:
            self.target.write(pending)
        self.target.flush()


def _install_debug_silencer(marker: str = DEBUG_MARKER) -> None:
    if marker and not isinstance(sys.stdout, _DebugSilencer):
        sys.stdout = _DebugSilencer(sys.stdout, marker)
    if marker and not isinstance(sys.stderr, _DebugSilencer):
        sys.stderr = _DebugSilencer(sys.stderr, marker)


def _warn(message: str) -> None:
    print(f"[DotGlobe][WARN] {message}", file=sys.stderr, flush=True)


class GlobeWindow(QtWidgets.QMainWindow):
    """Hero window hosting one globe surface (desktop or mobile layout)."""

    def __init__(
        self,
        screen: Optional[QtGui.QScreen] = None,
        *,
        mobile: bool = False,
        force_backend: Optional[str] = None,
    ):
        super().__init__(None)
        self._target_screen = screen
        self.controllers: List[GlobeController] = []
        self.setWindowTitle("DotGlobe")
        self.setObjectName("hero")

        central = QtWidgets.QWidget()
        central.setObjectName("mobile-globe-container" if mobile else "globe-container")
        central.setStyleSheet("background: #0b1220;")
        lay = QtWidgets.QVBoxLayout(central)
        lay.setContentsMargins(0, 0, 0, 0)
        self.view = GlobeViewWidget(
            central,
            object_name="mobile-globe" if mobile else "globe",
            force_backend=force_backend,
        )
        lay.addWidget(self.view)
        self.setCentralWidget(central)

        if screen is not None:
            self._apply_screen_geometry(screen, mobile)
        QtWidgets.QShortcut(Qt.Key_Escape, self, activated=self.close)

    def _apply_screen_geometry(self, screen: QtGui.QScreen, mobile: bool) -> None:
        geometry = screen.availableGeometry()
        if mobile:
            # format portrait, largeur type smartphone
            width = min(420, int(geometry.width() * 0.8))
            height = int(geometry.height() * 0.8)
        else:
            width = int(geometry.width() * 0.8)
            height = int(geometry.height() * 0.8)
        left = geometry.left() + (geometry.width() - width) // 2
        top = geometry.top() + (geometry.height() - height) // 2
        self.setGeometry(left, top, width, height)

    def dispose_globes(self) -> None:
        for controller in self.controllers:
            controller.dispose()
        self.controllers = []

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.dispose_globes()
        super().closeEvent(event)


def _containers(root: QtCore.QObject) -> List[QtWidgets.QWidget]:
    found = []
    for name in PAGE_CONTAINERS:
        if isinstance(root, QtWidgets.QWidget) and root.objectName() == name:
            found.append(root)
        found.extend(root.findChildren(QtWidgets.QWidget, name))
    return found


def init_page_globes(
    root: QtCore.QObject,
    reduced_motion: bool = False,
    config_path: Optional[Path] = None,
) -> List[GlobeController]:
    """Start every known globe surface below ``root``.

    With ``reduced_motion`` no globe is started; the surfaces and their
    containers are hidden.
    Failures are reported on stderr and never propagate: the globe is
    decorative.
    """

    controllers: List[GlobeController] = []
    try:
        if reduced_motion:
            for surface in surfaces_named(root, [name for name, _ in PAGE_SURFACES]):
                surface.hide()
            for container in _containers(root):
                container.hide()
            return controllers
        for surface_id, mobile in PAGE_SURFACES:
            controller = init_globe(root, surface_id, mobile, load_profile(mobile, path=config_path))
            if controller is not None:
                controllers.append(controller)
    except Exception as exc:
        _warn(f"Globe animation failed to initialize: {exc!r}")
    return controllers


def _parse_size(text: str) -> Tuple[int, int]:
    try:
        width, height = (int(part) for part in text.lower().split("x", 1))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"taille invalide : {text!r} (attendu LxH)") from exc
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError(f"taille invalide : {text!r}")
    return width, height


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dotglobe", description="Animated 3D dot globe.")
    parser.add_argument("--mobile", action="store_true", help="use the mobile profile and layout")
    parser.add_argument("--reduced-motion", action="store_true", help="do not animate; hide the globe")
    parser.add_argument("--backend", choices=("opengl", "raster"), default=None)
    parser.add_argument("--config", type=Path, default=None, help="JSON overrides for DEFAULTS")
    parser.add_argument("--snapshot", type=Path, default=None, help="render offscreen into this PNG and exit")
    parser.add_argument("--frames", type=int, default=90, help="frames advanced before the snapshot")
    parser.add_argument("--size", type=_parse_size, default=(800, 600), help="snapshot size, e.g. 800x600")
    return parser


def _write_snapshot(args: argparse.Namespace, mobile: bool) -> int:
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv[:1])
    profile = load_profile(mobile, path=args.config)
    width, height = args.size
    image = render_frames_to_image(
        width,
        height,
        frames=args.frames,
        profile=profile,
        device_pixel_ratio=app.devicePixelRatio(),
    )
    if not image.save(str(args.snapshot)):
        raise SystemExit(f"Impossible d'écrire {args.snapshot}")
    print(f"[DotGlobe] snapshot written to {args.snapshot}")
    return 0


def main(argv: Optional[Sequence[str]] = None, headless: bool = False) -> int:
    """Start the application and return the exit code.

    When ``headless`` is True the arguments and configuration are validated
    and 0 is returned without instantiating any Qt objects.
    """

    args = build_parser().parse_args(argv)
    mobile = args.mobile or env_flag("DOTGLOBE_MOBILE")
    reduced_motion = args.reduced_motion or env_flag("DOTGLOBE_REDUCED_MOTION")
    try:
        load_profile(mobile, path=args.config)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    if headless:
        return 0

    if not env_flag("DOTGLOBE_DEBUG"):
        _install_debug_silencer()
    if args.snapshot is not None:
        return _write_snapshot(args, mobile)

    # Unhandled Python exceptions from the GUI loop land in
    # <repo>/run_exception.txt before the default hook runs.
    def _write_unhandled(exc_type, exc_value, exc_tb):
        try:
            import traceback as _tb

            with (ROOT / "run_exception.txt").open("w", encoding="utf-8") as f:
                _tb.print_exception(exc_type, exc_value, exc_tb, file=f)
        except OSError:
            pass
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _write_unhandled
    QtWidgets.QApplication.setAttribute(QtCore.Qt.AA_EnableHighDpiScaling, True)
    QtWidgets.QApplication.setAttribute(QtCore.Qt.AA_UseHighDpiPixmaps, True)
    app = QtWidgets.QApplication(sys.argv[:1])
    window = GlobeWindow(
        QtGui.QGuiApplication.primaryScreen(),
        mobile=mobile,
        force_backend=args.backend or env_backend(),
    )
    window.show()
    window.controllers = init_page_globes(window, reduced_motion, args.config)
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
