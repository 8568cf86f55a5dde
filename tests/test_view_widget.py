from __future__ import annotations

import io
import random

import pytest

pytest.importorskip("PyQt5.QtWidgets")

from PyQt5 import QtCore, QtGui, QtTest, QtWidgets  # noqa: E402

from dotglobe.animator import PAUSED, SCHEDULED, PointerMoved, VisibilityChanged  # noqa: E402
from dotglobe.config import load_profile  # noqa: E402
from dotglobe.main import GlobeWindow, _DebugSilencer, _handle_qt_import_error, init_page_globes, main  # noqa: E402
from dotglobe.view import GlobeViewWidget, init_globe, render_frames_to_image, visible_ratio  # noqa: E402


def _page(qapp, *names):
    root = QtWidgets.QWidget()
    surfaces = []
    for name in names:
        surface = GlobeViewWidget(root, object_name=name, force_backend="raster")
        surface.resize(400, 300)
        surfaces.append(surface)
    return root, surfaces


def test_missing_surface_declines_to_activate(qapp) -> None:
    root, _ = _page(qapp)
    assert init_globe(root, "globe") is None
    assert init_globe(None, "globe") is None


def test_plain_widget_is_not_a_surface(qapp) -> None:
    root = QtWidgets.QWidget()
    plain = QtWidgets.QWidget(root)
    plain.setObjectName("globe")
    assert init_globe(root, "globe") is None


def test_controller_draws_on_frames_and_detaches_on_dispose(qapp, scheduler) -> None:
    root, (surface,) = _page(qapp, "globe")
    controller = init_globe(root, "globe", scheduler=scheduler, rng=random.Random(8))
    assert controller is not None
    assert surface.backend_name == "raster"
    assert surface.engine is controller.engine
    assert len(controller.engine.points) == 600

    scheduler.fire(at=0.0)
    scheduler.fire(at=5.0)
    assert controller.engine.draw_count == 1
    assert len(controller.engine.items) == 600

    assert init_globe(root, "globe", scheduler=scheduler) is controller

    controller.dispose()
    controller.dispose()
    assert surface.engine is None
    assert not scheduler.pending
    scheduler.history[-1](1000.0)
    assert controller.engine.draw_count == 1


def test_controller_commands_reach_the_loop(qapp, scheduler) -> None:
    root, _ = _page(qapp, "globe")
    controller = init_globe(root, "globe", scheduler=scheduler)
    controller.dispatch(PointerMoved(400.0, 300.0, 800.0, 600.0, 0.0))
    state = controller.loop.state
    assert (state.target_rot_x, state.target_rot_y) == (state.rot_x, state.rot_y)

    controller.dispatch(VisibilityChanged(False))
    scheduler.fire(at=0.0)
    assert controller.engine.draw_count == 0
    assert not scheduler.pending
    controller.dispose()


def test_mobile_surface_uses_mobile_profile(qapp, scheduler) -> None:
    root, _ = _page(qapp, "mobile-globe")
    controller = init_globe(root, "mobile-globe", mobile=True, scheduler=scheduler)
    assert controller.profile.mobile
    assert len(controller.engine.points) == 300
    controller.dispose()


def test_hidden_widget_has_no_visible_area(qapp) -> None:
    _, (surface,) = _page(qapp, "globe")
    assert visible_ratio(surface) == 0.0


def _shown_page(qapp, scheduler):
    root, (surface,) = _page(qapp, "globe")
    root.resize(800, 600)
    root.show()
    QtTest.QTest.qWait(50)
    controller = init_globe(root, "globe", scheduler=scheduler, rng=random.Random(2))
    QtTest.QTest.qWait(controller.profile.resize_debounce_ms + 100)
    return root, surface, controller


def test_resize_burst_rebuilds_once_at_final_size(qapp, scheduler) -> None:
    root, surface, controller = _shown_page(qapp, scheduler)
    before = controller.engine.rebuild_count
    for width in (410, 420, 430, 440):
        surface.resize(width, 300)
        qapp.processEvents()
    assert controller.engine.rebuild_count == before
    QtTest.QTest.qWait(controller.profile.resize_debounce_ms + 150)
    assert controller.engine.rebuild_count == before + 1
    assert controller.engine.viewport.width == 440
    controller.dispose()
    root.close()


def test_hiding_the_surface_pauses_until_shown_again(qapp, scheduler) -> None:
    root, surface, controller = _shown_page(qapp, scheduler)
    assert controller.loop.state.visible

    surface.hide()
    QtTest.QTest.qWait(20)
    assert not controller.loop.state.visible
    assert controller.loop.phase == PAUSED

    surface.show()
    QtTest.QTest.qWait(20)
    assert controller.loop.state.visible
    assert controller.loop.phase == SCHEDULED
    controller.dispose()
    root.close()


def test_mouse_move_on_surface_sets_pointer_target(qapp, scheduler) -> None:
    root, surface, controller = _shown_page(qapp, scheduler)
    state = controller.loop.state
    origin = QtCore.QPointF(root.mapToGlobal(QtCore.QPoint(0, 0)))
    event = QtGui.QMouseEvent(
        QtCore.QEvent.MouseMove,
        QtCore.QPointF(surface.mapFromGlobal(origin.toPoint())),
        origin,
        QtCore.Qt.NoButton,
        QtCore.Qt.NoButton,
        QtCore.Qt.NoModifier,
    )
    QtWidgets.QApplication.sendEvent(surface, event)
    assert state.target_rot_x == pytest.approx(state.rot_x + 0.1)
    assert state.target_rot_y == pytest.approx(state.rot_y - 0.2)
    assert state.pointer_deadline_ms == 3000.0

    controller.dispose()
    root.close()


def test_rendered_image_contains_dots(qapp) -> None:
    image = render_frames_to_image(160, 120, frames=3, profile=load_profile(False), rng=random.Random(1))
    assert (image.width(), image.height()) == (160, 120)
    opaque = sum(
        1 for x in range(0, 160, 2) for y in range(0, 120, 2) if (image.pixel(x, y) >> 24) & 0xFF
    )
    assert opaque > 0


def test_page_globes_start_every_present_surface(qapp) -> None:
    root, _ = _page(qapp, "globe", "mobile-globe")
    controllers = init_page_globes(root)
    assert sorted(c.profile.variant for c in controllers) == ["desktop", "mobile"]
    for controller in controllers:
        controller.dispose()


def test_reduced_motion_hides_surfaces(qapp) -> None:
    root, surfaces = _page(qapp, "globe", "mobile-globe")
    root.show()
    assert init_page_globes(root, reduced_motion=True) == []
    assert all(surface.isHidden() for surface in surfaces)
    assert all(surface.engine is None for surface in surfaces)
    root.close()


def test_reduced_motion_hides_mobile_container(qapp) -> None:
    window = GlobeWindow(mobile=True, force_backend="raster")
    window.show()
    assert init_page_globes(window, reduced_motion=True) == []
    container = window.centralWidget()
    assert container.objectName() == "mobile-globe-container"
    assert container.isHidden()
    assert window.view.isHidden()
    window.close()


def test_window_hosts_named_surface_and_disposes_on_close(qapp) -> None:
    window = GlobeWindow(mobile=True, force_backend="raster")
    assert window.view.objectName() == "mobile-globe"
    window.controllers = init_page_globes(window)
    assert len(window.controllers) == 1
    controller = window.controllers[0]
    window.show()
    window.close()
    assert controller.disposed
    assert window.controllers == []


def test_snapshot_mode_writes_png(qapp, tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("DOTGLOBE_DEBUG", "1")
    target = tmp_path / "globe.png"
    assert main(["--snapshot", str(target), "--frames", "5", "--size", "120x90"]) == 0
    assert target.exists() and target.stat().st_size > 0


def test_headless_main_validates_configuration(tmp_path) -> None:
    assert main(["--mobile"], headless=True) == 0
    broken = tmp_path / "broken.json"
    broken.write_text("[", encoding="utf-8")
    with pytest.raises(SystemExit):
        main(["--config", str(broken)], headless=True)


def test_debug_silencer_drops_marked_lines() -> None:
    target = io.StringIO()
    stream = _DebugSilencer(target, "[DotGlobe][DEBUG]")
    stream.write("kept\n[DotGlobe][DEBUG] rebuild\npar")
    assert target.getvalue() == "kept\n"
    stream.write("tial\n[DotGlobe][DEBUG] tail")
    stream.flush()
    assert target.getvalue() == "kept\npartial\n"


def test_qt_import_error_exits_with_message() -> None:
    with pytest.raises(SystemExit) as info:
        _handle_qt_import_error(ImportError("No module named 'PyQt5'"))
    assert "PyQt5" in str(info.value)
