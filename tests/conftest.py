import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class FakeScheduler:
    """Manual display-refresh source: callbacks run only when ``fire`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.pending = {}
        self.history = []
        self.cancelled = []
        self._next = 0

    def now_ms(self) -> float:
        return self.now

    def request(self, callback):
        self._next += 1
        self.pending[self._next] = callback
        self.history.append(callback)
        return self._next

    def cancel(self, handle) -> None:
        self.pending.pop(handle, None)
        self.cancelled.append(handle)

    def fire(self, at=None) -> int:
        if at is not None:
            self.now = float(at)
        callbacks = list(self.pending.values())
        self.pending.clear()
        for callback in callbacks:
            callback(self.now)
        return len(callbacks)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture(scope="session")
def qapp():
    QtWidgets = pytest.importorskip("PyQt5.QtWidgets")
    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication([])
    yield app
