"""Run the DotGlobe initialisation offscreen and capture its output.

The parent process launches a child Python process that imports
``dotglobe.main`` and calls ``main()`` with ``QApplication.exec_`` patched out,
so the window and its globes are built without entering the event loop.
Running as a subprocess ensures OS-level stdout/stderr (for example messages
emitted by Qt's C++ layer) are captured too.

Usage:
  python run_headless_capture.py [dotglobe arguments...]
  python run_headless_capture.py --snapshot globe.png --frames 120

Outputs:
  - run_output.txt : combined stdout+stderr from the child run
  - run_exception.txt : the full output when the child exited with an error
"""
from __future__ import annotations

import os
import sys
import traceback

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

out_file = os.path.join(ROOT, "run_output.txt")
err_file = os.path.join(ROOT, "run_exception.txt")


def _run_child_mode(argv: list) -> int:
    """Build the application in-process without blocking in the event loop."""

    from PyQt5 import QtWidgets

    def _fake_exec(self, *args, **kwargs):
        return 0

    QtWidgets.QApplication.exec_ = _fake_exec  # type: ignore[attr-defined]

    try:
        import dotglobe.main as m

        print("Imported dotglobe.main OK")
        rc = m.main(argv)
        print("main() returned", rc)
        return int(rc) if isinstance(rc, int) else 0
    except SystemExit as se:
        print("main() raised SystemExit:", se)
        return se.code if isinstance(se.code, int) else 1
    except Exception:
        traceback.print_exc()
        return 2


def _run_parent_mode(argv: list) -> int:
    """Launch the child with RUN_AS_CHILD=1 and store what it printed."""

    import subprocess

    env = dict(os.environ)
    env["RUN_AS_CHILD"] = "1"
    env["DOTGLOBE_DEBUG"] = "1"
    env.setdefault("QT_QPA_PLATFORM", "offscreen")

    proc = subprocess.run(
        [sys.executable, os.path.abspath(__file__), *argv], env=env, capture_output=True, text=True
    )

    combined = proc.stdout + ("\n" + proc.stderr if proc.stderr else "")
    with open(out_file, "w", encoding="utf-8") as outf:
        outf.write(combined)

    if proc.returncode != 0:
        with open(err_file, "w", encoding="utf-8") as errf:
            errf.write(combined)
        print("Child process failed; see", err_file)
    else:
        print("Run completed without exception; see", out_file)
    return proc.returncode


if __name__ == "__main__":
    if os.environ.get("RUN_AS_CHILD") == "1":
        sys.exit(_run_child_mode(sys.argv[1:]))
    sys.exit(_run_parent_mode(sys.argv[1:]))
