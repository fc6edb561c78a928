"""Deferred-callback scheduling on the Qt event loop."""

from __future__ import annotations

from collections.abc import Callable

from PySide6.QtCore import QTimer

Scheduler = Callable[[int, Callable[[], None]], None]


def qt_scheduler(delay_ms: int, callback: Callable[[], None]) -> None:
    """Run ``callback`` once after ``delay_ms`` on the Qt event loop.

    Parameters
    ----------
    delay_ms : int
        Delay in milliseconds; ``0`` defers to the next loop turn.
    callback : Callable[[], None]
        Zero-argument callable.
    """
    QTimer.singleShot(max(0, int(delay_ms)), callback)
