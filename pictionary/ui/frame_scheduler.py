from __future__ import annotations

import itertools
from typing import Callable, Dict, Optional

from PySide6.QtCore import QObject, QTimer


class QtFrameScheduler(QObject):
    """requestAnimationFrame-style scheduling on the Qt event loop.

    Every ``request`` arms a single-shot QTimer and returns a handle that
    ``cancel`` accepts. Callbacks run on the GUI thread.
    """

    def __init__(self, interval_ms: int = 16, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.interval_ms = max(0, int(interval_ms))
        self._ids = itertools.count(1)
        self._timers: Dict[int, QTimer] = {}

    def request(self, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setInterval(self.interval_ms)

        def fire() -> None:
            self._timers.pop(handle, None)
            timer.deleteLater()
            callback()

        timer.timeout.connect(fire)
        self._timers[handle] = timer
        timer.start()
        return handle

    def cancel(self, handle: int) -> None:
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def cancel_all(self) -> None:
        for handle in list(self._timers):
            self.cancel(handle)

    def pending(self) -> int:
        return len(self._timers)
