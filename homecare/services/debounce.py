from __future__ import annotations

import threading
from typing import Any, Callable


class Debouncer:
    """Trailing-edge debounce: only the last call within ``delay_seconds`` runs.

    Each call replaces any unfired pending call. ``flush`` runs the pending
    call immediately; ``cancel`` drops it.
    """

    def __init__(
        self,
        delay_seconds: float,
        func: Callable[..., Any],
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.delay_seconds = delay_seconds
        self.func = func
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._pending: tuple[tuple, dict] | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (args, kwargs)
            self._generation += 1
            self._timer = self._timer_factory(
                self.delay_seconds, self._fire, args=(self._generation,)
            )
            self._timer.daemon = True
            self._timer.start()

    def _take_pending(self) -> tuple[tuple, dict] | None:
        with self._lock:
            pending = self._pending
            self._pending = None
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            return pending

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A newer call superseded this timer.
            if generation != self._generation or self._pending is None:
                return
            args, kwargs = self._pending
            self._pending = None
            self._timer = None
        self.func(*args, **kwargs)

    def flush(self) -> bool:
        pending = self._take_pending()
        if pending is None:
            return False
        args, kwargs = pending
        self.func(*args, **kwargs)
        return True

    def cancel(self) -> None:
        self._take_pending()
