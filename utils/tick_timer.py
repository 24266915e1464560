"""
Cancellable tickers for the session drivers.

Each timer carries a generation counter. start() and cancel() bump the
generation; a worker thread only fires while its captured generation is still
current, so a tick scheduled before cancel() never fires after it.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTicker:
    """
    Calls `callback()` every `interval_sec` on a daemon thread until cancelled.

    Usage:
        ticker = RepeatingTicker(1.0, session.progress_tick, name="progress")
        ticker.start()
        ticker.cancel()
    """

    def __init__(self, interval_sec: float, callback: Callable[[], None], name: str = "ticker"):
        self.interval_sec = max(0.001, float(interval_sec))
        self.callback = callback
        self.name = name
        self._generation = 0
        self._lock = threading.Lock()
        self._wake: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._wake is not None and not self._wake.is_set()

    def start(self) -> None:
        """(Re)start the ticker. A running one is cancelled first."""
        with self._lock:
            self._stop_locked()
            self._generation += 1
            generation = self._generation
            wake = threading.Event()
            self._wake = wake
            self._thread = threading.Thread(
                target=self._run, args=(generation, wake), name=f"{self.name}-{generation}", daemon=True
            )
            self._thread.start()

    def cancel(self, join_timeout: float = 2.0) -> None:
        """Stop firing. Safe to call repeatedly and from inside the callback."""
        with self._lock:
            thread = self._thread
            self._stop_locked()
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=join_timeout)

    def _stop_locked(self) -> None:
        self._generation += 1
        if self._wake is not None:
            self._wake.set()
        self._wake = None
        self._thread = None

    def _current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _run(self, generation: int, wake: threading.Event) -> None:
        while not wake.wait(self.interval_sec):
            if not self._current(generation):
                return
            try:
                self.callback()
            except Exception as e:
                logger.exception("%s tick failed: %s", self.name, e)


class OneShotTimer:
    """
    Calls `callback()` once after `delay_sec` unless cancelled or rescheduled.
    """

    def __init__(self, delay_sec: float, callback: Callable[[], None], name: str = "timer"):
        self.delay_sec = max(0.0, float(delay_sec))
        self.callback = callback
        self.name = name
        self._generation = 0
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            self._timer = threading.Timer(self.delay_sec, self._fire, args=(generation,))
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        try:
            self.callback()
        except Exception as e:
            logger.exception("%s failed: %s", self.name, e)
