"""
Recognition Stream Module

Push-driven speech-recognition results with a silence watchdog.

  - RecognitionSourceInterface: the platform recognizer (start / stop / support check).
  - PushRecognitionSource: recognizer running in the browser; its results and
    errors arrive as HTTP pushes, so start/stop only track whether it should run.
  - RecognitionStream: routes results and errors to the session and restarts
    the recognizer when it goes silent.

Error handling:
  - transient errors (e.g. "no-speech") trigger the capped restart silently
  - any other error stops listening and is kept in `error` for the UI
  - restarts never touch the session's speech accumulator

Restart: stop, short pause, start. At most RECOGNITION_MAX_RESTARTS in a row;
the counter resets whenever a result arrives.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

import config
from utils.linguistic_features import RecognitionResult
from utils.tick_timer import OneShotTimer

logger = logging.getLogger(__name__)


class RecognitionSourceInterface(ABC):
    """
    Abstract interface for speech recognizers.
    """

    @abstractmethod
    def start(self) -> bool:
        """Begin recognition. Returns False when it could not start."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def is_supported(self) -> bool:
        """True when the platform has a recognizer at all."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass


class PushRecognitionSource(RecognitionSourceInterface):
    """Recognizer whose results are pushed by the client."""

    def __init__(self, supported: bool = True):
        self.supported = supported
        self.active = False
        self.start_count = 0

    def start(self) -> bool:
        if not self.supported:
            return False
        self.active = True
        self.start_count += 1
        return True

    def stop(self) -> None:
        self.active = False

    def is_supported(self) -> bool:
        return self.supported

    def get_name(self) -> str:
        return "push"


class RecognitionStream:
    """
    Listening state for one session.

    Usage:
        stream = RecognitionStream(PushRecognitionSource(), on_result=session_handler)
        stream.start()
        stream.push_result(RecognitionResult("hello there", True, 0.9))
        stream.push_error("no-speech")
        stream.stop()
    """

    def __init__(
        self,
        source: RecognitionSourceInterface,
        on_result: Callable[[RecognitionResult], Any],
        on_error: Optional[Callable[[str], Any]] = None,
        silence_timeout_sec: float = config.RECOGNITION_SILENCE_TIMEOUT_SEC,
        restart_pause_sec: float = config.RECOGNITION_RESTART_PAUSE_SEC,
        max_restarts: int = config.RECOGNITION_MAX_RESTARTS,
        transient_errors: Optional[List[str]] = None,
        lock: Optional[threading.RLock] = None,
    ):
        self.source = source
        self.on_result = on_result
        self.on_error = on_error
        self.max_restarts = int(max_restarts)
        self.transient_errors = set(transient_errors if transient_errors is not None else config.TRANSIENT_RECOGNITION_ERRORS)
        self.listening = False
        self.unsupported = False
        self.error: Optional[str] = None
        self.restart_count = 0
        self.restarting = False
        self._lock = lock or threading.RLock()
        self._watchdog = OneShotTimer(silence_timeout_sec, self.check_silence, name="recognition-watchdog")
        self._resume_timer = OneShotTimer(restart_pause_sec, self.resume, name="recognition-restart")

    def start(self) -> bool:
        """Begin listening. False (unsupported flag set) when there is no recognizer."""
        with self._lock:
            if not self.source.is_supported():
                self.unsupported = True
                return False
            if not self.source.start():
                return False
            self.listening = True
            self.restarting = False
            self.error = None
            self.restart_count = 0
            self._watchdog.schedule()
            return True

    def stop(self) -> None:
        """Stop listening and cancel pending watchdog/restart timers. Idempotent."""
        with self._lock:
            self.listening = False
            self.restarting = False
            self._watchdog.cancel()
            self._resume_timer.cancel()
            self.source.stop()

    def push_result(self, result: RecognitionResult) -> bool:
        """Forward a recognizer result. Ignored (False) while not listening."""
        with self._lock:
            if not self.listening:
                return False
            self.restart_count = 0
            self._watchdog.schedule()
            self.on_result(result)
            return True

    def push_error(self, code: str) -> bool:
        """
        Handle a recognizer error code.
        Returns True when it was transient (restart), False when fatal.
        """
        with self._lock:
            code = (code or "unknown").strip()
            if code in self.transient_errors:
                if self.listening:
                    self.restart()
                return True
            logger.warning("Recognition stopped after error: %s", code)
            self.stop()
            self.error = code
            if self.on_error is not None:
                self.on_error(code)
            return False

    def check_silence(self) -> None:
        """Watchdog: no result within the silence timeout."""
        with self._lock:
            if self.listening and not self.restarting:
                self.restart()

    def restart(self) -> bool:
        """Stop now and start again after the pause. False once the cap is hit."""
        with self._lock:
            if self.restart_count >= self.max_restarts:
                logger.warning("Recognition restart limit reached (%d)", self.max_restarts)
                return False
            self.restart_count += 1
            self.restarting = True
            self._watchdog.cancel()
            self.source.stop()
            self._resume_timer.schedule()
            return True

    def resume(self) -> None:
        """Second half of a restart, after the pause."""
        with self._lock:
            if not self.listening or not self.restarting:
                return
            self.restarting = False
            if self.source.start():
                self._watchdog.schedule()
            else:
                logger.warning("Recognition restart failed on %s", self.source.get_name())

    def status(self) -> dict:
        return {
            "listening": self.listening,
            "unsupported": self.unsupported,
            "error": self.error,
            "restartCount": self.restart_count,
            "restarting": self.restarting,
        }
