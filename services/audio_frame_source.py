"""
Audio Frame Source Module

Abstract interface for whatever delivers microphone analyser frames to the
session, plus the push-based source used by the web client: the browser runs
the analyser and POSTs each frame, the audio tick pulls the newest one.

Permission refusals and missing capture support are status flags, never
exceptions, so the session can stay in a safe "not capturing" state.
"""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from utils.acoustic_features import AudioFrame


class AudioFrameSourceInterface(ABC):
    """
    Abstract interface for audio frame sources.
    """

    @abstractmethod
    def open(self) -> bool:
        """
        Start delivering frames.

        Returns:
            True if capture is possible, False (with a status flag set) otherwise
        """
        pass

    @abstractmethod
    def read_frame(self) -> Optional[AudioFrame]:
        """
        Return the newest unread frame, or None when nothing new arrived.
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    def close(self) -> None:
        """Stop delivering frames. Default implementation does nothing."""
        pass


class PushAudioFrameSource(AudioFrameSourceInterface):
    """
    Latest-frame slot filled by HTTP pushes.

    Only the newest frame is kept; frames pushed faster than the tick reads
    them are dropped, like a render loop that skips stale analyser buffers.
    """

    def __init__(self):
        self._frame: Optional[AudioFrame] = None
        self._lock = threading.Lock()
        self.is_open = False
        self.permission_denied = False
        self.unsupported = False
        self.frames_received = 0
        self.frames_dropped = 0

    def open(self) -> bool:
        if self.permission_denied or self.unsupported:
            return False
        with self._lock:
            self._frame = None
        self.is_open = True
        return True

    def close(self) -> None:
        self.is_open = False
        with self._lock:
            self._frame = None

    def push(self, frame: AudioFrame) -> bool:
        """Store a frame from the client. Ignored (False) while closed."""
        if not self.is_open:
            return False
        with self._lock:
            if self._frame is not None:
                self.frames_dropped += 1
            self._frame = frame
            self.frames_received += 1
        return True

    def read_frame(self) -> Optional[AudioFrame]:
        with self._lock:
            frame, self._frame = self._frame, None
        return frame

    def report_permission_denied(self) -> None:
        """The client reported that microphone access was refused."""
        self.permission_denied = True
        self.close()

    def clear_status(self) -> None:
        self.permission_denied = False
        self.unsupported = False

    def is_available(self) -> bool:
        return not (self.permission_denied or self.unsupported)

    def get_name(self) -> str:
        return "push"
