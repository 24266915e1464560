"""
Coaching Session.

Orchestrates one speaking-practice session: microphone frames -> voice samples ->
psychology profile, recognition results -> linguistic report, both fused into
FusedMetrics that drive the recovery protocol selector, the resilience scorer and
the coaching advisor. Interventions and recommendations are queued as events for
GET /session/events.

Drivers (kept separate):
  - audio tick (~60 Hz): newest pushed frame -> sample -> profile -> metrics tick
  - progress tick (1 s): intervention progress, session timer, advisor
  - recognition pushes: results/errors from the client, silence watchdog restarts

All tick bodies, pushes and resets run under one per-session lock, so readers
never see a half-reset session. Stopping a driver flips its flag under the lock
before its ticker is cancelled; a tick that was already waiting on the lock
sees the flag and does nothing.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, List, Optional

import numpy as np

import config
from services.audio_frame_source import AudioFrameSourceInterface, PushAudioFrameSource
from services.coaching_advisor import CoachingAdvisor
from services.recognition_stream import (
    RecognitionSourceInterface,
    PushRecognitionSource,
    RecognitionStream,
)
from utils.acoustic_features import AcousticFeatureExtractor, AudioFrame, VoiceSample
from utils.linguistic_features import LinguisticFeatureAggregator, RecognitionResult
from utils.metrics_fusion import FusedMetrics, fuse_metrics
from utils.psychology_fusion import PsychologyFusionEngine
from utils.recovery_protocols import RecoveryProtocolSelector, extract_recovery_metrics
from utils.resilience_scorer import ResilienceScorer
from utils.speech_text_analysis import analyze_speech_text
from utils.tick_timer import RepeatingTicker

logger = logging.getLogger(__name__)

EVENT_QUEUE_MAX = 100


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class CoachingSession:
    """
    Per-session owner of every core component.

    Usage:
        session = CoachingSession()
        session.start()
        session.start_capture(); session.start_listening()
        session.push_frame(frame); session.push_result(result)
        metrics = session.get_fused_metrics()
        session.shutdown()

    Tests drive it without threads: call audio_tick() / progress_tick() directly
    and pass a fixed clock.
    """

    def __init__(
        self,
        frame_source: Optional[AudioFrameSourceInterface] = None,
        recognition_source: Optional[RecognitionSourceInterface] = None,
        advisor: Optional[CoachingAdvisor] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], int] = _wall_clock_ms,
        hesitation_markers: Optional[List[str]] = None,
        tick_hz: float = config.AUDIO_TICK_HZ,
        progress_tick_sec: float = config.PROGRESS_TICK_SEC,
    ):
        self.lock = threading.RLock()
        self._clock = clock

        # Core components (explicit per-session objects)
        self.extractor = AcousticFeatureExtractor()
        self.aggregator = LinguisticFeatureAggregator(hesitation_markers=hesitation_markers)
        self.fusion = PsychologyFusionEngine()
        self.scorer = ResilienceScorer()
        self.selector = RecoveryProtocolSelector(self.scorer, rng=rng)
        self.advisor = advisor or CoachingAdvisor()

        # Inputs
        self.frame_source = frame_source or PushAudioFrameSource()
        self.recognition = RecognitionStream(
            recognition_source or PushRecognitionSource(),
            on_result=self._handle_result,
            on_error=self._handle_recognition_error,
            lock=self.lock,
        )

        # Drivers
        self._audio_ticker = RepeatingTicker(1.0 / max(1.0, tick_hz), self.audio_tick, name="audio-tick")
        self._progress_ticker = RepeatingTicker(progress_tick_sec, self.progress_tick, name="progress-tick")
        self.running = False
        self.capturing = False
        self.capture_error: Optional[str] = None

        # Session state
        self.started_at: Optional[int] = None
        self.elapsed_seconds = 0
        self.audio_tick_count = 0
        self._last_sample_ts = 0
        self.latest_fused = FusedMetrics()
        self._confidence_history: deque = deque(maxlen=30)
        self._events: deque = deque(maxlen=EVENT_QUEUE_MAX)

        self.selector.on_intervention_trigger(self._queue_intervention_event)
        self.advisor.on_recommendation(self._queue_recommendation_event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the 1-second progress tick (session timer)."""
        with self.lock:
            self.running = True
            self.started_at = self._clock()
        self._progress_ticker.start()
        print("Coaching session started")

    def shutdown(self) -> None:
        """Stop every driver. Metrics stay readable."""
        with self.lock:
            self.running = False
        self.stop_capture()
        self.stop_listening()
        self._progress_ticker.cancel()
        print("Coaching session stopped")

    def reset(self) -> None:
        """Clear accumulator, history, baseline, selector, scorer and events."""
        with self.lock:
            self.aggregator.reset()
            self.fusion.reset()
            self.selector.reset()
            self.advisor.reset()
            self.elapsed_seconds = 0
            self.audio_tick_count = 0
            self.latest_fused = FusedMetrics()
            self._confidence_history.clear()
            self._events.clear()

    # ------------------------------------------------------------------
    # Capture (audio tick driver)
    # ------------------------------------------------------------------

    def start_capture(self, retry: bool = False) -> bool:
        """
        Begin the audio tick loop with fresh voice history and baseline.
        Idempotent; False when capture is unavailable.

        retry=True clears an earlier permission refusal first (the client got
        microphone access again).
        """
        with self.lock:
            if self.capturing:
                return True
            if retry and isinstance(self.frame_source, PushAudioFrameSource):
                self.frame_source.clear_status()
            if not self.frame_source.open():
                self.capture_error = "permission-denied" if getattr(self.frame_source, "permission_denied", False) else "unsupported"
                return False
            self.fusion.reset()
            self.capture_error = None
            self.capturing = True
        self._audio_ticker.start()
        return True

    def stop_capture(self) -> None:
        """End the audio tick loop. No-op when not capturing."""
        with self.lock:
            was_capturing = self.capturing
            self.capturing = False
            if was_capturing:
                self.frame_source.close()
        self._audio_ticker.cancel()

    def report_permission_denied(self) -> None:
        with self.lock:
            if isinstance(self.frame_source, PushAudioFrameSource):
                self.frame_source.report_permission_denied()
            self.capture_error = "permission-denied"
            self.capturing = False
        self._audio_ticker.cancel()

    def push_frame(self, frame: AudioFrame) -> bool:
        """Hand a client frame to the push source. False when not capturing."""
        if not isinstance(self.frame_source, PushAudioFrameSource):
            return False
        with self.lock:
            if not self.capturing:
                return False
        return self.frame_source.push(frame)

    def _next_sample_timestamp(self) -> int:
        # Voice history needs strictly increasing timestamps.
        ts = max(int(self._clock()), self._last_sample_ts + 1)
        self._last_sample_ts = ts
        return ts

    def audio_tick(self) -> Optional[VoiceSample]:
        """
        One audio-analysis iteration. Returns the new sample, or None when not
        capturing or no new frame arrived.
        """
        with self.lock:
            if not self.capturing:
                return None
            frame = self.frame_source.read_frame()
            if frame is None:
                return None
            ts = self._next_sample_timestamp()
            sample = self.extractor.extract(frame, self.fusion.history, ts)
            profile = self.fusion.ingest(sample)
            self.audio_tick_count += 1
            fused, report = self._refresh_metrics(ts)
            if profile is not None:
                metrics = extract_recovery_metrics(fused, report, profile, ts)
                self.selector.on_metrics(metrics, ts)
            if config.METRICS_DIAGNOSTIC_LOGGING and self.audio_tick_count % config.METRICS_DIAGNOSTIC_LOG_INTERVAL == 0:
                logger.info(
                    "Fused metrics tick=%d combined=%s resilience=%.1f",
                    self.audio_tick_count, fused.to_dict()["combined"], self.scorer.score,
                )
            return sample

    # ------------------------------------------------------------------
    # Listening (recognition push driver)
    # ------------------------------------------------------------------

    def start_listening(self) -> bool:
        """Start recognition with a fresh accumulator. False when unsupported."""
        with self.lock:
            if self.recognition.listening:
                return True
            self.aggregator.reset()
            return self.recognition.start()

    def stop_listening(self) -> None:
        self.recognition.stop()

    def push_result(self, result: RecognitionResult) -> bool:
        return self.recognition.push_result(result)

    def push_recognition_error(self, code: str) -> bool:
        """True for a transient error (restart), False when listening stopped."""
        return self.recognition.push_error(code)

    def _handle_result(self, result: RecognitionResult) -> None:
        with self.lock:
            self.aggregator.process_result(result, now_ms=self._clock())
            if result.is_final:
                self._refresh_metrics(self._clock())

    def _handle_recognition_error(self, code: str) -> None:
        with self.lock:
            self.aggregator.record_error(code)

    # ------------------------------------------------------------------
    # Progress tick (intervention progress, session timer, advisor)
    # ------------------------------------------------------------------

    def progress_tick(self) -> None:
        with self.lock:
            if not self.running:
                return
            now = self._clock()
            self.elapsed_seconds += 1
            self.selector.progress_tick(now)
            fused = self.latest_fused
            report = self.aggregator.get_report(now)
            self._confidence_history.append(fused.combined.confidence / 100.0)
            history = list(self._confidence_history)
        # The advisor may call the LLM; keep that outside the session lock.
        self.advisor.maybe_recommend(fused, report, history)

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def _refresh_metrics(self, recorded_at: int):
        report = self.aggregator.get_report(self._clock())
        fused = fuse_metrics(report, self.fusion.latest_profile, self.fusion.latest_sample, recorded_at)
        self.latest_fused = fused
        return fused, report

    def get_fused_metrics(self) -> FusedMetrics:
        """Best-effort metrics from whatever data exists. Never raises."""
        try:
            with self.lock:
                now = self._clock()
                return fuse_metrics(
                    self.aggregator.get_report(now),
                    self.fusion.latest_profile,
                    self.fusion.latest_sample,
                    now,
                )
        except Exception as e:
            logger.warning("Fused metrics unavailable: %s", e)
            return FusedMetrics()

    def on_intervention_trigger(self, callback: Callable[[dict], Any]) -> None:
        self.selector.on_intervention_trigger(callback)

    def on_recommendation(self, callback: Callable[[dict], Any]) -> None:
        self.advisor.on_recommendation(callback)

    def _queue_intervention_event(self, payload: dict) -> None:
        self._events.append({"type": "intervention", **payload})

    def _queue_recommendation_event(self, payload: dict) -> None:
        with self.lock:
            self._events.append({"type": "recommendation", **payload})

    def drain_events(self) -> List[dict]:
        with self.lock:
            events = list(self._events)
            self._events.clear()
        return events

    def get_status(self) -> dict:
        with self.lock:
            return {
                "running": self.running,
                "capturing": self.capturing,
                "captureError": self.capture_error,
                "permissionDenied": bool(getattr(self.frame_source, "permission_denied", False)),
                "recognition": self.recognition.status(),
                "lastRecognitionError": self.aggregator.last_error,
                "elapsedSeconds": self.elapsed_seconds,
                "audioTicks": self.audio_tick_count,
                "historySize": len(self.fusion.history),
                "baselineReady": self.fusion.baseline is not None,
            }

    def get_metrics_payload(self) -> dict:
        fused = self.get_fused_metrics()
        with self.lock:
            profile = self.fusion.latest_profile
            return {
                **fused.to_dict(),
                "psychology": profile.to_dict() if profile else None,
                "baseline": self.fusion.baseline.to_dict() if self.fusion.baseline else None,
                "resilience": self.scorer.to_dict(),
                "status": self.get_status(),
            }

    def get_recovery_payload(self) -> dict:
        with self.lock:
            return self.selector.to_dict()

    def get_text_analysis(self) -> dict:
        with self.lock:
            acc = self.aggregator.accumulator
            if acc.timestamps:
                start, end = acc.timestamps[0], acc.timestamps[-1]
            else:
                start = end = 0
            transcript = acc.transcript
        return analyze_speech_text(transcript, start, end)
