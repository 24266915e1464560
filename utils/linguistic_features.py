"""
Linguistic Feature Aggregator

Accumulates committed speech-recognition results for one listening session and
reports transcript-derived metrics:

- speaking speed (words/minute since the first committed result)
- hesitation rate (filler markers per word)
- average recognizer confidence
- recovery patterns after each hesitation (how fast speech resumed, whether
  confidence rose afterwards)
- adaptability score (0-100)

Interim results are ignored. Recognition errors never clear the accumulator;
only reset() does, and reset() swaps in a fresh accumulator in one assignment so
readers never observe a half-cleared state.
"""

import re
import time
from dataclasses import dataclass, field
from typing import List, Optional

import config


@dataclass
class RecognitionResult:
    """One recognizer result segment. Only final results feed the metrics."""
    transcript: str
    is_final: bool = True
    confidence: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "RecognitionResult":
        """Build from JSON {transcript|text, isFinal?, confidence?}."""
        if not isinstance(payload, dict):
            raise ValueError("result payload must be an object")
        text = payload.get("transcript")
        if text is None:
            text = payload.get("text", "")
        is_final = payload.get("isFinal", True)
        if not isinstance(is_final, bool):
            raise ValueError("isFinal must be a boolean")
        conf = payload.get("confidence")
        return cls(
            transcript=str(text or ""),
            is_final=is_final,
            confidence=float(conf) if conf is not None else None,
        )


@dataclass
class HesitationEvent:
    word: str
    timestamp: int
    confidence: float


@dataclass
class SpeechAccumulator:
    total_words: int = 0
    hesitations: List[HesitationEvent] = field(default_factory=list)
    confidence_levels: List[float] = field(default_factory=list)
    timestamps: List[int] = field(default_factory=list)
    transcript: str = ""


@dataclass
class RecoveryPattern:
    hesitation_type: str
    recovery_speed: int
    strength_after_setback: bool


@dataclass
class LinguisticReport:
    """Snapshot of transcript metrics. All fields default to neutral zeros."""
    total_words: int = 0
    total_hesitations: int = 0
    speaking_speed: float = 0.0
    hesitation_rate: float = 0.0
    average_confidence: float = 0.0
    total_duration_ms: float = 0.0
    recovery_patterns: List[RecoveryPattern] = field(default_factory=list)
    adaptability_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "overallMetrics": {
                "totalWords": self.total_words,
                "totalHesitations": self.total_hesitations,
                "speakingSpeed": self.speaking_speed,
                "hesitationRate": self.hesitation_rate,
                "averageConfidence": self.average_confidence,
                "totalDuration": self.total_duration_ms,
            },
            "antifragilityData": {
                "recoveryPatterns": [
                    {
                        "hesitationType": p.hesitation_type,
                        "recoverySpeed": p.recovery_speed,
                        "strengthAfterSetback": p.strength_after_setback,
                    }
                    for p in self.recovery_patterns
                ],
                "adaptabilityScore": self.adaptability_score,
            },
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_hesitation_pattern(markers: List[str]) -> "re.Pattern":
    """Word-bounded alternation of the markers, longest first, case-insensitive."""
    ordered = sorted((m.strip() for m in markers if m.strip()), key=len, reverse=True)
    alternation = "|".join(r"\s+".join(re.escape(w) for w in m.split()) for m in ordered)
    return re.compile(r"\b(" + alternation + r")\b", re.IGNORECASE)


def count_words(text: str) -> int:
    """Whitespace-delimited word count of a trimmed segment (0 for blank text)."""
    return len(text.split())


class LinguisticFeatureAggregator:
    """
    Session-scoped accumulator of final recognition results.

    Usage:
        agg = LinguisticFeatureAggregator()
        agg.process_result(RecognitionResult("um so I think uh this works", True, 0.9))
        report = agg.get_report()
    """

    def __init__(
        self,
        hesitation_markers: Optional[List[str]] = None,
        recovery_lookahead: int = config.RECOVERY_LOOKAHEAD,
        recovery_fallback_ms: int = config.RECOVERY_FALLBACK_MS,
        default_confidence: float = config.DEFAULT_RESULT_CONFIDENCE,
    ):
        self._pattern = build_hesitation_pattern(config.get_hesitation_markers(hesitation_markers))
        self.recovery_lookahead = int(recovery_lookahead)
        self.recovery_fallback_ms = int(recovery_fallback_ms)
        self.default_confidence = float(default_confidence)
        self._acc = SpeechAccumulator()
        self.last_error: Optional[str] = None

    @property
    def accumulator(self) -> SpeechAccumulator:
        return self._acc

    def reset(self) -> None:
        """Clear all accumulated state (single reference swap)."""
        self._acc = SpeechAccumulator()
        self.last_error = None

    def detect_hesitations(self, text: str) -> List[str]:
        """Return hesitation markers found in text, in order, as spoken."""
        return [m.group(0) for m in self._pattern.finditer(text or "")]

    def process_result(self, result: RecognitionResult, now_ms: Optional[int] = None) -> List[str]:
        """
        Fold one recognizer result into the accumulator.
        Returns the hesitation markers found (empty for interim results).
        """
        if not result.is_final:
            return []
        text = (result.transcript or "").strip()
        ts = _now_ms() if now_ms is None else int(now_ms)
        conf = result.confidence if result.confidence else self.default_confidence
        acc = self._acc
        acc.timestamps.append(ts)
        acc.confidence_levels.append(conf)
        acc.total_words += count_words(text)
        found = self.detect_hesitations(text)
        acc.hesitations.extend(HesitationEvent(word=w, timestamp=ts, confidence=conf) for w in found)
        if text:
            acc.transcript = (acc.transcript + " " + text).strip()
        return found

    def record_error(self, error: str) -> None:
        """Remember the last recognizer error. Accumulated totals are kept."""
        self.last_error = error

    def get_report(self, now_ms: Optional[int] = None) -> LinguisticReport:
        acc = self._acc
        now = _now_ms() if now_ms is None else int(now_ms)
        if acc.timestamps:
            elapsed_sec = max(1.0, (now - acc.timestamps[0]) / 1000.0)
        else:
            elapsed_sec = 1.0
        speaking_speed = acc.total_words / (elapsed_sec / 60.0)
        hesitation_rate = len(acc.hesitations) / acc.total_words if acc.total_words > 0 else 0.0
        if acc.confidence_levels:
            avg_conf = sum(acc.confidence_levels) / len(acc.confidence_levels)
        else:
            avg_conf = 0.0
        adaptability = max(0.0, min(100.0, avg_conf * 100.0 - hesitation_rate * 50.0))
        return LinguisticReport(
            total_words=acc.total_words,
            total_hesitations=len(acc.hesitations),
            speaking_speed=speaking_speed,
            hesitation_rate=hesitation_rate,
            average_confidence=avg_conf,
            total_duration_ms=elapsed_sec * 1000.0,
            recovery_patterns=self._recovery_patterns(acc),
            adaptability_score=adaptability,
        )

    def _recovery_patterns(self, acc: SpeechAccumulator) -> List[RecoveryPattern]:
        """
        For hesitation i, the lookahead window is timestamps[i+1 : i+1+lookahead]
        (indexed by hesitation position, as the recognizer hook always did).
        """
        patterns = []
        for i, h in enumerate(acc.hesitations):
            following = acc.timestamps[i + 1:i + 1 + self.recovery_lookahead]
            speed = following[0] - h.timestamp if following else self.recovery_fallback_ms
            nxt = acc.confidence_levels[i + 1] if i + 1 < len(acc.confidence_levels) else None
            patterns.append(RecoveryPattern(
                hesitation_type=h.word,
                recovery_speed=int(speed),
                strength_after_setback=nxt is not None and nxt > h.confidence,
            ))
        return patterns
