"""
Psychology Fusion Engine

Classifies each new VoiceSample against a rolling voice history and a one-shot
baseline:

  confidence   volume / "pitch" / energy closeness to baseline, weighted 0.4/0.4/0.2
  stress       voice strain, energy instability, sudden volume drops (booleans)
  flowState    steady volume and energy near baseline with good stability
  antifragility pressure response, recovery pattern, strength progression

Baseline: calibrated once, on the tick where the history first reaches 20
samples, and frozen for the session (reset() starts a new calibration).

pitchConfidence is the ratio of current to baseline *stability*, not pitch. The
name is kept for compatibility with existing dashboards.

flowDuration, arousalLevel and the three antifragility sub-metrics are extension
points: they return neutral values (0 / None) until real models are plugged in
by overriding the corresponding methods.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

import config
from utils.acoustic_features import VoiceSample


@dataclass
class VoiceBaseline:
    average_volume: float
    average_pitch: float
    average_energy: float
    average_stability: float

    def to_dict(self) -> dict:
        return {
            "averageVolume": self.average_volume,
            "averagePitch": self.average_pitch,
            "averageEnergy": self.average_energy,
            "averageStability": self.average_stability,
        }


@dataclass
class ConfidenceIndicators:
    volume_confidence: float = 0.0
    pitch_confidence: float = 0.0
    energy_confidence: float = 0.0
    overall_confidence: float = 0.0


@dataclass
class StressIndicators:
    voice_strain: bool = False
    energy_instability: bool = False
    confidence_drops: bool = False

    def active_count(self) -> int:
        return int(self.voice_strain) + int(self.energy_instability) + int(self.confidence_drops)


@dataclass
class FlowIndicators:
    is_in_flow: bool = False
    flow_duration: float = 0.0
    arousal_level: float = 0.0


@dataclass
class AntifragilityIndicators:
    pressure_response: Optional[float] = None
    recovery_pattern: Optional[float] = None
    strength_progression: Optional[float] = None

    def values(self) -> List[float]:
        """Sub-metrics that have been computed (placeholders are skipped)."""
        return [v for v in (self.pressure_response, self.recovery_pattern, self.strength_progression) if v is not None]


@dataclass
class PsychologyProfile:
    confidence: ConfidenceIndicators = field(default_factory=ConfidenceIndicators)
    stress: StressIndicators = field(default_factory=StressIndicators)
    flow_state: FlowIndicators = field(default_factory=FlowIndicators)
    antifragility: AntifragilityIndicators = field(default_factory=AntifragilityIndicators)
    timestamp: int = 0

    def to_dict(self) -> dict:
        c, s, f, a = self.confidence, self.stress, self.flow_state, self.antifragility
        return {
            "confidence": {
                "volumeConfidence": c.volume_confidence,
                "pitchConfidence": c.pitch_confidence,
                "energyConfidence": c.energy_confidence,
                "overallConfidence": c.overall_confidence,
            },
            "stress": {
                "voiceStrain": s.voice_strain,
                "energyInstability": s.energy_instability,
                "confidenceDrops": s.confidence_drops,
            },
            "flowState": {
                "isInFlow": f.is_in_flow,
                "flowDuration": f.flow_duration,
                "arousalLevel": f.arousal_level,
            },
            "antifragility": {
                "pressureResponse": a.pressure_response,
                "recoveryPattern": a.recovery_pattern,
                "strengthProgression": a.strength_progression,
            },
            "timestamp": self.timestamp,
        }


class VoiceHistory:
    """
    Time-bounded, insertion-ordered sequence of VoiceSamples.

    Appends must have strictly increasing timestamps; samples older than
    window_ms relative to the newest one are evicted on every append.
    """

    def __init__(self, window_ms: int = config.VOICE_HISTORY_WINDOW_MS):
        self.window_ms = int(window_ms)
        self._samples: List[VoiceSample] = []

    def append(self, sample: VoiceSample) -> None:
        if self._samples and sample.timestamp <= self._samples[-1].timestamp:
            raise ValueError(
                f"voice sample out of order: {sample.timestamp} <= {self._samples[-1].timestamp}"
            )
        cutoff = sample.timestamp - self.window_ms
        kept = [s for s in self._samples if s.timestamp > cutoff]
        kept.append(sample)
        self._samples = kept

    def clear(self) -> None:
        self._samples = []

    def recent(self, n: int) -> List[VoiceSample]:
        return self._samples[-n:] if n > 0 else []

    @property
    def last_timestamp(self) -> Optional[int]:
        return self._samples[-1].timestamp if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self):
        return iter(list(self._samples))

    def __getitem__(self, idx):
        return self._samples[idx]


def _variance(values: List[float]) -> float:
    if not values:
        return 0.0
    return float(np.var(values))


class PsychologyFusionEngine:
    """
    Owns the session's VoiceHistory and VoiceBaseline.

    Usage:
        engine = PsychologyFusionEngine()
        profile = engine.ingest(sample)   # None until enough history + baseline
    """

    def __init__(
        self,
        history_window_ms: int = config.VOICE_HISTORY_WINDOW_MS,
        baseline_sample_count: int = config.BASELINE_SAMPLE_COUNT,
        min_profile_samples: int = config.MIN_PROFILE_SAMPLES,
        variance_window: int = config.STABILITY_WINDOW,
        drop_window: int = config.CONFIDENCE_DROP_WINDOW,
    ):
        self.history = VoiceHistory(history_window_ms)
        self.baseline: Optional[VoiceBaseline] = None
        self.baseline_sample_count = int(baseline_sample_count)
        self.min_profile_samples = int(min_profile_samples)
        self.variance_window = int(variance_window)
        self.drop_window = int(drop_window)
        self.latest_sample: Optional[VoiceSample] = None
        self.latest_profile: Optional[PsychologyProfile] = None

    def reset(self) -> None:
        """Drop history, baseline and latest outputs (analysis restart)."""
        self.history = VoiceHistory(self.history.window_ms)
        self.baseline = None
        self.latest_sample = None
        self.latest_profile = None

    def ingest(self, sample: VoiceSample) -> Optional[PsychologyProfile]:
        """Append the sample to history, then analyze it."""
        self.history.append(sample)
        self.latest_sample = sample
        self.latest_profile = self.analyze(sample)
        return self.latest_profile

    def analyze(self, current: VoiceSample) -> Optional[PsychologyProfile]:
        """
        Profile for the current sample, or None while history is shorter than
        min_profile_samples or the baseline is not calibrated yet.
        """
        history = self.history
        if len(history) < self.min_profile_samples:
            return None
        if self.baseline is None and len(history) >= self.baseline_sample_count:
            self.baseline = self._calibrate_baseline(list(history))
        base = self.baseline
        if base is None:
            return None

        confidence = ConfidenceIndicators(
            volume_confidence=max(0.0, 1.0 - abs(current.volume - base.average_volume)),
            pitch_confidence=self._stability_ratio(current.stability, base.average_stability),
            energy_confidence=max(0.0, 1.0 - abs(current.energy - base.average_energy)),
        )
        confidence.overall_confidence = (
            confidence.volume_confidence * 0.4
            + confidence.pitch_confidence * 0.4
            + confidence.energy_confidence * 0.2
        )
        stress = StressIndicators(
            voice_strain=self.detect_voice_strain(current, base),
            energy_instability=self.detect_energy_instability(history.recent(self.variance_window)),
            confidence_drops=self.detect_confidence_drops(history.recent(self.drop_window)),
        )
        flow = FlowIndicators(
            is_in_flow=self.detect_flow_state(current, base),
            flow_duration=self.calculate_flow_duration(history),
            arousal_level=self.calculate_arousal_level(current, base),
        )
        antifragility = AntifragilityIndicators(
            pressure_response=self.analyze_pressure_response(history),
            recovery_pattern=self.analyze_recovery_pattern(history),
            strength_progression=self.analyze_strength_progression(history),
        )
        return PsychologyProfile(
            confidence=confidence,
            stress=stress,
            flow_state=flow,
            antifragility=antifragility,
            timestamp=current.timestamp,
        )

    @staticmethod
    def _calibrate_baseline(samples: List[VoiceSample]) -> VoiceBaseline:
        return VoiceBaseline(
            average_volume=float(np.mean([s.volume for s in samples])),
            average_pitch=float(np.mean([s.pitch for s in samples])),
            average_energy=float(np.mean([s.energy for s in samples])),
            average_stability=float(np.mean([s.stability for s in samples])),
        )

    @staticmethod
    def _stability_ratio(current: float, baseline: float) -> float:
        # Zero baseline stability: any stability counts as full confidence.
        if baseline <= 0:
            return 1.0 if current > 0 else 0.0
        return min(1.0, current / baseline)

    @staticmethod
    def detect_voice_strain(current: VoiceSample, base: VoiceBaseline) -> bool:
        return current.pitch > base.average_pitch * 1.2 and current.stability < base.average_stability * 0.8

    @staticmethod
    def detect_energy_instability(samples: List[VoiceSample]) -> bool:
        return _variance([s.energy for s in samples]) > 0.1

    @staticmethod
    def detect_confidence_drops(samples: List[VoiceSample]) -> bool:
        for prev, cur in zip(samples, samples[1:]):
            if cur.volume < prev.volume * 0.7:
                return True
        return False

    @staticmethod
    def detect_flow_state(current: VoiceSample, base: VoiceBaseline) -> bool:
        return (
            abs(current.volume - base.average_volume) < 0.1
            and abs(current.energy - base.average_energy) < 0.1
            and current.stability > base.average_stability * 0.8
        )

    # Extension points: neutral until real models exist.
    def calculate_flow_duration(self, history: VoiceHistory) -> float:
        return 0.0

    def calculate_arousal_level(self, current: VoiceSample, base: VoiceBaseline) -> float:
        return 0.0

    def analyze_pressure_response(self, history: VoiceHistory) -> Optional[float]:
        return None

    def analyze_recovery_pattern(self, history: VoiceHistory) -> Optional[float]:
        return None

    def analyze_strength_progression(self, history: VoiceHistory) -> Optional[float]:
        return None
