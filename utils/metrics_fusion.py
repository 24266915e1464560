"""
Metrics Fusion (linguistic + acoustic)

Merges the transcript report and the acoustic psychology profile into one
normalized record for games, dashboards and the recovery specialist.

Mathematical logic
------------------
Inputs on a 0-1 scale; every combined output is rescaled x100 and clamped to [0, 100].

  confidence         min(1, (averageConfidence + overallConfidence) / 2)
  stressLevel        min(1, stressComposite + hesitationRate)
                     stressComposite = active stress flags / 3
  flowState          flowScore (1 in flow, 0 otherwise)
  antifragilityScore min(1, (voiceAntifragility + adaptability/100 + avgRecovery) / 3)
                     avgRecovery = share of recovery patterns with strengthAfterSetback
                     voiceAntifragility = mean of computed antifragility sub-metrics (0 if none)

A missing profile (not enough audio yet) contributes zeros. fuse_metrics is pure:
the timestamp is an argument, so identical inputs give identical outputs.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from utils.acoustic_features import VoiceSample
from utils.linguistic_features import LinguisticReport
from utils.psychology_fusion import PsychologyProfile


@dataclass(frozen=True)
class CombinedMetrics:
    confidence: float = 0.0
    stress_level: float = 0.0
    flow_state: float = 0.0
    antifragility_score: float = 0.0


@dataclass(frozen=True)
class FusedMetrics:
    linguistic: Dict[str, float] = field(default_factory=dict)
    acoustic: Dict[str, float] = field(default_factory=dict)
    combined: CombinedMetrics = field(default_factory=CombinedMetrics)
    recorded_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "linguistic": dict(self.linguistic),
            "acoustic": dict(self.acoustic),
            "combined": {
                "confidence": self.combined.confidence,
                "stressLevel": self.combined.stress_level,
                "flowState": self.combined.flow_state,
                "antifragilityScore": self.combined.antifragility_score,
            },
            "recordedAt": self.recorded_at,
        }


def to_percent(value: float) -> float:
    """Rescale 0-1 to 0-100 and clamp."""
    return max(0.0, min(100.0, value * 100.0))


def voice_stress_composite(profile: Optional[PsychologyProfile]) -> float:
    if profile is None:
        return 0.0
    return profile.stress.active_count() / 3.0


def voice_flow_score(profile: Optional[PsychologyProfile]) -> float:
    if profile is None:
        return 0.0
    return 1.0 if profile.flow_state.is_in_flow else 0.0


def voice_antifragility(profile: Optional[PsychologyProfile]) -> float:
    if profile is None:
        return 0.0
    values = profile.antifragility.values()
    return sum(values) / len(values) if values else 0.0


def fuse_metrics(
    report: Optional[LinguisticReport],
    profile: Optional[PsychologyProfile],
    sample: Optional[VoiceSample] = None,
    recorded_at: int = 0,
) -> FusedMetrics:
    """
    Combine a linguistic report and a psychology profile into FusedMetrics.

    Args:
        report: Transcript metrics (None -> neutral zeros)
        profile: Acoustic psychology profile (None while history/baseline is missing)
        sample: Latest voice sample for the acoustic section (optional)
        recorded_at: Timestamp (ms) stamped on the record

    Returns:
        FusedMetrics with combined fields in [0, 100]
    """
    report = report or LinguisticReport()
    voice_conf = profile.confidence.overall_confidence if profile is not None else 0.0

    combined_confidence = min(1.0, (report.average_confidence + voice_conf) / 2.0)
    combined_stress = min(1.0, voice_stress_composite(profile) + report.hesitation_rate)
    combined_flow = voice_flow_score(profile)

    patterns = report.recovery_patterns
    avg_recovery = (
        sum(1.0 if p.strength_after_setback else 0.0 for p in patterns) / len(patterns)
        if patterns else 0.0
    )
    blended_antifragility = min(
        1.0,
        (voice_antifragility(profile) + report.adaptability_score / 100.0 + avg_recovery) / 3.0,
    )

    sample = sample or VoiceSample(stability=0.0)
    return FusedMetrics(
        linguistic={
            "totalWords": report.total_words,
            "totalHesitations": report.total_hesitations,
            "speakingSpeed": report.speaking_speed,
            "hesitationRate": report.hesitation_rate,
            "averageConfidence": report.average_confidence,
        },
        acoustic={
            "volume": sample.volume,
            "pitch": sample.pitch,
            "energy": sample.energy,
            "stability": sample.stability,
        },
        combined=CombinedMetrics(
            confidence=to_percent(combined_confidence),
            stress_level=to_percent(combined_stress),
            flow_state=to_percent(combined_flow),
            antifragility_score=to_percent(blended_antifragility),
        ),
        recorded_at=int(recorded_at),
    )
