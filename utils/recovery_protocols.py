"""
Recovery Protocol Selector

Rule-based monitoring/intervention state machine driven by fused metrics.

Per metrics tick:
  1. Baseline is taken once from the first metrics received.
  2. Risk factors are scored against the baseline:
       elevated_stress        stress > 0.6                         +30
       stability_degradation  stability < 0.7 * baseline stability  +25
       energy_depletion       energy < 0.5 * baseline energy        +20
       confidence_erosion     confidence < 0.6 * baseline           +25
       slow_recovery          recovery speed > 3000 ms              +15
     Level: critical > 60, moderate > 30, else low ("unknown" without baseline).
  3. critical/moderate require an intervention; one is created only when none
     is active (at most one at a time).
  4. The ResilienceScorer is recomputed from the metrics.

Per progress tick (1 s): the active intervention advances by
100 / duration_seconds; at 100 it completes, is logged to a bounded history,
and the scorer receives a bonus with effectiveness drawn from [0.6, 1.0].
"""

import logging
from collections import deque
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

import numpy as np

import config
from utils.resilience_scorer import ResilienceScorer

logger = logging.getLogger(__name__)

STATE_MONITORING = "monitoring"
STATE_INTERVENTION = "intervention"

RISK_CRITICAL = "critical"
RISK_MODERATE = "moderate"
RISK_LOW = "low"
RISK_UNKNOWN = "unknown"

PROGRESS_EPSILON = 1e-6

RISK_FACTOR_POINTS: Dict[str, int] = {
    "elevated_stress": 30,
    "stability_degradation": 25,
    "energy_depletion": 20,
    "confidence_erosion": 25,
    "slow_recovery": 15,
}


# ============================================================================
# Protocol catalog (static reference data)
# ============================================================================

@dataclass(frozen=True)
class RecoveryProtocol:
    name: str
    trigger_conditions: Dict[str, float]
    intervention_text: str
    duration_ms: int
    priority: str
    neural_target: str

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "triggerConditions": dict(self.trigger_conditions),
            "interventionText": self.intervention_text,
            "durationMs": self.duration_ms,
            "priority": self.priority,
            "neuralTarget": self.neural_target,
        }


RECOVERY_PROTOCOLS: Dict[str, RecoveryProtocol] = {
    p.name: p
    for p in (
        RecoveryProtocol(
            name="respiratoryReset",
            trigger_conditions={"stressLevel": 0.7, "voiceStability": 0.4},
            intervention_text="Implement 4-7-8 breathing pattern",
            duration_ms=30000,
            priority="immediate",
            neural_target="parasympathetic activation",
        ),
        RecoveryProtocol(
            name="cognitiveReframe",
            trigger_conditions={"hesitationRate": 0.3, "confidenceLevel": 0.4},
            intervention_text="Cognitive restructuring with positive anchoring",
            duration_ms=45000,
            priority="high",
            neural_target="prefrontal cortex optimization",
        ),
        RecoveryProtocol(
            name="energyModulation",
            trigger_conditions={"energyLevel": 0.2, "voiceVolume": 0.3},
            intervention_text="Progressive energy escalation protocol",
            duration_ms=60000,
            priority="medium",
            neural_target="sympathetic nervous system",
        ),
        RecoveryProtocol(
            name="flowStateInduction",
            trigger_conditions={"stabilityConsistency": 0.8, "stressLevel": 0.2},
            intervention_text="Flow state optimization sequence",
            duration_ms=120000,
            priority="enhancement",
            neural_target="default mode network",
        ),
        RecoveryProtocol(
            name="antifragilityBoost",
            trigger_conditions={"recoverySpeed": 5000, "adaptationScore": 0.6},
            intervention_text="Stress inoculation with controlled challenge",
            duration_ms=180000,
            priority="development",
            neural_target="stress resilience pathways",
        ),
    )
}


# ============================================================================
# Metrics, baseline, assessment
# ============================================================================

@dataclass
class RecoveryMetrics:
    """Flat 0-1 snapshot the selector and scorer work on."""
    stress_level: float = 0.0
    voice_stability: float = 0.0
    energy_level: float = 0.0
    voice_volume: float = 0.0
    hesitation_rate: float = 0.0
    confidence_level: float = 0.0
    recovery_speed: float = float(config.RECOVERY_FALLBACK_MS)
    adaptation_score: float = 0.0
    stability_consistency: float = 0.5
    timestamp: int = 0

    def to_dict(self) -> dict:
        return {
            "stressLevel": self.stress_level,
            "voiceStability": self.voice_stability,
            "energyLevel": self.energy_level,
            "voiceVolume": self.voice_volume,
            "hesitationRate": self.hesitation_rate,
            "confidenceLevel": self.confidence_level,
            "recoverySpeed": self.recovery_speed,
            "adaptationScore": self.adaptation_score,
            "stabilityConsistency": self.stability_consistency,
            "timestamp": self.timestamp,
        }


def stability_consistency(profile) -> float:
    """0.8 for a sustained flow (> 10), 0.4 otherwise, 0.5 without a profile."""
    if profile is None:
        return 0.5
    return 0.8 if profile.flow_state.flow_duration > 10 else 0.4


def extract_recovery_metrics(fused, report=None, profile=None, timestamp: int = 0) -> RecoveryMetrics:
    """
    Build RecoveryMetrics from FusedMetrics plus the linguistic report and
    psychology profile it was fused from.
    """
    acoustic = fused.acoustic or {}
    patterns = report.recovery_patterns if report is not None else []
    return RecoveryMetrics(
        stress_level=fused.combined.stress_level / 100.0,
        voice_stability=float(acoustic.get("stability") or 0.0),
        energy_level=float(acoustic.get("energy") or 0.0),
        voice_volume=float(acoustic.get("volume") or 0.0),
        hesitation_rate=float(fused.linguistic.get("hesitationRate") or 0.0),
        confidence_level=fused.combined.confidence / 100.0,
        recovery_speed=float(patterns[0].recovery_speed) if patterns else float(config.RECOVERY_FALLBACK_MS),
        adaptation_score=(report.adaptability_score / 100.0) if report is not None else 0.0,
        stability_consistency=stability_consistency(profile),
        timestamp=int(timestamp),
    )


@dataclass
class RecoveryBaseline:
    average_stability: float
    average_energy: float
    typical_hesitation_rate: float
    baseline_confidence: float
    timestamp: int = 0

    @classmethod
    def from_metrics(cls, metrics: RecoveryMetrics) -> "RecoveryBaseline":
        # Zero readings (nothing measured yet) fall back to neutral values.
        return cls(
            average_stability=metrics.voice_stability or 0.5,
            average_energy=metrics.energy_level or 0.5,
            typical_hesitation_rate=metrics.hesitation_rate or 0.1,
            baseline_confidence=metrics.confidence_level or 0.5,
            timestamp=metrics.timestamp,
        )

    def to_dict(self) -> dict:
        return {
            "averageStability": self.average_stability,
            "averageEnergy": self.average_energy,
            "typicalHesitationRate": self.typical_hesitation_rate,
            "baselineConfidence": self.baseline_confidence,
            "timestamp": self.timestamp,
        }


@dataclass
class RiskAssessment:
    level: str
    score: int = 0
    factors: List[str] = field(default_factory=list)
    recommendation: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def risk_recommendation(score: int) -> str:
    if score > 60:
        return "Immediate intervention required - multiple performance indicators compromised"
    if score > 30:
        return "Preventive measures recommended - early intervention optimal"
    return "Performance within acceptable parameters - continue monitoring"


def assess_risk(metrics: RecoveryMetrics, baseline: Optional[RecoveryBaseline]) -> RiskAssessment:
    if baseline is None:
        return RiskAssessment(level=RISK_UNKNOWN)
    factors = []
    if metrics.stress_level > 0.6:
        factors.append("elevated_stress")
    if metrics.voice_stability < baseline.average_stability * 0.7:
        factors.append("stability_degradation")
    if metrics.energy_level < baseline.average_energy * 0.5:
        factors.append("energy_depletion")
    if metrics.confidence_level < baseline.baseline_confidence * 0.6:
        factors.append("confidence_erosion")
    if metrics.recovery_speed > 3000:
        factors.append("slow_recovery")
    score = sum(RISK_FACTOR_POINTS[f] for f in factors)
    if score > 60:
        level = RISK_CRITICAL
    elif score > 30:
        level = RISK_MODERATE
    else:
        level = RISK_LOW
    return RiskAssessment(level=level, score=score, factors=factors, recommendation=risk_recommendation(score))


def select_optimal_protocol(factors: List[str]) -> str:
    """Priority rule used for critical risk."""
    if "elevated_stress" in factors and "stability_degradation" in factors:
        return "respiratoryReset"
    if "confidence_erosion" in factors:
        return "cognitiveReframe"
    if "energy_depletion" in factors:
        return "energyModulation"
    if "slow_recovery" in factors:
        return "antifragilityBoost"
    return "respiratoryReset"


def select_preventive_protocol(factors: List[str]) -> str:
    if not factors:
        return "flowStateInduction"
    return select_optimal_protocol(factors)


def select_protocol(assessment: RiskAssessment) -> Optional[str]:
    """Protocol name for the assessment, or None when no intervention is needed."""
    if assessment.level == RISK_CRITICAL:
        return select_optimal_protocol(assessment.factors)
    if assessment.level == RISK_MODERATE:
        return select_preventive_protocol(assessment.factors)
    return None


# ============================================================================
# Active intervention
# ============================================================================

@dataclass
class ActiveIntervention:
    protocol: RecoveryProtocol
    start_time: int
    trigger_metrics: RecoveryMetrics
    urgency: str = ""
    progress_percent: float = 0.0

    def to_dict(self) -> dict:
        return {
            "protocolName": self.protocol.name,
            "interventionText": self.protocol.intervention_text,
            "durationMs": self.protocol.duration_ms,
            "neuralTarget": self.protocol.neural_target,
            "urgency": self.urgency,
            "startTime": self.start_time,
            "triggerMetrics": self.trigger_metrics.to_dict(),
            "progressPercent": self.progress_percent,
        }


@dataclass
class InterventionRecord:
    protocol: str
    start_time: int
    completed_at: int
    urgency: str
    effectiveness: float
    trigger_metrics: RecoveryMetrics

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol,
            "startTime": self.start_time,
            "completedAt": self.completed_at,
            "urgency": self.urgency,
            "effectiveness": self.effectiveness,
            "triggerMetrics": self.trigger_metrics.to_dict(),
        }


class RecoveryProtocolSelector:
    """
    Monitoring/intervention state machine for one session.

    Usage:
        selector = RecoveryProtocolSelector(ResilienceScorer())
        selector.on_intervention_trigger(lambda payload: ...)
        selector.on_metrics(metrics, now_ms)   # every metrics tick
        selector.progress_tick(now_ms)         # every second
    """

    def __init__(
        self,
        scorer: Optional[ResilienceScorer] = None,
        rng: Optional[np.random.Generator] = None,
        history_max: int = config.INTERVENTION_HISTORY_MAX,
        trend_max: int = config.BIOMETRIC_TREND_MAX,
        effectiveness_range=(config.INTERVENTION_EFFECTIVENESS_MIN, config.INTERVENTION_EFFECTIVENESS_MAX),
        protocols: Optional[Dict[str, RecoveryProtocol]] = None,
    ):
        self.scorer = scorer or ResilienceScorer()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.protocols = protocols or RECOVERY_PROTOCOLS
        self.effectiveness_range = (float(effectiveness_range[0]), float(effectiveness_range[1]))
        self.state = STATE_MONITORING
        self.baseline: Optional[RecoveryBaseline] = None
        self.active: Optional[ActiveIntervention] = None
        self.last_assessment = RiskAssessment(level=RISK_UNKNOWN)
        self.history = deque(maxlen=max(1, int(history_max)))
        self.biometric_trends = deque(maxlen=max(1, int(trend_max)))
        self._trigger_callbacks: List[Callable[[dict], Any]] = []

    def on_intervention_trigger(self, callback: Callable[[dict], Any]) -> None:
        """Register a listener called once per transition into intervention."""
        self._trigger_callbacks.append(callback)

    def reset(self) -> None:
        """Back to monitoring with no baseline, intervention, history or trends."""
        self.state = STATE_MONITORING
        self.baseline = None
        self.active = None
        self.last_assessment = RiskAssessment(level=RISK_UNKNOWN)
        self.history.clear()
        self.biometric_trends.clear()
        self.scorer.reset()

    def on_metrics(self, metrics: RecoveryMetrics, now_ms: int) -> Optional[ActiveIntervention]:
        """
        Process one metrics tick. Returns the intervention created by this tick,
        or None (nothing required, or one is already active).
        """
        if self.baseline is None:
            self.baseline = RecoveryBaseline.from_metrics(metrics)
        self.biometric_trends.append(metrics)

        assessment = assess_risk(metrics, self.baseline)
        self.last_assessment = assessment
        created = None
        protocol_name = select_protocol(assessment)
        if protocol_name is not None and self.active is None:
            urgency = "immediate" if assessment.level == RISK_CRITICAL else "preventive"
            created = self.initiate(protocol_name, metrics, now_ms, urgency=urgency)

        self.scorer.recompute_resilience_from_metrics(metrics)
        return created

    def initiate(
        self, protocol_name: str, metrics: RecoveryMetrics, now_ms: int, urgency: str = ""
    ) -> Optional[ActiveIntervention]:
        """Start a protocol. No-op when one is already active or the name is unknown."""
        if self.active is not None:
            return None
        protocol = self.protocols.get(protocol_name)
        if protocol is None:
            logger.warning("Unknown recovery protocol: %s", protocol_name)
            return None
        self.active = ActiveIntervention(
            protocol=protocol,
            start_time=int(now_ms),
            trigger_metrics=metrics,
            urgency=urgency,
        )
        self.state = STATE_INTERVENTION
        print(f"Recovery intervention started: {protocol.name} ({urgency or 'manual'})")
        self._notify(protocol)
        return self.active

    def progress_tick(self, now_ms: int) -> Optional[InterventionRecord]:
        """
        Advance the active intervention by one second of progress.
        Returns the history record when this tick completed it.
        """
        active = self.active
        if active is None:
            return None
        active.progress_percent += 100.0 / active.protocol.duration_seconds
        # Float steps such as 100/30 may sum to just under 100.
        if active.progress_percent < 100.0 - PROGRESS_EPSILON:
            return None
        active.progress_percent = 100.0
        return self._complete(active, now_ms)

    def _complete(self, active: ActiveIntervention, now_ms: int) -> InterventionRecord:
        lo, hi = self.effectiveness_range
        effectiveness = float(self.rng.uniform(lo, hi))
        record = InterventionRecord(
            protocol=active.protocol.name,
            start_time=active.start_time,
            completed_at=int(now_ms),
            urgency=active.urgency,
            effectiveness=effectiveness,
            trigger_metrics=active.trigger_metrics,
        )
        self.active = None
        self.state = STATE_MONITORING
        self.history.append(record)
        self.scorer.apply_intervention_resilience_bonus(effectiveness)
        print(f"Recovery intervention completed: {record.protocol} (effectiveness {effectiveness:.2f})")
        return record

    def _notify(self, protocol: RecoveryProtocol) -> None:
        payload = {
            "protocol": protocol.name,
            "interventionText": protocol.intervention_text,
            "durationMs": protocol.duration_ms,
            "neuralTarget": protocol.neural_target,
        }
        for callback in list(self._trigger_callbacks):
            try:
                callback(payload)
            except Exception as e:
                logger.warning("Intervention trigger listener failed: %s", e)

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "activeIntervention": self.active.to_dict() if self.active else None,
            "assessment": self.last_assessment.to_dict(),
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "history": [r.to_dict() for r in self.history],
            "biometricTrends": [m.to_dict() for m in self.biometric_trends],
            "resilience": self.scorer.to_dict(),
        }
