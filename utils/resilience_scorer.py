"""
Resilience Scorer

Running resilience score in [0, 100] (initial 75) with two distinct update paths:

  recompute_resilience_from_metrics   continuous; replaces the score on every metrics tick
      stability*30 + max(0, (5000 - recoverySpeed)/5000)*25 + adaptation*25 + max(0, 1 - stress)*20

  apply_intervention_resilience_bonus  on intervention completion; additive
      min(100, score + effectiveness*5)

The two rules conflict (a bonus is overwritten by the next recompute). Both are
kept under separate names so a later decision can reconcile them.
"""

from dataclasses import dataclass
from typing import Optional

import config


@dataclass(frozen=True)
class ResilienceGrade:
    grade: str
    description: str

    def to_dict(self) -> dict:
        return {"grade": self.grade, "description": self.description}


def grade_for(score: float) -> ResilienceGrade:
    """Letter grade for a resilience score."""
    if score >= 90:
        return ResilienceGrade("A+", "Exceptional")
    if score >= 80:
        return ResilienceGrade("A", "Excellent")
    if score >= 70:
        return ResilienceGrade("B", "Good")
    if score >= 60:
        return ResilienceGrade("C", "Average")
    return ResilienceGrade("D", "Developing")


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class ResilienceScorer:
    """
    Session-scoped resilience score.

    Usage:
        scorer = ResilienceScorer()
        scorer.recompute_resilience_from_metrics(metrics)
        scorer.apply_intervention_resilience_bonus(0.8)
        scorer.score, scorer.grade
    """

    def __init__(self, initial_score: float = config.INITIAL_RESILIENCE_SCORE):
        self.initial_score = _clamp(initial_score)
        self.score = self.initial_score
        self.last_bonus: Optional[float] = None

    def reset(self) -> None:
        self.score = self.initial_score
        self.last_bonus = None

    def recompute_resilience_from_metrics(self, metrics) -> float:
        """
        Replace the score from a RecoveryMetrics snapshot (voice_stability,
        recovery_speed, adaptation_score, stress_level).
        """
        stability = metrics.voice_stability * 30.0
        recovery = max(0.0, (5000.0 - metrics.recovery_speed) / 5000.0) * 25.0
        adaptation = metrics.adaptation_score * 25.0
        stress_handling = max(0.0, 1.0 - metrics.stress_level) * 20.0
        self.score = _clamp(round(stability + recovery + adaptation + stress_handling))
        return self.score

    def apply_intervention_resilience_bonus(self, effectiveness: float) -> float:
        """Additive bump after a completed intervention (effectiveness in [0, 1])."""
        self.last_bonus = float(effectiveness) * 5.0
        self.score = _clamp(min(100.0, self.score + self.last_bonus))
        return self.score

    @property
    def grade(self) -> ResilienceGrade:
        return grade_for(self.score)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "grade": self.grade.to_dict(),
            "lastBonus": self.last_bonus,
        }
