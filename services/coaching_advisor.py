"""
Coaching Advisor Service

Turns fused metrics into short coaching recommendations for on_recommendation
listeners. Called from the session's 1-second tick.

Candidates (highest priority first): strength, progress, resilience, development.
  strength     acoustic stability > 0.8
  progress     confidence trend over the last 3 snapshots rose by more than 5%
  resilience   recovery patterns exist (rapid when the mean speed is under 5 s)
  development  acoustic energy < 0.3
With no candidate a general observation is delivered. The advisor rotates its
tone (analytical, supportive, strategic) after every delivery.

When ADVISOR_LLM_ENABLED is set and Azure AI Foundry is configured, the stock
message is rephrased by the LLM; any failure falls back to the stock message.
The rewrite is bounded by ADVISOR_LLM_TIMEOUT_SEC.
A cooldown keeps recommendations from arriving more often than every
RECOMMENDATION_COOLDOWN_SEC seconds.
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, List, Optional, Sequence

import config

logger = logging.getLogger(__name__)

PERSONALITIES = {
    "analytical": ["Based on voice pattern analysis", "The data indicates", "Performance metrics suggest"],
    "supportive": ["Your progress shows", "This improvement demonstrates", "Building on your strengths"],
    "strategic": ["Consider adapting", "Future sessions could benefit", "Strategic development involves"],
}
PERSONALITY_ORDER = ["analytical", "supportive", "strategic"]
INSIGHT_PRIORITY = ["strength", "progress", "resilience", "development"]

# LLM calls run here so a slow Foundry response cannot hold up the progress tick.
_llm_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="advisor-llm")


def analyze_performance_trend(scores: Sequence[float]) -> dict:
    """Compare the mean of the first half of the scores with the second half."""
    if len(scores) < 2:
        return {"direction": "stable", "magnitude": 0}
    mid = len(scores) // 2
    first = sum(scores[:mid]) / mid
    second = sum(scores[mid:]) / (len(scores) - mid)
    if first <= 0:
        return {"direction": "stable", "magnitude": 0}
    change = (second - first) / first * 100.0
    direction = "upward" if change > 5 else "downward" if change < -5 else "stable"
    return {"direction": direction, "magnitude": int(round(abs(change)))}


class CoachingAdvisor:
    """
    Heuristic advisor with optional LLM phrasing.

    Usage:
        advisor = CoachingAdvisor()
        advisor.on_recommendation(print)
        advisor.maybe_recommend(fused, report, confidence_history)
    """

    def __init__(
        self,
        cooldown_sec: float = config.RECOMMENDATION_COOLDOWN_SEC,
        llm_enabled: Optional[bool] = None,
        clock: Callable[[], float] = time.time,
        llm_timeout_sec: float = config.ADVISOR_LLM_TIMEOUT_SEC,
    ):
        self.cooldown_sec = float(cooldown_sec)
        if llm_enabled is None:
            llm_enabled = config.ADVISOR_LLM_ENABLED and config.is_foundry_configured()
        self.llm_enabled = bool(llm_enabled)
        self.llm_timeout_sec = float(llm_timeout_sec)
        self._clock = clock
        self._personality_idx = 0
        self._last_delivery: Optional[float] = None
        self._callbacks: List[Callable[[dict], Any]] = []
        self._lock = threading.Lock()
        self.history: deque = deque(maxlen=50)

    @property
    def personality(self) -> str:
        return PERSONALITY_ORDER[self._personality_idx]

    def on_recommendation(self, callback: Callable[[dict], Any]) -> None:
        self._callbacks.append(callback)

    def reset(self) -> None:
        with self._lock:
            self._personality_idx = 0
            self._last_delivery = None
            self.history.clear()

    def generate_insight(self, fused, report=None, confidence_history: Sequence[float] = ()) -> dict:
        """Pick the highest-priority insight for the current metrics."""
        phrases = PERSONALITIES[self.personality]
        acoustic = fused.acoustic or {}
        stability = float(acoustic.get("stability") or 0.0)
        energy = float(acoustic.get("energy") or 0.0)
        insights = []

        if stability > 0.8:
            insights.append({
                "type": "strength",
                "category": "vocal_control",
                "message": f"{phrases[1]} exceptional vocal stability at {round(stability * 100)}%.",
                "confidence": 0.92,
                "actionable": "Leverage this stability for advanced articulation practice",
            })
        # Zero energy means no audio yet, not a subdued voice.
        if 0 < energy < 0.3:
            insights.append({
                "type": "development",
                "category": "energy_modulation",
                "message": f"Energy levels are subdued at {round(energy * 100)}%. {phrases[2]}.",
                "confidence": 0.87,
                "actionable": "Practice graduated energy scales",
            })
        if len(confidence_history) > 2:
            trend = analyze_performance_trend(list(confidence_history)[-3:])
            if trend["direction"] == "upward":
                insights.append({
                    "type": "progress",
                    "category": "trajectory",
                    "message": f"{phrases[0]}, your trajectory shows {trend['magnitude']}% improvement.",
                    "confidence": 0.89,
                    "actionable": "Maintain training intensity",
                })
        patterns = report.recovery_patterns if report is not None else []
        if patterns:
            avg_speed = sum(p.recovery_speed for p in patterns) / len(patterns)
            insights.append({
                "type": "resilience",
                "category": "stress_adaptation",
                "message": f"Stress recovery avg is {'rapid' if avg_speed < 5000 else 'moderate'}.",
                "confidence": 0.84,
                "actionable": "Implement stress inoculation drills",
            })

        if not insights:
            return {
                "type": "observation",
                "category": "general",
                "message": f"{phrases[0]} continuous monitoring underway.",
                "confidence": 0.75,
                "actionable": "Continue consistent practice",
            }
        insights.sort(key=lambda i: (INSIGHT_PRIORITY.index(i["type"]), -i["confidence"]))
        return insights[0]

    def rewrite_with_llm(self, insight: dict, timeout_sec: Optional[float] = None) -> str:
        """
        Rephrase the stock message with Azure AI Foundry.
        Returns the stock text on any failure or when the call outlasts timeout_sec.
        """
        stock = insight["message"]
        if not self.llm_enabled:
            return stock
        if timeout_sec is None:
            timeout_sec = self.llm_timeout_sec
        try:
            from services.azure_foundry import get_foundry_service
            note = f"Observation: {stock} Suggested action: {insight['actionable']}."
            future = _llm_pool.submit(
                get_foundry_service().chat_completion,
                messages=[{"role": "user", "content": note}],
                system_prompt=config.ADVISOR_SYSTEM_PROMPT,
                max_tokens=80,
                temperature=0.7,
                timeout=timeout_sec,
            )
            out = future.result(timeout=timeout_sec)
            if out and out.strip():
                return out.strip()
        except FutureTimeout:
            logger.warning("Advisor rewrite timed out after %.1fs", timeout_sec)
        except Exception as e:
            logger.warning("Advisor rewrite failed: %s", e)
        return stock

    def maybe_recommend(self, fused, report=None, confidence_history: Sequence[float] = ()) -> Optional[dict]:
        """
        Deliver a recommendation unless the cooldown is still running.
        Returns the payload sent to listeners, or None.
        """
        now = self._clock()
        with self._lock:
            if self._last_delivery is not None and now - self._last_delivery < self.cooldown_sec:
                return None
            self._last_delivery = now
            insight = self.generate_insight(fused, report, confidence_history)
            self._personality_idx = (self._personality_idx + 1) % len(PERSONALITY_ORDER)

        payload = {
            "category": insight["category"],
            "type": insight["type"],
            "message": self.rewrite_with_llm(insight),
            "recommendation": insight["actionable"],
            "confidence": insight["confidence"],
            "timestamp": int(now * 1000),
        }
        self.history.append(payload)
        for callback in list(self._callbacks):
            try:
                callback(payload)
            except Exception as e:
                logger.warning("Recommendation listener failed: %s", e)
        return payload
