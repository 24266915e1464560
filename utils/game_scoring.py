"""
Practice Game Scoring

Score keepers for the three practice games. Each consumes what the session
already produces (FusedMetrics for voice, final transcripts for speech); none
owns a timer. The client drives target changes, prompt windows and chaos-word
expiry and reports them here.

  Energy Modulator   composite voice energy vs a moving target
      composite  = round(100 * (0.4*energy + 0.35*volume + 0.15*pitch/300 + 0.1*stability))
      accuracy   = 100 - dev/bw*100 inside the bandwidth, else max(0, 100 - (dev-bw)*2)
      smoothness = 100 - |dEnergy - dTarget|*2 on a target change, else 100 - dEnergy*3
      overall    = round(0.6*accuracy + 0.4*consistency)
  Rapid-Fire Analogies   heuristic analogy quality in [0, 1]; points from
      quality*50, a speed bonus and the current streak
  Chaos Integration   +100 for weaving the dropped word into speech, -50
      (floored at 0) when its window expires
"""

import math
import re
from collections import deque
from typing import List, Optional

# ============================================================================
# Shared
# ============================================================================


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ============================================================================
# Energy Modulator
# ============================================================================

ENERGY_WEIGHTS = {"energy": 0.4, "volume": 0.35, "pitch": 0.15, "stability": 0.1}
PITCH_NORMALIZER_HZ = 300.0
DEFAULT_ENERGY_BANDWIDTH = 20
ENERGY_POINT_HISTORY = 31

# (name, target sequence, seconds per target), by difficulty 1..5
ENERGY_PATTERNS = [
    ("Linear Progression", [20, 40, 60, 80, 60, 40, 20], 10),
    ("Dynamic Waves", [30, 70, 25, 85, 45, 90, 35], 8),
    ("Chaos Modulation", [15, 95, 30, 80, 10, 75, 50, 90, 25], 6),
    ("Neural Resonance", [40, 20, 85, 15, 95, 35, 70, 10, 90, 45], 5),
    ("Quantum Fluctuation", [25, 90, 10, 80, 35, 95, 15, 85, 40, 75, 20, 100, 5], 4),
]


def calculate_composite_energy(acoustic: dict) -> int:
    """
    Composite energy level (0-100) from the acoustic section of FusedMetrics.
    Missing pitch counts as 100 Hz and missing stability as 0.5.
    """
    energy = min(1.0, acoustic.get("energy") or 0.0)
    volume = min(1.0, acoustic.get("volume") or 0.0)
    pitch = min(1.0, (acoustic.get("pitch") or 100.0) / PITCH_NORMALIZER_HZ)
    stability = min(1.0, acoustic.get("stability") or 0.5)
    score = (
        energy * ENERGY_WEIGHTS["energy"]
        + volume * ENERGY_WEIGHTS["volume"]
        + pitch * ENERGY_WEIGHTS["pitch"]
        + stability * ENERGY_WEIGHTS["stability"]
    )
    return _round_half_up(score * 100)


def calculate_energy_accuracy(current: float, target: float, bandwidth: float = DEFAULT_ENERGY_BANDWIDTH) -> float:
    deviation = abs(current - target)
    if deviation <= bandwidth:
        return max(0.0, 100.0 - (deviation / bandwidth) * 100.0)
    return max(0.0, 100.0 - (deviation - bandwidth) * 2.0)


def calculate_transition_smoothness(previous: dict, point: dict) -> float:
    """Energy change should track the target change; without one, energy should hold."""
    energy_change = abs(point["energy"] - previous["energy"])
    target_change = abs(point["target"] - previous["target"])
    if target_change > 0:
        return max(0.0, 100.0 - abs(energy_change - target_change) * 2.0)
    return max(0.0, 100.0 - energy_change * 3.0)


class EnergyModulatorScore:
    """
    Tracks one Energy Modulator round.

    Usage:
        game = EnergyModulatorScore(difficulty=2)
        game.record(session.get_fused_metrics(), now_ms)   # every metrics poll
        game.advance_target()                              # every transition_sec
        game.summary()
    """

    def __init__(self, difficulty: int = 1, bandwidth: float = DEFAULT_ENERGY_BANDWIDTH):
        self.difficulty = int(difficulty)
        name, sequence, transition_sec = ENERGY_PATTERNS[max(0, min(self.difficulty - 1, len(ENERGY_PATTERNS) - 1))]
        self.pattern_name = name
        self.sequence = list(sequence)
        self.transition_sec = transition_sec
        self.bandwidth = float(bandwidth)
        self.index = 0
        self.points: deque = deque(maxlen=ENERGY_POINT_HISTORY)
        self.accuracy_scores: List[float] = []
        self.smoothness_scores: List[float] = []
        self.target_hits = 0
        self.total_transitions = 0

    @property
    def target(self) -> int:
        return self.sequence[self.index]

    def record(self, fused, timestamp: int = 0) -> Optional[dict]:
        """Score the current voice against the target. None without acoustic data."""
        if not fused.acoustic:
            return None
        energy = calculate_composite_energy(fused.acoustic)
        point = {
            "timestamp": int(timestamp),
            "energy": energy,
            "target": self.target,
            "accuracy": calculate_energy_accuracy(energy, self.target, self.bandwidth),
        }
        self.accuracy_scores.append(point["accuracy"])
        if abs(energy - self.target) <= self.bandwidth:
            self.target_hits += 1
        if self.points:
            self.smoothness_scores.append(calculate_transition_smoothness(self.points[-1], point))
        self.points.append(point)
        return point

    def advance_target(self) -> int:
        self.total_transitions += 1
        self.index = (self.index + 1) % len(self.sequence)
        return self.target

    @property
    def accuracy_score(self) -> int:
        if not self.accuracy_scores:
            return 0
        return _round_half_up(sum(self.accuracy_scores) / len(self.accuracy_scores))

    @property
    def consistency_rating(self) -> int:
        if not self.smoothness_scores:
            return 0
        return _round_half_up(sum(self.smoothness_scores) / len(self.smoothness_scores))

    @property
    def target_hit_rate(self) -> int:
        # Hits are counted per sample, transitions per target change.
        if self.total_transitions == 0:
            return 0
        return min(100, _round_half_up(self.target_hits / self.total_transitions * 100))

    @property
    def overall_score(self) -> int:
        return _round_half_up(self.accuracy_score * 0.6 + self.consistency_rating * 0.4)

    def summary(self) -> dict:
        return {
            "gameType": "energyModulator",
            "pattern": self.pattern_name,
            "finalAccuracy": self.accuracy_score,
            "finalConsistency": self.consistency_rating,
            "targetHitRate": self.target_hit_rate,
            "overallScore": self.overall_score,
            "totalTransitions": self.total_transitions,
            "energyBandwidthUsed": self.bandwidth,
            "difficultyLevel": self.difficulty,
        }


# ============================================================================
# Rapid-Fire Analogies
# ============================================================================

ANALOGY_PATTERNS = [
    re.compile(r"like", re.IGNORECASE),
    re.compile(r"as\s+\w+\s+as", re.IGNORECASE),
    re.compile(r"similar\s+to", re.IGNORECASE),
    re.compile(r"reminds\s+me\s+of", re.IGNORECASE),
    re.compile(r"comparable\s+to", re.IGNORECASE),
]
CREATIVE_WORDS = [
    "imagine", "envision", "consider", "metaphor", "symbolize", "represent",
    "embody", "mirror", "reflect", "parallel", "resonate", "echo",
]
_CREATIVE_RE = re.compile(r"\b(?:%s)\b" % "|".join(CREATIVE_WORDS), re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

# Seconds allowed per prompt, by difficulty 1..4
RESPONSE_WINDOW_SEC = [7, 6, 5, 4]
STREAK_QUALITY = 0.6
TIMEOUT_PENALTY = 10


def evaluate_analogy_quality(response: str) -> float:
    """Heuristic quality of a spoken analogy in [0, 1]."""
    response = response or ""
    quality = 0.1
    if any(p.search(response) for p in ANALOGY_PATTERNS):
        quality += 0.3
    sentences = [s for s in _SENTENCE_SPLIT.split(response) if len(s.strip()) > 5]
    if len(sentences) > 1:
        quality += 0.2
    if _CREATIVE_RE.search(response):
        quality += 0.2
    if len(response) > 50:
        quality += 0.1
    if len(response) > 100:
        quality += 0.1
    if len(response) < 15:
        quality -= 0.2
    return max(0.0, min(1.0, quality))


class RapidFireScore:
    """Running score, streak and per-answer history for Rapid-Fire Analogies."""

    def __init__(self, difficulty: int = 1):
        self.difficulty = int(difficulty)
        self.window_sec = RESPONSE_WINDOW_SEC[max(0, min(self.difficulty - 1, len(RESPONSE_WINDOW_SEC) - 1))]
        self.score = 0
        self.streak = 0
        self.max_streak = 0
        self.timeouts = 0
        self.answers: List[dict] = []

    def record_response(self, response: str, response_ms: float) -> dict:
        quality = evaluate_analogy_quality(response)
        speed_bonus = max(0.0, (self.window_sec * 1000 - response_ms) / 100.0)
        points = _round_half_up(quality * 50 + speed_bonus + self.streak * 5)
        self.score += points
        if quality > STREAK_QUALITY:
            self.streak += 1
            self.max_streak = max(self.max_streak, self.streak)
        else:
            self.streak = 0
        answer = {
            "response": response,
            "quality": quality,
            "responseTime": response_ms,
            "points": points,
            "streak": self.streak,
            "totalScore": self.score,
        }
        self.answers.append(answer)
        return answer

    def record_timeout(self) -> int:
        self.timeouts += 1
        self.streak = 0
        self.score = max(0, self.score - TIMEOUT_PENALTY)
        return self.score

    def summary(self) -> dict:
        qualities = [a["quality"] for a in self.answers]
        return {
            "gameType": "rapidFireAnalogies",
            "finalScore": self.score,
            "maxStreak": self.max_streak,
            "completed": len(self.answers),
            "timeouts": self.timeouts,
            "averageQuality": sum(qualities) / len(qualities) if qualities else 0.0,
        }


# ============================================================================
# Chaos Integration
# ============================================================================

INTEGRATION_REWARD = 100
INTEGRATION_PENALTY = 50


class ChaosIntegrationScore:
    """
    Chaos Integration: a random word is dropped into the talk and the speaker
    has a short window to use it.

    Usage:
        game = ChaosIntegrationScore()
        game.drop_word("giraffe")
        game.check_transcript(final_text)   # on every final result
        game.expire_word()                  # when the window runs out
    """

    def __init__(self):
        self.score = 0
        self.successes = 0
        self.failures = 0
        self.active_word: Optional[str] = None

    def drop_word(self, word: str) -> None:
        self.active_word = word

    def check_transcript(self, transcript: str) -> bool:
        """True (and +100) when the active word appears in the transcript."""
        if not self.active_word:
            return False
        if self.active_word.lower() not in (transcript or "").lower():
            return False
        self.score += INTEGRATION_REWARD
        self.successes += 1
        self.active_word = None
        return True

    def expire_word(self) -> None:
        if not self.active_word:
            return
        self.failures += 1
        self.score = max(0, self.score - INTEGRATION_PENALTY)
        self.active_word = None

    @property
    def adaptability_rating(self) -> int:
        total = self.successes + self.failures
        return _round_half_up(self.successes / total * 100) if total else 0

    def summary(self) -> dict:
        return {
            "gameType": "chaosIntegration",
            "finalScore": self.score,
            "adaptabilityRating": self.adaptability_rating,
            "successes": self.successes,
            "failures": self.failures,
        }
