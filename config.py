"""
=============================================================================
CONFIGURATION FOR SPEAKING COACH (config.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This file holds ALL configurable settings for the project in one place. Other
files read from it. Nothing secret is stored in the code; we read from the
environment (e.g. your .env file or system variables), so development and
production can use different keys without code changes.

MAIN GROUPS OF SETTINGS:
------------------------
  1. Audio analysis    : Tick rate, history window, baseline size, voice band.
  2. Speech analysis   : Hesitation markers, recovery lookahead, recognition restarts.
  3. Recovery protocols: Progress tick, history sizes, initial resilience score.
  4. Advisor           : Recommendation cooldown and optional Azure AI Foundry rewrite.
  5. Azure Speech      : Token for the browser's speech recognizer.
  6. Server            : Host, port, and debug mode for the web server.

HOW VALUES ARE CHOSEN:
---------------------
  - Environment variables (e.g. AUDIO_TICK_HZ) override everything.
  - If an env var is not set, we use the default shown below.
  - We never put real API keys or secrets as defaults in code.
=============================================================================
"""

import os
from typing import List, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# ============================================================================
# AUDIO ANALYSIS (microphone frames -> voice samples)
# ============================================================================
# The browser (or any capture client) pushes one analyser frame per render tick.
# The audio tick loop polls for the newest frame at this rate; 60 Hz matches a
# typical display refresh so the loop behaves like requestAnimationFrame.
# ----------------------------------------------------------------------------
AUDIO_TICK_HZ: float = max(1.0, float(os.getenv("AUDIO_TICK_HZ", "60")))

# Voice history retention (ms). Samples older than this are evicted on every append.
VOICE_HISTORY_WINDOW_MS: int = int(os.getenv("VOICE_HISTORY_WINDOW_MS", "30000"))
# Number of samples after which the one-shot voice baseline is calibrated.
BASELINE_SAMPLE_COUNT: int = int(os.getenv("BASELINE_SAMPLE_COUNT", "20"))
# Minimum history length before any psychology profile is produced.
MIN_PROFILE_SAMPLES: int = int(os.getenv("MIN_PROFILE_SAMPLES", "5"))
# Window (samples) used for stability and energy-instability variance.
STABILITY_WINDOW: int = int(os.getenv("STABILITY_WINDOW", "10"))
# Window (samples) scanned for sudden volume drops.
CONFIDENCE_DROP_WINDOW: int = int(os.getenv("CONFIDENCE_DROP_WINDOW", "5"))

# Human voice band for dominant-pitch search (Hz).
VOICE_BAND_MIN_HZ: float = float(os.getenv("VOICE_BAND_MIN_HZ", "80"))
VOICE_BAND_MAX_HZ: float = float(os.getenv("VOICE_BAND_MAX_HZ", "400"))
# Full-scale magnitude of byte-encoded analyser output (getByteFrequencyData).
FREQUENCY_MAGNITUDE_MAX: float = float(os.getenv("FREQUENCY_MAGNITUDE_MAX", "255"))

# ============================================================================
# SPEECH ANALYSIS (recognition results -> linguistic report)
# ============================================================================
# Hesitation markers are matched on word boundaries, case-insensitive.
HESITATION_MARKERS: List[str] = [
    m.strip() for m in os.getenv("HESITATION_MARKERS", "um,uh,er,ah,like,you know").split(",") if m.strip()
]
# Broader filler list used by the transcript text analysis (multi-word entries match consecutive words).
FILLER_WORDS: List[str] = [
    "um", "uh", "er", "ah", "like", "you know", "basically",
    "actually", "literally", "so", "well",
]
# Recovery lookahead: how many following result timestamps to inspect after a hesitation.
RECOVERY_LOOKAHEAD: int = int(os.getenv("RECOVERY_LOOKAHEAD", "5"))
# Recovery speed (ms) assumed when no result follows a hesitation.
RECOVERY_FALLBACK_MS: int = int(os.getenv("RECOVERY_FALLBACK_MS", "1000"))
# Confidence recorded when the recognizer omits one.
DEFAULT_RESULT_CONFIDENCE: float = float(os.getenv("DEFAULT_RESULT_CONFIDENCE", "0.5"))

# Silence watchdog: when no result arrives for this long, the recognizer is restarted
# (stop, short pause, start). Restarts are capped so a dead microphone does not loop forever.
RECOGNITION_SILENCE_TIMEOUT_SEC: float = float(os.getenv("RECOGNITION_SILENCE_TIMEOUT_SEC", "3"))
RECOGNITION_RESTART_PAUSE_SEC: float = float(os.getenv("RECOGNITION_RESTART_PAUSE_SEC", "0.1"))
RECOGNITION_MAX_RESTARTS: int = int(os.getenv("RECOGNITION_MAX_RESTARTS", "5"))
# Recognizer error codes treated as transient (recovered by restart, not surfaced).
TRANSIENT_RECOGNITION_ERRORS: List[str] = [
    e.strip() for e in os.getenv("TRANSIENT_RECOGNITION_ERRORS", "no-speech").split(",") if e.strip()
]
STT_LOCALE: str = os.getenv("STT_LOCALE", "en-US")

# ============================================================================
# RECOVERY PROTOCOLS & RESILIENCE
# ============================================================================
# Protocol progress and the game session timer advance once per PROGRESS_TICK_SEC.
PROGRESS_TICK_SEC: float = float(os.getenv("PROGRESS_TICK_SEC", "1"))
# Completed interventions kept for display.
INTERVENTION_HISTORY_MAX: int = int(os.getenv("INTERVENTION_HISTORY_MAX", "10"))
# Recent recovery-metric snapshots kept for trend display.
BIOMETRIC_TREND_MAX: int = int(os.getenv("BIOMETRIC_TREND_MAX", "20"))
INITIAL_RESILIENCE_SCORE: float = float(os.getenv("INITIAL_RESILIENCE_SCORE", "75"))
# Simulated effectiveness range applied when an intervention completes.
INTERVENTION_EFFECTIVENESS_MIN: float = float(os.getenv("INTERVENTION_EFFECTIVENESS_MIN", "0.6"))
INTERVENTION_EFFECTIVENESS_MAX: float = float(os.getenv("INTERVENTION_EFFECTIVENESS_MAX", "1.0"))

# ============================================================================
# Fused metrics diagnostic logging (off by default)
# ============================================================================
# When True, log the fused metrics every N audio ticks to aid threshold tuning.
METRICS_DIAGNOSTIC_LOGGING: bool = _env_bool("METRICS_DIAGNOSTIC_LOGGING", "false")
METRICS_DIAGNOSTIC_LOG_INTERVAL: int = max(1, int(os.getenv("METRICS_DIAGNOSTIC_LOG_INTERVAL", "60")))

# ============================================================================
# ADVISOR (coaching recommendations)
# ============================================================================
# Minimum seconds between two recommendations pushed to on_recommendation listeners.
RECOMMENDATION_COOLDOWN_SEC: float = float(os.getenv("RECOMMENDATION_COOLDOWN_SEC", "20"))
# When True and Foundry is configured, stock recommendations are rewritten by the LLM.
ADVISOR_LLM_ENABLED: bool = _env_bool("ADVISOR_LLM_ENABLED", "false")
# Seconds the progress tick waits for the LLM rewrite before using the stock text.
ADVISOR_LLM_TIMEOUT_SEC: float = float(os.getenv("ADVISOR_LLM_TIMEOUT_SEC", "4"))

# ============================================================================
# AZURE AI FOUNDRY (optional rewrite of advisor text)
# ============================================================================
# Old names (AZURE_OPENAI_*) still work for backward compatibility.
AZURE_FOUNDRY_KEY: str = (os.getenv("AZURE_FOUNDRY_KEY") or os.getenv("AZURE_OPENAI_KEY") or "").strip()
AZURE_FOUNDRY_ENDPOINT: str = (os.getenv("AZURE_FOUNDRY_ENDPOINT") or os.getenv("AZURE_OPENAI_ENDPOINT") or "").strip().rstrip("/")
FOUNDRY_DEPLOYMENT_NAME: str = (os.getenv("FOUNDRY_DEPLOYMENT_NAME") or os.getenv("DEPLOYMENT_NAME") or "gpt-4o").strip()
AZURE_FOUNDRY_API_VERSION: str = (os.getenv("AZURE_FOUNDRY_API_VERSION") or os.getenv("AZURE_OPENAI_API_VERSION") or "2024-11-20").strip()

ADVISOR_SYSTEM_PROMPT: str = """You are a warm, concise public-speaking coach whispering to a speaker during practice.
You receive a one-line coaching note derived from live voice and transcript metrics.
Rewrite it as one or two short sentences: an observation followed by a specific action.
Never mention numbers, scores, or that you are an AI."""

# ============================================================================
# AZURE SPEECH SERVICE (token for the browser speech recognizer)
# ============================================================================
def _strip_quotes(s: str) -> str:
    if not s:
        return s
    s = s.strip()
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        return s[1:-1].strip()
    return s


SPEECH_KEY: str = _strip_quotes(os.getenv("SPEECH_KEY") or "")
SPEECH_REGION: str = (os.getenv("SPEECH_REGION") or "eastus").strip().lower()

# ============================================================================
# Application Configuration
# ============================================================================
FLASK_PORT: int = int(os.getenv("FLASK_PORT", "5000"))
FLASK_DEBUG: bool = _env_bool("FLASK_DEBUG", "true")
FLASK_HOST: str = os.getenv("FLASK_HOST", "0.0.0.0")

# ============================================================================
# Helper Functions
# ============================================================================

def warn_missing_config() -> None:
    """
    Print a warning when optional configuration is missing. Does not raise.
    Call from app startup so operators know which features are disabled.
    """
    import sys
    missing = []
    if ADVISOR_LLM_ENABLED and not is_foundry_configured():
        missing.append("AZURE_FOUNDRY_KEY / AZURE_FOUNDRY_ENDPOINT (advisor rewrite)")
    if not SPEECH_KEY:
        missing.append("SPEECH_KEY (speech token endpoint)")
    if missing:
        print("Config warning: the following env vars are not set. Some features may be disabled:", ", ".join(missing), file=sys.stderr)


def is_foundry_configured() -> bool:
    """True when both the Foundry key and endpoint are set."""
    return bool(AZURE_FOUNDRY_KEY and AZURE_FOUNDRY_ENDPOINT)


def get_hesitation_markers(override: Optional[List[str]] = None) -> List[str]:
    """Return the hesitation marker list (override wins when non-empty)."""
    return list(override) if override else list(HESITATION_MARKERS)
