"""
Helper utility functions.

This module contains reusable utility functions used throughout the application.
"""

from typing import Dict, Any
import config


def build_config_response() -> Dict[str, Any]:
    """
    Build the public configuration response for GET /config/all.

    Secrets (speech key, Foundry key) are never included.

    Returns:
        dict: Audio, speech, recovery and advisor settings
    """
    return {
        "audio": {
            "tickHz": config.AUDIO_TICK_HZ,
            "historyWindowMs": config.VOICE_HISTORY_WINDOW_MS,
            "baselineSampleCount": config.BASELINE_SAMPLE_COUNT,
            "minProfileSamples": config.MIN_PROFILE_SAMPLES,
            "voiceBandHz": [config.VOICE_BAND_MIN_HZ, config.VOICE_BAND_MAX_HZ],
        },
        "speech": {
            "locale": config.STT_LOCALE,
            "region": config.SPEECH_REGION,
            "hesitationMarkers": list(config.HESITATION_MARKERS),
            "silenceTimeoutSec": config.RECOGNITION_SILENCE_TIMEOUT_SEC,
            "maxRestarts": config.RECOGNITION_MAX_RESTARTS,
        },
        "recovery": {
            "progressTickSec": config.PROGRESS_TICK_SEC,
            "interventionHistoryMax": config.INTERVENTION_HISTORY_MAX,
            "initialResilienceScore": config.INITIAL_RESILIENCE_SCORE,
        },
        "advisor": {
            "cooldownSec": config.RECOMMENDATION_COOLDOWN_SEC,
            "llmEnabled": config.ADVISOR_LLM_ENABLED and config.is_foundry_configured(),
            "llmTimeoutSec": config.ADVISOR_LLM_TIMEOUT_SEC,
            "deploymentName": config.FOUNDRY_DEPLOYMENT_NAME,
        },
    }


def parse_json_number_list(values: Any, name: str) -> list:
    """Validate a JSON array of numbers (used for pushed audio frames)."""
    if not isinstance(values, list) or not values:
        raise ValueError(f"{name} must be a non-empty array of numbers")
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"{name} must contain only numbers")
    return values
