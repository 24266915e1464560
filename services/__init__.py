"""
Services package for the Speaking Coach backend.

- Audio frame source: pushed microphone analyser frames
- Recognition stream: pushed speech-recognition results with a silence watchdog
- Coaching advisor: heuristic recommendations, optionally phrased by Azure AI Foundry
- Azure AI Foundry: chat completions for the advisor
- Azure Speech: recognition tokens for the browser
"""

from .azure_speech import get_speech_service

__all__ = ["get_speech_service"]
