"""
Azure Speech Service module.

Issues short-lived Azure Speech tokens so the practice client can run speech
recognition in the browser and push its results to /listening/result. The
subscription key never leaves the backend.

Tokens are valid for 10 minutes; one is cached and reused for 9.
"""

import threading
import time
from typing import Dict, Optional

import requests

import config

TOKEN_REUSE_SEC = 9 * 60


class AzureSpeechService:
    """
    Service class for Azure Speech Service tokens (STT only).
    """

    def __init__(self, speech_key: Optional[str] = None, speech_region: Optional[str] = None):
        self.speech_key = config.SPEECH_KEY if speech_key is None else speech_key
        self.speech_region = config.SPEECH_REGION if speech_region is None else speech_region
        self._cached: Optional[Dict[str, str]] = None
        self._cached_at = 0.0
        self._lock = threading.Lock()

    def get_speech_token(self) -> Dict[str, str]:
        """
        Get an access token for Azure Speech Service (STT).

        Returns:
            dict: {'token', 'region', 'locale'}

        Raises:
            ValueError: If SPEECH_KEY or SPEECH_REGION is not configured, or Azure rejects the key
            requests.Timeout: If the request times out
            requests.RequestException: If the request fails
        """
        if not (self.speech_key and self.speech_key.strip()):
            raise ValueError(
                "Speech service is not configured. Set SPEECH_KEY in your environment (e.g. in .env)."
            )
        if not (self.speech_region and self.speech_region.strip()):
            raise ValueError(
                "Speech region is not set. Set SPEECH_REGION in your environment (e.g. eastus)."
            )
        with self._lock:
            if self._cached and time.time() - self._cached_at < TOKEN_REUSE_SEC:
                return dict(self._cached)

        url = f"https://{self.speech_region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"
        headers = {"Ocp-Apim-Subscription-Key": self.speech_key}
        try:
            resp = requests.post(url, headers=headers, timeout=5)
            if resp.status_code == 401:
                raise ValueError(
                    "Azure returned 401 Permission Denied. Check that SPEECH_KEY is a valid key "
                    "from your Azure Speech resource and SPEECH_REGION matches that resource's region."
                )
            resp.raise_for_status()
        except requests.Timeout:
            raise requests.Timeout("Request to Azure Speech Service timed out")
        except requests.RequestException as e:
            raise requests.RequestException(f"Failed to get speech token: {str(e)}")

        token = resp.text.strip()
        if not token:
            raise ValueError("Empty token received from Azure Speech Service")
        data = {"token": token, "region": self.speech_region, "locale": config.STT_LOCALE}
        with self._lock:
            self._cached = data
            self._cached_at = time.time()
        return dict(data)


# Lazy singleton: initialized on first use to avoid loading at import time
_speech_service: Optional[AzureSpeechService] = None


def get_speech_service() -> AzureSpeechService:
    """Return the Speech service instance, creating it on first call (lazy init)."""
    global _speech_service
    if _speech_service is None:
        _speech_service = AzureSpeechService()
    return _speech_service
