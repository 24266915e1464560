"""
Acoustic Feature Extractor

Turns one analyser frame (time-domain samples + frequency magnitudes) into a
VoiceSample with four scalars:

- volume:    RMS of the normalized time-domain samples (0-1)
- pitch:     dominant frequency (Hz) inside the human voice band (80-400 Hz)
- energy:    mean frequency magnitude normalized by full scale (0-1)
- stability: consistency of the last 10 pitches and volumes (0-1, 0.5 until 10 exist)

The extractor is stateless. The caller passes the current voice history for the
stability term and is responsible for appending the returned sample.
"""

from dataclasses import dataclass, asdict
from typing import Sequence

import numpy as np

import config
from utils.helpers import parse_json_number_list


@dataclass
class AudioFrame:
    """
    One analysis tick of raw audio.

    time_domain may be float samples in [-1, 1] or an unsigned integer encoding
    (e.g. uint8 0..255 from getByteTimeDomainData), which is re-centred internally.
    frequency_domain holds magnitudes in [0, magnitude_max].
    """
    time_domain: np.ndarray
    frequency_domain: np.ndarray
    sample_rate: float
    magnitude_max: float = 255.0

    @classmethod
    def from_payload(cls, payload: dict) -> "AudioFrame":
        """
        Build a frame from a JSON body: {timeDomain: [...], frequencyDomain: [...],
        sampleRate, magnitudeMax?, encoding?: "uint8" | "float"}.
        Raises ValueError on a malformed payload.
        """
        if not isinstance(payload, dict):
            raise ValueError("frame payload must be an object")
        time_data = payload.get("timeDomain")
        freq_data = payload.get("frequencyDomain")
        sample_rate = payload.get("sampleRate")
        parse_json_number_list(time_data, "timeDomain")
        parse_json_number_list(freq_data, "frequencyDomain")
        if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, float)) or sample_rate <= 0:
            raise ValueError("sampleRate must be a positive number")
        encoding = (payload.get("encoding") or "uint8").lower()
        if encoding not in ("uint8", "float"):
            raise ValueError("encoding must be 'uint8' or 'float'")
        if encoding == "uint8" and any(v < 0 or v > 255 for v in time_data):
            raise ValueError("uint8 timeDomain values must be in 0..255")
        dtype = np.uint8 if encoding == "uint8" else np.float64
        return cls(
            time_domain=np.asarray(time_data, dtype=dtype),
            frequency_domain=np.asarray(freq_data, dtype=np.float64),
            sample_rate=float(sample_rate),
            magnitude_max=float(payload.get("magnitudeMax") or config.FREQUENCY_MAGNITUDE_MAX),
        )


@dataclass
class VoiceSample:
    """Per-tick voice features. Timestamp is integer milliseconds."""
    volume: float = 0.0
    pitch: float = 0.0
    energy: float = 0.0
    stability: float = 0.5
    timestamp: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _normalize_time_domain(samples: np.ndarray) -> np.ndarray:
    """Map unsigned encodings onto [-1, 1]; float samples pass through."""
    arr = np.asarray(samples)
    if np.issubdtype(arr.dtype, np.unsignedinteger):
        mid = float(2 ** (arr.dtype.itemsize * 8 - 1))
        return (arr.astype(np.float64) - mid) / mid
    return arr.astype(np.float64)


class AcousticFeatureExtractor:
    """
    Computes volume, pitch, energy and stability for one audio frame.

    Usage:
        extractor = AcousticFeatureExtractor()
        sample = extractor.extract(frame, history, timestamp_ms)
        history.append(sample)
    """

    def __init__(
        self,
        band_min_hz: float = config.VOICE_BAND_MIN_HZ,
        band_max_hz: float = config.VOICE_BAND_MAX_HZ,
        stability_window: int = config.STABILITY_WINDOW,
    ):
        self.band_min_hz = float(band_min_hz)
        self.band_max_hz = float(band_max_hz)
        self.stability_window = int(stability_window)

    def extract(
        self,
        frame: AudioFrame,
        history: Sequence[VoiceSample] = (),
        timestamp: int = 0,
    ) -> VoiceSample:
        return VoiceSample(
            volume=self.compute_volume(frame.time_domain),
            pitch=self.compute_pitch(frame.frequency_domain, frame.sample_rate),
            energy=self.compute_energy(frame.frequency_domain, frame.magnitude_max),
            stability=self.compute_stability(history),
            timestamp=int(timestamp),
        )

    def compute_volume(self, time_domain: np.ndarray) -> float:
        """Root-mean-square of the normalized samples; 0 for an empty buffer."""
        norm = _normalize_time_domain(time_domain)
        if norm.size == 0:
            return 0.0
        rms = float(np.sqrt(np.mean(norm * norm)))
        return rms if np.isfinite(rms) else 0.0

    def compute_pitch(self, frequency_domain: np.ndarray, sample_rate: float) -> float:
        """
        Dominant frequency in the voice band. Bin bounds are floor(f * n / nyquist);
        the upper bound is exclusive. Returns 0 when every bin in the band is 0.
        """
        freq = np.asarray(frequency_domain, dtype=np.float64)
        n = freq.size
        if n == 0 or sample_rate <= 0:
            return 0.0
        nyquist = sample_rate / 2.0
        lo = int(np.floor(self.band_min_hz * n / nyquist))
        hi = min(int(np.floor(self.band_max_hz * n / nyquist)), n)
        if hi <= lo:
            return 0.0
        band = freq[lo:hi]
        peak = int(np.argmax(band))
        if not band[peak] > 0:
            return 0.0
        return float((lo + peak) * nyquist / n)

    def compute_energy(self, frequency_domain: np.ndarray, magnitude_max: float = 255.0) -> float:
        freq = np.asarray(frequency_domain, dtype=np.float64)
        if freq.size == 0 or magnitude_max <= 0:
            return 0.0
        return float(np.mean(freq) / magnitude_max)

    def compute_stability(self, history: Sequence[VoiceSample]) -> float:
        """
        Mean of pitch stability max(0, 1 - var/100) and volume stability
        max(0, 1 - var) over the last `stability_window` samples.
        Exactly 0.5 with fewer samples than the window.
        """
        if len(history) < self.stability_window:
            return 0.5
        recent = list(history)[-self.stability_window:]
        pitch_var = float(np.var([s.pitch for s in recent]))
        volume_var = float(np.var([s.volume for s in recent]))
        pitch_stability = max(0.0, 1.0 - pitch_var / 100.0)
        volume_stability = max(0.0, 1.0 - volume_var)
        return (pitch_stability + volume_stability) / 2.0

