"""
Utilities package for the Speaking Coach backend.

This package contains the session-independent core: acoustic feature extraction,
linguistic aggregation, psychology fusion, metrics fusion, recovery protocol
selection, resilience scoring, transcript text analysis, practice game scoring and tick
timers.
"""

from .acoustic_features import AcousticFeatureExtractor, AudioFrame, VoiceSample
from .linguistic_features import LinguisticFeatureAggregator, LinguisticReport, RecognitionResult
from .psychology_fusion import PsychologyFusionEngine, PsychologyProfile, VoiceBaseline, VoiceHistory
from .metrics_fusion import FusedMetrics, fuse_metrics
from .recovery_protocols import RecoveryProtocolSelector, RecoveryMetrics, RECOVERY_PROTOCOLS
from .resilience_scorer import ResilienceScorer
from .speech_text_analysis import analyze_speech_text
from .game_scoring import ChaosIntegrationScore, EnergyModulatorScore, RapidFireScore
from .tick_timer import RepeatingTicker, OneShotTimer

__all__ = [
    'AcousticFeatureExtractor',
    'AudioFrame',
    'VoiceSample',
    'LinguisticFeatureAggregator',
    'LinguisticReport',
    'RecognitionResult',
    'PsychologyFusionEngine',
    'PsychologyProfile',
    'VoiceBaseline',
    'VoiceHistory',
    'FusedMetrics',
    'fuse_metrics',
    'RecoveryProtocolSelector',
    'RecoveryMetrics',
    'RECOVERY_PROTOCOLS',
    'ResilienceScorer',
    'analyze_speech_text',
    'EnergyModulatorScore',
    'RapidFireScore',
    'ChaosIntegrationScore',
    'RepeatingTicker',
    'OneShotTimer',
]
