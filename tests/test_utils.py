"""
Utility module tests.

Tests acoustic features, linguistic aggregation, psychology fusion, metrics
fusion, recovery protocols, resilience scoring, text analysis and tickers.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading
import time
import unittest

import numpy as np


class TestAcousticFeatureExtractor(unittest.TestCase):
    """Test volume / pitch / energy / stability extraction."""

    def setUp(self):
        from utils.acoustic_features import AcousticFeatureExtractor
        self.extractor = AcousticFeatureExtractor()

    def test_volume_silent_frame_is_zero(self):
        from tests.fixtures.synthetic_audio import make_silent_frame
        frame = make_silent_frame()
        self.assertEqual(self.extractor.compute_volume(frame.time_domain), 0.0)

    def test_volume_uint8_full_scale(self):
        """uint8 samples are re-centred with (x - 128) / 128."""
        samples = np.full(64, 255, dtype=np.uint8)
        self.assertAlmostEqual(self.extractor.compute_volume(samples), 127 / 128)

    def test_volume_float_samples(self):
        samples = np.array([0.5, -0.5, 0.5, -0.5])
        self.assertAlmostEqual(self.extractor.compute_volume(samples), 0.5)

    def test_pitch_finds_peak_in_voice_band(self):
        from tests.fixtures.synthetic_audio import make_tone_frame, bin_for, bin_frequency
        frame = make_tone_frame(freq_hz=200.0)
        pitch = self.extractor.compute_pitch(frame.frequency_domain, frame.sample_rate)
        self.assertAlmostEqual(pitch, bin_frequency(bin_for(200.0)))

    def test_pitch_silent_band_is_zero(self):
        from tests.fixtures.synthetic_audio import make_silent_frame
        frame = make_silent_frame()
        self.assertEqual(self.extractor.compute_pitch(frame.frequency_domain, frame.sample_rate), 0.0)

    def test_pitch_ignores_peak_outside_band(self):
        from tests.fixtures.synthetic_audio import make_tone_frame
        frame = make_tone_frame(freq_hz=1000.0)
        pitch = self.extractor.compute_pitch(frame.frequency_domain, frame.sample_rate)
        self.assertGreaterEqual(pitch, 60.0)
        self.assertLess(pitch, 400.0)

    def test_energy_is_mean_over_full_scale(self):
        self.assertAlmostEqual(self.extractor.compute_energy(np.full(16, 255.0)), 1.0)
        self.assertAlmostEqual(self.extractor.compute_energy(np.array([0.0, 255.0])), 0.5)
        self.assertEqual(self.extractor.compute_energy(np.zeros(8)), 0.0)

    def test_stability_default_below_ten_samples(self):
        """Fewer than 10 history entries always gives exactly 0.5."""
        from tests.fixtures.synthetic_audio import make_samples
        for n in range(0, 10):
            self.assertEqual(self.extractor.compute_stability(make_samples(n, pitch=50 * n)), 0.5)

    def test_stability_constant_history_is_one(self):
        from tests.fixtures.synthetic_audio import make_samples
        self.assertAlmostEqual(self.extractor.compute_stability(make_samples(10)), 1.0)

    def test_stability_pitch_variance(self):
        """Pitch variance 25 -> pitch stability 0.75; constant volume -> 1.0."""
        from utils.acoustic_features import VoiceSample
        history = [VoiceSample(volume=0.5, pitch=195.0 if i % 2 else 205.0, timestamp=i) for i in range(10)]
        self.assertAlmostEqual(self.extractor.compute_stability(history), 0.875)

    def test_extract_stamps_timestamp(self):
        from tests.fixtures.synthetic_audio import make_tone_frame
        sample = self.extractor.extract(make_tone_frame(), [], timestamp=1234)
        self.assertEqual(sample.timestamp, 1234)
        self.assertEqual(sample.stability, 0.5)
        self.assertGreater(sample.volume, 0.0)

    def test_frame_from_payload_validates(self):
        from utils.acoustic_features import AudioFrame
        ok = AudioFrame.from_payload({"timeDomain": [128, 200], "frequencyDomain": [0, 10], "sampleRate": 44100})
        self.assertEqual(ok.time_domain.dtype, np.uint8)
        with self.assertRaises(ValueError):
            AudioFrame.from_payload({"timeDomain": [128], "sampleRate": 44100})
        with self.assertRaises(ValueError):
            AudioFrame.from_payload({"timeDomain": [300], "frequencyDomain": [1], "sampleRate": 44100})
        with self.assertRaises(ValueError):
            AudioFrame.from_payload({"timeDomain": [1], "frequencyDomain": [1], "sampleRate": 44100, "encoding": "mp3"})
        with self.assertRaises(ValueError):
            AudioFrame.from_payload({"timeDomain": [1], "frequencyDomain": [1], "sampleRate": 0})


class TestLinguisticFeatureAggregator(unittest.TestCase):
    """Test hesitation detection and the linguistic report."""

    def setUp(self):
        from utils.linguistic_features import LinguisticFeatureAggregator
        self.agg = LinguisticFeatureAggregator()

    def _result(self, text, conf=0.9, final=True):
        from utils.linguistic_features import RecognitionResult
        return RecognitionResult(transcript=text, is_final=final, confidence=conf)

    def test_hesitation_detection_example(self):
        found = self.agg.process_result(self._result("um so I think uh this works"), now_ms=1000)
        self.assertEqual(found, ["um", "uh"])
        report = self.agg.get_report(now_ms=1000)
        self.assertEqual(report.total_words, 7)
        self.assertEqual(report.total_hesitations, 2)
        self.assertAlmostEqual(report.hesitation_rate, 2 / 7)

    def test_result_payload_requires_boolean_is_final(self):
        from utils.linguistic_features import RecognitionResult
        self.assertFalse(RecognitionResult.from_payload({"text": "so", "isFinal": False}).is_final)
        self.assertTrue(RecognitionResult.from_payload({"transcript": "so"}).is_final)
        for flag in ("false", 0, None):
            with self.assertRaises(ValueError):
                RecognitionResult.from_payload({"transcript": "so", "isFinal": flag})

    def test_hesitation_case_insensitive_and_multiword(self):
        self.assertEqual(self.agg.detect_hesitations("UM well You Know it is Like that"), ["UM", "You Know", "Like"])

    def test_hesitation_respects_word_boundaries(self):
        self.assertEqual(self.agg.detect_hesitations("umbrella likely erase"), [])

    def test_interim_results_ignored(self):
        self.agg.process_result(self._result("um hello there", final=False), now_ms=1000)
        report = self.agg.get_report(now_ms=2000)
        self.assertEqual(report.total_words, 0)
        self.assertEqual(report.hesitation_rate, 0.0)
        self.assertEqual(report.average_confidence, 0.0)

    def test_missing_confidence_defaults(self):
        self.agg.process_result(self._result("hello", conf=None), now_ms=1000)
        self.agg.process_result(self._result("again", conf=0.0), now_ms=2000)
        self.assertEqual(self.agg.accumulator.confidence_levels, [0.5, 0.5])

    def test_recovery_speed_fallback(self):
        """A hesitation with no later timestamp recovers in 1000 ms."""
        self.agg.process_result(self._result("uh okay"), now_ms=5000)
        patterns = self.agg.get_report(now_ms=5000).recovery_patterns
        self.assertEqual(len(patterns), 1)
        self.assertEqual(patterns[0].recovery_speed, 1000)
        self.assertFalse(patterns[0].strength_after_setback)

    def test_recovery_pattern_with_following_result(self):
        self.agg.process_result(self._result("um hello", conf=0.5), now_ms=1000)
        self.agg.process_result(self._result("fine", conf=0.9), now_ms=1800)
        patterns = self.agg.get_report(now_ms=2000).recovery_patterns
        self.assertEqual(patterns[0].hesitation_type, "um")
        self.assertEqual(patterns[0].recovery_speed, 800)
        self.assertTrue(patterns[0].strength_after_setback)

    def test_speaking_speed_and_adaptability(self):
        words = " ".join(["word"] * 50)
        self.agg.process_result(self._result(words), now_ms=0)
        self.agg.process_result(self._result(words), now_ms=60000)
        report = self.agg.get_report(now_ms=60000)
        self.assertAlmostEqual(report.speaking_speed, 100.0)
        self.assertAlmostEqual(report.average_confidence, 0.9)
        self.assertAlmostEqual(report.adaptability_score, 90.0)

    def test_elapsed_floor_is_one_second(self):
        self.agg.process_result(self._result("one two three"), now_ms=1000)
        self.assertAlmostEqual(self.agg.get_report(now_ms=1000).speaking_speed, 180.0)

    def test_error_keeps_state_reset_clears(self):
        self.agg.process_result(self._result("um yes"), now_ms=1000)
        self.agg.record_error("network")
        self.assertEqual(self.agg.get_report(now_ms=1000).total_words, 2)
        self.assertEqual(self.agg.last_error, "network")
        self.agg.reset()
        report = self.agg.get_report(now_ms=1000)
        self.assertEqual(report.total_words, 0)
        self.assertEqual(report.recovery_patterns, [])
        self.assertIsNone(self.agg.last_error)

    def test_custom_markers(self):
        from utils.linguistic_features import LinguisticFeatureAggregator
        agg = LinguisticFeatureAggregator(hesitation_markers=["hmm"])
        self.assertEqual(agg.detect_hesitations("hmm um okay"), ["hmm"])


class TestPsychologyFusion(unittest.TestCase):
    """Test voice history, baseline and profile."""

    def setUp(self):
        from utils.psychology_fusion import PsychologyFusionEngine
        self.engine = PsychologyFusionEngine()

    def test_no_profile_before_baseline(self):
        from tests.fixtures.synthetic_audio import make_samples, feed
        samples = make_samples(19)
        self.assertIsNone(feed(self.engine, samples[:4]))
        self.assertIsNone(feed(self.engine, samples[4:]))
        self.assertIsNone(self.engine.baseline)

    def test_baseline_one_shot(self):
        from tests.fixtures.synthetic_audio import make_samples, feed
        profile = feed(self.engine, make_samples(20))
        self.assertIsNotNone(profile)
        baseline = self.engine.baseline
        snapshot = baseline.to_dict()
        self.assertAlmostEqual(snapshot["averageVolume"], 0.5)
        feed(self.engine, make_samples(15, volume=0.9, pitch=300.0, start_ts=10000))
        self.assertIs(self.engine.baseline, baseline)
        self.assertEqual(self.engine.baseline.to_dict(), snapshot)

    def test_steady_voice_is_confident_flow(self):
        from tests.fixtures.synthetic_audio import make_samples, feed
        profile = feed(self.engine, make_samples(25))
        self.assertAlmostEqual(profile.confidence.overall_confidence, 1.0)
        self.assertTrue(profile.flow_state.is_in_flow)
        self.assertEqual(profile.stress.active_count(), 0)
        self.assertEqual(profile.antifragility.values(), [])

    def test_strain_and_drop_detected(self):
        from utils.acoustic_features import VoiceSample
        from tests.fixtures.synthetic_audio import make_samples, feed
        samples = make_samples(20)
        feed(self.engine, samples)
        profile = self.engine.ingest(VoiceSample(volume=0.2, pitch=300.0, energy=0.4, stability=0.5,
                                                 timestamp=samples[-1].timestamp + 100))
        self.assertTrue(profile.stress.voice_strain)
        self.assertTrue(profile.stress.confidence_drops)
        self.assertFalse(profile.flow_state.is_in_flow)
        self.assertAlmostEqual(profile.confidence.pitch_confidence, 0.5 / 0.9)

    def test_energy_instability(self):
        from utils.acoustic_features import VoiceSample
        samples = [VoiceSample(volume=0.5, pitch=200.0, energy=float(i % 2), stability=0.9, timestamp=i + 1)
                   for i in range(20)]
        from tests.fixtures.synthetic_audio import feed
        profile = feed(self.engine, samples)
        self.assertTrue(profile.stress.energy_instability)

    def test_history_rejects_out_of_order(self):
        from utils.acoustic_features import VoiceSample
        self.engine.ingest(VoiceSample(timestamp=100))
        with self.assertRaises(ValueError):
            self.engine.ingest(VoiceSample(timestamp=100))

    def test_history_window_eviction(self):
        from utils.acoustic_features import VoiceSample
        from utils.psychology_fusion import VoiceHistory
        history = VoiceHistory(window_ms=1000)
        for ts in (0, 500, 1000, 1600):
            history.append(VoiceSample(timestamp=ts))
        self.assertEqual([s.timestamp for s in history], [1000, 1600])

    def test_stability_ratio_zero_baseline(self):
        from utils.psychology_fusion import PsychologyFusionEngine
        self.assertEqual(PsychologyFusionEngine._stability_ratio(0.3, 0.0), 1.0)
        self.assertEqual(PsychologyFusionEngine._stability_ratio(0.0, 0.0), 0.0)

    def test_reset_restarts_calibration(self):
        from tests.fixtures.synthetic_audio import make_samples, feed
        feed(self.engine, make_samples(20))
        self.engine.reset()
        self.assertIsNone(self.engine.baseline)
        self.assertEqual(len(self.engine.history), 0)


class TestMetricsFusion(unittest.TestCase):
    """Test the pure fusion reducer."""

    def _report(self):
        from utils.linguistic_features import LinguisticFeatureAggregator, RecognitionResult
        agg = LinguisticFeatureAggregator()
        words = " ".join(["word"] * 50)
        agg.process_result(RecognitionResult(words, True, 0.9), now_ms=0)
        agg.process_result(RecognitionResult(words, True, 0.9), now_ms=60000)
        return agg.get_report(now_ms=60000)

    def _profile(self, overall=0.8, strain=False):
        from utils.psychology_fusion import PsychologyProfile, ConfidenceIndicators, StressIndicators
        return PsychologyProfile(
            confidence=ConfidenceIndicators(overall_confidence=overall),
            stress=StressIndicators(voice_strain=strain),
        )

    def test_end_to_end_confidence(self):
        from utils.metrics_fusion import fuse_metrics
        fused = fuse_metrics(self._report(), self._profile(0.8, strain=True), recorded_at=60000)
        self.assertAlmostEqual(fused.combined.confidence, 85.0)
        self.assertAlmostEqual(fused.combined.stress_level, 100.0 / 3)
        self.assertEqual(fused.combined.flow_state, 0.0)
        self.assertEqual(fused.linguistic["totalWords"], 100)
        self.assertEqual(fused.recorded_at, 60000)

    def test_deterministic(self):
        from utils.metrics_fusion import fuse_metrics
        report, profile = self._report(), self._profile()
        a = fuse_metrics(report, profile, recorded_at=5)
        b = fuse_metrics(report, profile, recorded_at=5)
        self.assertEqual(a, b)
        self.assertEqual(a.to_dict(), b.to_dict())

    def test_no_data_is_zeroed(self):
        from utils.metrics_fusion import fuse_metrics
        fused = fuse_metrics(None, None)
        d = fused.to_dict()
        self.assertEqual(d["combined"], {"confidence": 0.0, "stressLevel": 0.0, "flowState": 0.0, "antifragilityScore": 0.0})
        self.assertEqual(d["linguistic"]["totalWords"], 0)

    def test_combined_fields_clamped(self):
        from utils.linguistic_features import LinguisticReport
        from utils.metrics_fusion import fuse_metrics
        from utils.psychology_fusion import PsychologyProfile, StressIndicators, AntifragilityIndicators
        high = fuse_metrics(
            LinguisticReport(hesitation_rate=3.0, average_confidence=5.0, adaptability_score=900.0),
            PsychologyProfile(
                stress=StressIndicators(True, True, True),
                antifragility=AntifragilityIndicators(pressure_response=7.0),
            ),
        )
        low = fuse_metrics(LinguisticReport(average_confidence=-4.0, adaptability_score=-300.0), None)
        for fused in (high, low):
            for value in fused.to_dict()["combined"].values():
                self.assertGreaterEqual(value, 0.0)
                self.assertLessEqual(value, 100.0)
        self.assertEqual(high.combined.stress_level, 100.0)
        self.assertEqual(low.combined.confidence, 0.0)

    def test_blended_antifragility(self):
        from utils.linguistic_features import LinguisticReport, RecoveryPattern
        from utils.metrics_fusion import fuse_metrics, voice_antifragility
        from utils.psychology_fusion import PsychologyProfile, AntifragilityIndicators
        report = LinguisticReport(
            adaptability_score=60.0,
            recovery_patterns=[RecoveryPattern("um", 500, True), RecoveryPattern("uh", 900, False)],
        )
        self.assertAlmostEqual(fuse_metrics(report, None).combined.antifragility_score, (0.6 + 0.5) / 3 * 100)
        profile = PsychologyProfile(antifragility=AntifragilityIndicators(pressure_response=0.9))
        self.assertAlmostEqual(voice_antifragility(profile), 0.9)


class TestRecoveryProtocols(unittest.TestCase):
    """Test risk assessment, protocol choice and the intervention state machine."""

    def _metrics(self, **kw):
        from utils.recovery_protocols import RecoveryMetrics
        base = dict(stress_level=0.1, voice_stability=0.8, energy_level=0.5, voice_volume=0.5,
                    hesitation_rate=0.05, confidence_level=0.8, recovery_speed=1000.0, adaptation_score=0.7)
        base.update(kw)
        return RecoveryMetrics(**base)

    def _selector(self, **kw):
        from utils.recovery_protocols import RecoveryProtocolSelector
        from utils.resilience_scorer import ResilienceScorer
        return RecoveryProtocolSelector(ResilienceScorer(), rng=np.random.default_rng(7), **kw)

    def test_stress_and_stability_select_respiratory_reset(self):
        from utils.recovery_protocols import select_optimal_protocol, select_preventive_protocol
        factors = ["elevated_stress", "stability_degradation"]
        self.assertEqual(select_optimal_protocol(factors), "respiratoryReset")
        self.assertEqual(select_preventive_protocol(factors), "respiratoryReset")

    def test_priority_rule(self):
        from utils.recovery_protocols import select_optimal_protocol, select_preventive_protocol
        self.assertEqual(select_optimal_protocol(["energy_depletion", "confidence_erosion"]), "cognitiveReframe")
        self.assertEqual(select_optimal_protocol(["slow_recovery", "energy_depletion"]), "energyModulation")
        self.assertEqual(select_optimal_protocol(["slow_recovery"]), "antifragilityBoost")
        self.assertEqual(select_optimal_protocol(["elevated_stress"]), "respiratoryReset")
        self.assertEqual(select_preventive_protocol([]), "flowStateInduction")

    def test_assess_risk_levels(self):
        from utils.recovery_protocols import assess_risk, RecoveryBaseline
        baseline = RecoveryBaseline(0.5, 0.5, 0.1, 0.5)
        self.assertEqual(assess_risk(self._metrics(), None).level, "unknown")
        low = assess_risk(self._metrics(), baseline)
        self.assertEqual((low.level, low.score, low.factors), ("low", 0, []))
        moderate = assess_risk(self._metrics(stress_level=0.8, voice_stability=0.2), baseline)
        self.assertEqual(moderate.level, "moderate")
        self.assertEqual(moderate.score, 55)
        critical = assess_risk(self._metrics(stress_level=0.8, voice_stability=0.2, energy_level=0.1), baseline)
        self.assertEqual(critical.level, "critical")
        self.assertEqual(critical.score, 75)
        self.assertTrue(critical.recommendation.startswith("Immediate intervention required"))
        slow = assess_risk(self._metrics(recovery_speed=3500.0, confidence_level=0.1), baseline)
        self.assertEqual(slow.factors, ["confidence_erosion", "slow_recovery"])

    def test_baseline_falls_back_for_zero_readings(self):
        from utils.recovery_protocols import RecoveryBaseline, RecoveryMetrics
        b = RecoveryBaseline.from_metrics(RecoveryMetrics())
        self.assertEqual(
            (b.average_stability, b.average_energy, b.typical_hesitation_rate, b.baseline_confidence),
            (0.5, 0.5, 0.1, 0.5),
        )

    def test_at_most_one_intervention(self):
        selector = self._selector()
        payloads = []
        selector.on_intervention_trigger(payloads.append)
        self.assertIsNone(selector.on_metrics(self._metrics(), 0))
        critical = self._metrics(stress_level=0.9, voice_stability=0.1, energy_level=0.05)
        first = selector.on_metrics(critical, 1000)
        self.assertIsNotNone(first)
        self.assertEqual(selector.state, "intervention")
        self.assertEqual(first.protocol.name, "respiratoryReset")
        self.assertEqual(first.urgency, "immediate")
        second = selector.on_metrics(self._metrics(stress_level=0.9, confidence_level=0.05, energy_level=0.05), 2000)
        self.assertIsNone(second)
        self.assertIs(selector.active, first)
        self.assertEqual(len(payloads), 1)
        self.assertEqual(payloads[0], {
            "protocol": "respiratoryReset",
            "interventionText": "Implement 4-7-8 breathing pattern",
            "durationMs": 30000,
            "neuralTarget": "parasympathetic activation",
        })

    def test_progress_completes_after_duration(self):
        selector = self._selector()
        selector.on_metrics(self._metrics(), 0)
        selector.on_metrics(self._metrics(stress_level=0.9, voice_stability=0.1, energy_level=0.05), 0)
        score_before = selector.scorer.score
        for second in range(1, 30):
            self.assertIsNone(selector.progress_tick(second * 1000))
        self.assertAlmostEqual(selector.active.progress_percent, 29 * 100 / 30)
        record = selector.progress_tick(30000)
        self.assertIsNotNone(record)
        self.assertIsNone(selector.active)
        self.assertEqual(selector.state, "monitoring")
        self.assertEqual(len(selector.history), 1)
        self.assertGreaterEqual(record.effectiveness, 0.6)
        self.assertLessEqual(record.effectiveness, 1.0)
        self.assertAlmostEqual(selector.scorer.score, min(100.0, score_before + record.effectiveness * 5))

    def test_history_and_trends_bounded(self):
        selector = self._selector(history_max=2, trend_max=3)
        selector.on_metrics(self._metrics(), 0)
        for i in range(3):
            selector.on_metrics(self._metrics(stress_level=0.9, voice_stability=0.1, energy_level=0.05), i)
            while selector.active is not None:
                selector.progress_tick(i)
        self.assertEqual(len(selector.history), 2)
        self.assertEqual(len(selector.biometric_trends), 3)

    def test_extract_recovery_metrics(self):
        from utils.linguistic_features import LinguisticReport, RecoveryPattern
        from utils.metrics_fusion import FusedMetrics, CombinedMetrics
        from utils.recovery_protocols import extract_recovery_metrics
        fused = FusedMetrics(
            linguistic={"hesitationRate": 0.2},
            acoustic={"volume": 0.3, "pitch": 180.0, "energy": 0.4, "stability": 0.7},
            combined=CombinedMetrics(confidence=60.0, stress_level=40.0),
        )
        report = LinguisticReport(adaptability_score=55.0, recovery_patterns=[RecoveryPattern("um", 2400, True)])
        m = extract_recovery_metrics(fused, report, None, timestamp=9)
        self.assertAlmostEqual(m.stress_level, 0.4)
        self.assertAlmostEqual(m.confidence_level, 0.6)
        self.assertEqual(m.recovery_speed, 2400.0)
        self.assertAlmostEqual(m.adaptation_score, 0.55)
        self.assertEqual(m.stability_consistency, 0.5)
        self.assertEqual(extract_recovery_metrics(fused).recovery_speed, 1000.0)

    def test_reset_clears_state(self):
        selector = self._selector()
        selector.on_metrics(self._metrics(), 0)
        selector.on_metrics(self._metrics(stress_level=0.9, voice_stability=0.1, energy_level=0.05), 1)
        selector.reset()
        self.assertIsNone(selector.active)
        self.assertIsNone(selector.baseline)
        self.assertEqual(selector.state, "monitoring")
        self.assertEqual(selector.scorer.score, 75.0)


class TestResilienceScorer(unittest.TestCase):
    """Test both resilience update paths and grading."""

    def _m(self, stability, speed, adapt, stress):
        from utils.recovery_protocols import RecoveryMetrics
        return RecoveryMetrics(voice_stability=stability, recovery_speed=speed, adaptation_score=adapt, stress_level=stress)

    def test_initial_score(self):
        from utils.resilience_scorer import ResilienceScorer
        self.assertEqual(ResilienceScorer().score, 75.0)

    def test_recompute_replaces_score(self):
        from utils.resilience_scorer import ResilienceScorer
        scorer = ResilienceScorer()
        self.assertEqual(scorer.recompute_resilience_from_metrics(self._m(0.8, 1000, 0.6, 0.2)), 75.0)
        self.assertEqual(scorer.recompute_resilience_from_metrics(self._m(0.51, 1000, 0.0, 0.0)), 55.0)
        self.assertEqual(scorer.recompute_resilience_from_metrics(self._m(1.0, 0, 1.0, 0.0)), 100.0)

    def test_recompute_clamped(self):
        from utils.resilience_scorer import ResilienceScorer
        scorer = ResilienceScorer()
        self.assertEqual(scorer.recompute_resilience_from_metrics(self._m(5.0, 0, 3.0, -2.0)), 100.0)
        self.assertEqual(scorer.recompute_resilience_from_metrics(self._m(-3.0, 20000, -1.0, 4.0)), 0.0)

    def test_bonus_is_additive_and_capped(self):
        from utils.resilience_scorer import ResilienceScorer
        scorer = ResilienceScorer()
        self.assertAlmostEqual(scorer.apply_intervention_resilience_bonus(0.8), 79.0)
        scorer.score = 98.0
        self.assertEqual(scorer.apply_intervention_resilience_bonus(1.0), 100.0)

    def test_grades(self):
        from utils.resilience_scorer import grade_for
        self.assertEqual([grade_for(s).grade for s in (95, 90, 85, 72, 60, 59)], ["A+", "A+", "A", "B", "C", "D"])
        self.assertEqual(grade_for(10).description, "Developing")


class TestSpeechTextAnalysis(unittest.TestCase):
    """Test transcript text analysis."""

    def test_analyze_basic(self):
        from utils.speech_text_analysis import analyze_speech_text
        out = analyze_speech_text("um so I think this works. well it does", 0, 30000)
        self.assertEqual(out["wordCount"], 9)
        self.assertEqual(out["wordsPerMinute"], 18.0)
        self.assertEqual(out["fillerWords"], ["um", "so", "well"])
        self.assertEqual(out["hesitationRate"], 0.3333)
        self.assertEqual(out["averageSentenceLength"], 4.5)
        self.assertGreaterEqual(out["readabilityScore"], 0.0)
        self.assertLessEqual(out["readabilityScore"], 100.0)
        self.assertEqual(out["sentiment"], {"label": "neutral", "score": 0.5})

    def test_analyze_empty(self):
        from utils.speech_text_analysis import analyze_speech_text
        out = analyze_speech_text("", 0, 0)
        self.assertEqual(out["wordCount"], 0)
        self.assertEqual(out["wordsPerMinute"], 0.0)
        self.assertEqual(out["fillerWords"], [])
        self.assertEqual(out["readabilityScore"], 100.0)

    def test_multi_word_fillers(self):
        from utils.speech_text_analysis import analyze_speech_text, find_filler_words
        out = analyze_speech_text("You know it basically works you know", 0, 60000)
        self.assertEqual(out["fillerWords"], ["You know", "basically", "you know"])
        self.assertEqual(out["hesitationRate"], 0.4286)
        self.assertEqual(find_filler_words(["you", "knowing", "um"], ["you know", "um"]), ["um"])
        self.assertEqual(find_filler_words(["you", "know"], ["you", "you know"]), ["you know"])

    def test_count_syllables(self):
        from utils.speech_text_analysis import count_syllables
        self.assertEqual(count_syllables("banana"), 3)
        self.assertEqual(count_syllables(""), 0)


class TestGameScoring(unittest.TestCase):
    """Test the energy, analogy and chaos game scorers."""

    LONG_ANALOGY = "Leadership is like a river. Imagine it carving stone over many patient years."

    def _voice(self, level):
        from utils.metrics_fusion import FusedMetrics
        # Every input at the same level gives a composite of round(level * 100).
        return FusedMetrics(acoustic={"energy": level, "volume": level, "pitch": 300.0 * level, "stability": level})

    def test_composite_energy(self):
        from utils.game_scoring import calculate_composite_energy
        self.assertEqual(calculate_composite_energy({"energy": 0.5, "volume": 0.6, "pitch": 300.0, "stability": 1.0}), 66)
        self.assertEqual(calculate_composite_energy({}), 10)
        self.assertEqual(calculate_composite_energy({"energy": 2.0, "volume": 3.0, "pitch": 900.0, "stability": 1.0}), 100)

    def test_energy_accuracy_bandwidth(self):
        from utils.game_scoring import calculate_energy_accuracy
        self.assertEqual(calculate_energy_accuracy(60, 60), 100.0)
        self.assertEqual(calculate_energy_accuracy(50, 60, 20), 50.0)
        self.assertEqual(calculate_energy_accuracy(90, 60, 20), 80.0)
        self.assertEqual(calculate_energy_accuracy(0, 100, 20), 0.0)

    def test_transition_smoothness(self):
        from utils.game_scoring import calculate_transition_smoothness
        self.assertEqual(calculate_transition_smoothness({"energy": 40, "target": 40}, {"energy": 55, "target": 60}), 90.0)
        self.assertEqual(calculate_transition_smoothness({"energy": 50, "target": 60}, {"energy": 55, "target": 60}), 85.0)

    def test_energy_modulator_round(self):
        from utils.game_scoring import EnergyModulatorScore
        from utils.metrics_fusion import FusedMetrics
        game = EnergyModulatorScore(difficulty=1)
        self.assertIsNone(game.record(FusedMetrics()))
        self.assertEqual(game.record(self._voice(0.2), 1000)["accuracy"], 100.0)
        self.assertEqual(game.advance_target(), 40)
        self.assertEqual(game.record(self._voice(0.35), 2000)["energy"], 35)
        game.record(self._voice(0.35), 3000)
        self.assertEqual(game.smoothness_scores, [90.0, 100.0])
        summary = game.summary()
        self.assertEqual(summary["finalAccuracy"], 83)
        self.assertEqual(summary["finalConsistency"], 95)
        self.assertEqual(summary["overallScore"], 88)
        self.assertEqual(summary["targetHitRate"], 100)
        self.assertEqual(summary["totalTransitions"], 1)

    def test_energy_patterns_by_difficulty(self):
        from utils.game_scoring import EnergyModulatorScore
        game = EnergyModulatorScore(difficulty=1)
        for _ in range(len(game.sequence)):
            game.advance_target()
        self.assertEqual(game.target, 20)
        master = EnergyModulatorScore(difficulty=9)
        self.assertEqual(master.pattern_name, "Quantum Fluctuation")
        self.assertEqual(master.transition_sec, 4)
        self.assertEqual(EnergyModulatorScore().summary()["overallScore"], 0)

    def test_analogy_quality(self):
        from utils.game_scoring import evaluate_analogy_quality
        self.assertEqual(evaluate_analogy_quality("Fast"), 0.0)
        self.assertAlmostEqual(evaluate_analogy_quality("Code is like a garden."), 0.4)
        self.assertAlmostEqual(evaluate_analogy_quality(self.LONG_ANALOGY), 0.9)

    def test_rapid_fire_points_and_streak(self):
        from utils.game_scoring import RapidFireScore
        game = RapidFireScore(difficulty=1)
        self.assertEqual(game.record_response("Code is like a garden.", 2000)["points"], 70)
        self.assertEqual(game.streak, 0)
        self.assertEqual(game.record_response(self.LONG_ANALOGY, 6000)["points"], 55)
        self.assertEqual(game.record_response(self.LONG_ANALOGY, 7000)["points"], 50)
        self.assertEqual(game.streak, 2)
        self.assertEqual(game.record_timeout(), 165)
        summary = game.summary()
        self.assertEqual(summary["maxStreak"], 2)
        self.assertEqual(summary["completed"], 3)
        self.assertEqual(summary["timeouts"], 1)
        self.assertEqual(RapidFireScore().record_timeout(), 0)

    def test_chaos_integration(self):
        from utils.game_scoring import ChaosIntegrationScore
        game = ChaosIntegrationScore()
        self.assertFalse(game.check_transcript("giraffe"))
        game.drop_word("Giraffe")
        self.assertTrue(game.check_transcript("then a giraffe walked in"))
        self.assertEqual(game.score, 100)
        game.drop_word("volcano")
        self.assertFalse(game.check_transcript("nothing here"))
        game.expire_word()
        self.assertEqual(game.score, 50)
        for word in ("comet", "piano"):
            game.drop_word(word)
            game.expire_word()
        game.expire_word()
        summary = game.summary()
        self.assertEqual(summary["finalScore"], 0)
        self.assertEqual(summary["successes"], 1)
        self.assertEqual(summary["failures"], 3)
        self.assertEqual(summary["adaptabilityRating"], 25)


class TestTickTimer(unittest.TestCase):
    """Test cancellable tickers."""

    def test_repeating_ticker_stops_after_cancel(self):
        from utils.tick_timer import RepeatingTicker
        fired = threading.Event()
        count = {"n": 0}

        def cb():
            count["n"] += 1
            if count["n"] >= 2:
                fired.set()

        ticker = RepeatingTicker(0.01, cb, name="test")
        ticker.start()
        self.assertTrue(fired.wait(2.0))
        gen = ticker.generation
        ticker.cancel()
        self.assertGreater(ticker.generation, gen)
        after_cancel = count["n"]
        time.sleep(0.05)
        self.assertEqual(count["n"], after_cancel)
        self.assertFalse(ticker.is_running)

    def test_ticker_survives_callback_errors(self):
        from utils.tick_timer import RepeatingTicker
        fired = threading.Event()
        calls = {"n": 0}

        def cb():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("boom")
            fired.set()

        ticker = RepeatingTicker(0.01, cb, name="test")
        with self.assertLogs("utils.tick_timer", level="ERROR"):
            ticker.start()
            self.assertTrue(fired.wait(2.0))
        ticker.cancel()

    def test_one_shot_cancel(self):
        from utils.tick_timer import OneShotTimer
        fired = []
        timer = OneShotTimer(0.02, lambda: fired.append(1))
        timer.schedule()
        timer.cancel()
        time.sleep(0.06)
        self.assertEqual(fired, [])
        self.assertFalse(timer.pending)

    def test_one_shot_fires_once(self):
        from utils.tick_timer import OneShotTimer
        done = threading.Event()
        timer = OneShotTimer(0.01, done.set)
        timer.schedule()
        self.assertTrue(done.wait(2.0))


if __name__ == "__main__":
    unittest.main()
