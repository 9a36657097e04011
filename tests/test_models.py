"""Tests for the shared value types."""

from dataclasses import FrozenInstanceError
from pathlib import Path

import numpy as np
import pytest

from audioremux.models import (
    ConfidenceLevel,
    MediaInfo,
    SyncAnalysisResult,
    TimeRange,
    WaveformModel,
)


class TestWaveformModel:
    def test_sample_count_and_duration(self):
        wf = WaveformModel.from_samples([0.1, -0.2, 0.3, 0.0], 2)
        assert wf.sample_count == 4
        assert wf.duration == 2.0
        assert wf.samples.dtype == np.float32

    def test_samples_are_read_only(self):
        wf = WaveformModel.from_samples([0.1, 0.2], 100)
        with pytest.raises(ValueError):
            wf.samples[0] = 1.0

    def test_frozen(self):
        wf = WaveformModel.from_samples([0.1, 0.2], 100)
        with pytest.raises(AttributeError):
            wf.sample_rate = 200

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError, match="sample_rate"):
            WaveformModel(samples=[0.0], sample_rate=0)

    def test_source_array_is_copied(self):
        source = np.array([0.5, 0.5], dtype=np.float32)
        wf = WaveformModel.from_samples(source, 10)
        source[0] = -1.0
        assert wf.samples[0] == pytest.approx(0.5)


class TestSamplesInRange:
    wf = WaveformModel.from_samples(np.arange(10, dtype=np.float32) / 10, 10)

    def test_basic_range(self):
        np.testing.assert_allclose(self.wf.samples_in_range(0.2, 0.5), [0.2, 0.3, 0.4], rtol=1e-6)

    def test_clamps_to_bounds(self):
        assert len(self.wf.samples_in_range(-1.0, 5.0)) == 10

    def test_empty_when_start_after_end(self):
        assert len(self.wf.samples_in_range(0.6, 0.3)) == 0

    def test_empty_past_the_end(self):
        assert len(self.wf.samples_in_range(2.0, 3.0)) == 0


class TestDownsampled:
    def test_noop_when_target_not_smaller(self):
        wf = WaveformModel.from_samples([0.1, -0.5, 0.3], 10)
        assert wf.downsampled(3) is wf.samples
        assert wf.downsampled(50) is wf.samples

    def test_keeps_bucket_peak_with_sign(self):
        wf = WaveformModel.from_samples([0.1, -0.9, 0.2, 0.3, 0.05, 0.4], 10)
        np.testing.assert_allclose(wf.downsampled(2), [-0.9, 0.4], rtol=1e-6)

    def test_preserves_single_spike(self):
        samples = np.zeros(1000, dtype=np.float32)
        samples[537] = 0.8
        wf = WaveformModel.from_samples(samples, 100)
        out = wf.downsampled(10)
        assert out[5] == pytest.approx(0.8)
        assert np.count_nonzero(out) == 1

    def test_each_value_comes_from_its_bucket(self, noise):
        wf = WaveformModel.from_samples(noise, 100)
        target = 37
        out = wf.downsampled(target)
        ratio = len(noise) / target
        for i, value in enumerate(out):
            bucket = noise[int(i * ratio):min(int((i + 1) * ratio), len(noise))]
            assert value in bucket
            assert abs(value) == pytest.approx(np.abs(bucket).max())


class TestConfidenceLevel:
    @pytest.mark.parametrize(
        "confidence, level",
        [
            (1.0, ConfidenceLevel.HIGH),
            (0.8, ConfidenceLevel.HIGH),
            (0.79, ConfidenceLevel.MEDIUM),
            (0.5, ConfidenceLevel.MEDIUM),
            (0.49, ConfidenceLevel.LOW),
            (0.0, ConfidenceLevel.LOW),
        ],
    )
    def test_default_thresholds(self, confidence, level):
        assert ConfidenceLevel.classify(confidence) is level

    def test_custom_thresholds(self):
        assert ConfidenceLevel.classify(0.7, high=0.6, medium=0.3) is ConfidenceLevel.HIGH

    def test_reliability(self):
        assert ConfidenceLevel.MEDIUM.is_reliable
        assert not ConfidenceLevel.LOW.is_reliable


class TestSyncAnalysisResult:
    def test_level_derived_from_confidence(self):
        r = SyncAnalysisResult(0.5, 0.9, TimeRange(0.0, 30.0))
        assert r.confidence_level is ConfidenceLevel.HIGH
        assert r.requires_confirmation is False

    def test_low_confidence_requires_confirmation(self):
        r = SyncAnalysisResult(-1.2, 0.2, TimeRange(0.0, 30.0))
        assert r.requires_confirmation is True

    def test_to_dict(self):
        r = SyncAnalysisResult(0.25, 0.6, TimeRange(0.0, 12.5))
        assert r.to_dict() == {
            "offset_seconds": 0.25,
            "confidence": 0.6,
            "confidence_level": "medium",
            "analyzed_range": [0.0, 12.5],
            "requires_confirmation": False,
        }

    def test_result_and_range_are_immutable(self):
        r = SyncAnalysisResult(0.25, 0.6, TimeRange(0.0, 12.5))
        with pytest.raises(FrozenInstanceError):
            r.analyzed_range.end = 99.0
        with pytest.raises(FrozenInstanceError):
            r.confidence = 1.0
        assert r.analyzed_range.duration == 12.5


class TestMediaInfo:
    def test_summary(self):
        info = MediaInfo(
            path=Path("v.mp4"),
            duration=75.5,
            video_codec="h264",
            audio_codec="aac",
            width=1920,
            height=1080,
            sample_rate=48000,
            channels=2,
            bit_rate=2_500_000,
        )
        assert info.summary == "01:15.500 | 1920x1080 | h264 | aac | 48000Hz | Stereo | 2.5Mbps"
        assert info.has_video and info.has_audio

    def test_audio_only(self):
        info = MediaInfo(path=Path("a.wav"), audio_codec="pcm_s16le", channels=6)
        assert not info.has_video
        assert info.summary == "pcm_s16le | 6ch"
