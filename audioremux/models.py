"""Shared data types used across AudioRemux."""

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True, eq=False)
class WaveformModel:
    """Downsampled mono amplitude-over-time signal.

    ``samples`` are normalized to [-1.0, 1.0] and held in a read-only float32
    array. ``sample_rate`` is the analysis rate after downsampling, not the
    decode rate, and ``duration`` is informational only.
    """

    samples: np.ndarray
    sample_rate: int
    duration: float = 0.0

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        arr = np.array(self.samples, dtype=np.float32).reshape(-1)
        arr.setflags(write=False)
        object.__setattr__(self, "samples", arr)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @classmethod
    def from_samples(cls, samples: Sequence[float], sample_rate: int) -> "WaveformModel":
        """Build a model whose duration is derived from the sample count."""
        return cls(samples=samples, sample_rate=sample_rate, duration=len(samples) / sample_rate)

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[0])

    def samples_in_range(self, start: float, end: float) -> np.ndarray:
        """Return the samples covering ``[start, end)`` seconds, clamped to the signal."""
        start_index = max(0, int(start * self.sample_rate))
        end_index = min(self.sample_count, int(end * self.sample_rate))
        if start_index >= end_index:
            return self.samples[:0]
        return self.samples[start_index:end_index]

    def downsampled(self, target_count: int) -> np.ndarray:
        """Reduce to ``target_count`` points, keeping the peak of each bucket.

        Each output value is the original sample of largest magnitude inside
        its bucket, so short transients survive. Asking for at least as many
        points as there are samples returns the samples unchanged.
        """
        count = self.sample_count
        if target_count <= 0 or target_count >= count:
            return self.samples

        ratio = count / target_count
        result = np.zeros(target_count, dtype=np.float32)
        for i in range(target_count):
            start = int(i * ratio)
            end = min(int((i + 1) * ratio), count)
            if end <= start:
                continue
            bucket = self.samples[start:end]
            result[i] = bucket[int(np.argmax(np.abs(bucket)))]
        return result


class ConfidenceLevel(enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def classify(
        cls, confidence: float, high: float = 0.8, medium: float = 0.5
    ) -> "ConfidenceLevel":
        if confidence >= high:
            return cls.HIGH
        if confidence >= medium:
            return cls.MEDIUM
        return cls.LOW

    @property
    def description(self) -> str:
        return {
            ConfidenceLevel.HIGH: "high confidence",
            ConfidenceLevel.MEDIUM: "medium confidence",
            ConfidenceLevel.LOW: "low confidence (manual adjustment recommended)",
        }[self]

    @property
    def is_reliable(self) -> bool:
        return self is not ConfidenceLevel.LOW


@dataclass(frozen=True)
class SyncAnalysisResult:
    """Outcome of one correlation run.

    A positive ``detected_offset_seconds`` means the replacement audio has to
    start later than the reference; a negative one means its head has to be
    trimmed.
    """

    detected_offset_seconds: float
    confidence: float
    analyzed_range: TimeRange
    confidence_level: ConfidenceLevel | None = None

    def __post_init__(self) -> None:
        if self.confidence_level is None:
            object.__setattr__(
                self, "confidence_level", ConfidenceLevel.classify(self.confidence)
            )

    @property
    def requires_confirmation(self) -> bool:
        """Low-confidence offsets are suggestions, not something to apply silently."""
        return not self.confidence_level.is_reliable

    def to_dict(self) -> dict:
        return {
            "offset_seconds": self.detected_offset_seconds,
            "confidence": self.confidence,
            "confidence_level": self.confidence_level.value,
            "analyzed_range": [self.analyzed_range.start, self.analyzed_range.end],
            "requires_confirmation": self.requires_confirmation,
        }


@dataclass
class MediaInfo:
    """Metadata extracted from a media file via ffprobe."""

    path: Path
    duration: float | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    width: int | None = None
    height: int | None = None
    frame_rate: float | None = None
    sample_rate: int | None = None
    channels: int | None = None
    bit_rate: int | None = None
    file_size: int | None = None

    @property
    def has_video(self) -> bool:
        return self.video_codec is not None

    @property
    def has_audio(self) -> bool:
        return self.audio_codec is not None

    @property
    def summary(self) -> str:
        parts: list[str] = []
        if self.duration is not None:
            minutes, seconds = divmod(self.duration, 60)
            parts.append(f"{int(minutes):02d}:{seconds:06.3f}")
        if self.width and self.height:
            parts.append(f"{self.width}x{self.height}")
        if self.video_codec:
            parts.append(self.video_codec)
        if self.audio_codec:
            parts.append(self.audio_codec)
        if self.sample_rate:
            parts.append(f"{self.sample_rate}Hz")
        if self.channels:
            parts.append({1: "Mono", 2: "Stereo"}.get(self.channels, f"{self.channels}ch"))
        if self.bit_rate:
            kbps = self.bit_rate // 1000
            parts.append(f"{kbps / 1000:.1f}Mbps" if kbps >= 1000 else f"{kbps}kbps")
        return " | ".join(parts)
