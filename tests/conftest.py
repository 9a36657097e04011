"""Shared test fixtures."""

from pathlib import Path

import numpy as np
import pytest

from audioremux.models import WaveformModel

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def noise() -> np.ndarray:
    """Ten seconds of deterministic noise at 100 Hz."""
    rng = np.random.default_rng(1234)
    return rng.uniform(-1.0, 1.0, size=1000).astype(np.float32)


@pytest.fixture
def noise_waveform(noise: np.ndarray) -> WaveformModel:
    return WaveformModel.from_samples(noise, 100)


@pytest.fixture
def media_files(tmp_path: Path) -> tuple[Path, Path]:
    video = tmp_path / "video.mp4"
    audio = tmp_path / "master.wav"
    video.write_bytes(b"fake video")
    audio.write_bytes(b"fake audio")
    return video, audio
