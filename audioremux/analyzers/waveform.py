"""Waveform extraction: decoded mono PCM file to WaveformModel."""

import asyncio
import logging
from pathlib import Path

import numpy as np
import soundfile as sf

from audioremux.errors import MissingInputError
from audioremux.models import WaveformModel

logger = logging.getLogger(__name__)

ANALYSIS_SAMPLE_RATE = 100


def peak_decimate(samples: np.ndarray, factor: int) -> np.ndarray:
    """Keep the largest-magnitude sample of every ``factor`` consecutive samples."""
    if factor <= 1 or samples.size == 0:
        return samples.astype(np.float32, copy=False)

    full = (samples.size // factor) * factor
    blocks = samples[:full].reshape(-1, factor)
    picked = blocks[np.arange(blocks.shape[0]), np.argmax(np.abs(blocks), axis=1)]

    tail = samples[full:]
    if tail.size:
        picked = np.append(picked, tail[int(np.argmax(np.abs(tail)))])
    return picked.astype(np.float32, copy=False)


def load_waveform(path: Path, target_rate: int = ANALYSIS_SAMPLE_RATE) -> WaveformModel:
    """Read a PCM file and reduce its first channel to roughly ``target_rate`` Hz."""
    if not path.exists():
        raise MissingInputError(path)

    data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    channel = data[:, 0] if data.shape[0] else np.zeros(0, dtype=np.float32)

    factor = max(1, sample_rate // target_rate)
    samples = peak_decimate(channel, factor)
    duration = channel.size / sample_rate

    logger.debug(
        "Loaded %s: %d samples at %d Hz -> %d samples at %d Hz",
        path.name, channel.size, sample_rate, samples.size, round(sample_rate / factor),
    )
    return WaveformModel(
        samples=samples,
        sample_rate=round(sample_rate / factor),
        duration=duration,
    )


async def load_waveform_async(path: Path, target_rate: int = ANALYSIS_SAMPLE_RATE) -> WaveformModel:
    return await asyncio.to_thread(load_waveform, path, target_rate)
