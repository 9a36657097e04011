"""Cross-correlation sync analyzer.

Estimates how far the replacement audio (``target``) has to be shifted to line
up with the video's own soundtrack (``reference``). Both waveforms are
compared over a bounded window for every integer lag in a bounded search
range; the best lag is then refined to sub-sample precision.
"""

import asyncio
import logging

import numpy as np

from audioremux.errors import InsufficientDataError
from audioremux.manifest import AnalysisConfig
from audioremux.models import ConfidenceLevel, SyncAnalysisResult, TimeRange, WaveformModel

logger = logging.getLogger(__name__)

_DENOMINATOR_EPS = 1e-12
_PARABOLA_EPS = 1e-10


def _pearson(ref: np.ndarray, tgt: np.ndarray) -> float:
    """Pearson correlation of two equal-length slices, each centred on its own mean."""
    ref_c = ref - ref.mean()
    tgt_c = tgt - tgt.mean()
    denominator = np.sqrt(np.dot(ref_c, ref_c) * np.dot(tgt_c, tgt_c))
    if not np.isfinite(denominator) or denominator <= _DENOMINATOR_EPS:
        return 0.0
    return float(np.dot(ref_c, tgt_c) / denominator)


def correlate(reference: np.ndarray, target: np.ndarray, max_lag: int) -> np.ndarray:
    """Normalized correlation for every lag in ``[-max_lag, max_lag]``.

    Index ``i`` holds lag ``i - max_lag``. A positive lag pairs
    ``reference[lag + k]`` with ``target[k]``. Lags without overlap stay 0.
    """
    ref = np.asarray(reference, dtype=np.float64)
    tgt = np.asarray(target, dtype=np.float64)
    n, m = len(ref), len(tgt)

    correlations = np.zeros(2 * max_lag + 1, dtype=np.float64)
    for index in range(correlations.shape[0]):
        lag = index - max_lag
        ref_start = max(0, lag)
        tgt_start = max(0, -lag)
        overlap = min(n - ref_start, m - tgt_start)
        if overlap <= 0:
            continue
        correlations[index] = _pearson(
            ref[ref_start:ref_start + overlap],
            tgt[tgt_start:tgt_start + overlap],
        )
    return correlations


def peak_overlap_samples(config: AnalysisConfig, sample_rate: int, window: int) -> int:
    """Smallest overlap a lag needs to win the peak, never more than the window."""
    return min(window, max(1, int(config.min_peak_overlap_seconds * sample_rate)))


def pick_peak(correlations: np.ndarray, window: int, min_overlap: int) -> int:
    """First index of the maximum among lags overlapping at least ``min_overlap`` samples.

    Every lag keeps its correlation; short overlaps only drop out of the
    peak search. Lag 0 always overlaps the whole window, so some lag is
    always eligible.
    """
    max_lag = (len(correlations) - 1) // 2
    lags = np.arange(len(correlations)) - max_lag
    eligible = (window - np.abs(lags)) >= min_overlap
    return int(np.argmax(np.where(eligible, correlations, -np.inf)))


def parabolic_peak(correlations: np.ndarray, peak_index: int) -> float:
    """Refine ``peak_index`` by fitting a parabola through its neighbours.

    Falls back to the integer index at the edges of the search range or when
    the three points are collinear. The correction never exceeds half a sample.
    """
    if peak_index <= 0 or peak_index >= len(correlations) - 1:
        return float(peak_index)

    y0 = float(correlations[peak_index - 1])
    y1 = float(correlations[peak_index])
    y2 = float(correlations[peak_index + 1])

    denominator = 2.0 * (y0 - 2.0 * y1 + y2)
    if abs(denominator) <= _PARABOLA_EPS:
        return float(peak_index)

    delta = (y0 - y2) / denominator
    return peak_index + max(-0.5, min(0.5, delta))


def find_sync_offset(
    reference: WaveformModel,
    target: WaveformModel,
    config: AnalysisConfig | None = None,
) -> SyncAnalysisResult:
    """Estimate the signed offset that aligns ``target`` to ``reference``.

    Raises:
        InsufficientDataError: either waveform is empty.
        ValueError: the two waveforms use different sample rates.
    """
    config = config or AnalysisConfig()
    if reference.sample_rate != target.sample_rate:
        raise ValueError(
            f"sample rates differ: reference {reference.sample_rate} Hz, "
            f"target {target.sample_rate} Hz"
        )
    sample_rate = reference.sample_rate

    window = min(
        int(config.window_seconds * sample_rate),
        reference.sample_count,
        target.sample_count,
    )
    if window <= 0:
        raise InsufficientDataError()

    max_lag = max(0, int(config.max_offset_seconds * sample_rate))
    if config.min_overlap_fraction > 0:
        overlap_limit = window - int(np.ceil(window * config.min_overlap_fraction))
        max_lag = max(0, min(max_lag, overlap_limit))

    logger.debug(
        "Correlating %d samples at %d Hz over lags +/-%d", window, sample_rate, max_lag
    )
    correlations = correlate(reference.samples[:window], target.samples[:window], max_lag)
    peak_index = pick_peak(correlations, window, peak_overlap_samples(config, sample_rate, window))
    peak = float(correlations[peak_index])
    refined_lag = parabolic_peak(correlations, peak_index) - max_lag
    offset_seconds = refined_lag / sample_rate
    confidence = min(1.0, max(0.0, peak))

    result = SyncAnalysisResult(
        detected_offset_seconds=offset_seconds,
        confidence=confidence,
        analyzed_range=TimeRange(start=0.0, end=window / sample_rate),
        confidence_level=ConfidenceLevel.classify(
            confidence, high=config.high_confidence, medium=config.medium_confidence
        ),
    )
    logger.info(
        "Detected offset %.3fs (confidence %.3f, %s)",
        offset_seconds, confidence, result.confidence_level.value,
    )
    return result


async def find_sync_offset_async(
    reference: WaveformModel,
    target: WaveformModel,
    config: AnalysisConfig | None = None,
) -> SyncAnalysisResult:
    """Run :func:`find_sync_offset` in a worker thread."""
    return await asyncio.to_thread(find_sync_offset, reference, target, config)
