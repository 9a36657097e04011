"""Orchestrator: runs sync analysis and the audio swap defined by a Manifest."""

import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from audioremux import ffutil
from audioremux.analyzers.sync import find_sync_offset_async
from audioremux.analyzers.waveform import load_waveform_async
from audioremux.editors.remux import replace_audio
from audioremux.errors import RemuxError
from audioremux.manifest import AnalysisConfig, Manifest
from audioremux.models import SyncAnalysisResult, WaveformModel

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


class SyncSession:
    """Waveforms and temp files for one video/audio pair.

    The extracted WAVs live in a private temp directory that ``reset`` (or
    leaving the ``with`` block) removes together with the waveforms.
    """

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self.config = config or AnalysisConfig()
        self.reference: WaveformModel | None = None
        self.target: WaveformModel | None = None
        self.last_result: SyncAnalysisResult | None = None
        self.reference_wav: Path | None = None
        self.target_wav: Path | None = None
        self._temp_dir: Path | None = None

    def __enter__(self) -> "SyncSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.reset()

    @property
    def has_waveforms(self) -> bool:
        return self.reference is not None and self.target is not None

    async def load(self, video_path: Path, audio_path: Path) -> None:
        """Decode both soundtracks to mono WAV and build their waveforms."""
        self.reset()
        self._temp_dir = Path(tempfile.mkdtemp(prefix="audioremux_"))
        token = uuid.uuid4().hex[:8]
        reference_wav = self._temp_dir / f"video_audio_{token}.wav"
        target_wav = self._temp_dir / f"audio_{token}.wav"

        try:
            logger.debug("Extracting audio from %s", video_path)
            await ffutil.extract_audio(video_path, reference_wav)
            logger.debug("Converting %s to WAV", audio_path)
            await ffutil.convert_to_wav(audio_path, target_wav)

            self.reference = await load_waveform_async(reference_wav)
            self.target = await load_waveform_async(target_wav)
        except BaseException:
            self.reset()
            raise

        self.reference_wav = reference_wav
        self.target_wav = target_wav
        logger.info(
            "Waveforms ready: reference %.1fs, target %.1fs",
            self.reference.duration, self.target.duration,
        )

    async def analyze(self) -> SyncAnalysisResult:
        if not self.has_waveforms:
            raise RuntimeError("waveforms have not been loaded")
        self.last_result = await find_sync_offset_async(self.reference, self.target, self.config)
        return self.last_result

    def reset(self) -> None:
        if self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            logger.debug("Removed temp dir %s", self._temp_dir)
        self._temp_dir = None
        self.reference = None
        self.target = None
        self.reference_wav = None
        self.target_wav = None
        self.last_result = None


@dataclass
class AnalysisOutcome:
    result: SyncAnalysisResult | None = None
    error: RemuxError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None


@dataclass
class EngineResult:
    output_path: Path
    offset_seconds: float = 0.0
    analysis: SyncAnalysisResult | None = None
    offset_applied_from_analysis: bool = False
    error: RemuxError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def analyze(
    video_path: Path,
    audio_path: Path,
    config: AnalysisConfig | None = None,
    on_progress: ProgressCallback | None = None,
    session: SyncSession | None = None,
) -> AnalysisOutcome:
    """Extract both soundtracks and estimate their offset.

    Structured failures come back in ``AnalysisOutcome.error``. Pass a
    ``session`` to keep the waveforms after the call; otherwise the temp
    files are removed before returning. A ``config`` given together with a
    ``session`` replaces the session's config.
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    own_session = session is None
    if session is None:
        session = SyncSession(config)
    elif config is not None:
        session.config = config
    try:
        _progress("Extracting audio", 0.0)
        await session.load(video_path, audio_path)
        _progress("Analyzing sync", 0.7)
        result = await session.analyze()
        _progress("Done", 1.0)
        return AnalysisOutcome(result=result)
    except RemuxError as exc:
        logger.error("Sync analysis failed: %s", exc)
        return AnalysisOutcome(error=exc)
    finally:
        if own_session:
            session.reset()


async def run(
    manifest: Manifest,
    on_progress: ProgressCallback | None = None,
) -> EngineResult:
    """Execute the full pipeline: optional auto-sync, then the audio swap.

    A detected offset replaces the manifest's offset only when it is reliable
    or ``accept_low_confidence`` is set; a low-confidence result is reported
    but left for the operator to confirm.
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    def _sub_progress(base: float, span: float) -> ProgressCallback:
        def cb(stage: str, frac: float) -> None:
            _progress(stage, base + frac * span)
        return cb

    output_path = manifest.output_path
    settings = manifest.export
    analysis: SyncAnalysisResult | None = None
    applied = False

    try:
        ffutil.check_ffmpeg()

        if manifest.auto_sync:
            outcome = await analyze(
                manifest.video,
                manifest.audio,
                manifest.analysis,
                on_progress=_sub_progress(0.0, 0.4),
            )
            if outcome.error is not None:
                return EngineResult(output_path=output_path, error=outcome.error)
            analysis = outcome.result
            if not analysis.requires_confirmation or manifest.accept_low_confidence:
                settings = settings.with_offset(analysis.detected_offset_seconds)
                applied = True
            else:
                logger.warning(
                    "Detected offset %.3fs has low confidence (%.2f); keeping %.3fs",
                    analysis.detected_offset_seconds,
                    analysis.confidence,
                    settings.offset_seconds,
                )

        _progress("Replacing audio", 0.4)
        await replace_audio(
            manifest.video,
            manifest.audio,
            output_path,
            settings,
            timeout=manifest.timeout,
        )
        _progress("Done", 1.0)
    except RemuxError as exc:
        logger.error("Export failed: %s", exc)
        return EngineResult(
            output_path=output_path,
            offset_seconds=settings.offset_seconds,
            analysis=analysis,
            offset_applied_from_analysis=applied,
            error=exc,
        )

    return EngineResult(
        output_path=output_path,
        offset_seconds=settings.offset_seconds,
        analysis=analysis,
        offset_applied_from_analysis=applied,
    )
