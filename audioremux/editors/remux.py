"""Remux editor: swaps a video's audio track, copying the video stream untouched."""

import logging
from pathlib import Path

from audioremux import ffutil
from audioremux.errors import (
    DurationUnknownError,
    IncompatibleFormatError,
    MissingInputError,
    RemuxError,
)
from audioremux.manifest import DEFAULT_EXPORT_TIMEOUT, ExportSettings

logger = logging.getLogger(__name__)

# Fade applied at both edit points to mask clicks.
FADE_SECONDS = 0.01


def validate_settings(settings: ExportSettings) -> None:
    """Raise IncompatibleFormatError if the container cannot carry the codec."""
    if not settings.output_container.supports(settings.audio_codec):
        raise IncompatibleFormatError(
            settings.output_container.display_name,
            settings.audio_codec.display_name,
        )


def build_fade_filter(video_duration: float, fade: float = FADE_SECONDS) -> str:
    fade_out_start = max(0.0, video_duration - fade)
    return (
        f"afade=t=in:st=0:d={fade:.3f},"
        f"afade=t=out:st={fade_out_start:.3f}:d={fade:.3f}"
    )


def build_replace_audio_args(
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    settings: ExportSettings,
    video_duration: float | None = None,
) -> list[str]:
    """Build the ffmpeg argument list that swaps the audio of ``video_path``.

    A positive offset delays the audio input (``-itsoffset``); a negative one
    seeks into it (``-ss``). Seeking shortens the audio, so the output is then
    bounded to ``video_duration`` instead of ``-shortest``, which would cut the
    video down to the trimmed audio.

    Raises:
        IncompatibleFormatError: the container does not support the codec.
        DurationUnknownError: negative offset without a known video duration.
    """
    validate_settings(settings)

    offset = settings.offset_seconds
    if offset < 0 and video_duration is None:
        raise DurationUnknownError(video_path)

    args = ["-y", "-nostdin", "-hide_banner"]
    args += ["-i", str(video_path)]

    # Input options apply to the next -i, i.e. only the audio input.
    if offset > 0:
        args += ["-itsoffset", f"{offset:.3f}"]
    elif offset < 0:
        args += ["-ss", f"{-offset:.3f}"]

    args += ["-i", str(audio_path)]

    if settings.auto_fade_enabled and video_duration is not None:
        args += ["-af", build_fade_filter(video_duration)]

    codec = settings.audio_codec
    args += [
        "-map", "0:v",
        "-map", "1:a",
        "-c:v", "copy",
        "-c:a", codec.ffmpeg_codec_name(settings.bit_depth),
    ]

    sample_fmt = codec.sample_format(settings.bit_depth)
    if sample_fmt is not None:
        args += ["-sample_fmt", sample_fmt]

    if codec.requires_bitrate:
        args += ["-b:a", settings.bitrate.ffmpeg_value]

    if offset < 0:
        args += ["-t", f"{video_duration:.3f}"]
    else:
        args += ["-shortest"]

    args.append(str(output_path))
    return args


async def _video_duration(video_path: Path, settings: ExportSettings) -> float | None:
    """Duration needed for bounding (negative offset) or fade placement."""
    if settings.offset_seconds < 0:
        info = await ffutil.probe(video_path)
        if info.duration is None:
            raise DurationUnknownError(video_path)
        return info.duration

    if settings.auto_fade_enabled:
        try:
            info = await ffutil.probe(video_path)
        except RemuxError as exc:
            logger.warning("Could not probe %s, skipping fades: %s", video_path.name, exc)
            return None
        return info.duration

    return None


async def replace_audio(
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    settings: ExportSettings,
    timeout: float = DEFAULT_EXPORT_TIMEOUT,
) -> Path:
    """Write ``output_path``: the video of ``video_path`` with ``audio_path`` as its soundtrack."""
    for path in (video_path, audio_path):
        if not path.exists():
            raise MissingInputError(path)

    validate_settings(settings)
    warning = settings.output_container.warning(settings.audio_codec)
    if warning:
        logger.warning(warning)

    duration = await _video_duration(video_path, settings)
    args = build_replace_audio_args(video_path, audio_path, output_path, settings, duration)

    logger.info(
        "Replacing audio of %s (offset %+.3fs, %s in %s)",
        video_path.name,
        settings.offset_seconds,
        settings.audio_codec.display_name,
        settings.output_container.display_name,
    )
    await ffutil.run_ffmpeg(args, timeout=timeout)
    logger.info("Wrote %s", output_path)
    return output_path
