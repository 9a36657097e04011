"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import os
import shutil
from pathlib import Path

from audioremux import process
from audioremux.errors import FFmpegNotFoundError, MissingInputError, ProbeError
from audioremux.models import MediaInfo

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 30.0
AUDIO_PROCESSING_TIMEOUT = 300.0

_ENV_VARS = {"ffmpeg": "AUDIOREMUX_FFMPEG", "ffprobe": "AUDIOREMUX_FFPROBE"}
_FALLBACK_DIRS = ("/opt/homebrew/bin", "/usr/local/bin")


def find_binary(name: str) -> str:
    """Locate ``ffmpeg`` or ``ffprobe``.

    Order: the ``AUDIOREMUX_FFMPEG`` / ``AUDIOREMUX_FFPROBE`` environment
    variable, then PATH, then the usual Homebrew prefixes.
    """
    override = os.environ.get(_ENV_VARS.get(name, ""))
    if override:
        if Path(override).exists():
            return override
        logger.warning("%s points at a missing file: %s", _ENV_VARS[name], override)

    found = shutil.which(name)
    if found:
        return found

    for directory in _FALLBACK_DIRS:
        candidate = Path(directory) / name
        if candidate.exists():
            return str(candidate)

    raise FFmpegNotFoundError(f"{name} not found on PATH")


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe cannot be found."""
    for cmd in ("ffmpeg", "ffprobe"):
        find_binary(cmd)


async def run_ffmpeg(arguments: list[str], timeout: float = process.DEFAULT_TIMEOUT) -> str:
    return await process.execute(find_binary("ffmpeg"), arguments, timeout=timeout)


def _to_float(value) -> float | None:
    if value in (None, "", "N/A"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value) -> int | None:
    f = _to_float(value)
    return int(f) if f is not None else None


def parse_probe_output(data: dict, path: Path) -> MediaInfo:
    """Turn ffprobe ``-show_format -show_streams`` JSON into MediaInfo.

    Duration comes from the container format first, then the video stream,
    then the audio stream.
    """
    fmt = data.get("format") or {}
    streams = data.get("streams") or []
    info = MediaInfo(
        path=path,
        duration=_to_float(fmt.get("duration")),
        bit_rate=_to_int(fmt.get("bit_rate")),
    )

    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    if video_stream is not None:
        info.video_codec = video_stream.get("codec_name")
        info.width = _to_int(video_stream.get("width"))
        info.height = _to_int(video_stream.get("height"))
        # r_frame_rate looks like "30000/1001"
        num, _, den = str(video_stream.get("r_frame_rate", "")).partition("/")
        num_f, den_f = _to_float(num), _to_float(den)
        if num_f is not None and den_f:
            info.frame_rate = num_f / den_f
        if info.duration is None:
            info.duration = _to_float(video_stream.get("duration"))

    if audio_stream is not None:
        info.audio_codec = audio_stream.get("codec_name")
        info.sample_rate = _to_int(audio_stream.get("sample_rate"))
        info.channels = _to_int(audio_stream.get("channels"))
        if info.duration is None:
            info.duration = _to_float(audio_stream.get("duration"))

    return info


async def probe(input_path: Path, timeout: float = PROBE_TIMEOUT) -> MediaInfo:
    """Extract media metadata via ffprobe."""
    if not input_path.exists():
        raise MissingInputError(input_path)

    args = [
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    output = await process.execute(find_binary("ffprobe"), args, timeout=timeout)
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ProbeError(f"could not parse ffprobe output for {input_path}") from exc

    info = parse_probe_output(data, input_path)
    info.file_size = input_path.stat().st_size
    logger.info("Probed %s: %s", input_path.name, info.summary)
    return info


def _wav_args(input_path: Path, output_path: Path, sample_rate: int, drop_video: bool) -> list[str]:
    args = ["-y", "-nostdin", "-hide_banner", "-i", str(input_path)]
    if drop_video:
        args.append("-vn")
    args += [
        "-c:a", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        str(output_path),
    ]
    return args


async def extract_audio(
    input_path: Path, output_path: Path, sample_rate: int = 48000
) -> Path:
    """Extract the soundtrack of a video as mono 16-bit WAV (for analysis)."""
    if not input_path.exists():
        raise MissingInputError(input_path)
    await run_ffmpeg(
        _wav_args(input_path, output_path, sample_rate, drop_video=True),
        timeout=AUDIO_PROCESSING_TIMEOUT,
    )
    return output_path


async def convert_to_wav(
    input_path: Path, output_path: Path, sample_rate: int = 48000
) -> Path:
    """Convert any audio file to mono 16-bit WAV (for analysis)."""
    if not input_path.exists():
        raise MissingInputError(input_path)
    await run_ffmpeg(
        _wav_args(input_path, output_path, sample_rate, drop_video=False),
        timeout=AUDIO_PROCESSING_TIMEOUT,
    )
    return output_path
