"""JSON manifest schema: the contract between CLI/API and engine."""

import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path

from audioremux.formats import (
    AudioBitrate,
    AudioCodec,
    BitDepth,
    OutputContainer,
    parse_enum,
)

DEFAULT_SUFFIX = "_replaced"
DEFAULT_EXPORT_TIMEOUT = 300.0


@dataclass
class AnalysisConfig:
    """Tunable ceilings and thresholds for sync analysis."""

    window_seconds: float = 30.0
    max_offset_seconds: float = 5.0
    high_confidence: float = 0.8
    medium_confidence: float = 0.5
    # Optional cut of the lag range; 0 searches every lag with any overlap.
    min_overlap_fraction: float = 0.0
    # Lags with less overlap than this never win the peak.
    min_peak_overlap_seconds: float = 0.5


@dataclass
class ExportSettings:
    """How the replacement audio is encoded, shifted and packaged."""

    offset_seconds: float = 0.0
    audio_codec: AudioCodec = AudioCodec.FLAC
    bit_depth: BitDepth = BitDepth.BIT24
    bitrate: AudioBitrate = AudioBitrate.KBPS256
    output_container: OutputContainer = OutputContainer.MP4
    output_suffix: str = DEFAULT_SUFFIX
    output_directory: Path | None = None
    auto_fade_enabled: bool = True

    @property
    def is_valid_combination(self) -> bool:
        return self.output_container.supports(self.audio_codec)

    @property
    def effective_suffix(self) -> str:
        return self.output_suffix if self.output_suffix.strip() else DEFAULT_SUFFIX

    def output_filename(self, video: Path) -> str:
        return f"{video.stem}{self.effective_suffix}.{self.output_container.file_extension}"

    def output_path(self, video: Path) -> Path:
        directory = self.output_directory or video.parent
        return Path(directory) / self.output_filename(video)

    def with_offset(self, offset_seconds: float) -> "ExportSettings":
        return dataclasses.replace(self, offset_seconds=offset_seconds)


@dataclass
class Manifest:
    """Top-level remux manifest."""

    video: Path
    audio: Path
    output: Path | None = None
    version: str = "1"
    export: ExportSettings = field(default_factory=ExportSettings)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    auto_sync: bool = False
    accept_low_confidence: bool = False
    timeout: float = DEFAULT_EXPORT_TIMEOUT

    @property
    def output_path(self) -> Path:
        return self.output or self.export.output_path(self.video)


def export_settings_from_dict(data: dict) -> ExportSettings:
    """Build ExportSettings from plain JSON values (enum names or values)."""
    settings = ExportSettings()
    if "offset_seconds" in data:
        settings.offset_seconds = float(data["offset_seconds"])
    if "audio_codec" in data:
        settings.audio_codec = parse_enum(AudioCodec, data["audio_codec"])
    if "bit_depth" in data:
        settings.bit_depth = parse_enum(BitDepth, data["bit_depth"])
    if "bitrate" in data:
        settings.bitrate = parse_enum(AudioBitrate, data["bitrate"])
    if "output_container" in data:
        settings.output_container = parse_enum(OutputContainer, data["output_container"])
    if "output_suffix" in data:
        settings.output_suffix = str(data["output_suffix"])
    if data.get("output_directory"):
        settings.output_directory = Path(data["output_directory"])
    if "auto_fade_enabled" in data:
        settings.auto_fade_enabled = bool(data["auto_fade_enabled"])
    return settings


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "video" not in data or "audio" not in data:
        raise ValueError("Manifest must contain 'video' and 'audio' fields")

    export = export_settings_from_dict(data["export"]) if "export" in data else ExportSettings()
    analysis = AnalysisConfig(**data["analysis"]) if "analysis" in data else AnalysisConfig()

    return Manifest(
        version=data.get("version", "1"),
        video=Path(data["video"]),
        audio=Path(data["audio"]),
        output=Path(data["output"]) if data.get("output") else None,
        export=export,
        analysis=analysis,
        auto_sync=bool(data.get("auto_sync", False)),
        accept_low_confidence=bool(data.get("accept_low_confidence", False)),
        timeout=float(data.get("timeout", DEFAULT_EXPORT_TIMEOUT)),
    )
