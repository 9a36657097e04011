"""Audio codecs, output containers and their compatibility."""

import enum


class BitDepth(enum.IntEnum):
    BIT16 = 16
    BIT24 = 24


class AudioBitrate(enum.IntEnum):
    KBPS128 = 128
    KBPS192 = 192
    KBPS256 = 256
    KBPS320 = 320

    @property
    def ffmpeg_value(self) -> str:
        return f"{self.value}k"


class AudioCodec(enum.Enum):
    FLAC = "flac"
    ALAC = "alac"
    AAC = "aac"
    PCM = "pcm"

    @property
    def display_name(self) -> str:
        return self.value.upper()

    @property
    def requires_bitrate(self) -> bool:
        return self is AudioCodec.AAC

    @property
    def supports_bit_depth(self) -> bool:
        return self is not AudioCodec.AAC

    def ffmpeg_codec_name(self, bit_depth: BitDepth = BitDepth.BIT24) -> str:
        if self is AudioCodec.PCM:
            return "pcm_s16le" if bit_depth == BitDepth.BIT16 else "pcm_s24le"
        return self.value

    def sample_format(self, bit_depth: BitDepth) -> str | None:
        """ffmpeg ``-sample_fmt`` for lossless encoders; PCM encodes depth in the codec name."""
        if self is AudioCodec.FLAC:
            return "s16" if bit_depth == BitDepth.BIT16 else "s32"
        if self is AudioCodec.ALAC:
            return "s16p" if bit_depth == BitDepth.BIT16 else "s32p"
        return None


class OutputContainer(enum.Enum):
    MP4 = "mp4"
    MKV = "mkv"
    MOV = "mov"

    @property
    def display_name(self) -> str:
        return self.value.upper()

    @property
    def file_extension(self) -> str:
        return self.value

    @property
    def supported_codecs(self) -> tuple[AudioCodec, ...]:
        return _SUPPORTED_CODECS[self]

    def supports(self, codec: AudioCodec) -> bool:
        return codec in self.supported_codecs

    @property
    def recommended_codec(self) -> AudioCodec:
        return AudioCodec.FLAC if self is OutputContainer.MKV else AudioCodec.ALAC

    def warning(self, codec: AudioCodec) -> str | None:
        if self is OutputContainer.MP4 and codec is AudioCodec.FLAC:
            return "MP4 with FLAC audio does not play in some players"
        return None


# MP4 cannot hold raw PCM; MKV holds everything.
_SUPPORTED_CODECS: dict[OutputContainer, tuple[AudioCodec, ...]] = {
    OutputContainer.MP4: (AudioCodec.FLAC, AudioCodec.ALAC, AudioCodec.AAC),
    OutputContainer.MKV: tuple(AudioCodec),
    OutputContainer.MOV: (AudioCodec.ALAC, AudioCodec.AAC, AudioCodec.PCM),
}


def parse_enum(enum_cls, value):
    """Look up an enum member by value or (case-insensitive) name."""
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if value == member.value or str(value).lower() == str(member.value).lower():
            return member
        if str(value).upper() == member.name:
            return member
    choices = ", ".join(str(m.value) for m in enum_cls)
    raise ValueError(f"invalid {enum_cls.__name__} {value!r}; expected one of: {choices}")
