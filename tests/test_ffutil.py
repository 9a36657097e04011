"""Unit tests for ffutil: binary lookup, probe parsing and subprocess wrappers."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from audioremux.errors import FFmpegNotFoundError, MissingInputError, ProbeError
from audioremux.ffutil import (
    convert_to_wav,
    extract_audio,
    find_binary,
    parse_probe_output,
    probe,
)

# ---------------------------------------------------------------------------
# parse_probe_output (pure parsing, no subprocess)
# ---------------------------------------------------------------------------

PROBE_JSON = {
    "format": {"duration": "60.0", "bit_rate": "2500000"},
    "streams": [
        {
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1920,
            "height": 1080,
            "r_frame_rate": "30000/1001",
            "duration": "59.9",
        },
        {
            "codec_type": "audio",
            "codec_name": "aac",
            "sample_rate": "44100",
            "channels": 2,
        },
    ],
}


class TestParseProbeOutput:
    def test_basic(self):
        info = parse_probe_output(PROBE_JSON, Path("video.mp4"))
        assert info.duration == 60.0
        assert info.width == 1920
        assert info.height == 1080
        assert info.frame_rate == pytest.approx(29.97, abs=0.01)
        assert info.video_codec == "h264"
        assert info.audio_codec == "aac"
        assert info.sample_rate == 44100
        assert info.channels == 2
        assert info.bit_rate == 2500000

    def test_duration_falls_back_to_video_stream(self):
        data = {"format": {"duration": "N/A"}, "streams": PROBE_JSON["streams"]}
        assert parse_probe_output(data, Path("v.mkv")).duration == 59.9

    def test_duration_falls_back_to_audio_stream(self):
        data = {
            "format": {},
            "streams": [{"codec_type": "audio", "codec_name": "flac", "duration": "12.5"}],
        }
        info = parse_probe_output(data, Path("a.flac"))
        assert info.duration == 12.5
        assert not info.has_video

    def test_no_duration_anywhere(self):
        data = {"streams": [{"codec_type": "video", "codec_name": "h264"}]}
        assert parse_probe_output(data, Path("v.mp4")).duration is None

    def test_bad_frame_rate_ignored(self):
        data = {"streams": [{"codec_type": "video", "codec_name": "h264", "r_frame_rate": "0/0"}]}
        assert parse_probe_output(data, Path("v.mp4")).frame_rate is None


# ---------------------------------------------------------------------------
# probe (mocked process runner)
# ---------------------------------------------------------------------------

class TestProbe:
    @patch("audioremux.ffutil.find_binary", return_value="/usr/bin/ffprobe")
    @patch("audioremux.ffutil.process.execute", new_callable=AsyncMock)
    def test_basic(self, mock_execute, _mock_find, tmp_path):
        video = tmp_path / "video.mp4"
        video.write_bytes(b"0123456789")
        mock_execute.return_value = json.dumps(PROBE_JSON)

        info = asyncio.run(probe(video))

        assert info.duration == 60.0
        assert info.file_size == 10
        path, args = mock_execute.call_args[0]
        assert path == "/usr/bin/ffprobe"
        assert args[-1] == str(video)
        assert "-show_format" in args and "-show_streams" in args

    @patch("audioremux.ffutil.find_binary", return_value="/usr/bin/ffprobe")
    @patch("audioremux.ffutil.process.execute", new_callable=AsyncMock)
    def test_unparseable_output(self, mock_execute, _mock_find, tmp_path):
        video = tmp_path / "video.mp4"
        video.write_bytes(b"x")
        mock_execute.return_value = "not json"

        with pytest.raises(ProbeError):
            asyncio.run(probe(video))

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingInputError):
            asyncio.run(probe(tmp_path / "missing.mp4"))


# ---------------------------------------------------------------------------
# extract_audio / convert_to_wav (mocked ffmpeg; verify the command shape)
# ---------------------------------------------------------------------------

class TestWavExtraction:
    @patch("audioremux.ffutil.run_ffmpeg", new_callable=AsyncMock)
    def test_extract_drops_video(self, mock_run, media_files, tmp_path):
        video, _ = media_files
        out = asyncio.run(extract_audio(video, tmp_path / "ref.wav"))

        assert out == tmp_path / "ref.wav"
        args = mock_run.call_args[0][0]
        assert "-vn" in args
        assert args[args.index("-ac") + 1] == "1"
        assert args[args.index("-ar") + 1] == "48000"
        assert args[args.index("-c:a") + 1] == "pcm_s16le"
        assert "-nostdin" in args

    @patch("audioremux.ffutil.run_ffmpeg", new_callable=AsyncMock)
    def test_convert_keeps_everything_but_format(self, mock_run, media_files, tmp_path):
        _, audio = media_files
        asyncio.run(convert_to_wav(audio, tmp_path / "target.wav", sample_rate=44100))

        args = mock_run.call_args[0][0]
        assert "-vn" not in args
        assert args[args.index("-ar") + 1] == "44100"
        assert mock_run.call_args[1]["timeout"] == 300.0

    @patch("audioremux.ffutil.run_ffmpeg", new_callable=AsyncMock)
    def test_missing_input(self, mock_run, tmp_path):
        with pytest.raises(MissingInputError):
            asyncio.run(extract_audio(tmp_path / "gone.mp4", tmp_path / "x.wav"))
        mock_run.assert_not_called()


# ---------------------------------------------------------------------------
# find_binary
# ---------------------------------------------------------------------------

class TestFindBinary:
    def test_env_override(self, tmp_path, monkeypatch):
        fake = tmp_path / "my-ffmpeg"
        fake.write_text("")
        monkeypatch.setenv("AUDIOREMUX_FFMPEG", str(fake))
        assert find_binary("ffmpeg") == str(fake)

    @patch("audioremux.ffutil.shutil.which", return_value="/usr/bin/ffprobe")
    def test_path_lookup(self, _mock_which, monkeypatch):
        monkeypatch.delenv("AUDIOREMUX_FFPROBE", raising=False)
        assert find_binary("ffprobe") == "/usr/bin/ffprobe"

    @patch("audioremux.ffutil._FALLBACK_DIRS", ())
    @patch("audioremux.ffutil.shutil.which", return_value=None)
    def test_not_found(self, _mock_which, monkeypatch):
        monkeypatch.delenv("AUDIOREMUX_FFMPEG", raising=False)
        with pytest.raises(FFmpegNotFoundError, match="ffmpeg not found"):
            find_binary("ffmpeg")
