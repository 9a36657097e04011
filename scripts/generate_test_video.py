#!/usr/bin/env python3
"""Generate a synthetic video and an offset replacement track for AudioRemux testing.

Produces two files:
  sync_test.mp4   ~12-second video with a burst pattern soundtrack:
                  0-2s 440 Hz, 2-3s silence, 3-6s 880 Hz, 6-8s silence,
                  8-9s 660 Hz, 9-12s silence
  sync_test.wav   the same burst pattern, delayed by OFFSET seconds of leading
                  silence; `audioremux analyze` should report -OFFSET
"""

import subprocess
import sys
from pathlib import Path

BURSTS = (
    "sine=f=440:d=2[a0];"
    "anullsrc=r=44100:cl=mono:d=1[s0];"
    "sine=f=880:d=3[a1];"
    "anullsrc=r=44100:cl=mono:d=2[s1];"
    "sine=f=660:d=1[a2];"
    "anullsrc=r=44100:cl=mono:d=3[s2];"
    "[a0][s0][a1][s1][a2][s2]concat=n=6:v=0:a=1"
)


def generate_test_video(output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    cmd = [
        "ffmpeg", "-y",
        "-filter_complex",
        BURSTS + "[aout];color=c=blue:s=320x240:d=12:r=30[vout]",
        "-map", "[vout]",
        "-map", "[aout]",
        "-c:v", "libx264",
        "-c:a", "aac",
        "-shortest",
        str(output),
    ]
    subprocess.run(cmd, check=True)
    print(f"Generated: {output}")


def generate_replacement_audio(output: Path, offset: float) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    delay_ms = int(offset * 1000)
    cmd = [
        "ffmpeg", "-y",
        "-filter_complex", BURSTS + f",adelay={delay_ms}[aout]",
        "-map", "[aout]",
        "-c:a", "pcm_s16le",
        str(output),
    ]
    subprocess.run(cmd, check=True)
    print(f"Generated: {output} (delayed {offset:.3f}s)")


if __name__ == "__main__":
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures")
    offset = float(sys.argv[2]) if len(sys.argv) > 2 else 0.75
    generate_test_video(out_dir / "sync_test.mp4")
    generate_replacement_audio(out_dir / "sync_test.wav", offset)
