"""Thin CLI entry point: builds a Manifest and calls the engine."""

import argparse
import atexit
import logging
import logging.handlers
import sys
from pathlib import Path

from audioremux import engine
from audioremux.formats import AudioBitrate, AudioCodec, BitDepth, OutputContainer, parse_enum
from audioremux.manifest import (
    DEFAULT_EXPORT_TIMEOUT,
    DEFAULT_SUFFIX,
    AnalysisConfig,
    ExportSettings,
    Manifest,
    load_manifest,
)
from audioremux.process import process_registry, run_sync


def configure_logging(verbose: bool, log_file: Path | None = None) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
            )
        )
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def _settings_from_args(args: argparse.Namespace) -> ExportSettings:
    container = parse_enum(OutputContainer, args.container)
    codec = parse_enum(AudioCodec, args.codec) if args.codec else container.recommended_codec
    return ExportSettings(
        offset_seconds=args.offset,
        audio_codec=codec,
        bit_depth=parse_enum(BitDepth, args.bit_depth),
        bitrate=parse_enum(AudioBitrate, args.bitrate),
        output_container=container,
        output_suffix=args.suffix,
        output_directory=args.output_dir,
        auto_fade_enabled=not args.no_fade,
    )


def _print_progress(stage: str, frac: float) -> None:
    print(f"  [{frac:3.0%}] {stage}")


def _cmd_analyze(args: argparse.Namespace) -> int:
    config = AnalysisConfig(
        window_seconds=args.window,
        max_offset_seconds=args.max_offset,
    )
    outcome = run_sync(
        lambda: engine.analyze(args.video, args.audio, config, on_progress=_print_progress)
    )
    if outcome.error is not None:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1

    result = outcome.result
    print()
    print(f"Offset: {result.detected_offset_seconds:+.3f}s")
    print(f"  Confidence: {result.confidence:.3f} ({result.confidence_level.description})")
    print(f"  Analyzed: {result.analyzed_range.start:.1f}s - {result.analyzed_range.end:.1f}s")
    if result.requires_confirmation:
        print("  Check this offset by ear before exporting with it.")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.video and args.audio:
        m = Manifest(
            video=args.video,
            audio=args.audio,
            output=args.output,
            export=_settings_from_args(args),
            auto_sync=args.auto_sync,
            accept_low_confidence=args.accept_low_confidence,
            timeout=args.timeout,
        )
    else:
        print("Error: provide VIDEO and AUDIO arguments or --manifest.", file=sys.stderr)
        return 1

    if not m.export.is_valid_combination:
        print(
            f"Error: {m.export.output_container.display_name} does not support "
            f"{m.export.audio_codec.display_name}; supported: "
            + ", ".join(c.display_name for c in m.export.output_container.supported_codecs),
            file=sys.stderr,
        )
        return 1

    result = run_sync(lambda: engine.run(m, on_progress=_print_progress))

    if result.analysis is not None:
        a = result.analysis
        status = "applied" if result.offset_applied_from_analysis else "not applied (low confidence)"
        print(f"  Detected offset {a.detected_offset_seconds:+.3f}s, confidence {a.confidence:.2f}: {status}")

    if result.error is not None:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Offset: {result.offset_seconds:+.3f}s")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="audioremux",
        description="AudioRemux: replace a video's audio track without re-encoding the video.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command")

    ana = sub.add_parser("analyze", help="Estimate the offset between two soundtracks")
    ana.add_argument("video", type=Path, help="Video whose audio is the reference")
    ana.add_argument("audio", type=Path, help="Replacement audio file")
    ana.add_argument("--window", type=float, default=30.0, help="Analysis window (seconds)")
    ana.add_argument("--max-offset", type=float, default=5.0, help="Largest offset searched (seconds)")

    exp = sub.add_parser("export", help="Write the video with its audio replaced")
    exp.add_argument("video", nargs="?", type=Path, help="Input video file")
    exp.add_argument("audio", nargs="?", type=Path, help="Replacement audio file")
    exp.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    exp.add_argument("--output", "-o", type=Path, help="Output file path")
    exp.add_argument("--offset", type=float, default=0.0, help="Audio offset in seconds (positive delays the audio)")
    exp.add_argument("--container", choices=[c.value for c in OutputContainer], default="mp4")
    exp.add_argument("--codec", choices=[c.value for c in AudioCodec], help="Audio codec (default: container's recommended)")
    exp.add_argument("--bit-depth", type=int, choices=[b.value for b in BitDepth], default=24)
    exp.add_argument("--bitrate", type=int, choices=[b.value for b in AudioBitrate], default=256, help="AAC bitrate (kbps)")
    exp.add_argument("--suffix", default=DEFAULT_SUFFIX, help="Output file name suffix")
    exp.add_argument("--output-dir", type=Path, help="Output directory (default: next to the video)")
    exp.add_argument("--no-fade", action="store_true", help="Disable the short fade at both ends")
    exp.add_argument("--auto-sync", action="store_true", help="Detect the offset before exporting")
    exp.add_argument("--accept-low-confidence", action="store_true", help="Apply a detected offset even with low confidence")
    exp.add_argument("--timeout", type=float, default=DEFAULT_EXPORT_TIMEOUT, help="ffmpeg timeout (seconds)")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()
    configure_logging(args.verbose, args.log_file)
    atexit.register(process_registry.terminate_all)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from audioremux.web import create_app
        app = create_app()
        print(f"AudioRemux web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    try:
        if args.command == "analyze":
            code = _cmd_analyze(args)
        else:
            code = _cmd_export(args)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
