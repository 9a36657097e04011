"""Error types shared across AudioRemux.

Library functions raise these; the engine turns them into result objects.
"""

from pathlib import Path


class RemuxError(Exception):
    """Base class for every structured AudioRemux failure."""


class FFmpegNotFoundError(RemuxError):
    pass


class InsufficientDataError(RemuxError):
    """Raised when the analysis window holds no samples."""

    def __init__(self, message: str = "not enough audio data to analyze") -> None:
        super().__init__(message)


class IncompatibleFormatError(RemuxError):
    """Raised when the output container cannot carry the chosen audio codec."""

    def __init__(self, container: str, codec: str) -> None:
        self.container = container
        self.codec = codec
        super().__init__(f"{container} container does not support the {codec} codec")


class DurationUnknownError(RemuxError):
    """Raised when a negative offset is requested but the video length is unknown."""

    def __init__(self, video_path: Path | None = None) -> None:
        self.video_path = video_path
        where = f" of {video_path}" if video_path else ""
        super().__init__(
            f"could not determine the duration{where}; "
            "a negative offset needs it to keep the full video length"
        )


class ExecutionFailedError(RemuxError):
    """An external process failed to start or exited non-zero."""

    def __init__(self, diagnostic: str, returncode: int | None = None) -> None:
        self.diagnostic = diagnostic
        self.returncode = returncode
        if returncode is None:
            super().__init__(f"process failed: {diagnostic}")
        else:
            super().__init__(f"process failed (rc={returncode}): {diagnostic}")


class ProcessTimeoutError(RemuxError):
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"process timed out after {timeout:g}s")


class OperationCancelledError(RemuxError):
    def __init__(self, message: str = "operation was cancelled") -> None:
        super().__init__(message)


class MissingInputError(RemuxError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"input file not found: {path}")


class ProbeError(RemuxError):
    """Raised when ffprobe output cannot be parsed."""
    pass
