"""Async external-process runner with timeout, cancellation and a live-process registry."""

import asyncio
import logging
import shlex
import threading
from typing import Any, Callable

from audioremux.errors import ExecutionFailedError, ProcessTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
_CHUNK_SIZE = 64 * 1024


class ProcessRegistry:
    """Lock-protected set of running child processes.

    ``terminate_all`` is the shutdown backstop: it kills anything still
    registered, from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processes: set[asyncio.subprocess.Process] = set()

    def register(self, proc: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._processes.add(proc)

    def unregister(self, proc: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._processes.discard(proc)

    def terminate_all(self) -> int:
        """Kill every registered process that is still running; return how many."""
        with self._lock:
            processes = list(self._processes)

        killed = 0
        for proc in processes:
            if proc.returncode is None:
                logger.info("Terminating leftover process pid=%s", proc.pid)
                _kill(proc)
                killed += 1
        return killed

    @property
    def running_count(self) -> int:
        with self._lock:
            return sum(1 for p in self._processes if p.returncode is None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)


process_registry = ProcessRegistry()


class OnceFlag:
    """Thread-safe flag whose ``try_run`` returns True exactly once."""

    def __init__(self) -> None:
        self._done = False
        self._lock = threading.Lock()

    def try_run(self) -> bool:
        with self._lock:
            if self._done:
                return False
            self._done = True
            return True


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


async def _drain(stream: asyncio.StreamReader | None) -> bytes:
    """Read a pipe chunk by chunk until EOF so the child never blocks on a full buffer."""
    if stream is None:
        return b""
    buf = bytearray()
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return bytes(buf)
        buf.extend(chunk)


async def _run_process(path: str, arguments: list[str], registry: ProcessRegistry) -> str:
    try:
        proc = await asyncio.create_subprocess_exec(
            path,
            *arguments,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        logger.error("Process failed to start: %s", exc)
        raise ExecutionFailedError(str(exc)) from exc

    registry.register(proc)
    logger.debug("Process started, pid=%s", proc.pid)
    try:
        stdout, stderr = await asyncio.gather(_drain(proc.stdout), _drain(proc.stderr))
        returncode = await proc.wait()
    except asyncio.CancelledError:
        logger.debug("Process task cancelled, killing pid=%s", proc.pid)
        _kill(proc)
        await proc.wait()
        raise
    finally:
        registry.unregister(proc)

    output = stdout.decode("utf-8", errors="replace")
    diagnostic = stderr.decode("utf-8", errors="replace")
    if returncode != 0:
        logger.debug("Process exited with rc=%s: %s", returncode, diagnostic[-500:])
        raise ExecutionFailedError(diagnostic, returncode=returncode)
    logger.debug("Process exited cleanly, %d bytes of output", len(stdout))
    return output


async def _expire(timeout: float) -> Any:
    await asyncio.sleep(timeout)
    logger.debug("Timeout reached after %ss", timeout)
    raise ProcessTimeoutError(timeout)


async def execute(
    path: str,
    arguments: list[str],
    timeout: float = DEFAULT_TIMEOUT,
    registry: ProcessRegistry | None = None,
) -> str:
    """Run ``path`` with ``arguments`` and return its standard output.

    The process and a timer race; whichever finishes first decides the
    outcome and the other is cancelled. A timeout or a cancelled caller
    kills the child before this coroutine returns.

    Raises:
        ExecutionFailedError: the process could not start or exited non-zero.
        ProcessTimeoutError: the process outlived ``timeout`` seconds.
        asyncio.CancelledError: the caller was cancelled.
    """
    registry = process_registry if registry is None else registry
    logger.debug("Executing with timeout %ss: %s", timeout, shlex.join([path, *arguments]))

    loop = asyncio.get_running_loop()
    outcome: asyncio.Future[str] = loop.create_future()
    once = OnceFlag()

    def settle(task: asyncio.Task) -> None:
        if task.cancelled() or outcome.done():
            return
        if not once.try_run():
            logger.debug("Outcome already delivered, ignoring %s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            outcome.set_exception(exc)
        else:
            outcome.set_result(task.result())

    run_task = asyncio.create_task(_run_process(path, arguments, registry), name="process")
    timer_task = asyncio.create_task(_expire(timeout), name="timeout")
    tasks: list[asyncio.Task] = [run_task, timer_task]
    for task in tasks:
        task.add_done_callback(settle)

    try:
        return await outcome
    finally:
        for task in tasks:
            task.cancel()
        # Wait for the losing task so the child is reaped and deregistered.
        await asyncio.gather(*tasks, return_exceptions=True)


def run_sync(coro_factory: Callable[[], Any]) -> Any:
    """Run a coroutine from synchronous code, killing children on Ctrl-C."""
    try:
        return asyncio.run(coro_factory())
    except KeyboardInterrupt:
        process_registry.terminate_all()
        raise
