"""Tests for the async process runner, using the Python interpreter as the child."""

import asyncio
import sys
import threading

import pytest

from audioremux.errors import ExecutionFailedError, ProcessTimeoutError
from audioremux.process import OnceFlag, ProcessRegistry, execute, process_registry

PY = sys.executable


def _run(code: str, timeout: float = 10.0, registry: ProcessRegistry | None = None) -> str:
    return asyncio.run(execute(PY, ["-c", code], timeout=timeout, registry=registry))


class TestExecute:
    def test_returns_stdout(self):
        assert _run("print('hello')").strip() == "hello"

    def test_stdin_is_closed(self):
        out = _run("import sys; print(repr(sys.stdin.read()))")
        assert out.strip() == "''"

    def test_non_zero_exit_carries_stderr(self):
        code = "import sys; sys.stderr.write('boom happened'); sys.exit(3)"
        with pytest.raises(ExecutionFailedError) as excinfo:
            _run(code)
        assert excinfo.value.returncode == 3
        assert "boom happened" in excinfo.value.diagnostic

    def test_launch_failure(self, tmp_path):
        with pytest.raises(ExecutionFailedError):
            asyncio.run(execute(str(tmp_path / "no-such-binary"), [], timeout=5))

    def test_large_output_on_both_streams_does_not_deadlock(self):
        # Far more than a pipe buffer on each stream.
        code = (
            "import sys\n"
            "chunk = 'x' * 65536\n"
            "for _ in range(40):\n"
            "    sys.stdout.write(chunk); sys.stderr.write(chunk)\n"
        )
        out = _run(code, timeout=30)
        assert len(out) == 40 * 65536

    def test_registry_empty_after_success(self):
        registry = ProcessRegistry()
        _run("print(1)", registry=registry)
        assert len(registry) == 0


class TestTimeout:
    def test_timeout_kills_process(self):
        registry = ProcessRegistry()
        seen: dict = {}

        async def scenario():
            task = asyncio.create_task(
                execute(PY, ["-c", "import time; time.sleep(30)"], timeout=2.0, registry=registry)
            )
            for _ in range(100):
                await asyncio.sleep(0.01)
                if len(registry):
                    break
            seen["registered"] = len(registry)
            seen["procs"] = list(registry._processes)
            with pytest.raises(ProcessTimeoutError) as excinfo:
                await task
            seen["timeout"] = excinfo.value.timeout

        asyncio.run(scenario())
        assert seen["registered"] == 1
        assert seen["timeout"] == 2.0
        assert all(p.returncode is not None for p in seen["procs"])
        assert len(registry) == 0
        assert registry.running_count == 0

    def test_custom_registry_is_used_instead_of_global(self):
        registry = ProcessRegistry()
        seen: dict = {}

        async def scenario():
            task = asyncio.create_task(
                execute(PY, ["-c", "import time; time.sleep(2)"], timeout=10, registry=registry)
            )
            for _ in range(200):
                await asyncio.sleep(0.01)
                if len(registry):
                    break
            seen["custom"] = len(registry)
            seen["global"] = len(process_registry)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert seen["custom"] == 1
        assert seen["global"] == 0

    def test_fast_process_beats_timer(self):
        assert _run("print('quick')", timeout=20).strip() == "quick"


class TestCancellation:
    def test_cancel_kills_process(self):
        registry = ProcessRegistry()
        seen: dict = {}

        async def scenario():
            task = asyncio.create_task(
                execute(PY, ["-c", "import time; time.sleep(30)"], timeout=60, registry=registry)
            )
            for _ in range(200):
                await asyncio.sleep(0.05)
                if len(registry):
                    break
            seen["running_before"] = registry.running_count
            procs = list(registry._processes)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            seen["returncodes"] = [p.returncode for p in procs]

        asyncio.run(scenario())
        assert seen["running_before"] == 1
        assert all(rc is not None for rc in seen["returncodes"])
        assert len(registry) == 0


class TestProcessRegistry:
    def test_terminate_all(self):
        registry = ProcessRegistry()

        async def scenario():
            task = asyncio.create_task(
                execute(PY, ["-c", "import time; time.sleep(30)"], timeout=60, registry=registry)
            )
            for _ in range(200):
                await asyncio.sleep(0.05)
                if len(registry):
                    break
            killed = registry.terminate_all()
            with pytest.raises(ExecutionFailedError):
                await task
            return killed

        assert asyncio.run(scenario()) == 1
        assert len(registry) == 0

    def test_terminate_all_with_nothing_running(self):
        assert ProcessRegistry().terminate_all() == 0


class TestOnceFlag:
    def test_first_call_only(self):
        flag = OnceFlag()
        assert flag.try_run() is True
        assert flag.try_run() is False

    def test_exactly_one_winner_across_threads(self):
        flag = OnceFlag()
        wins = []
        threads = [threading.Thread(target=lambda: wins.append(flag.try_run())) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert wins.count(True) == 1
