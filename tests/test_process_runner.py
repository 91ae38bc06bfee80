from __future__ import annotations

import os
import sys
import threading
import time

import allure
import pytest

from onedrop.tasks.errors import ProcessLaunchError, ProcessTimeoutError
from onedrop.tasks.process_runner import STDERR_TAIL_LINES, ProcessRunner

pytestmark = [
    allure.epic("Stem Separation"),
    allure.feature("External Process Supervision"),
]


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def _drain_threads(label: str) -> list[threading.Thread]:
    return [
        thread
        for thread in threading.enumerate()
        if thread.name == f"stderr-drain-{label}" and thread.is_alive()
    ]


def test_run_returns_exit_code_without_interpreting_it() -> None:
    runner = ProcessRunner(timeout_seconds=30)

    result = runner.run(_python("import sys; sys.exit(2)"), label="exit-two")

    assert result.exit_code == 2
    assert result.duration_seconds >= 0


def test_run_accepts_command_string() -> None:
    runner = ProcessRunner(timeout_seconds=30)

    result = runner.run(f'"{sys.executable}" -c "print(1)"', label="string-command")

    assert result.exit_code == 0


def test_verbose_stderr_is_drained_without_deadlock() -> None:
    runner = ProcessRunner(timeout_seconds=60)
    code = (
        "import sys\n"
        "for i in range(20000):\n"
        "    sys.stderr.write('progress line %05d ' % i + 'x' * 80 + '\\n')\n"
    )

    result = runner.run(_python(code), label="chatty")

    assert result.exit_code == 0
    assert len(result.stderr_tail) == STDERR_TAIL_LINES
    assert result.stderr_tail[-1].startswith("progress line 19999")
    assert _drain_threads("chatty") == []


def test_child_that_never_exits_is_terminated_at_timeout() -> None:
    runner = ProcessRunner(timeout_seconds=0.5)
    started = time.monotonic()

    with pytest.raises(ProcessTimeoutError) as raised:
        runner.run(
            _python("import sys, time\nprint('waiting', file=sys.stderr, flush=True)\ntime.sleep(60)"),
            label="stuck",
        )

    assert time.monotonic() - started < 15
    assert raised.value.timeout_seconds == 0.5
    assert raised.value.label == "stuck"
    assert _drain_threads("stuck") == []


def test_per_call_timeout_overrides_default() -> None:
    runner = ProcessRunner(timeout_seconds=600)

    with pytest.raises(ProcessTimeoutError):
        runner.run(_python("import time; time.sleep(60)"), label="override", timeout_seconds=0.3)


def test_missing_executable_raises_launch_error() -> None:
    runner = ProcessRunner(timeout_seconds=5)

    with pytest.raises(ProcessLaunchError, match="command not found"):
        runner.run(["definitely-not-a-real-onedrop-tool"], label="missing")


@pytest.mark.skipif(os.name == "nt", reason="process groups are POSIX-only")
def test_timeout_stops_grandchildren_holding_stderr() -> None:
    runner = ProcessRunner(timeout_seconds=0.5)
    started = time.monotonic()

    with pytest.raises(ProcessTimeoutError):
        runner.run(["sh", "-c", "sleep 60; echo done"], label="wrapper")

    assert time.monotonic() - started < 10
    assert _drain_threads("wrapper") == []
