"""Subprocess runner for the external download and separation tools."""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from typing import IO

from onedrop.tasks.errors import ProcessLaunchError, ProcessTimeoutError
from onedrop.tasks.models import ProcessRunResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 20 * 60
STDERR_TAIL_LINES = 20
_TERMINATE_GRACE_SECONDS = 2.0
_DRAIN_JOIN_SECONDS = 5.0


class ProcessRunner:
    """Run one external command with a hard wall-clock timeout.

    stderr is drained on a dedicated thread for the whole lifetime of the child
    so verbose tools never block on a full pipe. stdout is discarded. The exit
    code is returned as-is; callers decide which codes they tolerate.
    """

    def __init__(self, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds

    def run(
        self,
        command: str | Sequence[str],
        *,
        label: str,
        timeout_seconds: float | None = None,
    ) -> ProcessRunResult:
        run_args = _to_argv(command)
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        logger.info("Running %s: %s", label, shlex.join(run_args))

        try:
            process = subprocess.Popen(  # noqa: S603
                run_args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=os.name != "nt",
            )
        except FileNotFoundError as error:
            raise ProcessLaunchError(f"{label} command not found: {run_args[0]}") from error
        except OSError as error:
            raise ProcessLaunchError(f"{label} failed to start: {error}") from error

        tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        drain = threading.Thread(
            target=_drain_stream,
            args=(process.stderr, label, tail),
            daemon=True,
            name=f"stderr-drain-{label}",
        )
        started = time.monotonic()
        drain.start()
        try:
            try:
                exit_code = process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("%s exceeded %g seconds, terminating pid %s", label, timeout, process.pid)
                _terminate_process(process)
                raise ProcessTimeoutError(label, timeout) from None
        finally:
            drain.join(timeout=_DRAIN_JOIN_SECONDS)
            if drain.is_alive():
                # a descendant outside the process group still holds the pipe
                logger.warning("%s left stderr open after exit, not waiting for it", label)
            elif process.stderr is not None:
                process.stderr.close()

        duration = time.monotonic() - started
        logger.info("%s exited with code %s after %.1fs", label, exit_code, duration)
        return ProcessRunResult(
            exit_code=exit_code,
            duration_seconds=duration,
            stderr_tail=list(tail),
        )


def _to_argv(command: str | Sequence[str]) -> list[str]:
    argv = shlex.split(command) if isinstance(command, str) else list(command)
    if not argv:
        raise ProcessLaunchError("Command rendered empty argument list.")
    return argv


def _drain_stream(stream: IO[str] | None, label: str, tail: deque[str]) -> None:
    if stream is None:
        return
    try:
        for raw_line in stream:
            line = raw_line.rstrip()
            if not line:
                continue
            tail.append(line)
            logger.debug("[%s] %s", label, line)
    except (OSError, ValueError) as error:
        # ValueError: stream closed by the runner after a timeout
        logger.debug("Stopped reading %s stderr: %s", label, error)


def _terminate_process(process: subprocess.Popen[str]) -> None:
    """Stop the child and everything it spawned: SIGTERM, grace period, SIGKILL."""

    if os.name == "nt":
        _signal_process(process, process.terminate, process.kill)
        return
    _signal_process(
        process,
        lambda: os.killpg(process.pid, signal.SIGTERM),
        lambda: os.killpg(process.pid, signal.SIGKILL),
    )


def _signal_process(
    process: subprocess.Popen[str],
    terminate: Callable[[], None],
    kill: Callable[[], None],
) -> None:
    try:
        terminate()
    except OSError:
        return
    try:
        process.wait(timeout=_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        pass
    else:
        if os.name == "nt":
            return
    # the group leader may be gone while descendants still hold the stderr pipe
    try:
        kill()
    except OSError:
        return
    try:
        process.wait(timeout=_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("pid %s did not exit after SIGKILL", process.pid)
