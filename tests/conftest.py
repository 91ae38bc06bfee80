"""Shared test fixtures."""

from __future__ import annotations

import shlex
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from onedrop.config import PipelineSettings
from onedrop.tasks.models import TaskState
from onedrop.tasks.pipeline import PipelineOrchestrator
from onedrop.tasks.status_store import TaskStatusStore
from onedrop.tasks.workspace import TaskWorkspace

TOOLS_DIR = Path(__file__).parent / "tools"


def fake_download_command(*extra: str) -> str:
    return _tool_command(
        "fake_ytdlp.py",
        *extra,
        "-f bestaudio --extract-audio --audio-format {audio_format} --output {output_file} {url}",
    )


def fake_separation_command(*extra: str) -> str:
    return _tool_command(
        "fake_spleeter.py",
        "separate",
        *extra,
        "-p {model} -o {output_dir} {input_file}",
    )


def _tool_command(script: str, *parts: str) -> str:
    return " ".join(
        [shlex.quote(sys.executable), shlex.quote(str(TOOLS_DIR / script)), *parts],
    )


class RecordingStatusStore(TaskStatusStore):
    """Status store that remembers every write in order."""

    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[str, TaskState]] = []

    def set(self, task_id: str, state: TaskState) -> None:
        self.history.append((task_id, state))
        super().set(task_id, state)

    def states_for(self, task_id: str) -> list[TaskState]:
        return [state for recorded_id, state in self.history if recorded_id == task_id]


@pytest.fixture()
def calls_log(tmp_path: Path) -> Path:
    return tmp_path / "calls.log"


@pytest.fixture()
def workspace(tmp_path: Path) -> TaskWorkspace:
    return TaskWorkspace(temp_dir=tmp_path / "temp", tracks_dir=tmp_path / "tracks")


@pytest.fixture()
def make_settings(calls_log: Path) -> Callable[..., PipelineSettings]:
    """Pipeline settings wired to the fake download/separation tools."""

    def _make(
        *,
        download_args: tuple[str, ...] = (),
        separation_args: tuple[str, ...] = (),
        timeout_seconds: float = 60.0,
    ) -> PipelineSettings:
        log_arg = ("--calls-log", shlex.quote(str(calls_log)))
        return PipelineSettings(
            download_command=fake_download_command(*log_arg, *download_args),
            separation_command=fake_separation_command(*log_arg, *separation_args),
            timeout_seconds=timeout_seconds,
            poll_interval_seconds=0.05,
        )

    return _make


@pytest.fixture()
def make_orchestrator(
    workspace: TaskWorkspace,
    make_settings: Callable[..., PipelineSettings],
) -> Callable[..., PipelineOrchestrator]:
    def _make(*, repository=None, **settings_kwargs) -> PipelineOrchestrator:
        return PipelineOrchestrator(
            store=RecordingStatusStore(),
            workspace=workspace,
            settings=make_settings(**settings_kwargs),
            repository=repository,
        )

    return _make


@pytest.fixture()
def tool_calls(calls_log: Path) -> Callable[[], list[str]]:
    """Lines appended by the fake tools, one per invocation."""

    def _read() -> list[str]:
        if not calls_log.exists():
            return []
        return calls_log.read_text("utf-8").splitlines()

    return _read
