"""Controllers for task CLI commands."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from onedrop.config import Settings
from onedrop.tasks.dispatcher import TaskDispatcher
from onedrop.tasks.errors import AlreadyInProgressError
from onedrop.tasks.models import MediaTaskView, SubmissionOutcome, TaskState
from onedrop.tasks.pipeline import PipelineOrchestrator
from onedrop.tasks.process_runner import ProcessRunner
from onedrop.tasks.repository import TaskRepository
from onedrop.tasks.status_store import TaskStatusStore
from onedrop.tasks.workspace import TaskWorkspace


@dataclass(slots=True)
class ProcessCommand:
    """CLI input for download + separation of one video."""

    db_path: Path | None
    video_id: str
    title: str | None
    duration: str | None


@dataclass(slots=True)
class StatusCommand:
    """CLI input for task status lookup."""

    db_path: Path | None
    video_id: str


@dataclass(slots=True)
class VideosCommand:
    """CLI input for completed task listing."""

    db_path: Path | None
    limit: int | None


@dataclass(slots=True)
class TrackCommand:
    """CLI input for resolving one stem file."""

    video_id: str
    track_name: str


@dataclass(slots=True)
class RemoveCommand:
    """CLI input for task metadata removal."""

    db_path: Path | None
    video_id: str


@dataclass(slots=True)
class ReconcileCommand:
    """CLI input for startup reconciliation."""

    db_path: Path | None


@dataclass(slots=True)
class CommandResult:
    """Lines to render in CLI plus overall success flag."""

    lines: list[str]
    success: bool


class TaskCliController:
    """Coordinates dispatcher, repository and workspace CLI operations."""

    def process(
        self,
        command: ProcessCommand,
        on_progress: Callable[[str], None] | None = None,
    ) -> CommandResult:
        settings = _settings(command.db_path)
        emit = on_progress or (lambda _line: None)
        with _dispatcher(settings) as dispatcher:
            submission = dispatcher.submit(command.video_id, command.title, command.duration)
            if submission.outcome == SubmissionOutcome.ALREADY_PROCESSED:
                return CommandResult(
                    lines=[f"Stems already exist for {submission.task_id}."],
                    success=True,
                )
            if submission.outcome == SubmissionOutcome.IN_PROGRESS:
                return CommandResult(
                    lines=[
                        f"Task for {submission.task_id} is already in progress: "
                        f"{submission.state.value}",
                    ],
                    success=False,
                )

            emit(f"Processing started for {submission.task_id}")
            final_state = _poll_until_terminal(
                dispatcher,
                task_id=submission.task_id,
                interval=settings.pipeline.poll_interval_seconds,
                on_change=lambda state: emit(f"{submission.task_id}: {state.value.upper()}"),
            )
            task = dispatcher.repository.find_by_id(submission.task_id) if dispatcher.repository else None

        lines = [f"Task {submission.task_id} finished: {final_state.value.upper()}"]
        if task is not None:
            lines.extend(_describe_task(task))
        return CommandResult(lines=lines, success=final_state == TaskState.COMPLETED)

    def status(self, command: StatusCommand) -> CommandResult:
        settings = _settings(command.db_path)
        workspace = _workspace(settings)
        with _repository(settings) as repository:
            task = repository.find_by_id(command.video_id)
        if task is None:
            if workspace.is_processed(command.video_id):
                return CommandResult(
                    lines=[f"{command.video_id}: COMPLETED (stems on disk, no metadata)"],
                    success=True,
                )
            return CommandResult(lines=[f"{command.video_id}: UNKNOWN"], success=False)
        return CommandResult(
            lines=[f"{task.task_id}: {task.status.value.upper()}", *_describe_task(task)],
            success=True,
        )

    def videos(self, command: VideosCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _repository(settings) as repository:
            tasks = repository.list_completed(limit=command.limit)
        if not tasks:
            return ["No completed videos."]
        lines = [f"Completed videos: {len(tasks)}"]
        for task in tasks:
            processed = task.processed_at.isoformat() if task.processed_at else "-"
            lines.append(
                f"- {task.task_id} processed_at={processed} duration={task.duration or '-'} "
                f"stems={','.join(task.stems) or '-'} title={task.title}",
            )
        return lines

    def track(self, command: TrackCommand) -> str:
        workspace = _workspace(_settings(None))
        return str(workspace.track_path(command.video_id, command.track_name))

    def remove(self, command: RemoveCommand) -> CommandResult:
        settings = _settings(command.db_path)
        with _dispatcher(settings) as dispatcher:
            try:
                removed = dispatcher.remove(command.video_id)
            except AlreadyInProgressError as error:
                return CommandResult(lines=[str(error)], success=False)
        if not removed:
            return CommandResult(lines=[f"No task recorded for {command.video_id}."], success=False)
        return CommandResult(lines=[f"Removed task {command.video_id}."], success=True)

    def reconcile(self, command: ReconcileCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _dispatcher(settings) as dispatcher:
            report = dispatcher.reconcile()
        return [
            "Reconcile summary: "
            f"stems_on_disk={len(report.restored_completed)} "
            f"repaired_completed={len(report.repaired_completed)} "
            f"marked_interrupted={len(report.marked_interrupted)} "
            f"still_active={len(report.still_active)}",
            *(f"- interrupted: {task_id}" for task_id in report.marked_interrupted),
            *(f"- completed: {task_id}" for task_id in report.repaired_completed),
            *(f"- still running elsewhere: {task_id}" for task_id in report.still_active),
        ]


def _poll_until_terminal(
    dispatcher: TaskDispatcher,
    *,
    task_id: str,
    interval: float,
    on_change: Callable[[TaskState], None],
) -> TaskState:
    last_state: TaskState | None = None
    while True:
        state = dispatcher.get_state(task_id)
        if state is not None and state != last_state:
            on_change(state)
            last_state = state
        if state is not None and state.is_terminal:
            return state
        time.sleep(interval)


def _describe_task(task: MediaTaskView) -> list[str]:
    lines = [f"Title: {task.title}"]
    if task.duration:
        lines.append(f"Duration: {task.duration}")
    if task.processed_at is not None:
        lines.append(f"Processed at: {task.processed_at.isoformat()}")
    if task.stems:
        lines.append(f"Stems: {', '.join(task.stems)}")
    if task.failure_class is not None:
        lines.append(f"Failure: {task.failure_class.value}")
    if task.error_summary:
        lines.append(f"Error: {task.error_summary}")
    return lines


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


def _workspace(settings: Settings) -> TaskWorkspace:
    return TaskWorkspace(
        temp_dir=settings.workspace.temp_dir,
        tracks_dir=settings.workspace.tracks_dir,
        audio_format=settings.pipeline.audio_format,
    )


@contextmanager
def _repository(settings: Settings) -> Iterator[TaskRepository]:
    repository = TaskRepository(settings.db_path)
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _dispatcher(settings: Settings) -> Iterator[TaskDispatcher]:
    with _repository(settings) as repository:
        orchestrator = PipelineOrchestrator(
            store=TaskStatusStore(),
            workspace=_workspace(settings),
            settings=settings.pipeline,
            runner=ProcessRunner(timeout_seconds=settings.pipeline.timeout_seconds),
            repository=repository,
        )
        dispatcher = TaskDispatcher(
            orchestrator=orchestrator,
            repository=repository,
            max_workers=settings.pipeline.max_workers,
        )
        try:
            yield dispatcher
        finally:
            dispatcher.shutdown(wait=True)
