"""Sequential download -> separate pipeline for one media identifier."""

from __future__ import annotations

import logging

from onedrop.config import PipelineSettings
from onedrop.tasks.commands import build_download_command, build_separation_command
from onedrop.tasks.errors import (
    AlreadyProcessedError,
    DownloadFailedError,
    SeparationFailedError,
)
from onedrop.tasks.failure_classifier import classify_pipeline_failure
from onedrop.tasks.models import FailureClass, PipelineOutcome, TaskState
from onedrop.tasks.process_runner import ProcessRunner
from onedrop.tasks.repository import TaskRepository
from onedrop.tasks.status_store import TaskStatusStore
from onedrop.tasks.workspace import TaskWorkspace

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Runs prepare -> download -> separate -> cleanup and publishes each state.

    Download failures are always fatal. A non-zero separation exit code is
    tolerated when the primary stem was still written, since the separation
    tool is known to exit non-zero after producing its output.
    """

    def __init__(
        self,
        *,
        store: TaskStatusStore,
        workspace: TaskWorkspace,
        settings: PipelineSettings,
        runner: ProcessRunner | None = None,
        repository: TaskRepository | None = None,
    ) -> None:
        self.store = store
        self.workspace = workspace
        self.settings = settings
        self.runner = runner or ProcessRunner(timeout_seconds=settings.timeout_seconds)
        self.repository = repository

    def run(self, task_id: str) -> PipelineOutcome:
        """Process one task to a terminal state.

        Raises :class:`AlreadyProcessedError` before any state change when the
        stems directory is already populated. Every other failure is logged
        and reported as a ``failed`` outcome.
        """

        if self.workspace.is_processed(task_id):
            raise AlreadyProcessedError(task_id)

        try:
            stems = self._execute(task_id)
        except Exception as error:  # noqa: BLE001
            classified = classify_pipeline_failure(error)
            if classified.failure_class == FailureClass.UNEXPECTED:
                logger.exception("Task %s unexpected error", task_id)
            else:
                logger.error(
                    "Task %s failed (%s): %s",
                    task_id,
                    classified.reason_code,
                    classified.error_summary,
                )
            self._transition(
                task_id,
                TaskState.FAILED,
                failure_class=classified.failure_class,
                error_summary=classified.error_summary,
            )
            return PipelineOutcome(
                task_id=task_id,
                state=TaskState.FAILED,
                failure_class=classified.failure_class,
                error_summary=classified.error_summary,
            )

        self._transition(task_id, TaskState.COMPLETED, stems=stems)
        logger.info("Task %s completed, stems stored in %s", task_id, self.workspace.stems_dir(task_id))
        return PipelineOutcome(task_id=task_id, state=TaskState.COMPLETED, stems=stems)

    def _execute(self, task_id: str) -> list[str]:
        self.workspace.prepare(task_id)
        input_file = self.workspace.input_file(task_id)

        self._transition(task_id, TaskState.DOWNLOADING)
        download = self.runner.run(
            build_download_command(self.settings, task_id=task_id, output_file=input_file),
            label="download",
        )
        if download.exit_code != 0:
            raise DownloadFailedError(download.exit_code, download.stderr_tail)

        self._transition(task_id, TaskState.SEPARATING)
        separation = self.runner.run(
            build_separation_command(
                self.settings,
                input_file=input_file,
                output_dir=self.workspace.tracks_dir,
            ),
            label="separation",
        )
        primary_stem = self.workspace.stem_file(task_id, self.settings.primary_stem)
        if separation.exit_code != 0:
            if not primary_stem.is_file():
                raise SeparationFailedError(separation.exit_code, separation.stderr_tail)
            logger.warning(
                "Separation for %s exited with code %s but %s exists, assuming success",
                task_id,
                separation.exit_code,
                primary_stem.name,
            )

        self.workspace.cleanup_input(task_id)
        return self.workspace.list_stems(task_id)

    def _transition(
        self,
        task_id: str,
        state: TaskState,
        *,
        failure_class: FailureClass | None = None,
        error_summary: str | None = None,
        stems: list[str] | None = None,
    ) -> None:
        self.store.set(task_id, state)
        if self.repository is None:
            return
        try:
            self.repository.update_status(
                task_id=task_id,
                status=state,
                failure_class=failure_class,
                error_summary=error_summary,
                stems=stems,
                mark_processed=state == TaskState.COMPLETED,
            )
        except Exception:  # noqa: BLE001
            logger.warning("Could not persist %s for task %s", state.value, task_id, exc_info=True)
