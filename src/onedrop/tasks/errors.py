"""Pipeline and submission error taxonomy."""

from __future__ import annotations

from onedrop.tasks.models import FailureClass, TaskState


class AlreadyProcessedError(RuntimeError):
    """Permanent output directory already holds stems for this identifier."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Stems already exist for {task_id}.")
        self.task_id = task_id


class AlreadyInProgressError(RuntimeError):
    """A run for this identifier is still in flight."""

    def __init__(self, task_id: str, state: TaskState) -> None:
        super().__init__(f"Task {task_id} is already in progress: {state.value}")
        self.task_id = task_id
        self.state = state


class PipelineError(RuntimeError):
    """Fatal pipeline stage failure with its failure class."""

    failure_class = FailureClass.UNEXPECTED


class DownloadFailedError(PipelineError):
    failure_class = FailureClass.DOWNLOAD_FAILED

    def __init__(self, exit_code: int, stderr_tail: list[str] | None = None) -> None:
        super().__init__(f"Download failed with exit code {exit_code}.")
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail or []


class SeparationFailedError(PipelineError):
    failure_class = FailureClass.SEPARATION_FAILED

    def __init__(self, exit_code: int, stderr_tail: list[str] | None = None) -> None:
        super().__init__(
            f"Separation failed with exit code {exit_code} and no primary stem was written.",
        )
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail or []


class ProcessTimeoutError(PipelineError):
    failure_class = FailureClass.TIMEOUT

    def __init__(self, label: str, timeout_seconds: float) -> None:
        super().__init__(f"{label} timed out after {timeout_seconds:g} seconds.")
        self.label = label
        self.timeout_seconds = timeout_seconds


class ProcessLaunchError(PipelineError):
    failure_class = FailureClass.LAUNCH_FAILED
