"""Domain models for task lifecycle and pipeline outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TaskState(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    SEPARATING = "separating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def rank(self) -> int:
        """Position in the pending -> downloading -> separating -> terminal order."""

        return _STATE_RANK[self]


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED})
IN_FLIGHT_STATES = frozenset({TaskState.PENDING, TaskState.DOWNLOADING, TaskState.SEPARATING})

_STATE_RANK = {
    TaskState.PENDING: 0,
    TaskState.DOWNLOADING: 1,
    TaskState.SEPARATING: 2,
    TaskState.COMPLETED: 3,
    TaskState.FAILED: 3,
}


class FailureClass(str, Enum):
    """Normalized failure classes recorded on failed tasks."""

    DOWNLOAD_FAILED = "download_failed"
    SEPARATION_FAILED = "separation_failed"
    TIMEOUT = "timeout"
    LAUNCH_FAILED = "launch_failed"
    INTERRUPTED = "interrupted"
    UNEXPECTED = "unexpected"


class SubmissionOutcome(str, Enum):
    """How the dispatcher answered a submission."""

    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    ALREADY_PROCESSED = "already_processed"


@dataclass(slots=True)
class SubmissionResult:
    """Acknowledgment returned to the submitting caller."""

    task_id: str
    outcome: SubmissionOutcome
    state: TaskState

    @property
    def accepted(self) -> bool:
        return self.outcome == SubmissionOutcome.ACCEPTED


@dataclass(slots=True)
class ProcessRunResult:
    """Exit metadata of one external command."""

    exit_code: int
    duration_seconds: float
    stderr_tail: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PipelineOutcome:
    """Terminal result of one orchestrator run."""

    task_id: str
    state: TaskState
    failure_class: FailureClass | None = None
    error_summary: str | None = None
    stems: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MediaTaskUpsert:
    """Input payload for recording a fresh submission."""

    task_id: str
    title: str
    duration: str | None
    status: TaskState = TaskState.PENDING


@dataclass(slots=True)
class MediaTaskView:
    """Readable task view for CLI and dispatcher logic."""

    task_id: str
    title: str
    duration: str | None
    status: TaskState
    failure_class: FailureClass | None
    error_summary: str | None
    stems: list[str]
    created_at: datetime
    updated_at: datetime
    processed_at: datetime | None


@dataclass(slots=True)
class ReconcileReport:
    """Counters from the startup reconciliation scan."""

    restored_completed: list[str] = field(default_factory=list)
    marked_interrupted: list[str] = field(default_factory=list)
    repaired_completed: list[str] = field(default_factory=list)
    still_active: list[str] = field(default_factory=list)
