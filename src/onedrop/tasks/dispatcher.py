"""Submission entry point that runs pipelines on a bounded worker pool."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from datetime import timedelta
from typing import Any

from onedrop.storage.common import utc_now
from onedrop.tasks.errors import AlreadyInProgressError, AlreadyProcessedError
from onedrop.tasks.models import (
    IN_FLIGHT_STATES,
    FailureClass,
    MediaTaskUpsert,
    MediaTaskView,
    ReconcileReport,
    SubmissionOutcome,
    SubmissionResult,
    TaskState,
)
from onedrop.tasks.pipeline import PipelineOrchestrator
from onedrop.tasks.repository import TaskRepository
from onedrop.tasks.status_store import TaskStatusStore

logger = logging.getLogger(__name__)


class TaskDispatcher:
    """Accepts submissions and hands them to pool workers without blocking.

    At most one run per identifier is in flight: the status store claim is the
    only gate, so a second submission while the first is pending, downloading
    or separating is answered with ``IN_PROGRESS`` and never queued. Rows
    another process keeps in flight count as running until they go stale.
    """

    def __init__(
        self,
        *,
        orchestrator: PipelineOrchestrator,
        repository: TaskRepository | None = None,
        max_workers: int = 2,
    ) -> None:
        self.orchestrator = orchestrator
        self.store: TaskStatusStore = orchestrator.store
        self.workspace = orchestrator.workspace
        self.repository = repository
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="onedrop-worker",
        )
        self._futures: set[Future[None]] = set()
        self._futures_lock = threading.Lock()
        self.stale_after = timedelta(
            seconds=orchestrator.settings.active_run_stale_after_seconds,
        )

    def submit(self, task_id: str, title: str | None, duration: str | None = None) -> SubmissionResult:
        """Start processing ``task_id`` in the background.

        Raises ``ValueError`` for a missing identifier or title. Conflicts are
        returned, not raised.
        """

        task_id = (task_id or "").strip()
        if not task_id:
            raise ValueError("Missing video id.")
        if title is None or not title.strip():
            raise ValueError(f"Missing title for {task_id}.")

        try:
            current = self.store.get(task_id)
            if current is not None and not current.is_terminal:
                raise AlreadyInProgressError(task_id, current)
            if current is None:
                self._reject_if_running_elsewhere(task_id)

            if self.workspace.is_processed(task_id):
                self.store.set_if_absent(task_id, TaskState.COMPLETED)
                logger.info("Task %s already has stems, skipping", task_id)
                return SubmissionResult(
                    task_id=task_id,
                    outcome=SubmissionOutcome.ALREADY_PROCESSED,
                    state=TaskState.COMPLETED,
                )

            self.store.claim(task_id)
        except AlreadyInProgressError as conflict:
            logger.info("Rejected duplicate submission: %s", conflict)
            return SubmissionResult(
                task_id=task_id,
                outcome=SubmissionOutcome.IN_PROGRESS,
                state=conflict.state,
            )

        try:
            if self.repository is not None:
                self.repository.upsert(
                    MediaTaskUpsert(task_id=task_id, title=title.strip(), duration=duration),
                )
            future = self._executor.submit(self._run_task, task_id)
        except Exception:
            logger.exception("Could not start processing for %s", task_id)
            self.store.set(task_id, TaskState.FAILED)
            raise

        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._forget_future)
        return SubmissionResult(
            task_id=task_id,
            outcome=SubmissionOutcome.ACCEPTED,
            state=TaskState.PENDING,
        )

    def get_state(self, task_id: str) -> TaskState | None:
        """Current in-memory state, ``None`` when never submitted."""

        return self.store.get(task_id)

    def list_completed(self, *, limit: int | None = None) -> list[MediaTaskView]:
        """Completed tasks, most recently processed first."""

        if self.repository is None:
            return []
        return [
            task
            for task in self.repository.list_completed(limit=limit)
            if task.status == TaskState.COMPLETED
        ]

    def remove(self, task_id: str) -> bool:
        """Forget a task in memory and storage. Stems on disk are kept."""

        state = self.store.get(task_id)
        if state is not None and not state.is_terminal:
            raise AlreadyInProgressError(task_id, state)
        self.store.remove(task_id)
        if self.repository is None:
            return state is not None
        return self.repository.delete(task_id) or state is not None

    def reconcile(self) -> ReconcileReport:
        """Align the in-memory store and storage with what is on disk.

        Populated stems directories become ``completed`` in the store. Rows
        left in flight and not updated for ``stale_after`` become ``completed``
        when their stems exist and ``failed`` (``interrupted``) otherwise, so
        they can be resubmitted. Fresher rows belong to a live run elsewhere
        and are only reported.
        """

        report = ReconcileReport()
        for task_id in self.workspace.processed_task_ids():
            if self.store.set_if_absent(task_id, TaskState.COMPLETED):
                report.restored_completed.append(task_id)

        if self.repository is None:
            return report
        for task in self.repository.list_in_flight():
            state = self.store.get(task.task_id)
            if state is not None and not state.is_terminal:
                continue
            if not self._is_stale(task):
                report.still_active.append(task.task_id)
                continue
            if self.workspace.is_processed(task.task_id):
                self.repository.update_status(
                    task_id=task.task_id,
                    status=TaskState.COMPLETED,
                    stems=self.workspace.list_stems(task.task_id),
                    mark_processed=True,
                )
                report.repaired_completed.append(task.task_id)
                continue
            self.repository.update_status(
                task_id=task.task_id,
                status=TaskState.FAILED,
                failure_class=FailureClass.INTERRUPTED,
                error_summary=f"Run interrupted while {task.status.value}.",
            )
            report.marked_interrupted.append(task.task_id)
        if report.marked_interrupted:
            logger.warning("Marked interrupted tasks as failed: %s", ", ".join(report.marked_interrupted))
        return report

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no accepted run is pending; False on timeout."""

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._futures_lock:
                pending = [future for future in self._futures if not future.done()]
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            done, _ = wait_futures(pending, timeout=remaining)
            if not done:
                return False

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run_task(self, task_id: str) -> None:
        try:
            self.orchestrator.run(task_id)
        except AlreadyProcessedError:
            logger.info("Task %s already has stems, marking completed", task_id)
            self.store.set(task_id, TaskState.COMPLETED)
            self._mirror(
                task_id,
                TaskState.COMPLETED,
                stems=self.workspace.list_stems(task_id),
                mark_processed=True,
            )
        except Exception as error:
            logger.exception("Worker crashed for task %s", task_id)
            self.store.set(task_id, TaskState.FAILED)
            self._mirror(
                task_id,
                TaskState.FAILED,
                failure_class=FailureClass.UNEXPECTED,
                error_summary=f"{type(error).__name__}: {error}",
            )

    def _mirror(self, task_id: str, state: TaskState, **fields: Any) -> None:
        if self.repository is None:
            return
        try:
            self.repository.update_status(task_id=task_id, status=state, **fields)
        except Exception:  # noqa: BLE001
            logger.warning("Could not persist %s for task %s", state.value, task_id, exc_info=True)

    def _reject_if_running_elsewhere(self, task_id: str) -> None:
        if self.repository is None:
            return
        task = self.repository.find_by_id(task_id)
        if task is None or task.status not in IN_FLIGHT_STATES or self._is_stale(task):
            return
        raise AlreadyInProgressError(task_id, task.status)

    def _is_stale(self, task: MediaTaskView) -> bool:
        return utc_now() - task.updated_at > self.stale_after

    def _forget_future(self, future: Future[None]) -> None:
        with self._futures_lock:
            self._futures.discard(future)
