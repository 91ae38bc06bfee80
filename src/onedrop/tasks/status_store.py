"""In-memory task status table shared by the dispatcher and pool workers."""

from __future__ import annotations

import logging
import threading

from onedrop.tasks.errors import AlreadyInProgressError
from onedrop.tasks.models import TaskState

logger = logging.getLogger(__name__)


class TaskStatusStore:
    """Thread-safe ``task_id -> TaskState`` map.

    ``get`` returns ``None`` for identifiers that were never submitted (or
    were removed); there is no implicit default state. Nothing is persisted,
    so a restart starts from an empty table.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._statuses: dict[str, TaskState] = {}

    def set(self, task_id: str, state: TaskState) -> None:
        with self._lock:
            previous = self._statuses.get(task_id)
            self._statuses[task_id] = state
        logger.info(
            "Task %s: %s -> %s",
            task_id,
            previous.value if previous is not None else "none",
            state.value,
        )

    def get(self, task_id: str) -> TaskState | None:
        with self._lock:
            return self._statuses.get(task_id)

    def remove(self, task_id: str) -> None:
        with self._lock:
            self._statuses.pop(task_id, None)

    def set_if_absent(self, task_id: str, state: TaskState) -> bool:
        """Record ``state`` only for identifiers with no entry yet."""

        with self._lock:
            if task_id in self._statuses:
                return False
            self._statuses[task_id] = state
        logger.info("Task %s: none -> %s", task_id, state.value)
        return True

    def claim(self, task_id: str) -> TaskState | None:
        """Atomically move a task to pending unless a run is already in flight.

        Returns the previous (terminal or absent) state. Raises
        :class:`AlreadyInProgressError` carrying the current state otherwise.
        """

        with self._lock:
            current = self._statuses.get(task_id)
            if current is not None and not current.is_terminal:
                raise AlreadyInProgressError(task_id, current)
            self._statuses[task_id] = TaskState.PENDING
        logger.info(
            "Task %s: %s -> %s",
            task_id,
            current.value if current is not None else "none",
            TaskState.PENDING.value,
        )
        return current

    def snapshot(self) -> dict[str, TaskState]:
        with self._lock:
            return dict(self._statuses)
