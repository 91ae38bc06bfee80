"""Persistent task metadata repository."""

from __future__ import annotations

import json
from pathlib import Path

from sqlmodel import Session, col, select

from onedrop.storage.alembic_runner import upgrade_head
from onedrop.storage.common import as_utc, build_sqlite_engine, utc_now
from onedrop.storage.sqlmodel_models import MediaTask
from onedrop.tasks.models import (
    IN_FLIGHT_STATES,
    FailureClass,
    MediaTaskUpsert,
    MediaTaskView,
    TaskState,
)


class TaskRepository:
    """Task metadata persistence facade backed by SQLModel + SQLite.

    Every call opens its own session, so one instance is safe to share
    between the dispatcher and pool worker threads.
    """

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        upgrade_head(self.db_path)

    def upsert(self, payload: MediaTaskUpsert) -> MediaTaskView:
        """Create a task row or reset an existing one for a fresh run."""

        now = utc_now()
        with Session(self.engine) as session:
            row = session.get(MediaTask, payload.task_id)
            if row is None:
                row = MediaTask(
                    task_id=payload.task_id,
                    title=payload.title,
                    duration=payload.duration,
                    status=payload.status.value,
                    created_at=now,
                    updated_at=now,
                )
            else:
                row.title = payload.title
                row.duration = payload.duration
                row.status = payload.status.value
                row.updated_at = now
            row.processed_at = None
            row.failure_class = None
            row.error_summary = None
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def update_status(  # noqa: PLR0913
        self,
        *,
        task_id: str,
        status: TaskState,
        failure_class: FailureClass | None = None,
        error_summary: str | None = None,
        stems: list[str] | None = None,
        mark_processed: bool = False,
    ) -> bool:
        """Move a task row to ``status``; returns False when the row is missing."""

        now = utc_now()
        with Session(self.engine) as session:
            row = session.get(MediaTask, task_id)
            if row is None:
                return False
            row.status = status.value
            row.updated_at = now
            if status == TaskState.FAILED:
                row.failure_class = failure_class.value if failure_class is not None else None
                row.error_summary = error_summary
            else:
                row.failure_class = None
                row.error_summary = None
            if stems is not None:
                row.stems_json = json.dumps(stems)
            if mark_processed:
                row.processed_at = now
            session.add(row)
            session.commit()
            return True

    def find_by_id(self, task_id: str) -> MediaTaskView | None:
        with Session(self.engine) as session:
            row = session.get(MediaTask, task_id)
            if row is None:
                return None
            return _to_task_view(row)

    def list_all_order_by_completion_desc(self, *, limit: int | None = None) -> list[MediaTaskView]:
        """All rows, most recently processed first; never-processed rows last."""

        with Session(self.engine) as session:
            statement = select(MediaTask).order_by(
                col(MediaTask.processed_at).is_(None),
                col(MediaTask.processed_at).desc(),
                col(MediaTask.updated_at).desc(),
            )
            if limit is not None:
                statement = statement.limit(limit)
            return [_to_task_view(row) for row in session.exec(statement).all()]

    def list_completed(self, *, limit: int | None = None) -> list[MediaTaskView]:
        with Session(self.engine) as session:
            statement = (
                select(MediaTask)
                .where(MediaTask.status == TaskState.COMPLETED.value)
                .order_by(col(MediaTask.processed_at).desc())
            )
            if limit is not None:
                statement = statement.limit(limit)
            return [_to_task_view(row) for row in session.exec(statement).all()]

    def list_in_flight(self) -> list[MediaTaskView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(MediaTask).where(
                    col(MediaTask.status).in_([state.value for state in IN_FLIGHT_STATES]),
                ),
            ).all()
            return [_to_task_view(row) for row in rows]

    def delete(self, task_id: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(MediaTask, task_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True


def _to_task_view(row: MediaTask) -> MediaTaskView:
    return MediaTaskView(
        task_id=row.task_id,
        title=row.title,
        duration=row.duration,
        status=TaskState(row.status),
        failure_class=FailureClass(row.failure_class) if row.failure_class else None,
        error_summary=row.error_summary,
        stems=json.loads(row.stems_json) if row.stems_json else [],
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
        processed_at=as_utc(row.processed_at),
    )
