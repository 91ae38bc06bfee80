from __future__ import annotations

from pathlib import Path

import allure
import pytest

from onedrop.tasks.models import FailureClass, MediaTaskUpsert, TaskState
from onedrop.tasks.repository import TaskRepository

pytestmark = [
    allure.epic("Stem Separation"),
    allure.feature("Task Metadata Storage"),
]


@pytest.fixture()
def repo(tmp_path: Path):
    repository = TaskRepository(tmp_path / "onedrop.db")
    repository.init_schema()
    yield repository
    repository.close()


def test_upsert_creates_pending_row(repo: TaskRepository) -> None:
    task = repo.upsert(MediaTaskUpsert(task_id="abc", title="Song", duration="PT3M42S"))

    assert task.status == TaskState.PENDING
    assert task.title == "Song"
    assert task.duration == "PT3M42S"
    assert task.processed_at is None
    assert task.stems == []
    assert task.created_at.tzinfo is not None


def test_upsert_resets_previous_run(repo: TaskRepository) -> None:
    repo.upsert(MediaTaskUpsert(task_id="abc", title="Song", duration=None))
    repo.update_status(
        task_id="abc",
        status=TaskState.FAILED,
        failure_class=FailureClass.DOWNLOAD_FAILED,
        error_summary="Download failed with exit code 1.",
    )

    task = repo.upsert(MediaTaskUpsert(task_id="abc", title="Song (live)", duration="PT4M"))

    assert task.status == TaskState.PENDING
    assert task.title == "Song (live)"
    assert task.failure_class is None
    assert task.error_summary is None
    assert task.processed_at is None


def test_update_status_marks_completion(repo: TaskRepository) -> None:
    repo.upsert(MediaTaskUpsert(task_id="abc", title="Song", duration=None))

    updated = repo.update_status(
        task_id="abc",
        status=TaskState.COMPLETED,
        stems=["accompaniment", "vocals"],
        mark_processed=True,
    )

    task = repo.find_by_id("abc")
    assert updated is True
    assert task is not None
    assert task.status == TaskState.COMPLETED
    assert task.stems == ["accompaniment", "vocals"]
    assert task.processed_at is not None
    assert repo.update_status(task_id="missing", status=TaskState.FAILED) is False


def test_listing_orders_by_completion_time(repo: TaskRepository) -> None:
    for task_id in ("old", "new", "queued"):
        repo.upsert(MediaTaskUpsert(task_id=task_id, title=task_id, duration=None))
    repo.update_status(task_id="old", status=TaskState.COMPLETED, mark_processed=True)
    repo.update_status(task_id="new", status=TaskState.COMPLETED, mark_processed=True)

    assert [task.task_id for task in repo.list_completed()] == ["new", "old"]
    assert [task.task_id for task in repo.list_all_order_by_completion_desc()] == [
        "new",
        "old",
        "queued",
    ]
    assert [task.task_id for task in repo.list_all_order_by_completion_desc(limit=1)] == ["new"]


def test_list_in_flight_and_delete(repo: TaskRepository) -> None:
    repo.upsert(MediaTaskUpsert(task_id="pending", title="P", duration=None))
    repo.upsert(MediaTaskUpsert(task_id="separating", title="S", duration=None))
    repo.upsert(MediaTaskUpsert(task_id="done", title="D", duration=None))
    repo.update_status(task_id="separating", status=TaskState.SEPARATING)
    repo.update_status(task_id="done", status=TaskState.COMPLETED, mark_processed=True)

    in_flight = sorted(task.task_id for task in repo.list_in_flight())

    assert in_flight == ["pending", "separating"]
    assert repo.delete("done") is True
    assert repo.delete("done") is False
    assert repo.find_by_id("done") is None


def test_non_failed_status_clears_previous_failure(repo: TaskRepository) -> None:
    repo.upsert(MediaTaskUpsert(task_id="abc", title="Song", duration=None))
    repo.update_status(
        task_id="abc",
        status=TaskState.FAILED,
        failure_class=FailureClass.INTERRUPTED,
        error_summary="Run interrupted while downloading.",
    )

    repo.update_status(task_id="abc", status=TaskState.COMPLETED, mark_processed=True)

    task = repo.find_by_id("abc")
    assert task is not None
    assert task.status == TaskState.COMPLETED
    assert task.failure_class is None
    assert task.error_summary is None
