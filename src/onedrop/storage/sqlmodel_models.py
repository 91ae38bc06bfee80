"""SQLModel ORM tables for task metadata."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Text
from sqlmodel import Field, SQLModel


class MediaTask(SQLModel, table=True):
    __tablename__ = "media_tasks"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_media_tasks_status_processed", "status", "processed_at"),)

    task_id: str = Field(primary_key=True)
    title: str
    duration: str | None = None
    status: str = Field(index=True)
    failure_class: str | None = None
    error_summary: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    stems_json: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    processed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
