"""Per-task directory layout for transient downloads and permanent stems."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class TaskWorkspace:
    """Creates deterministic per-task paths under the temp and tracks roots.

    ``<temp_dir>/<task_id>.<audio_format>`` holds the downloaded input and is
    deleted after separation. ``<tracks_dir>/<task_id>/`` holds the stems and
    is never deleted by the pipeline; once non-empty it marks the task done.
    """

    def __init__(self, *, temp_dir: Path, tracks_dir: Path, audio_format: str = "wav") -> None:
        self.temp_dir = temp_dir
        self.tracks_dir = tracks_dir
        self.audio_format = audio_format

    def input_file(self, task_id: str) -> Path:
        return self.temp_dir / f"{_safe_name(task_id)}.{self.audio_format}"

    def stems_dir(self, task_id: str) -> Path:
        return self.tracks_dir / _safe_name(task_id)

    def stem_file(self, task_id: str, stem: str) -> Path:
        return self.stems_dir(task_id) / f"{_safe_name(stem)}.{self.audio_format}"

    def is_processed(self, task_id: str) -> bool:
        """True when the stems directory exists and lists at least one entry."""

        stems_dir = self.stems_dir(task_id)
        if not stems_dir.is_dir():
            return False
        return any(stems_dir.iterdir())

    def prepare(self, task_id: str) -> None:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.stems_dir(task_id).mkdir(parents=True, exist_ok=True)

    def list_stems(self, task_id: str) -> list[str]:
        stems_dir = self.stems_dir(task_id)
        if not stems_dir.is_dir():
            return []
        return sorted(
            path.stem
            for path in stems_dir.iterdir()
            if path.is_file() and path.suffix == f".{self.audio_format}"
        )

    def processed_task_ids(self) -> list[str]:
        """Identifiers whose stems directory is non-empty."""

        if not self.tracks_dir.is_dir():
            return []
        return sorted(
            path.name for path in self.tracks_dir.iterdir() if path.is_dir() and any(path.iterdir())
        )

    def cleanup_input(self, task_id: str) -> bool:
        """Delete the downloaded input file; failures are logged, never raised."""

        input_file = self.input_file(task_id)
        try:
            input_file.unlink(missing_ok=True)
        except OSError as error:
            logger.warning("Could not delete transient input %s: %s", input_file, error)
            return False
        return True

    def track_path(self, task_id: str, track_name: str) -> Path:
        """Resolve a stem file for serving, e.g. ``track_path(id, "vocals")``."""

        path = self.stem_file(task_id, track_name)
        if not path.is_file():
            raise FileNotFoundError(f"Track not found: {path}")
        return path


def _safe_name(value: str) -> str:
    name = value.strip()
    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\x00" in name:
        raise ValueError(f"Invalid path component: {value!r}")
    return name
