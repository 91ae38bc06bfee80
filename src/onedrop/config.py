"""Runtime configuration for the download/separation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_APP_DIR = Path.home() / "OneDrop"
DEFAULT_DOWNLOAD_COMMAND = (
    "yt-dlp -f bestaudio --extract-audio --audio-format {audio_format} "
    "--output {output_file} {url}"
)
DEFAULT_SEPARATION_COMMAND = "spleeter separate -p {model} -o {output_dir} {input_file}"
DEFAULT_SOURCE_URL_TEMPLATE = "https://www.youtube.com/watch?v={task_id}"

DOWNLOAD_PLACEHOLDERS = frozenset({"url", "output_file", "audio_format"})
SEPARATION_PLACEHOLDERS = frozenset({"input_file", "output_dir", "model"})


@dataclass(slots=True)
class WorkspaceSettings:
    """Filesystem layout for transient downloads and permanent stems."""

    app_dir: Path = DEFAULT_APP_DIR
    temp_dir: Path = DEFAULT_APP_DIR / "temp"
    tracks_dir: Path = DEFAULT_APP_DIR / "tracks"


@dataclass(slots=True)
class PipelineSettings:
    """External tool invocation and worker pool settings."""

    download_command: str = DEFAULT_DOWNLOAD_COMMAND
    separation_command: str = DEFAULT_SEPARATION_COMMAND
    separation_model: str = "spleeter:2stems"
    audio_format: str = "wav"
    primary_stem: str = "vocals"
    source_url_template: str = DEFAULT_SOURCE_URL_TEMPLATE
    timeout_seconds: float = 1_200.0
    max_workers: int = 2
    poll_interval_seconds: float = 1.0
    active_run_stale_after_seconds: float = 1_800.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = DEFAULT_APP_DIR / "onedrop.db"
    log_level: str = "INFO"
    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults under ``~/OneDrop``."""

        app_dir = Path(os.getenv("ONEDROP_APP_DIR", str(DEFAULT_APP_DIR))).expanduser()
        return cls(
            db_path=db_path or _env_path("ONEDROP_DB_PATH", app_dir / "onedrop.db"),
            log_level=os.getenv("ONEDROP_LOG_LEVEL", "INFO").strip().upper(),
            workspace=WorkspaceSettings(
                app_dir=app_dir,
                temp_dir=_env_path("ONEDROP_TEMP_DIR", app_dir / "temp"),
                tracks_dir=_env_path("ONEDROP_TRACKS_DIR", app_dir / "tracks"),
            ),
            pipeline=PipelineSettings(
                download_command=os.getenv("ONEDROP_DOWNLOAD_COMMAND", DEFAULT_DOWNLOAD_COMMAND),
                separation_command=os.getenv(
                    "ONEDROP_SEPARATION_COMMAND",
                    DEFAULT_SEPARATION_COMMAND,
                ),
                separation_model=os.getenv("ONEDROP_SEPARATION_MODEL", "spleeter:2stems"),
                audio_format=os.getenv("ONEDROP_AUDIO_FORMAT", "wav"),
                primary_stem=os.getenv("ONEDROP_PRIMARY_STEM", "vocals"),
                source_url_template=os.getenv(
                    "ONEDROP_SOURCE_URL_TEMPLATE",
                    DEFAULT_SOURCE_URL_TEMPLATE,
                ),
                timeout_seconds=_env_float("ONEDROP_TIMEOUT_SECONDS", 1_200.0),
                max_workers=_env_int("ONEDROP_MAX_WORKERS", 2),
                poll_interval_seconds=_env_float("ONEDROP_POLL_INTERVAL_SECONDS", 1.0),
                active_run_stale_after_seconds=_env_float(
                    "ONEDROP_ACTIVE_RUN_STALE_AFTER_SECONDS",
                    1_800.0,
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the pipeline cannot run with."""

        pipeline = self.pipeline
        if pipeline.timeout_seconds <= 0:
            raise ValueError("ONEDROP_TIMEOUT_SECONDS must be > 0.")
        if pipeline.max_workers <= 0:
            raise ValueError("ONEDROP_MAX_WORKERS must be > 0.")
        if pipeline.poll_interval_seconds <= 0:
            raise ValueError("ONEDROP_POLL_INTERVAL_SECONDS must be > 0.")
        if pipeline.active_run_stale_after_seconds < pipeline.timeout_seconds:
            raise ValueError(
                "ONEDROP_ACTIVE_RUN_STALE_AFTER_SECONDS must be >= ONEDROP_TIMEOUT_SECONDS.",
            )
        if not pipeline.audio_format.strip():
            raise ValueError("ONEDROP_AUDIO_FORMAT must not be empty.")
        if not pipeline.primary_stem.strip():
            raise ValueError("ONEDROP_PRIMARY_STEM must not be empty.")
        if "{task_id}" not in pipeline.source_url_template:
            raise ValueError("ONEDROP_SOURCE_URL_TEMPLATE must include {task_id}.")
        _validate_template(
            "ONEDROP_DOWNLOAD_COMMAND",
            pipeline.download_command,
            DOWNLOAD_PLACEHOLDERS,
            required=("url", "output_file"),
        )
        _validate_template(
            "ONEDROP_SEPARATION_COMMAND",
            pipeline.separation_command,
            SEPARATION_PLACEHOLDERS,
            required=("input_file", "output_dir"),
        )


def _validate_template(
    name: str,
    template: str,
    supported: frozenset[str],
    *,
    required: tuple[str, ...],
) -> None:
    if not template.strip():
        raise ValueError(f"{name} must not be empty.")
    for placeholder in required:
        if f"{{{placeholder}}}" not in template:
            raise ValueError(f"{name} must include {{{placeholder}}}.")
    try:
        template.format(**{key: "" for key in supported})
    except (KeyError, IndexError) as error:
        raise ValueError(f"{name} uses an unsupported placeholder: {error}") from error


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    return Path(value).expanduser()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error
