"""Argument vectors for the external download and separation tools."""

from __future__ import annotations

import shlex
from pathlib import Path

from onedrop.config import PipelineSettings


def render_command_template(template: str, values: dict[str, str]) -> list[str]:
    """Substitute shell-quoted values into ``template`` and split it into argv."""

    stripped = template.strip()
    if not stripped:
        raise ValueError("Command template is empty.")
    try:
        rendered = stripped.format(**{key: shlex.quote(value) for key, value in values.items()})
    except KeyError as error:
        raise ValueError(f"Unsupported command template placeholder: {error}") from error

    argv = shlex.split(rendered)
    if not argv:
        raise ValueError("Command template rendered empty command.")
    return argv


def source_url(settings: PipelineSettings, task_id: str) -> str:
    return settings.source_url_template.format(task_id=task_id)


def build_download_command(
    settings: PipelineSettings,
    *,
    task_id: str,
    output_file: Path,
) -> list[str]:
    """Best-audio download, extracted and converted to ``audio_format``."""

    return render_command_template(
        settings.download_command,
        {
            "url": source_url(settings, task_id),
            "output_file": str(output_file),
            "audio_format": settings.audio_format,
        },
    )


def build_separation_command(
    settings: PipelineSettings,
    *,
    input_file: Path,
    output_dir: Path,
) -> list[str]:
    """Separation writes ``<output_dir>/<input stem>/<stem>.<audio_format>``."""

    return render_command_template(
        settings.separation_command,
        {
            "input_file": str(input_file),
            "output_dir": str(output_dir),
            "model": settings.separation_model,
        },
    )
