from __future__ import annotations

from pathlib import Path

import allure
import pytest

from onedrop.config import PipelineSettings
from onedrop.tasks.commands import (
    build_download_command,
    build_separation_command,
    render_command_template,
    source_url,
)

pytestmark = [
    allure.epic("Stem Separation"),
    allure.feature("External Tool Commands"),
]


def test_default_download_command_selects_best_audio_as_wav() -> None:
    argv = build_download_command(
        PipelineSettings(),
        task_id="dQw4w9WgXcQ",
        output_file=Path("/data/temp/dQw4w9WgXcQ.wav"),
    )

    assert argv == [
        "yt-dlp",
        "-f",
        "bestaudio",
        "--extract-audio",
        "--audio-format",
        "wav",
        "--output",
        "/data/temp/dQw4w9WgXcQ.wav",
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
    ]


def test_default_separation_command_targets_tracks_root() -> None:
    argv = build_separation_command(
        PipelineSettings(),
        input_file=Path("/data/temp/abc.wav"),
        output_dir=Path("/data/tracks"),
    )

    assert argv == [
        "spleeter",
        "separate",
        "-p",
        "spleeter:2stems",
        "-o",
        "/data/tracks",
        "/data/temp/abc.wav",
    ]


def test_render_keeps_values_with_spaces_as_single_arguments() -> None:
    argv = render_command_template(
        "tool --out {output_file} {url}",
        {"output_file": "/home/some user/OneDrop/temp/a b.wav", "url": "https://x/?v=1&t=2"},
    )

    assert argv == ["tool", "--out", "/home/some user/OneDrop/temp/a b.wav", "https://x/?v=1&t=2"]


def test_render_rejects_unknown_placeholder() -> None:
    with pytest.raises(ValueError, match="Unsupported command template placeholder"):
        render_command_template("tool {missing}", {"url": "u"})


def test_render_rejects_empty_template() -> None:
    with pytest.raises(ValueError, match="empty"):
        render_command_template("   ", {})


def test_source_url_uses_template() -> None:
    settings = PipelineSettings(source_url_template="https://music.example/{task_id}")

    assert source_url(settings, "xyz") == "https://music.example/xyz"
