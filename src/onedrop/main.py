"""CLI entrypoint for onedrop."""

from pathlib import Path

import rich_click as click

from onedrop import __version__
from onedrop.config import Settings
from onedrop.logging_setup import configure_logging
from onedrop.tasks.controllers import (
    ProcessCommand,
    ReconcileCommand,
    RemoveCommand,
    StatusCommand,
    TaskCliController,
    TrackCommand,
    VideosCommand,
)

click.rich_click.USE_MARKDOWN = True
TASK_CONTROLLER = TaskCliController()


@click.group()
@click.version_option(version=__version__, prog_name="onedrop")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console log level. Defaults to ONEDROP_LOG_LEVEL or INFO.",
)
def onedrop(log_level: str | None) -> None:
    """Download audio for a video and split it into stems."""

    configure_logging(log_level or Settings.from_env().log_level)


@onedrop.command("process")
@click.argument("video_id")
@click.option("--title", required=True, help="Human-readable video title.")
@click.option("--duration", default=None, help="Video duration, e.g. PT3M42S.")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def process(video_id: str, title: str, duration: str | None, db_path: Path | None) -> None:
    """Download VIDEO_ID, separate it into stems and wait for the result."""

    try:
        result = TASK_CONTROLLER.process(
            ProcessCommand(
                db_path=db_path,
                video_id=video_id,
                title=title,
                duration=duration,
            ),
            on_progress=click.echo,
        )
    except ValueError as error:
        raise click.BadParameter(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(f"Processing did not complete for {video_id}.")


@onedrop.command("status")
@click.argument("video_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def status(video_id: str, db_path: Path | None) -> None:
    """Show the recorded status of VIDEO_ID."""

    result = TASK_CONTROLLER.status(StatusCommand(db_path=db_path, video_id=video_id))
    _emit_lines(result.lines)
    if not result.success:
        raise SystemExit(1)


@onedrop.command("videos")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=None,
    help="Max number of videos to print.",
)
def videos(db_path: Path | None, limit: int | None) -> None:
    """List completed videos, most recently processed first."""

    _emit_lines(TASK_CONTROLLER.videos(VideosCommand(db_path=db_path, limit=limit)))


@onedrop.command("track")
@click.argument("video_id")
@click.argument("track_name")
def track(video_id: str, track_name: str) -> None:
    """Print the path of stem TRACK_NAME (e.g. vocals) for VIDEO_ID."""

    try:
        click.echo(TASK_CONTROLLER.track(TrackCommand(video_id=video_id, track_name=track_name)))
    except FileNotFoundError as error:
        raise click.ClickException(str(error)) from error
    except ValueError as error:
        raise click.BadParameter(str(error)) from error


@onedrop.command("remove")
@click.argument("video_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def remove(video_id: str, db_path: Path | None) -> None:
    """Forget the recorded task for VIDEO_ID. Stems on disk are kept."""

    result = TASK_CONTROLLER.remove(RemoveCommand(db_path=db_path, video_id=video_id))
    _emit_lines(result.lines)
    if not result.success:
        raise SystemExit(1)


@onedrop.command("reconcile")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def reconcile(db_path: Path | None) -> None:
    """Mark tasks left in flight by a previous run as failed or completed."""

    _emit_lines(TASK_CONTROLLER.reconcile(ReconcileCommand(db_path=db_path)))


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    onedrop()
