"""Command line entry point for s3rewind.

Restores the contents of a versioned S3 bucket, as they were at a given
time, into a local directory while showing transfer progress.
"""

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from s3rewind import __version__
from s3rewind.core.controller import RestoreConfig, RestoreController
from s3rewind.core.logger import initialize_logging
from s3rewind.core.versions import ObjectVersion
from s3rewind.utils.validators import DEFAULT_CONCURRENCY, parse_restore_time

console = Console()

app = typer.Typer(
    name="s3rewind",
    help="Restore a versioned S3 bucket as it was at a point in time",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"s3rewind version {__version__}")
        raise typer.Exit()


@app.command()
def main(
    bucket: str = typer.Option(..., "--bucket", "-b", help="Versioned bucket name"),
    from_time: str = typer.Option(
        ..., "--from", "-f", help=(
            "Restore time, ISO-8601 (e.g. 2016-11-04T15:00:00Z). "
            "Natural-language times such as 'yesterday' are not supported"
        ),
    ),
    destination: Path = typer.Option(
        Path("."), "--destination", "-d", help="Destination for restored files"
    ),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Restore files from this prefix"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region"),
    profile: Optional[str] = typer.Option(None, "--profile", help="AWS credentials profile"),
    threads: int = typer.Option(
        DEFAULT_CONCURRENCY, "--threads", "-t", min=1, help="Number of download threads"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Verbose mode"),
    log_dir: Path = typer.Option(Path("logs"), "--log-dir", help="Directory for log files"),
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Fetch the revision of every file that existed at [bold]--from[/bold]."""
    initialize_logging(str(log_dir), logging.INFO if verbose else logging.WARNING)

    ok, restore_time, error = parse_restore_time(from_time)
    if not ok:
        console.print(f"[red]{error}[/red]")
        raise typer.Exit(code=1)

    config = RestoreConfig(
        bucket=bucket,
        restore_time=restore_time,
        destination=str(destination),
        prefix=prefix,
        region=region,
        profile=profile,
        concurrency=threads,
        verbose=verbose,
    )

    controller = None
    try:
        controller = RestoreController(config)
        total = controller.total_size()

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TextColumn("{task.fields[count]} files"),
            console=console,
        ) as progress:
            task = progress.add_task("Restoring", total=total, count=0)

            restored = {"count": 0}

            def update_progress(revision: ObjectVersion) -> None:
                restored["count"] += 1
                progress.update(task, advance=revision.size, count=restored["count"])

            stats = controller.run(update_progress)
    except ValueError as e:
        _exit_with_error("Configuration error", e, controller)
    except (ClientError, BotoCoreError) as e:
        _exit_with_error("S3 error", e, controller)
    except OSError as e:
        _exit_with_error("Filesystem error", e, controller)

    output = controller.fetcher.files.get_output_stats()
    console.print(
        Panel(
            f"Restored [bold]{stats['files']}[/bold] files and "
            f"[bold]{stats['directories']}[/bold] directories "
            f"({stats['bytes']} bytes) to {destination}\n"
            f"Destination now holds {output['files']} files in "
            f"{output['directories']} directories ({output['total_size']} bytes)",
            title=f"s3://{bucket} @ {restore_time.isoformat()}",
        )
    )


def _exit_with_error(label: str, error: Exception, controller: Optional[RestoreController]) -> NoReturn:
    console.print(f"[red]{label}: {error}[/red]")

    if controller is not None:
        summary = controller.errors.get_error_summary()
        recent = summary['recent_errors']
        if recent and recent[-1]['key']:
            console.print(f"[red]Stopped after a failure restoring {recent[-1]['key']}[/red]")
        if summary['total_errors']:
            console.print(f"{summary['total_errors']} error(s) recorded in the error log")

    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
