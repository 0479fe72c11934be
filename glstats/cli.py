"""Command-line entry point for the glstats exporter."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from glstats.config import AppSettings, load_settings
from glstats.gitlab_client import GitLabAPIError, GitLabClient
from glstats.poller import Poller

app = typer.Typer(add_completion=False, help="Export GitLab project and merge request metrics.")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", help="Enable verbose logging output.")] = False,
) -> None:
    """Configure logging before executing a sub-command."""
    _configure_logging(verbose)


@app.command()
def collect(
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            help="Override the configured metrics file path.",
        ),
    ] = None,
) -> None:
    """Run a single poll cycle and publish the rendered metrics."""
    try:
        settings = _patched_settings(load_settings(), output=output)
    except ValueError as exc:
        _handle_settings_error(exc)
    poller = Poller(settings)
    summary = asyncio.run(poller.run_cycle())
    if summary is None:
        typer.secho("Poll cycle failed; previous metrics left unchanged.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(
        "Exported {projects} projects and {merge_requests} merge requests "
        "({lines} metric lines).".format(**summary),
    )


@app.command()
def watch(
    interval: Annotated[
        float | None,
        typer.Option(
            "--interval",
            help="Override the configured number of seconds between poll cycles.",
        ),
    ] = None,
    cycles: Annotated[
        int | None,
        typer.Option(
            "--cycles",
            min=1,
            help="Stop after this many poll cycles instead of running forever.",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            help="Override the configured metrics file path.",
        ),
    ] = None,
) -> None:
    """Poll GitLab periodically, refreshing the metrics file after each successful cycle."""
    try:
        settings = _patched_settings(load_settings(), output=output, interval=interval)
    except ValueError as exc:
        _handle_settings_error(exc)
    poller = Poller(settings)
    failures = asyncio.run(poller.run_forever(cycles=cycles))
    if cycles is not None:
        typer.echo(f"Stopped polling after {cycles} cycles ({failures} failed).")


@app.command()
def doctor() -> None:
    """Validate configuration and verify GitLab API connectivity."""
    try:
        settings = load_settings()
    except ValueError as exc:
        _handle_settings_error(exc)
    typer.echo(f"Loaded configuration for GitLab instance: {settings.gitlab_url}")
    asyncio.run(_doctor(settings))


async def _doctor(settings: AppSettings) -> None:
    try:
        async with GitLabClient(settings) as client:
            response = await client.request("GET", "/user")
            payload = client.parse_json(response)
    except GitLabAPIError as exc:
        typer.echo(f"Failed to reach GitLab API: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Authenticated as: {payload.get('username', 'unknown')}")


def _patched_settings(
    settings: AppSettings,
    *,
    output: Path | None = None,
    interval: float | None = None,
) -> AppSettings:
    updates: dict[str, object] = {}
    if output:
        updates["metrics_path"] = output
    if interval:
        updates["poll_interval"] = interval
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


def _handle_settings_error(exc: ValueError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


if __name__ == "__main__":
    app()
