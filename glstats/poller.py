"""Poll scheduling: run collection cycles and publish their metrics."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

from glstats.collector import ProjectCollector
from glstats.gitlab_client import GitLabAPIError
from glstats.render.service import render_metrics
from glstats.store.metrics_file import MetricsFile

if TYPE_CHECKING:
    from glstats.config import AppSettings
    from glstats.models import Project

LOGGER = logging.getLogger(__name__)


class CollectorProtocol(Protocol):
    """Protocol capturing the collector behavior used by the poller."""

    async def run(self) -> list["Project"]:
        """Return the complete project collection of one poll cycle."""
        ...


class Poller:
    """Run poll cycles, keeping the last published metrics when a cycle fails."""

    def __init__(
        self,
        settings: "AppSettings",
        *,
        collector_factory: Callable[["AppSettings"], CollectorProtocol] | None = None,
        output: MetricsFile | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the poller with runtime settings and an output target."""
        self._settings = settings
        self._collector_factory: Callable[[AppSettings], CollectorProtocol]
        self._collector_factory = collector_factory or ProjectCollector
        self._output = output or MetricsFile(settings.metrics_path)
        self._sleep = sleep

    @property
    def output(self) -> MetricsFile:
        """Return the metrics file this poller publishes to."""
        return self._output

    async def run_cycle(self) -> dict[str, int] | None:
        """Run one poll cycle, returning summary statistics or None on failure."""
        collector = self._collector_factory(self._settings)
        try:
            project_list = await collector.run()
        except GitLabAPIError as exc:
            LOGGER.error(
                "Poll cycle failed, keeping previous metrics at %s: %s",
                self._output.path,
                exc,
            )
            return None
        text = render_metrics(project_list)
        try:
            changed = self._output.write(text)
        except OSError as exc:
            LOGGER.error("Failed to publish metrics to %s: %s", self._output.path, exc)
            return None
        return {
            "projects": len(project_list),
            "merge_requests": sum(len(project.merge_requests) for project in project_list),
            "lines": text.count("\n"),
            "changed": int(changed),
        }

    async def run_forever(self, *, cycles: int | None = None) -> int:
        """Poll every `poll_interval` seconds, returning the number of failed cycles."""
        failures = 0
        completed = 0
        while cycles is None or completed < cycles:
            summary = await self.run_cycle()
            completed += 1
            if summary is None:
                failures += 1
            else:
                LOGGER.info(
                    "Published metrics for %s projects and %s merge requests",
                    summary["projects"],
                    summary["merge_requests"],
                )
            if cycles is not None and completed >= cycles:
                break
            await self._sleep(self._settings.poll_interval)
        return failures
