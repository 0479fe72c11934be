"""Poll cycle orchestration: fetch every project and its merge requests."""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from glstats.fetchers import projects
from glstats.gitlab_client import GitLabClient

if TYPE_CHECKING:
    from glstats.config import AppSettings
    from glstats.models import Project

LOGGER = logging.getLogger(__name__)


class ProjectCollector:
    """Collect all projects of a GitLab instance, enriched with merge requests."""

    def __init__(
        self,
        settings: "AppSettings",
        *,
        client_factory: Callable[["AppSettings"], GitLabClient] | None = None,
    ) -> None:
        """Initialize the collector with runtime settings."""
        self._settings = settings
        self._client_factory: Callable[[AppSettings], GitLabClient]
        self._client_factory = client_factory or GitLabClient

    async def run(self) -> list["Project"]:
        """Execute one poll cycle and return the complete project collection.

        Raises the `GitLabAPIError` family unchanged; a partial collection is
        never returned.
        """
        async with self._client_factory(self._settings) as client:
            project_list = await projects.fetch_projects(
                client,
                max_concurrency=self._settings.max_concurrency,
            )
        merge_request_count = sum(len(project.merge_requests) for project in project_list)
        LOGGER.info(
            "Collected %s projects with %s merge requests",
            len(project_list),
            merge_request_count,
        )
        return project_list
