"""Project fetchers enriching each project with its merge requests."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from glstats.fetchers.merge_requests import fetch_project_merge_requests
from glstats.gitlab_client import GitLabDecodeError
from glstats.models import Project

if TYPE_CHECKING:
    from glstats.gitlab_client import GitLabClient

LOGGER = logging.getLogger(__name__)


async def fetch_projects(
    client: "GitLabClient",
    *,
    max_concurrency: int = 1,
) -> list[Project]:
    """Return all visible projects, each carrying its complete merge request listing.

    Merge requests of a page's projects are fetched before the next page of
    projects is requested. Any failure aborts the whole listing.
    """
    semaphore = asyncio.Semaphore(max_concurrency)
    collected: list[Project] = []
    async for page in client.iter_pages("GET", "/projects", params={"statistics": 1}):
        page_projects = _decode_projects(page)
        await _attach_merge_requests(client, page_projects, semaphore)
        collected.extend(page_projects)
    return collected


def _decode_projects(page: list[dict[str, Any]]) -> list[Project]:
    try:
        return [Project.model_validate(payload) for payload in page]
    except ValidationError as exc:
        message = f"Unexpected project payload: {exc}"
        raise GitLabDecodeError(message) from exc


async def _attach_merge_requests(
    client: "GitLabClient",
    page_projects: list[Project],
    semaphore: asyncio.Semaphore,
) -> None:
    tasks = [
        asyncio.create_task(_attach_project(client, project, semaphore))
        for project in page_projects
    ]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def _attach_project(
    client: "GitLabClient",
    project: Project,
    semaphore: asyncio.Semaphore,
) -> None:
    async with semaphore:
        merge_requests = await fetch_project_merge_requests(client, project.id)
    LOGGER.debug("Fetched %s merge requests for %s", len(merge_requests), project.path_with_namespace)
    project.attach_merge_requests(merge_requests)
