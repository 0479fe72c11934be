"""Merge request fetchers for GitLab projects."""

from typing import TYPE_CHECKING

from pydantic import ValidationError

from glstats.gitlab_client import GitLabDecodeError
from glstats.models import MergeRequest

if TYPE_CHECKING:
    from glstats.gitlab_client import GitLabClient


async def fetch_project_merge_requests(
    client: "GitLabClient",
    project_id: int,
) -> list[MergeRequest]:
    """Return every merge request of a project in API page order."""
    path = f"/projects/{project_id}/merge_requests"
    try:
        return [
            MergeRequest.model_validate(payload)
            async for payload in client.paginate("GET", path, params={"statistics": 1})
        ]
    except ValidationError as exc:
        message = f"Unexpected merge request payload for project {project_id}: {exc}"
        raise GitLabDecodeError(message) from exc
