"""Rendering of collected projects into Prometheus text exposition lines."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pendulum

if TYPE_CHECKING:
    from collections.abc import Iterable

    from glstats.models import Project

_PATH_SEPARATOR = "/"
_LABEL_SEPARATOR = "___"


def normalize_label(path: str) -> str:
    """Turn a namespaced project path into the `repo` label value."""
    return path.replace(_PATH_SEPARATOR, _LABEL_SEPARATOR)


def escape_label_value(value: str) -> str:
    """Escape a label value for the text exposition format."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def render_project(project: Project) -> list[str]:
    """Return the metric lines describing a single project."""
    repo = escape_label_value(normalize_label(project.path_with_namespace))
    statistics = project.statistics
    lines = [
        f'gitlab_project_stars{{repo="{repo}"}} {project.star_count}',
        f'gitlab_project_forks{{repo="{repo}"}} {project.fork_count}',
        f'gitlab_project_commit_count{{repo="{repo}"}} {statistics.commit_count}',
        f'gitlab_project_storage_size{{repo="{repo}"}} {statistics.storage_size}',
        f'gitlab_project_repository_size{{repo="{repo}"}} {statistics.repository_size}',
        f'gitlab_project_lfs_object_size{{repo="{repo}"}} {statistics.lfs_objects_size}',
        f'gitlab_project_job_artifacts_size{{repo="{repo}"}} {statistics.job_artifacts_size}',
    ]
    for merge_request in project.merge_requests:
        state = escape_label_value(merge_request.state)
        merge_status = escape_label_value(merge_request.merge_status)
        target_branch = escape_label_value(merge_request.target_branch)
        lines.append(
            f'gitlab_project_merge_request{{repo="{repo}", state="{state}", '
            f'merge_status="{merge_status}", target_branch="{target_branch}"}} 1',
        )
    if project.last_activity_at is not None:
        last_activity = pendulum.instance(project.last_activity_at).int_timestamp
        lines.append(f'gitlab_project_last_activity{{repo="{repo}"}} {last_activity}')
    return lines


def render_metrics(projects: Iterable[Project]) -> str:
    """Render every project, in collection order, as newline-terminated lines."""
    lines: list[str] = []
    for project in projects:
        lines.extend(render_project(project))
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
