"""Pydantic models describing the GitLab entities exported as metrics."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, field_validator


class ProjectStatistics(BaseModel):
    """Repository disk usage counters reported with `statistics=1`."""

    model_config = ConfigDict(frozen=True)

    commit_count: int = Field(default=0, ge=0)
    storage_size: int = Field(default=0, ge=0)
    repository_size: int = Field(default=0, ge=0)
    lfs_objects_size: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("lfs_objects_size", "lfs_object_size"),
    )
    job_artifacts_size: int = Field(default=0, ge=0)


class MergeRequest(BaseModel):
    """Merge request fields rendered as labels."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    state: str
    merge_status: str = ""
    target_branch: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _empty_merge_requests() -> list[MergeRequest]:
    return []


class Project(BaseModel):
    """GitLab project metadata returned from the projects endpoint."""

    id: int
    path_with_namespace: str
    star_count: int = Field(default=0, ge=0)
    fork_count: int = Field(default=0, ge=0)
    open_issues_count: int = Field(default=0, ge=0)
    last_activity_at: datetime | None = None
    statistics: ProjectStatistics = Field(default_factory=ProjectStatistics)
    merge_requests: list[MergeRequest] = Field(default_factory=_empty_merge_requests)

    _merge_requests_attached: bool = PrivateAttr(default=False)

    @field_validator("statistics", mode="before")
    @classmethod
    def _null_statistics_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def merge_requests_attached(self) -> bool:
        """Return True once the merge request listing has been attached."""
        return self._merge_requests_attached

    def attach_merge_requests(self, merge_requests: list[MergeRequest]) -> None:
        """Attach the complete merge request listing of this project."""
        if self._merge_requests_attached:
            msg = f"Merge requests already attached to project {self.id}"
            raise RuntimeError(msg)
        self.merge_requests = list(merge_requests)
        self._merge_requests_attached = True
