"""Fetchers for GitLab entities exported as metrics."""

from . import merge_requests, projects

__all__ = [
    "merge_requests",
    "projects",
]
