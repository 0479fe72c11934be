"""Shared pytest fixtures for the glstats test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from glstats.config import AppSettings

if TYPE_CHECKING:
    from pathlib import Path

pytest_plugins = ("respx",)


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    """Provide application settings with deterministic defaults for tests."""
    return AppSettings.model_validate(
        {
            "gitlab_url": "https://gitlab.example.com",
            "gitlab_token": "token",  # pragma: allowlist secret
            "max_attempts": 1,
            "metrics_path": tmp_path / "metrics" / "gitlab.prom",
        },
    )
