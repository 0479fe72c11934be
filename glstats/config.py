"""Configuration management for the glstats exporter."""

from pathlib import Path
from typing import cast

from pydantic import AnyHttpUrl, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_prefix="GLSTATS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    gitlab_url: AnyHttpUrl = Field(
        default=cast("AnyHttpUrl", "https://gitlab.com"),
        description="Scheme and host of the GitLab instance; /api/v4 is appended.",
    )
    gitlab_token: SecretStr = Field(
        default=SecretStr(""),
        description="Personal access token sent as the private_token query parameter.",
    )
    per_page: int = Field(
        default=100,
        ge=20,
        le=100,
        description="Number of items to request per GitLab API page.",
    )
    max_concurrency: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Maximum number of merge request listings fetched at the same time.",
    )
    max_pages: int = Field(
        default=1000,
        ge=0,
        description="Upper bound on pages followed per listing; 0 disables the bound.",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per request before a transport or server error is fatal.",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout in seconds for a single request.",
    )
    poll_interval: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between two poll cycles in watch mode.",
    )
    metrics_path: Path = Field(
        default=Path("data/metrics/gitlab.prom"),
        description="File receiving the rendered metrics text.",
    )

    @model_validator(mode="after")
    def _enforce_required_fields(self) -> "AppSettings":
        if not self.gitlab_token.get_secret_value():
            msg = "GLSTATS_GITLAB_TOKEN must be configured"
            raise ValueError(msg)
        return self

    @property
    def api_base(self) -> str:
        """Return the REST API root derived from the instance URL."""
        return f"{str(self.gitlab_url).rstrip('/')}/api/v4"


def load_settings() -> AppSettings:
    """Load application settings from supported sources."""
    return AppSettings()
