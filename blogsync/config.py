"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and BLOGSYNC_* environment variables.  Blog
definitions themselves are owned by an external configuration store; the
optional ``blogs_file`` only lets the CLI register them.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import TypeAdapter
from pydantic_settings import BaseSettings, SettingsConfigDict

from blogsync.models.blogs import BlogTarget


class BlogSyncSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export BLOGSYNC_LOG_LEVEL=DEBUG
        export BLOGSYNC_DEPLOYMENT_TIMEOUT_SECONDS=900
        export BLOGSYNC_BLOGS_FILE=~/.config/blogsync/blogs.json
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BLOGSYNC_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Remote APIs
    github_api_url: str = "https://api.github.com"
    cloudflare_api_url: str = "https://api.cloudflare.com/client/v4"
    http_timeout_seconds: float = 30.0

    # Content cache
    cache_refresh_interval_seconds: float = 300.0
    post_extension: str = ".md"

    # Deployment tracking
    deployment_poll_interval_seconds: float = 3.0
    deployment_timeout_seconds: float = 600.0
    deployment_scan_limit: int = 20
    deployment_discovery_attempts: int = 10

    # Jobs
    job_retention_seconds: float = 600.0
    default_publish_seconds: float = 30.0

    # CLI
    blogs_file: Path = Path("blogs.json")

    def load_blogs(self) -> list[BlogTarget]:
        """Read blog targets from ``blogs_file``; missing file means none."""
        path = self.blogs_file.expanduser()
        if not path.exists():
            return []
        raw = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("blogs", [])
        return _BLOG_LIST.validate_python(raw)


_BLOG_LIST = TypeAdapter(list[BlogTarget])
