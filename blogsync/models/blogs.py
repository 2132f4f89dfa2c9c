"""Blog target configuration models.

A ``BlogTarget`` is read once at registration time.  It names the remote
content repository, the optional hosting project used for deployment
tracking, and the content layout inside the repository.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GitHubTarget(BaseModel):
    """Remote content repository coordinates."""

    model_config = ConfigDict(frozen=True)

    repo: str  # "owner/name"
    branch: str = "main"
    token: str = Field(default="", repr=False)


class CloudflareTarget(BaseModel):
    """Hosting project that builds the repository on push."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    project_name: str
    token: str = Field(default="", repr=False)


class ContentSettings(BaseModel):
    """Where posts live in the repository and where they appear online."""

    model_config = ConfigDict(frozen=True)

    path: str = "src/content/posts/"
    live_post_path: str = "/posts/"
    format: Literal["single-file", "multi-file"] = "single-file"
    filename: str = "{tag}.md"  # placeholders: {tag}, {slug}, {date}

    @property
    def multi_file(self) -> bool:
        return self.format == "multi-file"

    @property
    def directory(self) -> str:
        """Content path without a trailing slash."""
        return self.path.rstrip("/")


class BlogTarget(BaseModel):
    """One configured blog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    github: GitHubTarget
    cloudflare: CloudflareTarget | None = None
    content: ContentSettings = ContentSettings()
    site_url: str = ""  # e.g. "https://example.pages.dev"

    @property
    def has_deployment_tracking(self) -> bool:
        return self.cloudflare is not None
