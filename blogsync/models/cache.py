"""Content cache records and the read-side views built from them.

``CachedPost`` and ``BlogCacheEntry`` are mutable records owned by the
ContentCache.  Everything handed out to callers (``PostContent``,
``RemoteNode``, ``BlogInfo``) is frozen.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class CachedPost(BaseModel):
    """A remote post as last seen by the cache.

    ``last_fetched == 0`` means the body has not been loaded yet and must be
    fetched lazily; a loaded post may legitimately have an empty body.
    """

    path: str
    name: str
    content: str = ""
    sha: str
    last_fetched: float = 0.0
    blog_id: str

    @property
    def is_loaded(self) -> bool:
        return self.last_fetched > 0


class BlogCacheEntry(BaseModel):
    """Per-blog cache state."""

    blog_id: str
    blog_name: str
    repo: str
    branch: str
    content_path: str
    multi_file: bool = False  # posts live in <name>/index.md folders
    posts: dict[str, CachedPost] = Field(default_factory=dict)
    last_refreshed: float = 0.0  # 0 = never refreshed
    error: str | None = None


class PostContent(BaseModel):
    """Draft-aware post body returned to the UI layer."""

    model_config = ConfigDict(frozen=True)

    content: str
    sha: str
    is_draft: bool = False


class BlogInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    repo: str
    error: str | None = None


class RemoteNode(BaseModel):
    """One node of the navigable remote tree (a blog folder or a post)."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    type: Literal["file", "folder"]
    source: Literal["remote"] = "remote"
    blog_id: str
    sha: str = ""
    extension: str | None = None
    modified_at: float | None = None
    children: list[RemoteNode] = []
