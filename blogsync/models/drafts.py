"""Unpublished edit overlaid on cached remote content."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Draft(BaseModel):
    """An edit to a remote post that has not been published.

    Exists only while ``content`` differs from ``original_content``.
    """

    model_config = ConfigDict(frozen=True)

    blog_id: str
    path: str
    content: str
    original_sha: str
    original_content: str
    last_modified: float
