"""Boundary type of the external tag-index collaborator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class TaggedContent(BaseModel):
    """One tagged section found in a note."""

    model_config = ConfigDict(frozen=True)

    date: str  # YYYY-MM-DD
    file_path: str
    content: str
    timestamp: float = 0.0
