"""DraftOverlay — in-memory unpublished edits keyed by (blog, path).

Nothing here is persisted; a restart yields an empty overlay.  A draft
exists only while its content differs from the content it was based on,
so saving the original text back removes the draft instead of storing a
no-op edit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from blogsync.models.drafts import Draft

logger = logging.getLogger(__name__)


class DraftOverlay:
    """Unpublished edits overlaid on cached remote content.

    Parameters
    ----------
    clock:
        Wall-clock source for ``Draft.last_modified``; injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._drafts: dict[tuple[str, str], Draft] = {}

    # ------------------------------------------------------------------
    # Single-draft operations
    # ------------------------------------------------------------------

    def save(
        self,
        blog_id: str,
        path: str,
        content: str,
        original_sha: str,
        original_content: str,
    ) -> Draft | None:
        """Store an edit, or drop any existing draft if nothing changed.

        Returns the stored draft, or None when the edit was a no-op.
        """
        key = (blog_id, path)
        if content == original_content:
            if self._drafts.pop(key, None) is not None:
                logger.debug("Draft for %s:%s reverted to original", blog_id, path)
            return None

        draft = Draft(
            blog_id=blog_id,
            path=path,
            content=content,
            original_sha=original_sha,
            original_content=original_content,
            last_modified=self._clock(),
        )
        self._drafts[key] = draft
        return draft

    def get(self, blog_id: str, path: str) -> Draft | None:
        return self._drafts.get((blog_id, path))

    def has(self, blog_id: str, path: str) -> bool:
        return (blog_id, path) in self._drafts

    def discard(self, blog_id: str, path: str) -> bool:
        """Delete a draft if present.  Returns whether one was removed."""
        return self._drafts.pop((blog_id, path), None) is not None

    def display_content(self, blog_id: str, path: str, original_content: str) -> str:
        """The text the UI should show: the draft if any, else the original."""
        draft = self._drafts.get((blog_id, path))
        return draft.content if draft is not None else original_content

    # ------------------------------------------------------------------
    # Per-blog and bulk operations
    # ------------------------------------------------------------------

    def modified_paths(self, blog_id: str) -> list[str]:
        """Paths with a live draft for ``blog_id``."""
        return [path for (bid, path) in self._drafts if bid == blog_id]

    def drafts_for_blog(self, blog_id: str) -> list[Draft]:
        return [d for (bid, _), d in self._drafts.items() if bid == blog_id]

    def clear_all(self) -> None:
        self._drafts.clear()

    def clear_blog(self, blog_id: str) -> int:
        """Remove every draft of one blog; returns how many were removed."""
        keys = [key for key in self._drafts if key[0] == blog_id]
        for key in keys:
            del self._drafts[key]
        return len(keys)

    def count(self, blog_id: str | None = None) -> int:
        """Total number of drafts, or the number for one blog."""
        if blog_id is None:
            return len(self._drafts)
        return sum(1 for (bid, _) in self._drafts if bid == blog_id)
