"""In-memory record of how long publish jobs take, for ETA display."""

from __future__ import annotations

import logging
from collections import deque

logger = logging.getLogger(__name__)


class PublishTimings:
    """Keeps the most recent job durations per blog.

    Parameters
    ----------
    default_seconds:
        Returned by ``average`` when no successful run has been recorded.
    max_samples:
        Samples kept per blog; older ones are dropped.
    """

    def __init__(self, default_seconds: float = 30.0, max_samples: int = 20) -> None:
        self._default = default_seconds
        self._max_samples = max_samples
        self._samples: dict[str, deque[float]] = {}

    def record(self, blog_id: str, duration_seconds: float, success: bool) -> None:
        """Store a duration.  Failed runs are not representative and are skipped."""
        if not success:
            return
        samples = self._samples.setdefault(blog_id, deque(maxlen=self._max_samples))
        samples.append(duration_seconds)
        logger.debug("Recorded %.1fs publish for %s", duration_seconds, blog_id)

    def average(self, blog_id: str | None = None) -> float:
        """Mean successful duration for one blog, or across all blogs."""
        if blog_id is not None:
            values = list(self._samples.get(blog_id, ()))
        else:
            values = [v for samples in self._samples.values() for v in samples]
        if not values:
            return self._default
        return sum(values) / len(values)
