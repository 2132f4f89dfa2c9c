"""blogsync: remote content sync and publish pipeline for static blogs.

Mirrors each blog's posts from its Git repository, overlays unpublished
drafts, and publishes new posts, edits and renames as observable jobs
that follow the resulting site deployment to completion.
"""

__version__ = "0.1.0"
__description__ = "Remote content sync and publish pipeline for Git-backed blogs"

from blogsync.core.context import BlogSyncContext
from blogsync.service import CmsService

__all__ = ["BlogSyncContext", "CmsService", "__version__"]
