"""ContentCache — per-blog mirror of the remote post listing.

Post bodies are loaded lazily: ``refresh`` only lists the content
directory, and ``get_content`` fetches a body the first time it is asked
for.  A refresh keeps an already-loaded body only when the file's sha is
unchanged; anything new or changed is stored empty and re-fetched on
demand, so a stale body is never served.

Refreshes of one blog are serialized with a per-blog ``asyncio.Lock``;
background polling and manual refreshes share the same code path.
Listeners are notified after every structural change.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from blogsync.clients import RepositoryClient, RepositoryFactory
from blogsync.core.errors import NotFoundError
from blogsync.core.listeners import Listener, ListenerRegistry
from blogsync.models.blogs import BlogTarget
from blogsync.models.cache import (
    BlogCacheEntry,
    BlogInfo,
    CachedPost,
    RemoteNode,
)
from blogsync.models.repository import FileContent, RemoteFile

logger = logging.getLogger(__name__)


def _post_name(entry: BlogCacheEntry, path: str) -> str:
    """Display name of a post: its filename, or its folder for multi-file blogs."""
    parts = path.rsplit("/", 2)
    if entry.multi_file and len(parts) > 2:
        return parts[-2]
    return parts[-1]


class ContentCache:
    """Remote post listings for every registered blog.

    Parameters
    ----------
    repository_factory:
        Builds the RepositoryClient for a blog (one per registration).
    post_extension:
        Only files with this suffix are treated as posts.
    clock:
        Wall-clock source for refresh and fetch timestamps.
    """

    def __init__(
        self,
        repository_factory: RepositoryFactory,
        *,
        post_extension: str = ".md",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repository_factory = repository_factory
        self._post_extension = post_extension
        self._clock = clock
        self._entries: dict[str, BlogCacheEntry] = {}
        self._clients: dict[str, RepositoryClient] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._listeners = ListenerRegistry("cache change")
        self._poll_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, blog: BlogTarget, *, notify: bool = True) -> None:
        """Add a blog, replacing any previous entry with the same id."""
        self._entries[blog.id] = BlogCacheEntry(
            blog_id=blog.id,
            blog_name=blog.name,
            repo=blog.github.repo,
            branch=blog.github.branch,
            content_path=blog.content.directory,
            multi_file=blog.content.multi_file,
        )
        self._clients[blog.id] = self._repository_factory(blog)
        self._locks[blog.id] = asyncio.Lock()
        logger.info("Registered blog %s (%s)", blog.id, blog.github.repo)
        if notify:
            self._notify()

    def deregister(self, blog_id: str, *, notify: bool = True) -> bool:
        """Forget a blog.  Returns whether it was registered."""
        self._clients.pop(blog_id, None)
        self._locks.pop(blog_id, None)
        removed = self._entries.pop(blog_id, None) is not None
        if removed:
            logger.info("Deregistered blog %s", blog_id)
            if notify:
                self._notify()
        return removed

    def initialize(self, blogs: list[BlogTarget]) -> None:
        """Replace every registration with ``blogs``."""
        for blog_id in list(self._entries):
            self.deregister(blog_id, notify=False)
        for blog in blogs:
            self.register(blog, notify=False)
        self._notify()

    @property
    def blog_ids(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, blog_id: object) -> bool:
        return blog_id in self._entries

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self, blog_id: str) -> None:
        """Re-list one blog's content directory and reconcile the posts.

        On failure the error is recorded on the entry, cached posts are
        kept, and the exception is re-raised.
        """
        entry = self._entries.get(blog_id)
        if entry is None:
            raise NotFoundError(f"Blog {blog_id} not found in cache")
        client = self._clients[blog_id]

        async with self._locks[blog_id]:
            try:
                files = await self._list_posts(client, entry)
            except Exception as exc:
                entry.error = str(exc)
                logger.error("Failed to refresh blog %s: %s", blog_id, exc)
                raise

            if self._entries.get(blog_id) is not entry:
                logger.debug("Blog %s was re-registered during refresh; dropping result", blog_id)
                return

            posts: dict[str, CachedPost] = {}
            for name, remote in files:
                existing = entry.posts.get(remote.path)
                if existing is not None and existing.sha == remote.sha and existing.is_loaded:
                    existing.name = name
                    posts[remote.path] = existing
                else:
                    posts[remote.path] = CachedPost(
                        path=remote.path,
                        name=name,
                        sha=remote.sha,
                        blog_id=blog_id,
                    )

            entry.posts = posts
            entry.last_refreshed = self._clock()
            entry.error = None

        logger.debug("Refreshed blog %s: %d posts", blog_id, len(posts))
        self._notify()

    async def _list_posts(
        self, client: RepositoryClient, entry: BlogCacheEntry
    ) -> list[tuple[str, RemoteFile]]:
        """Post files of one blog as (display name, remote file) pairs.

        Multi-file blogs are listed one folder deep and show each post by
        its folder name.
        """
        listing = await client.list_directory(entry.repo, entry.content_path, entry.branch)
        if not entry.multi_file:
            return [(remote.name, remote) for remote in listing if self._is_post(remote)]

        folders = [remote for remote in listing if remote.type == "dir"]
        nested = await asyncio.gather(
            *(client.list_directory(entry.repo, folder.path, entry.branch) for folder in folders)
        )
        index_name = f"index{self._post_extension}"
        return [
            (folder.name, remote)
            for folder, children in zip(folders, nested)
            for remote in children
            if remote.name == index_name and remote.type == "file"
        ]

    def _is_post(self, remote: RemoteFile) -> bool:
        return remote.type == "file" and remote.name.endswith(self._post_extension)

    async def refresh_all(self) -> None:
        """Refresh every blog concurrently; one failure never stops the rest."""
        await asyncio.gather(*(self._refresh_quietly(bid) for bid in self.blog_ids))

    async def _refresh_quietly(self, blog_id: str) -> None:
        try:
            await self.refresh(blog_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to refresh %s: %s", blog_id, exc)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def get_content(self, blog_id: str, path: str) -> FileContent | None:
        """Return a post's body and sha, fetching it on first access.

        Returns None for an unknown blog or path without touching the
        network, and None if the remote no longer has the file.
        """
        entry = self._entries.get(blog_id)
        if entry is None:
            return None
        post = entry.posts.get(path)
        if post is None:
            return None
        if post.is_loaded:
            return FileContent(content=post.content, sha=post.sha)

        result = await self._clients[blog_id].get_file_content(
            entry.repo, path, entry.branch
        )
        if result is None:
            return None

        # The listing may have been replaced while we were fetching.
        current = entry.posts.get(path)
        if current is not None:
            current.content = result.content
            current.sha = result.sha
            current.last_fetched = self._clock()
        return result

    # ------------------------------------------------------------------
    # Write-backs from the publish coordinator
    # ------------------------------------------------------------------

    def update_after_write(
        self, blog_id: str, path: str, new_sha: str, new_body: str | None = None
    ) -> bool:
        """Record a successful remote write.  Returns False for unknown blogs.

        Without ``new_body`` the cached body is cleared so it is fetched
        again at the new sha.
        """
        entry = self._entries.get(blog_id)
        if entry is None:
            return False
        post = entry.posts.get(path)
        if post is None:
            post = CachedPost(
                path=path, name=_post_name(entry, path), sha=new_sha, blog_id=blog_id
            )
            entry.posts[path] = post
        post.sha = new_sha
        if new_body is not None:
            post.content = new_body
            post.last_fetched = self._clock()
        else:
            post.content = ""
            post.last_fetched = 0.0
        self._notify()
        return True

    def rename_after_write(
        self, blog_id: str, old_path: str, new_path: str, new_sha: str
    ) -> bool:
        """Move a cached post to its new path, keeping a loaded body."""
        entry = self._entries.get(blog_id)
        if entry is None:
            return False
        old = entry.posts.pop(old_path, None)
        entry.posts[new_path] = CachedPost(
            path=new_path,
            name=_post_name(entry, new_path),
            content=old.content if old is not None else "",
            sha=new_sha,
            last_fetched=old.last_fetched if old is not None else 0.0,
            blog_id=blog_id,
        )
        self._notify()
        return True

    def remove_after_delete(self, blog_id: str, path: str) -> bool:
        entry = self._entries.get(blog_id)
        if entry is None or entry.posts.pop(path, None) is None:
            return False
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_cached_posts(self, blog_id: str) -> list[CachedPost]:
        """Copies of the cached posts (no fetching)."""
        entry = self._entries.get(blog_id)
        if entry is None:
            return []
        return [post.model_copy() for post in entry.posts.values()]

    def get_post_sha(self, blog_id: str, path: str) -> str | None:
        entry = self._entries.get(blog_id)
        if entry is None or path not in entry.posts:
            return None
        return entry.posts[path].sha

    def has_post(self, blog_id: str, path: str) -> bool:
        entry = self._entries.get(blog_id)
        return entry is not None and path in entry.posts

    def is_blog_loaded(self, blog_id: str) -> bool:
        entry = self._entries.get(blog_id)
        return entry is not None and entry.last_refreshed > 0

    def get_last_refreshed(self, blog_id: str) -> float:
        entry = self._entries.get(blog_id)
        return entry.last_refreshed if entry is not None else 0.0

    def get_blog_info(self, blog_id: str) -> BlogInfo | None:
        entry = self._entries.get(blog_id)
        if entry is None:
            return None
        return BlogInfo(name=entry.blog_name, repo=entry.repo, error=entry.error)

    def remote_tree(self) -> list[RemoteNode]:
        """Every blog as a folder of its cached posts, posts sorted by name."""
        return [self._blog_node(entry) for entry in self._entries.values()]

    def _blog_node(self, entry: BlogCacheEntry) -> RemoteNode:
        children = [
            RemoteNode(
                name=post.name,
                path=f"remote:{entry.blog_id}:{post.path}",
                type="file",
                blog_id=entry.blog_id,
                sha=post.sha,
                extension=self._post_extension,
                modified_at=post.last_fetched or None,
            )
            for post in entry.posts.values()
        ]
        children.sort(key=lambda node: node.name.lower())
        return RemoteNode(
            name=entry.blog_name,
            path=f"remote:{entry.blog_id}",
            type="folder",
            blog_id=entry.blog_id,
            children=children,
        )

    # ------------------------------------------------------------------
    # Background polling
    # ------------------------------------------------------------------

    def start_polling(self, interval: float) -> bool:
        """Start a repeating ``refresh_all``.  Returns False if already running."""
        if self._poll_task is not None and not self._poll_task.done():
            logger.debug("Background refresh already running")
            return False
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll(interval), name="blogsync-cache-poll"
        )
        logger.info("Background refresh every %.0fs", interval)
        return True

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def _poll(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh_all()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Background refresh failed: %s", exc)

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def on_change(self, listener: Listener) -> None:
        self._listeners.add(listener)

    def off_change(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _notify(self) -> None:
        self._listeners.notify()
