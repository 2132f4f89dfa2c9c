"""CmsService — the operations exposed to the UI layer.

Every method returns an ``OperationResult``; exceptions from the
components are converted here and nowhere else.  Publish operations
return a job id immediately while the job runs in the background.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from blogsync.clients.github import GitHubClient
from blogsync.core.context import BlogSyncContext
from blogsync.core.errors import (
    NotFoundError,
    NotInitializedError,
    error_kind_of,
    user_message_of,
)
from blogsync.core.job_machine import ProgressCallback
from blogsync.models.blogs import BlogTarget
from blogsync.models.cache import PostContent
from blogsync.models.results import ErrorKind, OperationResult

logger = logging.getLogger(__name__)


def _failure(exc: BaseException) -> OperationResult:
    return OperationResult.fail(user_message_of(exc), error_kind_of(exc))


class CmsService:
    """Facade over a BlogSyncContext for one UI session."""

    def __init__(self, context: BlogSyncContext | None = None) -> None:
        self.context = context or BlogSyncContext()
        self._blogs: dict[str, BlogTarget] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("CMS not initialized")

    def _blog(self, blog_id: str) -> BlogTarget:
        self._require_initialized()
        blog = self._blogs.get(blog_id)
        if blog is None:
            raise NotFoundError(f"Blog {blog_id} not found")
        return blog

    # ------------------------------------------------------------------
    # Blog lifecycle
    # ------------------------------------------------------------------

    def initialize(self, blogs: list[BlogTarget]) -> OperationResult:
        """Register ``blogs``, replacing any earlier registration."""
        self._blogs = {blog.id: blog for blog in blogs}
        self.context.cache.initialize(blogs)
        self._initialized = True
        logger.info("CMS initialized with %d blogs", len(blogs))
        return OperationResult.ok(blog_ids=list(self._blogs))

    def save_blog(self, blog: BlogTarget) -> OperationResult:
        """Add or replace one blog; its cached posts start over."""
        try:
            self._require_initialized()
        except NotInitializedError as exc:
            return _failure(exc)
        self.context.cache.deregister(blog.id, notify=False)
        self.context.cache.register(blog)
        self._blogs[blog.id] = blog
        return OperationResult.ok(blog_id=blog.id)

    def remove_blog(self, blog_id: str) -> OperationResult:
        try:
            self._blog(blog_id)
        except (NotInitializedError, NotFoundError) as exc:
            return _failure(exc)
        del self._blogs[blog_id]
        self.context.cache.deregister(blog_id)
        cleared = self.context.drafts.clear_blog(blog_id)
        return OperationResult.ok(blog_id=blog_id, drafts_cleared=cleared)

    def list_blogs(self) -> list[BlogTarget]:
        return list(self._blogs.values())

    def get_blog_info(self, blog_id: str) -> OperationResult:
        try:
            self._blog(blog_id)
        except (NotInitializedError, NotFoundError) as exc:
            return _failure(exc)
        info = self.context.cache.get_blog_info(blog_id)
        return OperationResult.ok(
            **(info.model_dump() if info is not None else {}),
            loaded=self.context.cache.is_blog_loaded(blog_id),
            last_refreshed=self.context.cache.get_last_refreshed(blog_id),
        )

    def is_blog_loaded(self, blog_id: str) -> bool:
        return self.context.cache.is_blog_loaded(blog_id)

    def get_last_refreshed(self, blog_id: str) -> float:
        """Timestamp of the last successful refresh, 0.0 if never."""
        return self.context.cache.get_last_refreshed(blog_id)

    def get_cached_posts(self, blog_id: str) -> OperationResult:
        try:
            self._blog(blog_id)
        except (NotInitializedError, NotFoundError) as exc:
            return _failure(exc)
        return OperationResult.ok(posts=self.context.cache.get_cached_posts(blog_id))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_remote_tree(self) -> OperationResult:
        try:
            self._require_initialized()
        except NotInitializedError as exc:
            return _failure(exc)
        return OperationResult.ok(tree=self.context.cache.remote_tree())

    async def get_post_content(self, blog_id: str, path: str) -> OperationResult:
        """Draft text if one exists (no network call), else the remote body."""
        try:
            self._blog(blog_id)
            draft = self.context.drafts.get(blog_id, path)
            if draft is not None:
                post = PostContent(content=draft.content, sha=draft.original_sha, is_draft=True)
                return OperationResult.ok(**post.model_dump())
            remote = await self.context.cache.get_content(blog_id, path)
            if remote is None:
                raise NotFoundError(f"Post {path} not found in blog {blog_id}")
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        post = PostContent(content=remote.content, sha=remote.sha, is_draft=False)
        return OperationResult.ok(**post.model_dump())

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def save_draft(
        self,
        blog_id: str,
        path: str,
        content: str,
        original_sha: str,
        original_content: str,
    ) -> OperationResult:
        try:
            self._require_initialized()
        except NotInitializedError as exc:
            return _failure(exc)
        draft = self.context.drafts.save(blog_id, path, content, original_sha, original_content)
        return OperationResult.ok(has_draft=draft is not None)

    def get_draft(self, blog_id: str, path: str) -> OperationResult:
        draft = self.context.drafts.get(blog_id, path)
        if draft is None:
            return OperationResult.fail(f"No draft for {path}", ErrorKind.NOT_FOUND)
        return OperationResult.ok(draft=draft)

    def has_draft(self, blog_id: str, path: str) -> bool:
        return self.context.drafts.has(blog_id, path)

    def discard_draft(self, blog_id: str, path: str) -> OperationResult:
        return OperationResult.ok(discarded=self.context.drafts.discard(blog_id, path))

    def get_modified_paths(self, blog_id: str) -> list[str]:
        return self.context.drafts.modified_paths(blog_id)

    def get_draft_count(self, blog_id: str | None = None) -> int:
        return self.context.drafts.count(blog_id)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh_blog(self, blog_id: str) -> OperationResult:
        try:
            self._blog(blog_id)
            await self.context.cache.refresh(blog_id)
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(posts=len(self.context.cache.get_cached_posts(blog_id)))

    async def refresh_all(self) -> OperationResult:
        try:
            self._require_initialized()
        except NotInitializedError as exc:
            return _failure(exc)
        await self.context.cache.refresh_all()
        errors = {
            blog_id: info.error
            for blog_id in self.context.cache.blog_ids
            if (info := self.context.cache.get_blog_info(blog_id)) is not None and info.error
        }
        return OperationResult.ok(errors=errors)

    def start_polling(self, interval: float | None = None) -> OperationResult:
        try:
            self._require_initialized()
        except NotInitializedError as exc:
            return _failure(exc)
        started = self.context.cache.start_polling(
            interval or self.context.settings.cache_refresh_interval_seconds
        )
        return OperationResult.ok(started=started)

    def stop_polling(self) -> OperationResult:
        self.context.cache.stop_polling()
        return OperationResult.ok()

    def on_cache_changed(self, listener: Callable[[], Any]) -> Callable[[], None]:
        """Subscribe to the cache-changed signal; returns an unsubscribe callable."""
        self.context.cache.on_change(listener)
        return lambda: self.context.cache.off_change(listener)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish(self, blog_id: str, tag: str) -> OperationResult:
        try:
            job_id = await self.context.coordinator.publish(self._blog(blog_id), tag)
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(job_id=job_id)

    async def publish_direct(self, blog_id: str, content: str) -> OperationResult:
        try:
            job_id = await self.context.coordinator.publish_direct(self._blog(blog_id), content)
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(job_id=job_id)

    async def publish_cms_file(
        self, blog_id: str, path: str, content: str, sha: str
    ) -> OperationResult:
        try:
            job_id = await self.context.coordinator.publish_cms_file(
                self._blog(blog_id), path, content, sha
            )
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(job_id=job_id)

    async def rename_cms_file(
        self, blog_id: str, old_path: str, new_name: str, sha: str
    ) -> OperationResult:
        try:
            job_id = await self.context.coordinator.rename_cms_file(
                self._blog(blog_id), old_path, new_name, sha
            )
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(job_id=job_id)

    async def delete_cms_file(self, blog_id: str, path: str, sha: str) -> OperationResult:
        """Delete a post, then re-list its blog."""
        try:
            await self.context.coordinator.delete_cms_file(self._blog(blog_id), path, sha)
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        refreshed = await self.refresh_blog(blog_id)
        if not refreshed.success:
            logger.warning("Refresh after deleting %s failed: %s", path, refreshed.error)
        return OperationResult.ok(path=path)

    # ------------------------------------------------------------------
    # Job progress
    # ------------------------------------------------------------------

    def get_status(self, job_id: str) -> OperationResult:
        job = self.context.coordinator.get_job(job_id)
        if job is None:
            return OperationResult.fail(f"Job {job_id} not found", ErrorKind.NOT_FOUND)
        return OperationResult.ok(job=job)

    def subscribe(self, job_id: str, callback: ProgressCallback) -> OperationResult:
        try:
            job = self.context.coordinator.on_progress(job_id, callback)
        except NotFoundError as exc:
            return _failure(exc)
        return OperationResult.ok(job=job)

    def unsubscribe(self, job_id: str, callback: ProgressCallback | None = None) -> OperationResult:
        self.context.coordinator.off_progress(job_id, callback)
        return OperationResult.ok()

    async def wait_for_job(self, job_id: str) -> OperationResult:
        try:
            job = await self.context.coordinator.wait(job_id)
        except NotFoundError as exc:
            return _failure(exc)
        return OperationResult.ok(job=job)

    def get_average_publish_time(self, blog_id: str | None = None) -> float:
        return self.context.timings.average(blog_id)

    # ------------------------------------------------------------------
    # Connection checks
    # ------------------------------------------------------------------

    async def test_github_connection(self, blog: BlogTarget) -> OperationResult:
        client = GitHubClient.for_blog(
            blog,
            api_url=self.context.settings.github_api_url,
            timeout=self.context.settings.http_timeout_seconds,
        )
        try:
            await client.test_connection(
                blog.github.repo, blog.github.branch, blog.content.path
            )
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(repo=blog.github.repo, branch=blog.github.branch)

    async def test_cloudflare_connection(self, blog: BlogTarget) -> OperationResult:
        tracker = self.context.tracker_factory(blog)
        if tracker is None or blog.cloudflare is None:
            return OperationResult.fail(
                "No deployment tracking configured for this blog", ErrorKind.NOT_FOUND
            )
        try:
            url = await tracker.test_project(blog.cloudflare.project_name)
        except Exception as exc:  # noqa: BLE001
            return _failure(exc)
        return OperationResult.ok(project=blog.cloudflare.project_name, url=url)
