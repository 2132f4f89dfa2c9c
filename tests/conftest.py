"""Shared test fixtures for blogsync."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from blogsync.config import BlogSyncSettings
from blogsync.core.content_cache import ContentCache
from blogsync.core.context import BlogSyncContext
from blogsync.core.draft_overlay import DraftOverlay
from blogsync.core.job_machine import JobMachine
from blogsync.models.blogs import BlogTarget
from blogsync.service import CmsService

from fakes import POSTS_DIR, FakeClock, FakeRepository, FakeTagIndex, FakeTracker


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> BlogSyncSettings:
    """Fast deployment polling and no .env lookup."""
    return BlogSyncSettings(
        _env_file=None,
        deployment_poll_interval_seconds=0.001,
        deployment_timeout_seconds=2.0,
        deployment_discovery_attempts=2,
        blogs_file=tmp_path / "blogs.json",
    )


# ---------------------------------------------------------------------------
# Blog factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_blog() -> Callable[..., BlogTarget]:
    """Factory fixture: build a BlogTarget with sensible defaults."""

    def _factory(
        blog_id: str = "blog-1",
        *,
        tracking: bool = False,
        **overrides: Any,
    ) -> BlogTarget:
        defaults: dict[str, Any] = {
            "id": blog_id,
            "name": f"Blog {blog_id}",
            "github": {"repo": f"owner/{blog_id}", "branch": "main", "token": "gh-token"},
            "content": {"path": f"{POSTS_DIR}/", "live_post_path": "/posts/"},
            "site_url": f"https://{blog_id}.example.com",
        }
        if tracking:
            defaults["cloudflare"] = {
                "account_id": "acct-1",
                "project_name": f"{blog_id}-site",
                "token": "cf-token",
            }
        defaults.update(overrides)
        return BlogTarget.model_validate(defaults)

    return _factory


@pytest.fixture
def blog(make_blog: Callable[..., BlogTarget]) -> BlogTarget:
    return make_blog()


@pytest.fixture
def tracked_blog(make_blog: Callable[..., BlogTarget]) -> BlogTarget:
    return make_blog("tracked", tracking=True)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def repo() -> FakeRepository:
    """Repository with two posts and one non-post file."""
    return FakeRepository(
        {
            f"{POSTS_DIR}/hello.md": "# Hello\n\nFirst post.",
            f"{POSTS_DIR}/second.md": "# Second\n\nAnother post.",
            f"{POSTS_DIR}/cover.png": "binary",
        }
    )


@pytest.fixture
def tag_index() -> FakeTagIndex:
    index = FakeTagIndex()
    index.add("launch", "# Launch day\n\nHello world", date="2024-03-01")
    return index


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def cache(repo: FakeRepository, clock: FakeClock) -> ContentCache:
    return ContentCache(lambda blog: repo, clock=clock)


@pytest.fixture
def drafts(clock: FakeClock) -> DraftOverlay:
    return DraftOverlay(clock=clock)


@pytest.fixture
def jobs(clock: FakeClock) -> JobMachine:
    return JobMachine(retention_seconds=600, clock=clock)


@pytest.fixture
def context(
    settings: BlogSyncSettings,
    repo: FakeRepository,
    tracker: FakeTracker,
    tag_index: FakeTagIndex,
) -> BlogSyncContext:
    """Context wired to the fakes; tracking only for blogs that configure it."""
    return BlogSyncContext(
        settings,
        repository_factory=lambda blog: repo,
        tracker_factory=lambda blog: tracker if blog.has_deployment_tracking else None,
        tag_index=tag_index,
    )


@pytest.fixture
def service(
    context: BlogSyncContext, blog: BlogTarget, tracked_blog: BlogTarget
) -> CmsService:
    """Initialized service with one plain and one tracked blog."""
    svc = CmsService(context)
    svc.initialize([blog, tracked_blog])
    return svc
