"""BlogSyncContext — one explicit object holding every shared component.

Built once at startup and passed to whatever needs the cache, drafts or
jobs.  Tests swap in fakes through ``repository_factory`` and
``tracker_factory``.
"""

from __future__ import annotations

from collections.abc import Callable

from blogsync.clients import RepositoryClient, RepositoryFactory, TagIndex
from blogsync.clients.github import GitHubClient
from blogsync.config import BlogSyncSettings
from blogsync.core.content_cache import ContentCache
from blogsync.core.deployment_tracker import DeploymentTracker
from blogsync.core.draft_overlay import DraftOverlay
from blogsync.core.job_machine import JobMachine
from blogsync.core.publish_coordinator import PublishCoordinator, TrackerFactory
from blogsync.core.timings import PublishTimings
from blogsync.models.blogs import BlogTarget


class BlogSyncContext:
    """Wires the ContentCache, DraftOverlay, JobMachine and PublishCoordinator.

    Parameters
    ----------
    settings:
        Runtime settings.  Uses defaults (and the environment) if not provided.
    repository_factory:
        Builds a RepositoryClient per blog.  Defaults to ``GitHubClient``.
    tracker_factory:
        Builds a DeploymentTracker per blog.  Defaults to the Cloudflare
        tracker for blogs that configure one.
    tag_index:
        Source of tagged content for publish-from-tag.
    """

    def __init__(
        self,
        settings: BlogSyncSettings | None = None,
        *,
        repository_factory: RepositoryFactory | None = None,
        tracker_factory: TrackerFactory | None = None,
        tag_index: TagIndex | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.settings = settings or BlogSyncSettings()
        self.repository_factory = repository_factory or self._github_client
        self.tracker_factory = tracker_factory or self._cloudflare_tracker

        clock_kwargs = {"clock": clock} if clock is not None else {}
        self.cache = ContentCache(
            self.repository_factory,
            post_extension=self.settings.post_extension,
            **clock_kwargs,
        )
        self.drafts = DraftOverlay(**clock_kwargs)
        self.jobs = JobMachine(self.settings.job_retention_seconds, **clock_kwargs)
        self.timings = PublishTimings(self.settings.default_publish_seconds)
        self.coordinator = PublishCoordinator(
            self.cache,
            self.drafts,
            repository_factory=self.repository_factory,
            tracker_factory=self.tracker_factory,
            tag_index=tag_index,
            settings=self.settings,
            jobs=self.jobs,
            timings=self.timings,
        )

    # ------------------------------------------------------------------
    # Default collaborators
    # ------------------------------------------------------------------

    def _github_client(self, blog: BlogTarget) -> RepositoryClient:
        return GitHubClient.for_blog(
            blog,
            api_url=self.settings.github_api_url,
            timeout=self.settings.http_timeout_seconds,
        )

    def _cloudflare_tracker(self, blog: BlogTarget) -> DeploymentTracker | None:
        return DeploymentTracker.for_blog(
            blog,
            api_url=self.settings.cloudflare_api_url,
            timeout=self.settings.http_timeout_seconds,
            scan_limit=self.settings.deployment_scan_limit,
        )
