"""PublishCoordinator — drives publish, update and rename jobs.

Each entry point creates a job, schedules its work on the running event
loop, and returns the job id immediately.  The work walks the job through

    pending -> preparing -> pushing -> [building -> deploying] -> completed

and any exception moves it to ``failed`` with the error's message.  A
remote write that the repository acknowledged is never rolled back, and
nothing is retried; a retry is a new job.

After a successful write the coordinator tells the ContentCache the new
sha (``update_after_write``/``rename_after_write``) and discards the
path's draft.  Blogs with a hosting project additionally go through
building/deploying while the DeploymentTracker follows the build.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from blogsync.clients import RepositoryClient, RepositoryFactory, TagIndex
from blogsync.config import BlogSyncSettings
from blogsync.core.content_cache import ContentCache
from blogsync.core.deployment_tracker import DeploymentTracker
from blogsync.core.draft_overlay import DraftOverlay
from blogsync.core.errors import (
    NotFoundError,
    NotInitializedError,
    error_kind_of,
    user_message_of,
)
from blogsync.core.job_machine import JobMachine, ProgressCallback
from blogsync.core.rendering import (
    RenderedPost,
    post_filename,
    post_path,
    post_url,
    render_direct_post,
    render_tagged_post,
    renamed_path,
)
from blogsync.core.timings import PublishTimings
from blogsync.models.blogs import BlogTarget
from blogsync.models.deployments import Deployment
from blogsync.models.jobs import (
    DirectPostJob,
    FileRenameJob,
    FileUpdateJob,
    JobBase,
    JobStatus,
    PublishStep,
    StepStatus,
    TagPostJob,
)
from blogsync.models.repository import WriteResult

logger = logging.getLogger(__name__)

TrackerFactory = Callable[[BlogTarget], "DeploymentTracker | None"]

# Step names shown in the UI checklist.
STEP_GATHER = "Gather tagged content"
STEP_RENDER = "Render post"
STEP_VALIDATE = "Validate changes"
STEP_COMMIT = "Commit to repository"
STEP_RENAME = "Rename in repository"
STEP_BUILD = "Build site"
STEP_DEPLOY = "Deploy site"


def _new_job_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"job-{ts}-{uuid.uuid4().hex[:8]}"


def _steps(*names: str) -> tuple[PublishStep, ...]:
    return tuple(PublishStep(name=name) for name in names)


class PublishCoordinator:
    """Accepts publish requests and runs them as observable jobs.

    Parameters
    ----------
    cache:
        ContentCache updated after every successful write.
    drafts:
        DraftOverlay whose entry for a written path is discarded.
    repository_factory:
        Builds the RepositoryClient for a blog.
    tracker_factory:
        Builds the DeploymentTracker for a blog, or returns None when the
        blog has no deployment tracking.
    tag_index:
        Source of tagged note content for ``publish``.
    """

    def __init__(
        self,
        cache: ContentCache,
        drafts: DraftOverlay,
        *,
        repository_factory: RepositoryFactory,
        tracker_factory: TrackerFactory,
        tag_index: TagIndex | None = None,
        settings: BlogSyncSettings | None = None,
        jobs: JobMachine | None = None,
        timings: PublishTimings | None = None,
    ) -> None:
        self.settings = settings or BlogSyncSettings()
        self.cache = cache
        self.drafts = drafts
        self.jobs = jobs or JobMachine(self.settings.job_retention_seconds)
        self.timings = timings or PublishTimings(self.settings.default_publish_seconds)
        self._repository_factory = repository_factory
        self._tracker_factory = tracker_factory
        self._tag_index = tag_index
        self._tasks: dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def publish(self, blog: BlogTarget, tag: str) -> str:
        """New post from the content tagged ``tag``."""
        tag_index = self._tag_index
        if tag_index is None:
            raise NotInitializedError("Tag index not set")
        steps = (STEP_GATHER, STEP_RENDER, STEP_COMMIT, *self._deploy_steps(blog))
        job = TagPostJob(job_id=_new_job_id(), blog_id=blog.id, tag=tag, steps=_steps(*steps))
        return self._start(job, blog, self._run_tag_post(job.job_id, blog, tag_index, tag))

    async def publish_direct(self, blog: BlogTarget, content: str) -> str:
        """New post from fully formed content."""
        steps = (STEP_RENDER, STEP_COMMIT, *self._deploy_steps(blog))
        job = DirectPostJob(job_id=_new_job_id(), blog_id=blog.id, steps=_steps(*steps))
        return self._start(job, blog, self._run_direct_post(job.job_id, blog, content))

    async def publish_cms_file(
        self, blog: BlogTarget, path: str, content: str, sha: str
    ) -> str:
        """Update an existing remote post; ``sha`` guards against lost updates."""
        steps = (STEP_VALIDATE, STEP_COMMIT, *self._deploy_steps(blog))
        job = FileUpdateJob(
            job_id=_new_job_id(), blog_id=blog.id, path=path, steps=_steps(*steps)
        )
        return self._start(job, blog, self._run_file_update(job.job_id, blog, path, content, sha))

    async def rename_cms_file(
        self, blog: BlogTarget, old_path: str, new_name: str, sha: str
    ) -> str:
        """Rename a remote post within its directory."""
        steps = (STEP_VALIDATE, STEP_RENAME, *self._deploy_steps(blog))
        job = FileRenameJob(
            job_id=_new_job_id(),
            blog_id=blog.id,
            old_path=old_path,
            new_path=renamed_path(blog, old_path, new_name.strip()),
            steps=_steps(*steps),
        )
        return self._start(
            job, blog, self._run_file_rename(job.job_id, blog, old_path, new_name, sha)
        )

    async def delete_cms_file(self, blog: BlogTarget, path: str, sha: str) -> None:
        """SHA-guarded delete; not a job since nothing is deployed to track."""
        repo = self._repository_factory(blog)
        await repo.delete_file(
            blog.github.repo,
            path,
            f"Delete {path.rsplit('/', 1)[-1]}",
            blog.github.branch,
            sha,
        )
        self.drafts.discard(blog.id, path)
        self.cache.remove_after_delete(blog.id, path)

    # ------------------------------------------------------------------
    # Queries and subscriptions
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> JobBase | None:
        return self.jobs.get(job_id)

    def on_progress(self, job_id: str, callback: ProgressCallback) -> JobBase:
        return self.jobs.subscribe(job_id, callback)

    def off_progress(self, job_id: str, callback: ProgressCallback | None = None) -> None:
        self.jobs.unsubscribe(job_id, callback)
        self.jobs.evict_expired()

    async def wait(self, job_id: str) -> JobBase:
        """Wait for a job's work to finish and return its final snapshot."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        job = self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    # ------------------------------------------------------------------
    # Job driver
    # ------------------------------------------------------------------

    def _deploy_steps(self, blog: BlogTarget) -> tuple[str, ...]:
        return (STEP_BUILD, STEP_DEPLOY) if blog.has_deployment_tracking else ()

    def _start(self, job: JobBase, blog: BlogTarget, work: Awaitable[dict]) -> str:
        self.jobs.create(job)
        task = asyncio.get_running_loop().create_task(
            self._drive(job.job_id, blog, work), name=f"blogsync-{job.job_id}"
        )
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.job_id, None))
        return job.job_id

    async def _drive(self, job_id: str, blog: BlogTarget, work: Awaitable[dict]) -> None:
        started = time.monotonic()
        try:
            result = await work
        except Exception as exc:  # noqa: BLE001
            logger.error("Job %s failed: %s", job_id, exc)
            self._fail(job_id, exc)
        else:
            self.jobs.transition(job_id, JobStatus.COMPLETED, **result)
        job = self.jobs.get(job_id)
        if job is not None:
            self.timings.record(
                blog.id, time.monotonic() - started, job.status == JobStatus.COMPLETED
            )

    def _fail(self, job_id: str, exc: BaseException) -> None:
        job = self.jobs.require(job_id)
        message = user_message_of(exc)
        for step in job.steps:
            if step.status == StepStatus.IN_PROGRESS:
                self.jobs.update_step(job_id, step.name, StepStatus.FAILED, message)
        self.jobs.transition(
            job_id, JobStatus.FAILED, error=message, error_kind=error_kind_of(exc)
        )

    def _begin(self, job_id: str, step: str, message: str | None = None) -> None:
        self.jobs.update_step(job_id, step, StepStatus.IN_PROGRESS, message)

    def _done(self, job_id: str, step: str, message: str | None = None) -> None:
        self.jobs.update_step(job_id, step, StepStatus.COMPLETED, message)

    # ------------------------------------------------------------------
    # Work per job kind
    # ------------------------------------------------------------------

    async def _run_tag_post(
        self, job_id: str, blog: BlogTarget, tag_index: TagIndex, tag: str
    ) -> dict:
        self.jobs.transition(job_id, JobStatus.PREPARING)

        self._begin(job_id, STEP_GATHER)
        sections = tag_index.get_tagged_content(tag)
        if not sections:
            raise NotFoundError(f"No content tagged #{tag}")
        self._done(job_id, STEP_GATHER, f"{len(sections)} sections")

        self._begin(job_id, STEP_RENDER)
        rendered = render_tagged_post(tag, sections)
        filename = post_filename(
            blog.content.filename,
            slug=rendered.slug,
            tag=tag,
            multi_file=blog.content.multi_file,
        )
        path = post_path(blog, filename)
        self._done(job_id, STEP_RENDER, path)

        return await self._push_new_post(job_id, blog, rendered, path)

    async def _run_direct_post(self, job_id: str, blog: BlogTarget, content: str) -> dict:
        self.jobs.transition(job_id, JobStatus.PREPARING)

        self._begin(job_id, STEP_RENDER)
        rendered = render_direct_post(content)
        filename = post_filename(
            blog.content.filename, slug=rendered.slug, multi_file=blog.content.multi_file
        )
        path = post_path(blog, filename)
        self._done(job_id, STEP_RENDER, path)

        return await self._push_new_post(job_id, blog, rendered, path)

    async def _push_new_post(
        self, job_id: str, blog: BlogTarget, rendered: RenderedPost, path: str
    ) -> dict:
        repo = self._repository_factory(blog)
        self.jobs.transition(job_id, JobStatus.PUSHING)

        self._begin(job_id, STEP_COMMIT)
        existing = await repo.get_file_content(blog.github.repo, path, blog.github.branch)
        verb = "Update" if existing is not None else "Publish"
        written = await repo.create_or_update_file(
            blog.github.repo,
            path,
            rendered.content,
            f"{verb} post: {rendered.title}",
            blog.github.branch,
            existing.sha if existing is not None else None,
        )
        self.cache.update_after_write(blog.id, path, written.sha, rendered.content)
        self.drafts.discard(blog.id, path)
        self._done(job_id, STEP_COMMIT, f"{verb}d {path}")
        result = {"slug": rendered.slug, "post_url": post_url(blog, rendered.slug)}
        self.jobs.annotate(job_id, **result)

        await self._track_deployment(job_id, blog, repo, written)
        return result

    async def _run_file_update(
        self, job_id: str, blog: BlogTarget, path: str, content: str, sha: str
    ) -> dict:
        self.jobs.transition(job_id, JobStatus.PREPARING)
        self._begin(job_id, STEP_VALIDATE)
        if not sha:
            raise ValueError(f"No sha supplied for {path}; load the post before publishing")
        self._done(job_id, STEP_VALIDATE)

        repo = self._repository_factory(blog)
        self.jobs.transition(job_id, JobStatus.PUSHING)
        self._begin(job_id, STEP_COMMIT)
        written = await repo.create_or_update_file(
            blog.github.repo,
            path,
            content,
            f"Update {path.rsplit('/', 1)[-1]}",
            blog.github.branch,
            sha,
        )
        self.cache.update_after_write(blog.id, path, written.sha, content)
        self.drafts.discard(blog.id, path)
        self._done(job_id, STEP_COMMIT)
        self.jobs.annotate(job_id, new_sha=written.sha)

        await self._track_deployment(job_id, blog, repo, written)
        return {"new_sha": written.sha}

    async def _run_file_rename(
        self, job_id: str, blog: BlogTarget, old_path: str, new_name: str, sha: str
    ) -> dict:
        self.jobs.transition(job_id, JobStatus.PREPARING)
        self._begin(job_id, STEP_VALIDATE)
        new_name = new_name.strip()
        if not new_name or "/" in new_name:
            raise ValueError(f"Invalid file name: {new_name!r}")
        new_path = renamed_path(blog, old_path, new_name)
        if new_path == old_path:
            raise ValueError("New name is the same as the current name")
        if not sha:
            raise ValueError(f"No sha supplied for {old_path}")
        self._done(job_id, STEP_VALIDATE, new_path)

        repo = self._repository_factory(blog)
        self.jobs.transition(job_id, JobStatus.PUSHING)
        self._begin(job_id, STEP_RENAME)
        renamed = await repo.rename_file(
            blog.github.repo, old_path, new_path, blog.github.branch, sha
        )
        self.cache.rename_after_write(blog.id, old_path, renamed.new_path, renamed.new_sha)
        self.drafts.discard(blog.id, old_path)
        self._done(job_id, STEP_RENAME, f"{old_path} -> {renamed.new_path}")
        self.jobs.annotate(job_id, new_path=renamed.new_path, new_sha=renamed.new_sha)

        written = WriteResult(sha=renamed.new_sha, commit_sha=renamed.commit_sha)
        await self._track_deployment(job_id, blog, repo, written)
        return {"new_path": renamed.new_path, "new_sha": renamed.new_sha}

    # ------------------------------------------------------------------
    # Deployment tracking
    # ------------------------------------------------------------------

    async def _track_deployment(
        self,
        job_id: str,
        blog: BlogTarget,
        repo: RepositoryClient,
        written: WriteResult,
    ) -> None:
        tracker = self._tracker_factory(blog)
        if tracker is None or blog.cloudflare is None:
            return
        project = blog.cloudflare.project_name
        settings = self.settings

        self.jobs.transition(job_id, JobStatus.BUILDING)
        self._begin(job_id, STEP_BUILD, "Waiting for deployment to start")
        commit = written.commit_sha or await repo.get_latest_commit_sha(
            blog.github.repo, blog.github.branch
        )

        deployment = await self._discover_deployment(tracker, project, commit)
        if deployment is None:
            note = f"No deployment found for commit {commit[:7]}; tracking skipped"
            logger.warning("Job %s: %s", job_id, note)
            self._done(job_id, STEP_BUILD, note)
            self._begin(job_id, STEP_DEPLOY)
            self._done(job_id, STEP_DEPLOY, note)
            return
        self.jobs.annotate(job_id, deployment_id=deployment.id)
        self._begin(job_id, STEP_BUILD, f"Deployment {deployment.id}")

        def on_progress(snapshot: Deployment) -> None:
            stage = snapshot.latest_stage.name
            if stage in ("deploy", "success"):
                self._enter_deploying(job_id)
            self.jobs.set_progress(job_id, min(tracker.progress_percent(snapshot), 99))

        final = await tracker.wait_for_deployment(
            project,
            deployment.id,
            poll_interval=settings.deployment_poll_interval_seconds,
            timeout=settings.deployment_timeout_seconds,
            on_progress=on_progress,
        )
        self._enter_deploying(job_id)
        self._done(job_id, STEP_DEPLOY, final.url)

    def _enter_deploying(self, job_id: str) -> None:
        if self.jobs.require(job_id).status != JobStatus.BUILDING:
            return
        self._done(job_id, STEP_BUILD)
        self.jobs.transition(job_id, JobStatus.DEPLOYING)
        self._begin(job_id, STEP_DEPLOY)

    async def _discover_deployment(
        self, tracker: DeploymentTracker, project: str, commit: str
    ) -> Deployment | None:
        """The platform may take a moment to register a build for the push."""
        attempts = max(1, self.settings.deployment_discovery_attempts)
        for attempt in range(attempts):
            deployment = await tracker.find_by_commit(project, commit)
            if deployment is not None:
                return deployment
            if attempt < attempts - 1:
                await asyncio.sleep(self.settings.deployment_poll_interval_seconds)
        return None
