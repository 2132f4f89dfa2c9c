"""Tests for the PublishCoordinator — job flows, deployment tracking, failures."""

from __future__ import annotations

import pytest

from blogsync.config import BlogSyncSettings
from blogsync.core.context import BlogSyncContext
from blogsync.core.errors import NotFoundError, NotInitializedError, RemoteConflictError
from blogsync.core.publish_coordinator import PublishCoordinator
from blogsync.models.blogs import BlogTarget
from blogsync.models.jobs import JobBase, JobStatus, StepStatus
from blogsync.models.results import ErrorKind

from fakes import POSTS_DIR, FakeRepository, FakeTracker

HELLO = f"{POSTS_DIR}/hello.md"


@pytest.fixture
def coordinator(
    context: BlogSyncContext, blog: BlogTarget, tracked_blog: BlogTarget
) -> PublishCoordinator:
    context.cache.initialize([blog, tracked_blog])
    return context.coordinator


def _record(coordinator: PublishCoordinator, job_id: str) -> list[JobBase]:
    seen: list[JobBase] = []
    coordinator.on_progress(job_id, seen.append)
    return seen


def _step(job: JobBase, name: str):
    return next(step for step in job.steps if step.name == name)


class TestPublishFromTag:
    @pytest.mark.asyncio
    async def test_new_post(self, coordinator, blog, repo: FakeRepository, context):
        job_id = await coordinator.publish(blog, "launch")
        job = await coordinator.wait(job_id)

        path = f"{POSTS_DIR}/launch.md"
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.slug == "launch"
        assert job.post_url == "https://blog-1.example.com/posts/launch/"
        assert "Hello world" in repo.files[path].content
        assert context.cache.get_post_sha(blog.id, path) == repo.files[path].sha
        assert all(step.status == StepStatus.COMPLETED for step in job.steps)
        assert [step.name for step in job.steps] == [
            "Gather tagged content",
            "Render post",
            "Commit to repository",
        ]

    @pytest.mark.asyncio
    async def test_existing_path_is_updated(self, coordinator, blog, repo: FakeRepository):
        path = f"{POSTS_DIR}/launch.md"
        old_sha = repo.external_write(path, "old version")
        job = await coordinator.wait(await coordinator.publish(blog, "launch"))

        assert job.status == JobStatus.COMPLETED
        assert repo.files[path].sha != old_sha
        assert "Hello world" in repo.files[path].content

    @pytest.mark.asyncio
    async def test_unknown_tag_fails_gather_step(self, coordinator, blog):
        job = await coordinator.wait(await coordinator.publish(blog, "nothing"))
        assert job.status == JobStatus.FAILED
        assert job.error_kind == ErrorKind.NOT_FOUND
        assert _step(job, "Gather tagged content").status == StepStatus.FAILED
        assert _step(job, "Commit to repository").status == StepStatus.PENDING

    @pytest.mark.asyncio
    async def test_without_tag_index(self, settings, repo, blog):
        context = BlogSyncContext(settings, repository_factory=lambda b: repo)
        with pytest.raises(NotInitializedError):
            await context.coordinator.publish(blog, "launch")

    @pytest.mark.asyncio
    async def test_draft_for_target_path_discarded(self, coordinator, blog, context):
        path = f"{POSTS_DIR}/launch.md"
        context.drafts.save(blog.id, path, "local edit", "h", "orig")
        await coordinator.wait(await coordinator.publish(blog, "launch"))
        assert not context.drafts.has(blog.id, path)


class TestPublishDirect:
    @pytest.mark.asyncio
    async def test_slug_from_heading(self, coordinator, make_blog, repo, context):
        blog = make_blog(content={"path": POSTS_DIR, "filename": "{slug}.md"})
        context.cache.register(blog)
        job = await coordinator.wait(
            await coordinator.publish_direct(blog, "# Big News\n\nDetails.")
        )
        assert job.status == JobStatus.COMPLETED
        assert job.slug == "big-news"
        assert f"{POSTS_DIR}/big-news.md" in repo.files
        assert [step.name for step in job.steps] == ["Render post", "Commit to repository"]

    @pytest.mark.asyncio
    async def test_render_failure(self, coordinator, blog, repo):
        writes = repo.call_count("create_or_update_file")
        job = await coordinator.wait(
            await coordinator.publish_direct(blog, "---\ntitle: '!!'\n---\n")
        )
        assert job.status == JobStatus.FAILED
        assert job.error_kind == ErrorKind.INTERNAL
        assert repo.call_count("create_or_update_file") == writes


class TestFileUpdate:
    @pytest.mark.asyncio
    async def test_update_refreshes_cache_and_clears_draft(
        self, coordinator, blog, repo: FakeRepository, context
    ):
        await context.cache.refresh(blog.id)
        sha = repo.files[HELLO].sha
        context.drafts.save(blog.id, HELLO, "edited", sha, "orig")

        job = await coordinator.wait(
            await coordinator.publish_cms_file(blog, HELLO, "edited", sha)
        )

        assert job.status == JobStatus.COMPLETED
        assert job.new_sha == repo.files[HELLO].sha
        assert repo.files[HELLO].content == "edited"
        assert not context.drafts.has(blog.id, HELLO)
        cached = await context.cache.get_content(blog.id, HELLO)
        assert cached.content == "edited"
        assert cached.sha == job.new_sha

    @pytest.mark.asyncio
    async def test_stale_sha_is_conflict_and_changes_nothing(
        self, coordinator, blog, repo: FakeRepository, context
    ):
        await context.cache.refresh(blog.id)
        stale = repo.files[HELLO].sha
        current = repo.external_write(HELLO, "someone else")

        job = await coordinator.wait(
            await coordinator.publish_cms_file(blog, HELLO, "mine", stale)
        )

        assert job.status == JobStatus.FAILED
        assert job.error_kind == ErrorKind.CONFLICT
        assert "Someone else changed" in job.error
        assert repo.files[HELLO].content == "someone else"
        assert repo.files[HELLO].sha == current
        assert context.cache.get_post_sha(blog.id, HELLO) == stale

    @pytest.mark.asyncio
    async def test_missing_sha_fails_validation(self, coordinator, blog):
        job = await coordinator.wait(await coordinator.publish_cms_file(blog, HELLO, "x", ""))
        assert job.status == JobStatus.FAILED
        assert _step(job, "Validate changes").status == StepStatus.FAILED


class TestFileRename:
    @pytest.mark.asyncio
    async def test_rename(self, coordinator, blog, repo: FakeRepository, context):
        await context.cache.refresh(blog.id)
        sha = repo.files[HELLO].sha
        context.drafts.save(blog.id, HELLO, "edited", sha, "orig")

        job = await coordinator.wait(
            await coordinator.rename_cms_file(blog, HELLO, "greeting.md", sha)
        )

        new_path = f"{POSTS_DIR}/greeting.md"
        assert job.status == JobStatus.COMPLETED
        assert job.old_path == HELLO
        assert job.new_path == new_path
        assert HELLO not in repo.files
        assert job.new_sha == repo.files[new_path].sha
        assert not context.cache.has_post(blog.id, HELLO)
        assert context.cache.get_post_sha(blog.id, new_path) == job.new_sha
        assert not context.drafts.has(blog.id, HELLO)

    @pytest.mark.asyncio
    async def test_stale_sha(self, coordinator, blog, repo: FakeRepository):
        job = await coordinator.wait(
            await coordinator.rename_cms_file(blog, HELLO, "greeting.md", "stale")
        )
        assert job.error_kind == ErrorKind.CONFLICT
        assert HELLO in repo.files
        assert f"{POSTS_DIR}/greeting.md" not in repo.files

    @pytest.mark.asyncio
    @pytest.mark.parametrize("new_name", ["", "sub/dir.md", "hello.md"])
    async def test_invalid_names(self, coordinator, blog, repo: FakeRepository, new_name):
        sha = repo.files[HELLO].sha
        job = await coordinator.wait(
            await coordinator.rename_cms_file(blog, HELLO, new_name, sha)
        )
        assert job.status == JobStatus.FAILED
        assert repo.call_count("rename_file") == 0


class TestDeploymentTracking:
    @pytest.mark.asyncio
    async def test_tracked_publish_walks_every_status(
        self, coordinator, tracked_blog, tracker: FakeTracker
    ):
        job_id = await coordinator.publish(tracked_blog, "launch")
        seen = _record(coordinator, job_id)
        job = await coordinator.wait(job_id)

        statuses = [snapshot.status for snapshot in seen]
        for status in (
            JobStatus.PENDING,
            JobStatus.PREPARING,
            JobStatus.PUSHING,
            JobStatus.BUILDING,
            JobStatus.DEPLOYING,
            JobStatus.COMPLETED,
        ):
            assert status in statuses
        assert job.deployment_id == "dep-1"
        assert _step(job, "Build site").status == StepStatus.COMPLETED
        assert _step(job, "Deploy site").status == StepStatus.COMPLETED
        assert tracker.looked_up

    @pytest.mark.asyncio
    async def test_untracked_blog_skips_build_steps(self, coordinator, blog):
        job_id = await coordinator.publish(blog, "launch")
        seen = _record(coordinator, job_id)
        await coordinator.wait(job_id)
        statuses = {snapshot.status for snapshot in seen}
        assert JobStatus.BUILDING not in statuses
        assert JobStatus.DEPLOYING not in statuses

    @pytest.mark.asyncio
    async def test_commit_from_write_is_looked_up(
        self, coordinator, tracked_blog, tracker: FakeTracker, repo: FakeRepository
    ):
        await coordinator.wait(await coordinator.publish(tracked_blog, "launch"))
        assert tracker.looked_up[0] == repo.commits[-1]

    @pytest.mark.asyncio
    async def test_undiscoverable_deployment_completes(
        self, coordinator, tracked_blog, tracker: FakeTracker
    ):
        tracker.discoverable = False
        job = await coordinator.wait(await coordinator.publish(tracked_blog, "launch"))
        assert job.status == JobStatus.COMPLETED
        assert job.deployment_id is None
        assert "tracking skipped" in _step(job, "Build site").message
        assert len(tracker.looked_up) == 2

    @pytest.mark.asyncio
    async def test_failed_deployment_keeps_remote_write(
        self, coordinator, tracked_blog, tracker: FakeTracker, repo: FakeRepository
    ):
        tracker.stages = [("queued", "active"), ("build", "failure")]
        job = await coordinator.wait(await coordinator.publish(tracked_blog, "launch"))
        assert job.status == JobStatus.FAILED
        assert job.error_kind == ErrorKind.DEPLOYMENT
        assert _step(job, "Commit to repository").status == StepStatus.COMPLETED
        assert _step(job, "Build site").status == StepStatus.FAILED
        assert f"{POSTS_DIR}/launch.md" in repo.files
        assert job.slug == "launch"
        assert job.post_url == "https://tracked.example.com/posts/launch/"

    @pytest.mark.asyncio
    async def test_failed_deployment_reports_written_sha(
        self, coordinator, tracked_blog, tracker: FakeTracker, repo: FakeRepository, context
    ):
        tracker.stages = [("queued", "active"), ("build", "failure")]
        await context.cache.refresh(tracked_blog.id)
        loaded = repo.files[HELLO].sha

        job = await coordinator.wait(
            await coordinator.publish_cms_file(tracked_blog, HELLO, "edited", loaded)
        )

        assert job.status == JobStatus.FAILED
        assert job.new_sha == repo.files[HELLO].sha
        assert job.new_sha != loaded
        assert context.cache.get_post_sha(tracked_blog.id, HELLO) == job.new_sha

    @pytest.mark.asyncio
    async def test_failed_deployment_reports_renamed_path(
        self, coordinator, tracked_blog, tracker: FakeTracker, repo: FakeRepository
    ):
        tracker.stages = [("queued", "active"), ("build", "failure")]
        job = await coordinator.wait(
            await coordinator.rename_cms_file(
                tracked_blog, HELLO, "greeting.md", repo.files[HELLO].sha
            )
        )

        new_path = f"{POSTS_DIR}/greeting.md"
        assert job.status == JobStatus.FAILED
        assert job.new_path == new_path
        assert job.new_sha == repo.files[new_path].sha

    @pytest.mark.asyncio
    async def test_deployment_timeout_fails_job(
        self, settings: BlogSyncSettings, repo, tag_index, tracked_blog
    ):
        tracker = FakeTracker([("build", "active")])
        context = BlogSyncContext(
            settings.model_copy(update={"deployment_timeout_seconds": 0.05}),
            repository_factory=lambda b: repo,
            tracker_factory=lambda b: tracker,
            tag_index=tag_index,
        )
        context.cache.register(tracked_blog)
        job = await context.coordinator.wait(
            await context.coordinator.publish(tracked_blog, "launch")
        )
        assert job.status == JobStatus.FAILED
        assert job.error_kind == ErrorKind.TIMEOUT


class TestQueries:
    @pytest.mark.asyncio
    async def test_unknown_job(self, coordinator):
        assert coordinator.get_job("missing") is None
        with pytest.raises(NotFoundError):
            await coordinator.wait("missing")

    @pytest.mark.asyncio
    async def test_entry_point_returns_before_work(self, coordinator, blog):
        job_id = await coordinator.publish(blog, "launch")
        assert coordinator.get_job(job_id).status == JobStatus.PENDING
        await coordinator.wait(job_id)

    @pytest.mark.asyncio
    async def test_each_call_gets_new_job_id(self, coordinator, blog):
        first = await coordinator.publish(blog, "nothing")
        second = await coordinator.publish(blog, "nothing")
        assert first != second
        await coordinator.wait(first)
        await coordinator.wait(second)

    @pytest.mark.asyncio
    async def test_timings_recorded(self, coordinator, blog, context):
        await coordinator.wait(await coordinator.publish(blog, "launch"))
        assert context.timings.average(blog.id) < context.settings.default_publish_seconds


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete(self, coordinator, blog, repo: FakeRepository, context):
        await context.cache.refresh(blog.id)
        await coordinator.delete_cms_file(blog, HELLO, repo.files[HELLO].sha)
        assert HELLO not in repo.files
        assert not context.cache.has_post(blog.id, HELLO)

    @pytest.mark.asyncio
    async def test_stale_delete(self, coordinator, blog, repo: FakeRepository, context):
        await context.cache.refresh(blog.id)
        with pytest.raises(RemoteConflictError):
            await coordinator.delete_cms_file(blog, HELLO, "stale")
        assert HELLO in repo.files
        assert context.cache.has_post(blog.id, HELLO)


class TestMultiFileBlog:
    @pytest.fixture
    def folder_blog(self, make_blog, context) -> BlogTarget:
        blog = make_blog("folders", content={"path": POSTS_DIR, "format": "multi-file"})
        context.cache.register(blog)
        return blog

    @pytest.mark.asyncio
    async def test_publish_writes_index_in_folder(
        self, coordinator, folder_blog, repo: FakeRepository, context
    ):
        job = await coordinator.wait(await coordinator.publish(folder_blog, "launch"))

        path = f"{POSTS_DIR}/launch/index.md"
        assert job.status == JobStatus.COMPLETED
        assert path in repo.files
        assert f"{POSTS_DIR}/launch.md" not in repo.files
        (post,) = context.cache.get_cached_posts(folder_blog.id)
        assert (post.path, post.name) == (path, "launch")

    @pytest.mark.asyncio
    async def test_rename_moves_folder(self, coordinator, folder_blog, repo: FakeRepository):
        old = f"{POSTS_DIR}/launch/index.md"
        repo.external_write(old, "# Launch")

        job = await coordinator.wait(
            await coordinator.rename_cms_file(folder_blog, old, "kickoff", repo.files[old].sha)
        )

        assert job.status == JobStatus.COMPLETED
        assert job.new_path == f"{POSTS_DIR}/kickoff/index.md"
        assert old not in repo.files
        assert job.new_path in repo.files
