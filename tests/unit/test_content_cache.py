"""Tests for the ContentCache — reconciliation, lazy loading, polling, listeners."""

from __future__ import annotations

import asyncio

import pytest

from blogsync.core.content_cache import ContentCache
from blogsync.core.errors import NotFoundError, TransportError
from blogsync.models.blogs import BlogTarget

from fakes import POSTS_DIR, FakeRepository

HELLO = f"{POSTS_DIR}/hello.md"


@pytest.fixture
def registered(cache: ContentCache, blog: BlogTarget) -> ContentCache:
    cache.register(blog)
    return cache


class TestRegistration:
    def test_register_and_deregister(self, cache: ContentCache, blog: BlogTarget):
        cache.register(blog)
        assert blog.id in cache
        assert cache.deregister(blog.id) is True
        assert blog.id not in cache
        assert cache.deregister(blog.id) is False

    @pytest.mark.asyncio
    async def test_reregister_resets_state(self, registered: ContentCache, blog: BlogTarget):
        await registered.refresh(blog.id)
        assert registered.is_blog_loaded(blog.id)
        registered.deregister(blog.id)
        registered.register(blog)
        assert not registered.is_blog_loaded(blog.id)
        assert registered.get_cached_posts(blog.id) == []

    def test_initialize_replaces_registrations(self, cache: ContentCache, make_blog):
        cache.register(make_blog("old"))
        cache.initialize([make_blog("a"), make_blog("b")])
        assert sorted(cache.blog_ids) == ["a", "b"]


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_lists_posts_only(self, registered: ContentCache, blog: BlogTarget):
        await registered.refresh(blog.id)
        paths = sorted(p.path for p in registered.get_cached_posts(blog.id))
        assert paths == [HELLO, f"{POSTS_DIR}/second.md"]
        assert all(not p.is_loaded for p in registered.get_cached_posts(blog.id))

    @pytest.mark.asyncio
    async def test_refresh_records_timestamp(self, registered, blog, clock):
        await registered.refresh(blog.id)
        assert registered.get_last_refreshed(blog.id) == clock.now
        assert registered.get_blog_info(blog.id).error is None

    @pytest.mark.asyncio
    async def test_refresh_unknown_blog_raises(self, cache: ContentCache):
        with pytest.raises(NotFoundError):
            await cache.refresh("nope")

    @pytest.mark.asyncio
    async def test_unchanged_sha_keeps_loaded_body(
        self, registered: ContentCache, blog: BlogTarget, repo: FakeRepository
    ):
        await registered.refresh(blog.id)
        await registered.get_content(blog.id, HELLO)
        fetches = repo.call_count("get_file_content")

        await registered.refresh(blog.id)
        content = await registered.get_content(blog.id, HELLO)
        assert content.content == "# Hello\n\nFirst post."
        assert repo.call_count("get_file_content") == fetches

    @pytest.mark.asyncio
    async def test_changed_sha_clears_body_and_refetches(
        self, registered: ContentCache, blog: BlogTarget, repo: FakeRepository
    ):
        await registered.refresh(blog.id)
        await registered.get_content(blog.id, HELLO)

        new_sha = repo.external_write(HELLO, "# Hello\n\nRewritten.")
        await registered.refresh(blog.id)
        post = next(p for p in registered.get_cached_posts(blog.id) if p.path == HELLO)
        assert post.content == ""
        assert post.sha == new_sha

        content = await registered.get_content(blog.id, HELLO)
        assert content.content == "# Hello\n\nRewritten."
        assert content.sha == new_sha

    @pytest.mark.asyncio
    async def test_failure_keeps_stale_posts_and_records_error(
        self, registered: ContentCache, blog: BlogTarget, repo: FakeRepository
    ):
        await registered.refresh(blog.id)
        repo.fail("list_directory", TransportError("offline"))
        with pytest.raises(TransportError):
            await registered.refresh(blog.id)
        assert len(registered.get_cached_posts(blog.id)) == 2
        assert registered.get_blog_info(blog.id).error == "offline"

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, registered, blog, repo):
        repo.fail("list_directory", TransportError("offline"))
        with pytest.raises(TransportError):
            await registered.refresh(blog.id)
        repo.failures.clear()
        await registered.refresh(blog.id)
        assert registered.get_blog_info(blog.id).error is None

    @pytest.mark.asyncio
    async def test_refresh_all_isolates_failures(self, make_blog, clock):
        good_repo = FakeRepository({f"{POSTS_DIR}/a.md": "a"})
        bad_repo = FakeRepository()
        bad_repo.fail("list_directory", TransportError("down"))
        cache = ContentCache(
            lambda b: bad_repo if b.id == "bad" else good_repo, clock=clock
        )
        cache.initialize([make_blog("good"), make_blog("bad")])

        await cache.refresh_all()
        assert cache.is_blog_loaded("good")
        assert not cache.is_blog_loaded("bad")
        assert cache.get_blog_info("bad").error == "down"


class TestGetContent:
    @pytest.mark.asyncio
    async def test_unknown_blog_or_path_makes_no_call(
        self, registered: ContentCache, blog: BlogTarget, repo: FakeRepository
    ):
        await registered.refresh(blog.id)
        assert await registered.get_content("nope", HELLO) is None
        assert await registered.get_content(blog.id, "missing.md") is None
        assert repo.call_count("get_file_content") == 0

    @pytest.mark.asyncio
    async def test_lazy_load_then_cached(self, registered, blog, repo, clock):
        await registered.refresh(blog.id)
        first = await registered.get_content(blog.id, HELLO)
        second = await registered.get_content(blog.id, HELLO)
        assert first == second
        assert repo.call_count("get_file_content") == 1
        post = next(p for p in registered.get_cached_posts(blog.id) if p.path == HELLO)
        assert post.last_fetched == clock.now

    @pytest.mark.asyncio
    async def test_empty_body_fetched_once(self, registered, blog, repo):
        empty = f"{POSTS_DIR}/empty.md"
        repo.external_write(empty, "")
        await registered.refresh(blog.id)
        assert (await registered.get_content(blog.id, empty)).content == ""
        assert (await registered.get_content(blog.id, empty)).content == ""
        assert repo.call_count("get_file_content") == 1

    @pytest.mark.asyncio
    async def test_multi_file_refresh_lists_folder_indexes(self, cache, make_blog, repo):
        blog = make_blog("folders", content={"path": POSTS_DIR, "format": "multi-file"})
        repo.external_write(f"{POSTS_DIR}/launch/index.md", "# Launch")
        repo.external_write(f"{POSTS_DIR}/launch/cover.png", "binary")
        repo.external_write(f"{POSTS_DIR}/drafts/notes.md", "not a post")
        cache.register(blog)

        await cache.refresh(blog.id)

        (post,) = cache.get_cached_posts(blog.id)
        assert post.path == f"{POSTS_DIR}/launch/index.md"
        assert post.name == "launch"
        assert [child.name for child in cache.remote_tree()[0].children] == ["launch"]


class TestWriteBacks:
    @pytest.mark.asyncio
    async def test_update_after_write_with_body(self, registered, blog, repo):
        await registered.refresh(blog.id)
        assert registered.update_after_write(blog.id, HELLO, "sha-new", "new body")
        content = await registered.get_content(blog.id, HELLO)
        assert content.content == "new body"
        assert content.sha == "sha-new"
        assert repo.call_count("get_file_content") == 0

    @pytest.mark.asyncio
    async def test_update_after_write_without_body_forces_refetch(self, registered, blog):
        await registered.refresh(blog.id)
        await registered.get_content(blog.id, HELLO)
        registered.update_after_write(blog.id, HELLO, "sha-new")
        post = next(p for p in registered.get_cached_posts(blog.id) if p.path == HELLO)
        assert post.sha == "sha-new"
        assert not post.is_loaded

    def test_update_after_write_adds_new_post(self, registered, blog):
        registered.update_after_write(blog.id, f"{POSTS_DIR}/new.md", "sha-x", "body")
        assert registered.get_post_sha(blog.id, f"{POSTS_DIR}/new.md") == "sha-x"

    def test_update_after_write_unknown_blog(self, cache: ContentCache):
        assert cache.update_after_write("nope", "p.md", "sha") is False

    @pytest.mark.asyncio
    async def test_rename_after_write_moves_post(self, registered, blog):
        await registered.refresh(blog.id)
        new_path = f"{POSTS_DIR}/renamed.md"
        registered.rename_after_write(blog.id, HELLO, new_path, "sha-r")
        assert not registered.has_post(blog.id, HELLO)
        assert registered.get_post_sha(blog.id, new_path) == "sha-r"

    @pytest.mark.asyncio
    async def test_remove_after_delete(self, registered, blog):
        await registered.refresh(blog.id)
        assert registered.remove_after_delete(blog.id, HELLO) is True
        assert registered.remove_after_delete(blog.id, HELLO) is False


class TestRemoteTree:
    @pytest.mark.asyncio
    async def test_tree_shape(self, registered: ContentCache, blog: BlogTarget):
        await registered.refresh(blog.id)
        (node,) = registered.remote_tree()
        assert node.type == "folder"
        assert node.path == f"remote:{blog.id}"
        assert [child.name for child in node.children] == ["hello.md", "second.md"]
        assert node.children[0].path == f"remote:{blog.id}:{HELLO}"
        assert node.children[0].source == "remote"


class TestChangeNotification:
    @pytest.mark.asyncio
    async def test_listeners_fire_on_success_only(self, registered, blog, repo):
        calls: list[int] = []
        registered.on_change(lambda: calls.append(1))
        await registered.refresh(blog.id)
        assert calls == [1]

        repo.fail("list_directory", TransportError("offline"))
        with pytest.raises(TransportError):
            await registered.refresh(blog.id)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_throwing_listener_does_not_stop_others(self, registered, blog):
        calls: list[int] = []

        def broken() -> None:
            raise RuntimeError("listener bug")

        registered.on_change(broken)
        registered.on_change(lambda: calls.append(1))
        await registered.refresh(blog.id)
        assert calls == [1]

    def test_register_and_deregister_notify(self, cache: ContentCache, blog):
        calls: list[int] = []
        cache.on_change(lambda: calls.append(1))
        cache.register(blog)
        assert calls == [1]
        assert cache.deregister(blog.id) is True
        assert calls == [1, 1]
        assert cache.deregister(blog.id) is False
        assert calls == [1, 1]

    def test_initialize_notifies_once(self, cache: ContentCache, blog, tracked_blog):
        calls: list[int] = []
        cache.on_change(lambda: calls.append(1))
        cache.initialize([blog, tracked_blog])
        assert calls == [1]

    def test_off_change(self, registered, blog):
        calls: list[int] = []

        def listener() -> None:
            calls.append(1)

        registered.on_change(listener)
        registered.off_change(listener)
        registered.update_after_write(blog.id, HELLO, "sha")
        assert calls == []


class TestPolling:
    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_timer(self, registered: ContentCache):
        assert registered.start_polling(60) is True
        assert registered.start_polling(60) is False
        assert registered.is_polling
        registered.stop_polling()
        assert not registered.is_polling

    @pytest.mark.asyncio
    async def test_poll_survives_failures(self, registered, blog, repo):
        repo.fail("list_directory", TransportError("offline"))
        registered.start_polling(0.01)
        await asyncio.sleep(0.05)
        assert registered.is_polling
        assert repo.call_count("list_directory") >= 2
        registered.stop_polling()
