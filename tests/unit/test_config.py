"""Tests for settings — env-driven config and the blogs file."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from blogsync.config import BlogSyncSettings


class TestBlogSyncSettings:
    def test_defaults(self):
        settings = BlogSyncSettings(_env_file=None)
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.cache_refresh_interval_seconds == 300
        assert settings.deployment_poll_interval_seconds == 3
        assert settings.deployment_timeout_seconds == 600
        assert settings.deployment_scan_limit == 20
        assert settings.default_publish_seconds == 30
        assert settings.post_extension == ".md"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BLOGSYNC_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("BLOGSYNC_DEPLOYMENT_TIMEOUT_SECONDS", "900")
        settings = BlogSyncSettings(_env_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.deployment_timeout_seconds == 900

    def test_missing_blogs_file(self, tmp_path: Path):
        settings = BlogSyncSettings(_env_file=None, blogs_file=tmp_path / "none.json")
        assert settings.load_blogs() == []

    def test_load_blogs_list_and_mapping(self, tmp_path: Path):
        blog = {
            "id": "b",
            "name": "B",
            "github": {"repo": "o/b"},
            "cloudflare": {"account_id": "a", "project_name": "p"},
        }
        path = tmp_path / "blogs.json"
        path.write_text(json.dumps([blog]), encoding="utf-8")
        settings = BlogSyncSettings(_env_file=None, blogs_file=path)
        (loaded,) = settings.load_blogs()
        assert loaded.github.branch == "main"
        assert loaded.has_deployment_tracking

        path.write_text(json.dumps({"blogs": [blog]}), encoding="utf-8")
        assert [b.id for b in settings.load_blogs()] == ["b"]
