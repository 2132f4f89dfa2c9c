"""Shared setup for CLI commands: logging, settings and the service."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from blogsync.config import BlogSyncSettings
from blogsync.core.context import BlogSyncContext
from blogsync.models.blogs import BlogTarget
from blogsync.service import CmsService


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def load_settings(blogs_file: Path | None = None) -> BlogSyncSettings:
    settings = BlogSyncSettings()
    if blogs_file is not None:
        settings = settings.model_copy(update={"blogs_file": blogs_file})
    configure_logging(settings.log_level)
    return settings


def open_service(settings: BlogSyncSettings) -> CmsService:
    """An initialized CmsService for every blog in ``settings.blogs_file``.

    Must be called from inside the event loop that will run the jobs.
    """
    service = CmsService(BlogSyncContext(settings))
    service.initialize(settings.load_blogs())
    return service


def find_blog(service: CmsService, blog_id: str) -> BlogTarget | None:
    for blog in service.list_blogs():
        if blog.id == blog_id:
            return blog
    return None
