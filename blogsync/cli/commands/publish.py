"""``blogsync publish|update|rename`` — run a publish job and follow it.

Each command starts one job, renders its checklist live while the job
runs, and exits non-zero if the job fails.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.live import Live

from blogsync.cli.renderer import JobRenderer
from blogsync.cli.session import load_settings, open_service
from blogsync.models.jobs import JobStatus
from blogsync.models.results import OperationResult
from blogsync.service import CmsService

console = Console()

_BLOGS_OPTION = typer.Option(
    None, "--blogs", "-b", help="JSON file listing the blog targets."
)


async def _follow(service: CmsService, started: OperationResult) -> bool:
    """Render a job until it finishes.  Returns whether it completed."""
    if not started.success:
        console.print(f"[bold red]Could not start job:[/bold red] {started.error}")
        return False
    job_id = started.data["job_id"]
    renderer = JobRenderer(console)

    with Live(console=console, refresh_per_second=4) as live:
        service.subscribe(job_id, lambda job: live.update(renderer.render_job(job)))
        finished = await service.wait_for_job(job_id)
        service.unsubscribe(job_id)

    job = finished.data["job"]
    return job.status == JobStatus.COMPLETED


def _run_job(
    settings_file: Optional[Path],
    start: Callable[[CmsService], Awaitable[OperationResult]],
    *,
    refresh_first: str | None = None,
) -> None:
    settings = load_settings(settings_file)

    async def _run() -> bool:
        service = open_service(settings)
        if refresh_first is not None:
            refreshed = await service.refresh_blog(refresh_first)
            if not refreshed.success:
                console.print(f"[bold red]Refresh failed:[/bold red] {refreshed.error}")
                return False
        return await _follow(service, await start(service))

    if not asyncio.run(_run()):
        raise typer.Exit(code=1)


def publish_cmd(
    blog_id: str = typer.Argument(..., help="Blog ID."),
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file."),
    blogs_file: Optional[Path] = _BLOGS_OPTION,
) -> None:
    """Publish a local markdown file as a new post."""
    content = source.read_text(encoding="utf-8")
    _run_job(blogs_file, lambda service: service.publish_direct(blog_id, content))


def update_cmd(
    blog_id: str = typer.Argument(..., help="Blog ID."),
    path: str = typer.Argument(..., help="Repository path of the post."),
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file."),
    blogs_file: Optional[Path] = _BLOGS_OPTION,
) -> None:
    """Replace an existing post with a local file's content."""
    content = source.read_text(encoding="utf-8")

    async def start(service: CmsService) -> OperationResult:
        current = await service.get_post_content(blog_id, path)
        if not current.success:
            return current
        return await service.publish_cms_file(blog_id, path, content, current.data["sha"])

    _run_job(blogs_file, start, refresh_first=blog_id)


def rename_cmd(
    blog_id: str = typer.Argument(..., help="Blog ID."),
    path: str = typer.Argument(..., help="Repository path of the post."),
    new_name: str = typer.Argument(..., help="New file name (same directory)."),
    blogs_file: Optional[Path] = _BLOGS_OPTION,
) -> None:
    """Rename a post within its directory."""

    async def start(service: CmsService) -> OperationResult:
        current = await service.get_post_content(blog_id, path)
        if not current.success:
            return current
        return await service.rename_cms_file(blog_id, path, new_name, current.data["sha"])

    _run_job(blogs_file, start, refresh_first=blog_id)
