"""``blogsync tree`` — refresh every blog and print the remote tree."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from blogsync.cli.renderer import JobRenderer
from blogsync.cli.session import load_settings, open_service

console = Console()


def tree_cmd(
    blogs_file: Optional[Path] = typer.Option(
        None, "--blogs", "-b", help="JSON file listing the blog targets."
    ),
) -> None:
    """Refresh all blogs and show their posts."""
    settings = load_settings(blogs_file)

    async def _run() -> None:
        service = open_service(settings)
        refreshed = await service.refresh_all()
        for blog_id, error in refreshed.data.get("errors", {}).items():
            console.print(f"[bold red]{blog_id}:[/bold red] {error}")
        tree = service.get_remote_tree()
        console.print(JobRenderer(console).render_tree(tree.data["tree"]))

    asyncio.run(_run())
