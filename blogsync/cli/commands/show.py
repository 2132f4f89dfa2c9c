"""``blogsync show BLOG PATH`` — print a post's remote content."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown

from blogsync.cli.session import load_settings, open_service

console = Console()


def show_cmd(
    blog_id: str = typer.Argument(..., help="Blog ID."),
    path: str = typer.Argument(..., help="Repository path of the post."),
    raw: bool = typer.Option(False, "--raw", help="Print the text without rendering."),
    blogs_file: Optional[Path] = typer.Option(
        None, "--blogs", "-b", help="JSON file listing the blog targets."
    ),
) -> None:
    """Print a post, fetching it from the repository."""
    settings = load_settings(blogs_file)

    async def _run() -> None:
        service = open_service(settings)
        refreshed = await service.refresh_blog(blog_id)
        if not refreshed.success:
            console.print(f"[bold red]Refresh failed:[/bold red] {refreshed.error}")
            raise typer.Exit(code=1)
        result = await service.get_post_content(blog_id, path)
        if not result.success:
            console.print(f"[bold red]{result.error}[/bold red]")
            raise typer.Exit(code=1)
        console.print(f"[dim]{path} @ {result.data['sha'][:7]}[/dim]")
        if raw:
            console.print(result.data["content"], markup=False, highlight=False)
        else:
            console.print(Markdown(result.data["content"]))

    asyncio.run(_run())
