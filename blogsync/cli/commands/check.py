"""``blogsync check BLOG`` — verify repository and hosting credentials."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from blogsync.cli.session import find_blog, load_settings, open_service

console = Console()


def check_cmd(
    blog_id: str = typer.Argument(..., help="Blog ID."),
    blogs_file: Optional[Path] = typer.Option(
        None, "--blogs", "-b", help="JSON file listing the blog targets."
    ),
) -> None:
    """Test the GitHub and Cloudflare connections of one blog."""
    settings = load_settings(blogs_file)

    async def _run() -> bool:
        service = open_service(settings)
        blog = find_blog(service, blog_id)
        if blog is None:
            console.print(f"[bold red]Blog not found:[/bold red] {blog_id}")
            return False

        table = Table(title=f"Connection check: {blog.name}")
        table.add_column("Component", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Details")

        github = await service.test_github_connection(blog)
        table.add_row(
            "GitHub",
            "[green]OK[/green]" if github.success else "[bold red]FAIL[/bold red]",
            f"{blog.github.repo}@{blog.github.branch}" if github.success else github.error,
        )
        healthy = github.success

        if blog.cloudflare is not None:
            cloudflare = await service.test_cloudflare_connection(blog)
            table.add_row(
                "Cloudflare Pages",
                "[green]OK[/green]" if cloudflare.success else "[bold red]FAIL[/bold red]",
                (cloudflare.data.get("url") or blog.cloudflare.project_name)
                if cloudflare.success
                else cloudflare.error,
            )
            healthy = healthy and cloudflare.success
        else:
            table.add_row("Cloudflare Pages", "[dim]-[/dim]", "[dim]not configured[/dim]")

        console.print(table)
        return healthy

    if not asyncio.run(_run()):
        raise typer.Exit(code=1)
