"""``blogsync blogs`` — list the configured blogs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from blogsync.cli.session import load_settings

console = Console()


def blogs_cmd(
    blogs_file: Optional[Path] = typer.Option(
        None, "--blogs", "-b", help="JSON file listing the blog targets."
    ),
) -> None:
    """List configured blogs and whether they track deployments."""
    settings = load_settings(blogs_file)
    blogs = settings.load_blogs()
    if not blogs:
        console.print(f"[dim]No blogs configured in {settings.blogs_file}[/dim]")
        return

    table = Table(title="Configured Blogs")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Repository", style="green")
    table.add_column("Content path")
    table.add_column("Deployments", justify="center")
    for blog in blogs:
        tracking = (
            f"[green]{blog.cloudflare.project_name}[/green]"
            if blog.cloudflare is not None
            else "[dim]-[/dim]"
        )
        table.add_row(
            blog.id,
            blog.name,
            f"{blog.github.repo}@{blog.github.branch}",
            blog.content.path,
            tracking,
        )
    console.print(table)
