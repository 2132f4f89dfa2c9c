"""Main Typer application — imports and registers all CLI commands.

Entry point: ``blogsync`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import typer

from blogsync.cli.commands.blogs import blogs_cmd
from blogsync.cli.commands.check import check_cmd
from blogsync.cli.commands.publish import publish_cmd, rename_cmd, update_cmd
from blogsync.cli.commands.show import show_cmd
from blogsync.cli.commands.tree import tree_cmd

app = typer.Typer(
    name="blogsync",
    help="blogsync: sync, edit and publish Git-backed blog content.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="blogs", help="List configured blogs.")(blogs_cmd)
app.command(name="tree", help="Refresh and show the remote content tree.")(tree_cmd)
app.command(name="show", help="Print a post's content.")(show_cmd)
app.command(name="publish", help="Publish a markdown file as a new post.")(publish_cmd)
app.command(name="update", help="Update an existing post from a file.")(update_cmd)
app.command(name="rename", help="Rename a post within its directory.")(rename_cmd)
app.command(name="check", help="Test repository and hosting connections.")(check_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
