"""Rich terminal renderer for publish jobs and the remote tree.

Color scheme
------------
- green   : completed
- red     : failed
- yellow  : in progress
- dim     : pending
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from blogsync.models.cache import RemoteNode
from blogsync.models.jobs import JobBase, JobStatus, StepStatus

_STEP_ICONS: dict[StepStatus, str] = {
    StepStatus.COMPLETED: "[green]done[/green]",
    StepStatus.FAILED: "[bold red]failed[/bold red]",
    StepStatus.IN_PROGRESS: "[yellow]running[/yellow]",
    StepStatus.PENDING: "[dim]pending[/dim]",
}

_STATUS_STYLES: dict[JobStatus, str] = {
    JobStatus.COMPLETED: "bold green",
    JobStatus.FAILED: "bold red",
    JobStatus.PENDING: "dim",
}


class JobRenderer:
    """Renders job snapshots as Rich renderables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_job(self, job: JobBase) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Step", min_width=24)
        table.add_column("Status", justify="center", min_width=10)
        table.add_column("Details")
        for step in job.steps:
            table.add_row(
                step.name,
                _STEP_ICONS.get(step.status, step.status.value),
                step.message or "[dim]-[/dim]",
            )

        style = _STATUS_STYLES.get(job.status, "bold yellow")
        summary = [
            f"[bold]Status:[/bold] [{style}]{job.status.value}[/{style}]",
            f"[bold]Progress:[/bold] {job.progress}%",
        ]
        if job.deployment_id:
            summary.append(f"[bold]Deployment:[/bold] {job.deployment_id}")
        post_url = getattr(job, "post_url", None)
        if post_url:
            summary.append(f"[bold]URL:[/bold] {post_url}")
        parts: list = [table, Text(""), Text.from_markup("  |  ".join(summary))]
        if job.error:
            parts.append(Text.from_markup(f"[bold red]Error:[/bold red] {job.error}"))

        return Panel(
            Group(*parts),
            title=f"[bold]{job.kind}[/bold] {job.job_id}",
            border_style="red" if job.status == JobStatus.FAILED else "blue",
            padding=(1, 2),
        )

    def print_job(self, job: JobBase) -> None:
        self.console.print(self.render_job(job))

    def render_tree(self, nodes: list[RemoteNode]) -> Tree:
        root = Tree("[bold]Remote content[/bold]")
        for blog in nodes:
            branch = root.add(f"[bold cyan]{blog.name}[/bold cyan] [dim]{blog.path}[/dim]")
            if not blog.children:
                branch.add("[dim]no posts[/dim]")
            for post in blog.children:
                branch.add(f"{post.name} [dim]{(post.sha or '')[:7]}[/dim]")
        return root
