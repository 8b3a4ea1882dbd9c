"""Rich views for plan progress and stored files."""

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..plans.models import Plan, TaskStatus
from ..store.models import FileStatus, StoredFile

STATUS_STYLES = {
	TaskStatus.TODO: "dim",
	TaskStatus.DOING: "yellow",
	TaskStatus.DONE: "green",
	TaskStatus.BLOCKED: "red",
	TaskStatus.REVIEW: "magenta",
}

FILE_STATUS_STYLES = {
	FileStatus.ACTIVE: "green",
	FileStatus.ARCHIVED: "dim",
	FileStatus.DEPRECATED: "yellow",
}


def status_icon(status: TaskStatus) -> str:
	"""Checkbox marker with color, e.g. '[green]\\[x][/green]'."""
	style = STATUS_STYLES.get(status, "dim")
	return f"[{style}]{escape(f'[{status.marker}]')}[/{style}]"


def render_plan_progress(plan: Plan, console: Optional[Console] = None) -> None:
	"""Render a plan as a Rich Tree with phases and tasks."""
	console = console or Console()

	progress = plan.get_progress()
	pct = progress["percent_complete"]

	tree = Tree(
		f"[bold]{escape(plan.title or 'Untitled plan')}[/bold]  "
		f"[dim]({progress['completed_tasks']}/{progress['total_tasks']} tasks, {pct:.0f}%)[/dim]"
	)
	if plan.goal:
		tree.add(f"[dim]Goal: {escape(plan.goal)}[/dim]")

	for phase in plan.phases:
		done = len([t for t in phase.tasks if t.status == TaskStatus.DONE])
		phase_branch = tree.add(
			f"[bold]Phase {phase.number}: {escape(phase.name)}[/bold] [dim]({done}/{len(phase.tasks)})[/dim]"
		)

		for task in phase.tasks:
			label = f"{status_icon(task.status)} {task.step} {escape(task.title)}"
			if task.completed_date:
				label += f" [dim]{task.completed_date}[/dim]"
			if task.blocked_reason:
				label += f" [red]- {escape(task.blocked_reason)}[/red]"
			if task.review_note:
				label += f" [magenta]- {escape(task.review_note)}[/magenta]"
			phase_branch.add(label)

	console.print(tree)


def render_plan_summary(plan: Plan, console: Optional[Console] = None) -> None:
	"""Render a summary panel for a plan."""
	console = console or Console()

	progress = plan.get_progress()
	pct = progress["percent_complete"]

	lines = []
	lines.append(f"[bold]Goal:[/bold] {escape(plan.goal)}")
	lines.append("")
	lines.append(f"[bold]Progress:[/bold] {progress['completed_tasks']}/{progress['total_tasks']} tasks ({pct:.0f}%)")
	lines.append(
		f"[bold]Phases:[/bold] {progress['completed_phases']}/{progress['total_phases']} complete"
	)
	if progress["blocked_tasks"]:
		lines.append(f"[bold red]Blocked:[/bold red] {progress['blocked_tasks']}")
	if progress["review_tasks"]:
		lines.append(f"[bold magenta]Awaiting review:[/bold magenta] {progress['review_tasks']}")

	if plan.questions:
		lines.append("")
		lines.append("[bold]Questions:[/bold]")
		for q in plan.questions:
			lines.append(f"  - {escape(q)}")

	console.print(Panel("\n".join(lines), title=f"Plan: {escape(plan.title)}", border_style="cyan"))


def render_file_table(files: Sequence[StoredFile], console: Optional[Console] = None) -> None:
	"""Render stored file metadata as a table."""
	console = console or Console()

	if not files:
		console.print("[dim]No files stored.[/dim]")
		return

	table = Table(title="AGENTSCAPE files")
	table.add_column("File", style="bold")
	table.add_column("Description")
	table.add_column("Tags", style="cyan")
	table.add_column("Status")
	table.add_column("Tokens", justify="right")
	table.add_column("Updated", style="dim")

	for f in files:
		style = FILE_STATUS_STYLES.get(f.status, "white")
		table.add_row(
			escape(f.name),
			escape(f.description),
			escape(f.tags),
			f"[{style}]{escape(f.status_value)}[/{style}]",
			f.context_len or "-",
			f.updated_ts,
		)

	console.print(table)
