"""Rich views for plans, validation reports, run events and answers."""

from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.tree import Tree

from ..engine.events import EventKind, PhaseEvent
from ..engine.results import AggregatedResults
from ..models import FinalAnswer, Judgement
from ..plans.models import Plan
from ..plans.validator import ValidationReport
from .utils import format_duration, status_style, status_text, truncate

PENDING_ICON = "[dim][ ][/dim]"

VERDICT_STYLES = {
	Judgement.PASSED: "green",
	Judgement.HALLUCINATION: "red",
	Judgement.NOT_VERIFIED: "yellow",
	Judgement.NOT_ALIGNED: "yellow",
	Judgement.ERROR: "red",
}


def render_plan(
	plan: Plan,
	results: Optional[AggregatedResults] = None,
	console: Optional[Console] = None,
) -> None:
	"""Render a plan as a Rich Tree with order groups and nodes."""
	console = console or Console()

	tree = Tree(f"[bold]{plan.task}[/bold]  [dim]({len(plan.nodes)} sub-tasks)[/dim]")
	if plan.is_empty:
		tree.add("[dim]No sub-tasks; answered directly[/dim]")

	for order, nodes in plan.groups():
		group = tree.add(f"[bold]Group {order}[/bold] [dim]({len(nodes)} parallel)[/dim]")
		for node in nodes:
			result = results.get(node) if results is not None else None
			if result is None:
				icon = PENDING_ICON
				detail = ""
			else:
				style = status_style(result.success)
				icon = f"[{style}][{status_text(result.success)}][/{style}]"
				detail = f" [dim]{format_duration(result.duration_seconds)}[/dim]"
				if not result.success:
					detail += f" [red]{truncate(result.error or '', 50)}[/red]"
			deps = f" [dim]after {', '.join(map(str, node.dependencies))}[/dim]" if node.dependencies else ""
			group.add(f"{icon} [cyan]{node.type.value}[/cyan] {escape(truncate(node.query or '', 60))}{deps}{detail}")

	console.print(tree)


def render_report(report: ValidationReport, console: Optional[Console] = None) -> None:
	"""Render a validation report panel."""
	console = console or Console()

	lines = []
	if report.ok:
		lines.append("[green]Plan is valid.[/green]")
	for issue in report.errors:
		where = f" [dim]({issue.node_id})[/dim]" if issue.node_id else ""
		lines.append(f"[red]error[/red] {issue.code}: {issue.message}{where}")
	for issue in report.warnings:
		lines.append(f"[yellow]warning[/yellow] {issue.code}: {issue.message}")

	border = "green" if report.ok else "red"
	console.print(Panel("\n".join(lines), title="Plan validation", border_style=border))


def render_event(event: PhaseEvent, console: Optional[Console] = None) -> None:
	"""Print a one-line view of a run event."""
	console = console or Console()

	if event.kind == EventKind.PHASE_STARTED:
		console.print(f"[bold blue]>> {event.phase.value}[/bold blue]")
	elif event.kind == EventKind.WARNING:
		console.print(f"   [yellow]! {escape(event.message)}[/yellow]")
	elif event.kind == EventKind.NODE_RESULT:
		result = event.artifact
		style = status_style(result.success)
		console.print(
			f"   [{style}]{status_text(result.success)}[/{style}] {result.node_id} "
			f"[dim]{result.node_type.value} {format_duration(result.duration_seconds)}[/dim]"
		)
	elif event.kind == EventKind.ARTIFACT:
		artifact = event.artifact
		if isinstance(artifact, Plan):
			render_plan(artifact, console=console)
		else:
			console.print(f"   [dim]{type(artifact).__name__}:[/dim] {escape(truncate(str(artifact), 100))}")
	elif event.kind == EventKind.SUSPENDED:
		console.print(f"[bold yellow]?? {event.message}[/bold yellow]")


def render_answer(answer: FinalAnswer, console: Optional[Console] = None) -> None:
	"""Render the final answer in a panel tagged with its verdict."""
	console = console or Console()

	if answer.verdict is not None:
		style = VERDICT_STYLES[answer.verdict.judgement]
		subtitle = f"[{style}]{answer.verdict.judgement.value}[/{style}]"
	else:
		style = "dim"
		subtitle = "[dim]not evaluated[/dim]"

	console.print(Panel(
		Markdown(answer.text),
		title=f"Answer ({answer.framing.value})",
		subtitle=subtitle,
		border_style=style,
	))
