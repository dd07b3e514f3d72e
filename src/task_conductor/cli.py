"""CLI for task-conductor: run, validate, serve and doctor commands."""

import argparse
import asyncio
import platform
import shutil
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm, Prompt

from .config import load_config
from .logging_config import setup_logging

console = Console()


def _read_documents(paths: list[str]) -> dict[str, str]:
	"""Read local reference documents as text, keyed by file name."""
	documents = {}
	for raw in paths:
		path = Path(raw)
		try:
			documents[path.name] = path.read_text(encoding="utf-8", errors="replace")
		except OSError as e:
			console.print(f"[yellow]Skipping {path}: {e}[/yellow]")
	return documents


async def _run_interactive(controller, task) -> None:
	from .engine.state import Suspension
	from .visualizer import render_answer, render_event

	events = controller.stream(task)
	while True:
		outcome = None
		async for event in events:
			render_event(event, console=console)
			if event.is_terminal:
				outcome = event.artifact

		if not isinstance(outcome, Suspension):
			render_answer(outcome, console=console)
			return

		if outcome.expects_confirmation:
			answer = Confirm.ask(outcome.question, console=console)
		else:
			answer = Prompt.ask(outcome.question, console=console)
		events = controller.stream_resume(outcome.token, answer)


def cmd_run(args: argparse.Namespace) -> None:
	"""Run a task interactively, answering suspensions from stdin."""
	from .engine.controller import PhaseController
	from .models import Task
	from .providers.factory import build_capabilities

	config = load_config()
	if args.confirm:
		config.confirm_node_types = [t.strip() for t in args.confirm.split(",") if t.strip()]
	setup_logging(level=args.log_level or config.log_level, log_dir=config.log_dir, console=args.verbose)

	controller = PhaseController(build_capabilities(config), config)
	task = Task(query=args.query, documents=_read_documents(args.doc or []))
	try:
		asyncio.run(_run_interactive(controller, task))
	except KeyboardInterrupt:
		console.print("[red]Interrupted[/red]")
		sys.exit(130)


def cmd_validate(args: argparse.Namespace) -> None:
	"""Validate a plan JSON file."""
	from .errors import PlanValidationError
	from .plans.validator import ValidationReport, parse_plan, validate_plan
	from .visualizer import render_plan, render_report

	try:
		raw = Path(args.plan_file).read_text()
	except OSError as e:
		console.print(f"[red]Cannot read {args.plan_file}: {e}[/red]")
		sys.exit(1)

	config = load_config()
	try:
		plan = parse_plan(raw)
	except PlanValidationError as e:
		render_report(ValidationReport(errors=e.issues), console=console)
		sys.exit(1)

	report = validate_plan(plan, config.research_group_limit)
	render_plan(plan, console=console)
	render_report(report, console=console)
	if not report.ok:
		sys.exit(1)


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the MCP server (stdio transport)."""
	from .server import mcp
	mcp.run()


def _check_server_startup() -> tuple[str, str | None]:
	"""Try importing and counting registered tools. Returns (status, issue_or_none)."""
	try:
		from .server import mcp as server_instance
		# FastMCP stores tools internally - count them
		tools = server_instance._tool_manager._tools
		return f"OK ({len(tools)} tools registered)", None
	except Exception as e:
		return f"FAILED ({e})", f"Server startup failed: {e}"


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("task-conductor doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in ["mcp", "pydantic", "aiosqlite", "aiohttp", "platformdirs", "rich"]:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Providers:")
	claude_path = shutil.which(config.claude_command)
	print(f"    claude CLI:          {claude_path or 'NOT FOUND'}")
	if not claude_path:
		issues.append(f"'{config.claude_command}' not found on PATH")
	print(f"    EXA_API_KEY:         {'set' if config.exa_api_key else 'NOT SET'}")
	if not config.exa_api_key:
		issues.append("EXA_API_KEY not set; research sub-tasks will fail")
	print()

	print("  Config:")
	toml_path = config.config_dir / "config.toml"
	print(f"    config.toml:         {'found' if toml_path.exists() else 'not found (optional)'}")
	print(f"    sessions db:         {config.sessions_db_path}")
	print(f"    confirm types:       {', '.join(config.confirm_node_types) or 'none'}")
	print()

	print("  Server:")
	server_status, server_issue = _check_server_startup()
	print(f"    {server_status}")
	if server_issue:
		issues.append(server_issue)
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="task-conductor",
		description="Plan-directed multi-phase task execution engine",
	)
	subparsers = parser.add_subparsers(dest="command")

	# run
	run_parser = subparsers.add_parser("run", help="Run a task interactively")
	run_parser.add_argument("query", help="The task to run")
	run_parser.add_argument("--doc", action="append", help="Local document to search (repeatable)")
	run_parser.add_argument("--confirm", type=str, default=None, help="Comma-separated node types needing approval")
	run_parser.add_argument("--log-level", type=str, default=None, help="Log level override")
	run_parser.add_argument("-v", "--verbose", action="store_true", help="Print logs to stderr")
	run_parser.set_defaults(func=cmd_run)

	# validate
	validate_parser = subparsers.add_parser("validate", help="Validate a plan JSON file")
	validate_parser.add_argument("plan_file", help="Path to plan JSON")
	validate_parser.set_defaults(func=cmd_validate)

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run MCP server (stdio)")
	serve_parser.set_defaults(func=cmd_serve)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)


if __name__ == "__main__":
	main()
