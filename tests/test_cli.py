"""Tests for the CLI module and terminal views."""

import argparse
import json
from io import StringIO
from unittest.mock import patch

import pytest
from rich.console import Console

from task_conductor.cli import _read_documents, cmd_validate, main
from task_conductor.engine.events import EventKind, Phase, PhaseEvent
from task_conductor.engine.results import AggregatedResults, ExecutionResult
from task_conductor.models import EvaluationVerdict, FinalAnswer, Framing, Judgement
from task_conductor.plans.validator import validate_plan
from task_conductor.visualizer import render_answer, render_event, render_plan, render_report

from .helpers import make_plan, node


def make_console() -> tuple[Console, StringIO]:
	buf = StringIO()
	return Console(file=buf, width=120, force_terminal=False), buf


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
	monkeypatch.setenv("TASK_CONDUCTOR_DATA_DIR", str(tmp_path / "data"))
	monkeypatch.setenv("TASK_CONDUCTOR_CONFIG_DIR", str(tmp_path / "config"))


class TestValidateCommand:
	def test_valid_plan(self, tmp_path):
		path = tmp_path / "plan.json"
		path.write_text(json.dumps({"task": "t", "agents": [node("research", 1)]}))
		with patch("task_conductor.cli.console", make_console()[0]):
			cmd_validate(argparse.Namespace(plan_file=str(path)))

	def test_invalid_plan_exits_1(self, tmp_path):
		path = tmp_path / "plan.json"
		path.write_text(json.dumps({"task": "t", "agents": [node("research", 2, deps=[3])]}))
		console, buf = make_console()
		with patch("task_conductor.cli.console", console):
			with pytest.raises(SystemExit) as exc:
				cmd_validate(argparse.Namespace(plan_file=str(path)))
		assert exc.value.code == 1
		assert "dangling_dependency" in buf.getvalue()

	def test_missing_file_exits_1(self, tmp_path):
		with patch("task_conductor.cli.console", make_console()[0]):
			with pytest.raises(SystemExit):
				cmd_validate(argparse.Namespace(plan_file=str(tmp_path / "nope.json")))


def test_main_without_command_exits():
	with patch("sys.argv", ["task-conductor"]):
		with pytest.raises(SystemExit) as exc:
			main()
	assert exc.value.code == 1


def test_read_documents(tmp_path):
	(tmp_path / "notes.txt").write_text("alpha")
	with patch("task_conductor.cli.console", make_console()[0]):
		docs = _read_documents([str(tmp_path / "notes.txt"), str(tmp_path / "missing.txt")])
	assert docs == {"notes.txt": "alpha"}


class TestViews:
	"""Rich renderers."""

	def test_render_plan_with_results(self):
		plan = make_plan([node("research", 1, query="rust news"), node("direct_qa", 2, deps=[1])])
		results = AggregatedResults()
		results.record(ExecutionResult.ok(plan.nodes[0], "x", 0.5))
		results.record(ExecutionResult.failure(plan.nodes[1], "timed out"))
		console, buf = make_console()

		render_plan(plan, results, console=console)

		out = buf.getvalue()
		assert "Group 1" in out
		assert "rust news" in out
		assert "OK" in out
		assert "FAIL" in out
		assert "timed out" in out

	def test_render_report(self):
		plan = make_plan([node("research", 1), node("research", 1), node("research", 1)])
		console, buf = make_console()
		render_report(validate_plan(plan), console=console)
		assert "research_rate_limit" in buf.getvalue()

	def test_render_answer(self):
		answer = FinalAnswer(
			task_id="t",
			text="2 + 2 = **4**",
			verdict=EvaluationVerdict(judgement=Judgement.PASSED),
			framing=Framing.NORMAL,
		)
		console, buf = make_console()
		render_answer(answer, console=console)
		out = buf.getvalue()
		assert "4" in out
		assert "passed" in out

	def test_render_event(self):
		console, buf = make_console()
		render_event(PhaseEvent(task_id="t", phase=Phase.PLANNING, kind=EventKind.PHASE_STARTED), console=console)
		render_event(
			PhaseEvent(task_id="t", phase=Phase.PLANNING, kind=EventKind.WARNING, message="too many researchers"),
			console=console,
		)
		out = buf.getvalue()
		assert "planning" in out
		assert "too many researchers" in out
