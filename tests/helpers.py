"""Shared test fixtures and helpers for task-conductor tests."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

from task_conductor.config import Config
from task_conductor.errors import ProviderFailure
from task_conductor.models import (
	Classification,
	ComplexityTier,
	EvaluationVerdict,
	FeasibilityVerdict,
	Judgement,
)
from task_conductor.plans.models import NodeType, Plan
from task_conductor.providers.base import CapabilitySet, NodeRequest


def capture_tools(config: MagicMock, register_fn: Callable) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		config: Config object to pass to the registration function
		register_fn: The registration function (e.g., register_task_tools)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), config)
	return captured


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted in a temp dir."""
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	for key, value in overrides.items():
		setattr(config, key, value)
	return config


def make_plan(nodes: list[dict], task: str = "Test task") -> Plan:
	return Plan.model_validate({"task": task, "nodes": nodes})


def node(type_: str, order: int, query: str = "q", deps: Optional[list[int]] = None, **extra) -> dict:
	"""Raw node dict for building plans."""
	return {"type": type_, "order": order, "query": query, "dependencies": deps or [], **extra}


class RecordingProvider:
	"""Sub-task provider that logs start/end and tracks peak concurrency."""

	def __init__(
		self,
		node_type: NodeType,
		log: Optional[list] = None,
		delay: float = 0.01,
		fail_on: Optional[set[str]] = None,
		raise_on: Optional[set[str]] = None,
		hang_on: Optional[set[str]] = None,
	):
		self.node_type = node_type
		self.log = log if log is not None else []
		self.delay = delay
		self.fail_on = fail_on or set()
		self.raise_on = raise_on or set()
		self.hang_on = hang_on or set()
		self.in_flight = 0
		self.peak = 0
		self.requests: list[NodeRequest] = []

	async def run(self, request: NodeRequest) -> Any:
		node_id = request.node.id
		self.requests.append(request)
		self.in_flight += 1
		self.peak = max(self.peak, self.in_flight)
		self.log.append(("start", node_id))
		try:
			if node_id in self.hang_on:
				await asyncio.Event().wait()
			await asyncio.sleep(self.delay)
			if node_id in self.fail_on:
				raise ProviderFailure(self.node_type.value, f"{node_id} failed", node_id)
			if node_id in self.raise_on:
				raise RuntimeError(f"{node_id} exploded")
			return f"payload-{node_id}"
		finally:
			self.in_flight -= 1
			self.log.append(("end", node_id))


class FakeClassifier:
	def __init__(
		self,
		complexity: ComplexityTier = ComplexityTier.TRIVIAL,
		error: Optional[Exception] = None,
		delay: float = 0.0,
	):
		self.complexity = complexity
		self.error = error
		self.delay = delay
		self.started = asyncio.Event()
		self.calls = 0

	async def classify(self, query: str) -> Classification:
		self.calls += 1
		self.started.set()
		if self.delay:
			await asyncio.sleep(self.delay)
		if self.error:
			raise self.error
		return Classification(complexity=self.complexity, rationale="fake")


class FakeFeasibility:
	"""Returns the given verdicts in sequence, repeating the last one."""

	def __init__(self, *verdicts: FeasibilityVerdict):
		self.verdicts = list(verdicts) or [FeasibilityVerdict(possible=True, rationale="doable")]
		self.calls: list[list] = []

	async def assess(self, query, conversation) -> FeasibilityVerdict:
		self.calls.append(list(conversation))
		index = min(len(self.calls) - 1, len(self.verdicts) - 1)
		return self.verdicts[index]


class FakePlanner:
	"""Returns the given raw plans in sequence, repeating the last one."""

	def __init__(self, *outputs: Any, delay: float = 0.0):
		self.outputs = list(outputs) or [{"task": "t", "agents": []}]
		self.delay = delay
		self.started = asyncio.Event()
		self.feedback: list[str] = []

	@property
	def calls(self) -> int:
		return len(self.feedback)

	async def plan(self, query, classification, conversation, feedback="") -> Any:
		self.feedback.append(feedback)
		self.started.set()
		if self.delay:
			await asyncio.sleep(self.delay)
		output = self.outputs[min(len(self.feedback) - 1, len(self.outputs) - 1)]
		if isinstance(output, Exception):
			raise output
		return output


class FakeEvaluator:
	def __init__(self, result: Any = None, error: Optional[Exception] = None, delay: float = 0.0):
		self.result = result if result is not None else EvaluationVerdict(
			judgement=Judgement.PASSED, explanation="looks right",
		)
		self.error = error
		self.delay = delay
		self.calls = 0

	async def evaluate(self, aggregated, query, history) -> Any:
		self.calls += 1
		if self.delay:
			await asyncio.sleep(self.delay)
		if self.error:
			raise self.error
		return self.result


class FakeSynthesizer:
	def __init__(self, answer: Optional[Callable] = None, error: Optional[Exception] = None):
		self.answer = answer or (lambda material: f"Answer to: {material.task.query}")
		self.error = error
		self.materials: list = []

	async def synthesize(self, material) -> str:
		self.materials.append(material)
		if self.error:
			raise self.error
		return self.answer(material)


def make_capabilities(
	classifier=None,
	feasibility=None,
	planner=None,
	evaluator=None,
	synthesizer=None,
	subtasks=None,
) -> CapabilitySet:
	"""CapabilitySet of fakes; research provider included by default."""
	if subtasks is None:
		subtasks = {t: RecordingProvider(t) for t in NodeType}
	return CapabilitySet(
		classifier=classifier or FakeClassifier(),
		feasibility=feasibility or FakeFeasibility(),
		planner=planner or FakePlanner(),
		evaluator=evaluator or FakeEvaluator(),
		synthesizer=synthesizer or FakeSynthesizer(),
		subtasks=subtasks,
	)
