"""Tests for the evaluator wrapper and result aggregation."""

import pytest

from task_conductor.engine.evaluator import Evaluator, coerce_verdict
from task_conductor.engine.results import AggregatedResults, ExecutionResult, render_payload
from task_conductor.errors import ProviderFailure
from task_conductor.models import EvaluationVerdict, Judgement, Task, Turn, TurnRole
from task_conductor.plans.models import NodeType, PlanNode
from task_conductor.providers.base import ResearchResponse, SearchHit

from .helpers import FakeEvaluator


def make_node(node_id="n1", order=1, type_=NodeType.RESEARCH):
	return PlanNode(id=node_id, type=type_, order=order, query="q")


class TestEvaluator:
	"""Evaluation never raises."""

	@pytest.mark.asyncio
	async def test_passes_through_verdict(self):
		evaluator = Evaluator(FakeEvaluator())
		verdict = await evaluator.evaluate(AggregatedResults(), Task(query="What is 2+2?"))
		assert verdict.judgement == Judgement.PASSED
		assert verdict.passed

	@pytest.mark.asyncio
	async def test_provider_exception_becomes_error(self):
		evaluator = Evaluator(FakeEvaluator(error=RuntimeError("provider unreachable")))
		verdict = await evaluator.evaluate(AggregatedResults(), Task(query="q"))
		assert verdict.judgement == Judgement.ERROR
		assert "provider unreachable" in verdict.explanation

	@pytest.mark.asyncio
	async def test_provider_failure_becomes_error(self):
		evaluator = Evaluator(FakeEvaluator(error=ProviderFailure("evaluate", "malformed output")))
		verdict = await evaluator.evaluate(AggregatedResults(), Task(query="q"))
		assert verdict.judgement == Judgement.ERROR

	@pytest.mark.asyncio
	async def test_timeout_becomes_error(self):
		evaluator = Evaluator(FakeEvaluator(delay=1.0), timeout=0.05)
		verdict = await evaluator.evaluate(AggregatedResults(), Task(query="q"))
		assert verdict.judgement == Judgement.ERROR
		assert "timed out" in verdict.explanation

	@pytest.mark.asyncio
	async def test_malformed_output_becomes_error(self):
		evaluator = Evaluator(FakeEvaluator(result={"judgement": "maybe"}))
		verdict = await evaluator.evaluate(AggregatedResults(), Task(query="q"))
		assert verdict.judgement == Judgement.ERROR
		assert "Malformed" in verdict.explanation

	@pytest.mark.asyncio
	async def test_history_defaults_to_task(self):
		seen = {}

		class Capturing:
			async def evaluate(self, aggregated, query, history):
				seen["history"] = history
				return {"judgement": "passed", "explanation": ""}

		task = Task(query="q")
		task.append_turn(Turn(role=TurnRole.ASSISTANT, content="working"))
		await Evaluator(Capturing()).evaluate(AggregatedResults(), task)
		assert seen["history"] == "user: q\nassistant: working"


class TestCoerceVerdict:
	"""Provider output shapes."""

	def test_dict(self):
		verdict = coerce_verdict({"judgement": "not-verified", "explanation": "no source"})
		assert verdict.judgement == Judgement.NOT_VERIFIED

	def test_json_string(self):
		verdict = coerce_verdict('```json\n{"judgement": "hallucination", "explanation": "made up"}\n```')
		assert verdict.judgement == Judgement.HALLUCINATION

	def test_garbage_string(self):
		assert coerce_verdict("looks fine to me").judgement == Judgement.ERROR

	def test_wrong_type(self):
		verdict = coerce_verdict(42)
		assert verdict.judgement == Judgement.ERROR
		assert "int" in verdict.explanation

	def test_verdict_instance(self):
		original = EvaluationVerdict(judgement=Judgement.NOT_ALIGNED, explanation="off topic")
		assert coerce_verdict(original) is original


class TestAggregatedResults:
	"""Result aggregation."""

	def test_record_twice_rejected(self):
		results = AggregatedResults()
		node = make_node()
		results.record(ExecutionResult.ok(node, "x"))
		with pytest.raises(ValueError):
			results.record(ExecutionResult.failure(node, "again"))

	def test_counts_and_summary(self):
		results = AggregatedResults()
		results.record(ExecutionResult.ok(make_node("n1"), "found it"))
		results.record(ExecutionResult.failure(make_node("n2", order=2), "broke"))
		assert results.succeeded == 1
		assert results.failed == 1
		summary = results.summary()
		assert "1 succeeded, 1 failed" in summary
		assert "found it" in summary
		assert "FAILED: broke" in summary

	def test_for_orders(self):
		results = AggregatedResults()
		results.record(ExecutionResult.ok(make_node("n2", order=1), "b"))
		results.record(ExecutionResult.ok(make_node("n1", order=1), "a"))
		results.record(ExecutionResult.ok(make_node("n3", order=2), "c"))
		assert [r.node_id for r in results.for_orders([1])] == ["n1", "n2"]

	def test_empty_summary(self):
		assert AggregatedResults().summary() == "No sub-tasks were executed."

	def test_render_payload_uses_to_text(self):
		response = ResearchResponse(
			query="rust",
			results=[SearchHit(title="Rust", url="https://rust-lang.org", text="A language")],
		)
		text = render_payload(response)
		assert "https://rust-lang.org" in text
		assert render_payload({"a": 1}) == '{"a": 1}'
		assert render_payload(None) == ""
