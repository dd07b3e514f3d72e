"""Tests for the plan scheduler."""

import asyncio

import pytest

from task_conductor.engine.scheduler import Scheduler
from task_conductor.models import Task
from task_conductor.plans.models import NodeType

from .helpers import RecordingProvider, make_plan, node


def providers_with_log(log, **kwargs):
	return {t: RecordingProvider(t, log=log, **kwargs) for t in NodeType}


class TestSchedulerBasics:
	"""Result bookkeeping."""

	@pytest.mark.asyncio
	async def test_empty_plan(self):
		scheduler = Scheduler(providers_with_log([]))
		results = await scheduler.execute(make_plan([]))
		assert len(results) == 0
		assert not results.cancelled

	@pytest.mark.asyncio
	async def test_one_result_per_node(self):
		"""Every node gets exactly one result, failures included."""
		log = []
		providers = providers_with_log(log)
		providers[NodeType.RESEARCH].fail_on = {"n2"}
		providers[NodeType.DIRECT_QA].raise_on = {"n4"}
		plan = make_plan([
			node("research", 1),
			node("research", 1),
			node("document_search", 2, deps=[1]),
			node("direct_qa", 3, deps=[2]),
		])

		results = await Scheduler(providers).execute(plan)

		assert len(results) == 4
		assert {r.node_id for r in results} == {"n1", "n2", "n3", "n4"}
		assert results["n1"].success
		assert results["n1"].payload == "payload-n1"
		assert not results["n2"].success
		assert results["n2"].error == "n2 failed"
		assert not results["n4"].success
		assert "exploded" in results["n4"].error

	@pytest.mark.asyncio
	async def test_lookup_by_node(self):
		plan = make_plan([node("research", 1)])
		results = await Scheduler(providers_with_log([])).execute(plan)
		assert plan.nodes[0] in results
		assert results[plan.nodes[0]].node_type == NodeType.RESEARCH

	@pytest.mark.asyncio
	async def test_missing_provider_is_node_failure(self):
		plan = make_plan([node("research", 1), node("diagram_analysis", 1)])
		providers = {NodeType.RESEARCH: RecordingProvider(NodeType.RESEARCH)}
		results = await Scheduler(providers).execute(plan)
		assert results["n1"].success
		assert not results["n2"].success
		assert "no provider" in results["n2"].error


class TestSchedulerOrdering:
	"""Group barriers and dependency handling."""

	@pytest.mark.asyncio
	async def test_barrier_between_groups(self):
		"""Order-2 node starts only after both order-1 nodes finished."""
		log = []
		providers = providers_with_log(log)
		providers[NodeType.RESEARCH].delay = 0.05
		plan = make_plan([
			node("research", 1),
			node("document_search", 1),
			node("direct_qa", 2, deps=[1]),
		])

		await Scheduler(providers).execute(plan)

		start_n3 = log.index(("start", "n3"))
		assert log.index(("end", "n1")) < start_n3
		assert log.index(("end", "n2")) < start_n3

	@pytest.mark.asyncio
	async def test_group_runs_concurrently(self):
		log = []
		providers = providers_with_log(log)
		plan = make_plan([node("research", 1), node("document_search", 1)])
		await Scheduler(providers).execute(plan)
		# Both started before either finished
		assert log[:2] == [("start", "n1"), ("start", "n2")]

	@pytest.mark.asyncio
	async def test_dependents_run_after_failed_dependency(self):
		"""A failed dependency does not stop later groups."""
		providers = providers_with_log([])
		providers[NodeType.RESEARCH].fail_on = {"n1"}
		plan = make_plan([node("research", 1), node("direct_qa", 2, deps=[1])])

		results = await Scheduler(providers).execute(plan)

		assert not results["n1"].success
		assert results["n2"].success
		upstream = providers[NodeType.DIRECT_QA].requests[0].upstream
		assert [r.node_id for r in upstream] == ["n1"]

	@pytest.mark.asyncio
	async def test_unmet_dependency_skipped(self):
		"""Dependencies that never ran become skip failures, not crashes."""
		providers = providers_with_log([])
		plan = make_plan([node("research", 1), node("direct_qa", 2, deps=[7]), node("direct_qa", 3, deps=[3])])

		results = await Scheduler(providers).execute(plan)

		assert results["n1"].success
		assert "unmet dependencies" in results["n2"].error
		assert "unmet dependencies" in results["n3"].error
		assert providers[NodeType.DIRECT_QA].requests == []

	@pytest.mark.asyncio
	async def test_declined_nodes_not_dispatched(self):
		providers = providers_with_log([])
		plan = make_plan([node("research", 1), node("diagram_analysis", 1)])

		results = await Scheduler(providers).execute(plan, declined=["n2"])

		assert results["n2"].error == "declined by caller"
		assert providers[NodeType.DIAGRAM_ANALYSIS].requests == []

	@pytest.mark.asyncio
	async def test_task_passed_to_providers(self):
		providers = providers_with_log([])
		task = Task(query="find it", documents={"a.txt": "alpha"})
		await Scheduler(providers).execute(make_plan([node("document_search", 1)]), task=task)
		assert providers[NodeType.DOCUMENT_SEARCH].requests[0].task is task


class TestSchedulerLimits:
	"""Per-type ceilings and timeouts."""

	@pytest.mark.asyncio
	async def test_research_ceiling_with_three_nodes(self):
		"""Three research nodes in one group never exceed the per-type ceiling."""
		providers = providers_with_log([])
		providers[NodeType.RESEARCH].delay = 0.05
		plan = make_plan([node("research", 1), node("research", 1), node("research", 1)])

		results = await Scheduler(providers, max_concurrency_per_type=2).execute(plan)

		assert len(results) == 3
		assert results.succeeded == 3
		assert providers[NodeType.RESEARCH].peak == 2

	@pytest.mark.asyncio
	async def test_ceiling_is_per_type(self):
		providers = providers_with_log([])
		plan = make_plan([node("research", 1), node("direct_qa", 1), node("document_search", 1)])
		await Scheduler(providers, max_concurrency_per_type=1).execute(plan)
		assert all(p.peak <= 1 for p in providers.values())

	@pytest.mark.asyncio
	async def test_timeout_is_node_local(self):
		providers = providers_with_log([])
		providers[NodeType.RESEARCH].hang_on = {"n1"}
		plan = make_plan([node("research", 1), node("direct_qa", 1)])

		results = await Scheduler(providers, node_timeout=0.1).execute(plan)

		assert "timed out" in results["n1"].error
		assert results["n2"].success

	@pytest.mark.asyncio
	async def test_on_result_callback(self):
		seen = []

		async def on_result(result):
			seen.append(result.node_id)

		plan = make_plan([node("research", 1), node("direct_qa", 2, deps=[1])])
		await Scheduler(providers_with_log([])).execute(plan, on_result=on_result)
		assert seen == ["n1", "n2"]

	@pytest.mark.asyncio
	async def test_failing_callback_does_not_break_run(self):
		async def on_result(result):
			raise RuntimeError("boom")

		plan = make_plan([node("research", 1)])
		results = await Scheduler(providers_with_log([])).execute(plan, on_result=on_result)
		assert results["n1"].success


class TestSchedulerCancellation:
	"""Cancellation keeps recorded results."""

	@pytest.mark.asyncio
	async def test_cancel_mid_group(self):
		providers = providers_with_log([])
		providers[NodeType.RESEARCH].hang_on = {"n2"}
		plan = make_plan([
			node("research", 1),
			node("research", 1),
			node("direct_qa", 2, deps=[1]),
		])
		cancel = asyncio.Event()

		async def on_result(result):
			if result.node_id == "n1":
				cancel.set()

		results = await Scheduler(providers).execute(plan, cancel_event=cancel, on_result=on_result)

		assert results.cancelled
		assert len(results) == 3
		assert results["n1"].success
		assert results["n2"].error == "cancelled"
		assert results["n3"].error == "cancelled"
		assert providers[NodeType.DIRECT_QA].requests == []

	@pytest.mark.asyncio
	async def test_cancel_before_start(self):
		cancel = asyncio.Event()
		cancel.set()
		plan = make_plan([node("research", 1), node("direct_qa", 2, deps=[1])])

		results = await Scheduler(providers_with_log([])).execute(plan, cancel_event=cancel)

		assert results.cancelled
		assert results.failed == 2
		assert "cancelled" in results.summary()
