"""
Scheduler - Executes a plan group by group.

Nodes sharing an order run concurrently; groups run in ascending order
with a full barrier between them. Each node type has its own concurrency
ceiling, independent of what the plan asks for, so a plan with three
research nodes in one group still keeps at most N research calls in
flight. Individual node failures never abort the plan.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional

from ..errors import ProviderFailure
from ..models import Task
from ..plans.models import NodeType, Plan, PlanNode
from ..providers.base import NodeRequest, SubtaskProvider
from .results import AggregatedResults, ExecutionResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ExecutionResult], Awaitable[None]]


class Scheduler:
	"""
	Runs plan nodes through the sub-task providers.

	Stateless between calls: semaphores and results live for a single
	``execute`` invocation.
	"""

	def __init__(
		self,
		providers: dict[NodeType, SubtaskProvider],
		max_concurrency_per_type: int = 2,
		node_timeout: float = 120.0,
	):
		"""
		Initialize the scheduler.

		Args:
			providers: One provider per node type
			max_concurrency_per_type: Ceiling on in-flight calls of any one type
			node_timeout: Seconds before a single node call is abandoned
		"""
		self.providers = providers
		self.max_concurrency_per_type = max_concurrency_per_type
		self.node_timeout = node_timeout

	async def execute(
		self,
		plan: Plan,
		task: Optional[Task] = None,
		cancel_event: Optional[asyncio.Event] = None,
		on_result: Optional[ResultCallback] = None,
		declined: Iterable[str] = (),
	) -> AggregatedResults:
		"""
		Execute every node of a plan.

		Args:
			plan: A validated plan
			task: Task the plan belongs to (documents and history for providers)
			cancel_event: Set to stop dispatching and cancel in-flight calls
			on_result: Awaited after each result is recorded
			declined: Node ids the caller refused to run

		Returns:
			AggregatedResults with exactly one result per node
		"""
		task = task or Task(query=plan.task)
		declined_ids = set(declined)
		results = AggregatedResults()
		semaphores = {
			node_type: asyncio.Semaphore(self.max_concurrency_per_type)
			for node_type in NodeType
		}
		completed_orders: set[int] = set()

		async def record(result: ExecutionResult) -> None:
			results.record(result)
			if on_result:
				try:
					await on_result(result)
				except Exception as e:
					logger.warning(f"on_result callback failed for {result.node_id}: {e}")

		groups = plan.groups()
		for index, (order, nodes) in enumerate(groups):
			if cancel_event is not None and cancel_event.is_set():
				await self._record_cancelled(groups[index:], results, record)
				break

			runnable: list[PlanNode] = []
			for node in nodes:
				if node.id in declined_ids:
					await record(ExecutionResult.failure(node, "declined by caller"))
					continue
				unmet = [d for d in node.dependencies if d >= order or d not in completed_orders]
				if unmet:
					logger.warning(f"Skipping {node.label}: unmet dependencies {unmet}")
					await record(ExecutionResult.failure(
						node, f"skipped: unmet dependencies on order(s) {', '.join(map(str, unmet))}",
					))
					continue
				runnable.append(node)

			if runnable:
				logger.info(f"Dispatching group {order}: {len(runnable)} node(s)")
				# Fan out
				dispatches = [
					asyncio.create_task(self._dispatch(node, task, results, semaphores[node.type], record))
					for node in runnable
				]
				# Fan in (barrier)
				interrupted = await self._wait_group(dispatches, cancel_event)
				if interrupted:
					logger.info(f"Execution cancelled during group {order}")
					for node in runnable:
						if node not in results:
							await record(ExecutionResult.failure(node, "cancelled"))
					await self._record_cancelled(groups[index + 1:], results, record)
					break

			completed_orders.add(order)

		logger.info(f"Plan executed: {results.succeeded} succeeded, {results.failed} failed")
		return results

	async def _dispatch(
		self,
		node: PlanNode,
		task: Task,
		results: AggregatedResults,
		semaphore: asyncio.Semaphore,
		record: ResultCallback,
	) -> None:
		provider = self.providers.get(node.type)
		if provider is None:
			await record(ExecutionResult.failure(node, f"no provider for node type {node.type.value}"))
			return

		request = NodeRequest(node=node, task=task, upstream=results.for_orders(node.dependencies))
		async with semaphore:
			start = time.monotonic()
			try:
				payload = await asyncio.wait_for(provider.run(request), timeout=self.node_timeout)
				result = ExecutionResult.ok(node, payload, time.monotonic() - start)
			except asyncio.TimeoutError:
				logger.warning(f"Node {node.label} timed out after {self.node_timeout}s")
				result = ExecutionResult.failure(
					node, f"timed out after {self.node_timeout}s", time.monotonic() - start,
				)
			except ProviderFailure as e:
				logger.warning(f"Node {node.label} failed: {e.message}")
				result = ExecutionResult.failure(node, e.message, time.monotonic() - start)
			except Exception as e:
				logger.warning(f"Node {node.label} raised: {e}")
				result = ExecutionResult.failure(node, str(e) or type(e).__name__, time.monotonic() - start)

		await record(result)

	async def _wait_group(
		self,
		dispatches: list[asyncio.Task],
		cancel_event: Optional[asyncio.Event],
	) -> bool:
		"""Wait for a whole group. Returns True if cancellation cut it short."""
		if cancel_event is None:
			await asyncio.gather(*dispatches)
			return False

		pending = set(dispatches)
		waiter = asyncio.create_task(cancel_event.wait())
		try:
			while pending:
				done, _ = await asyncio.wait(pending | {waiter}, return_when=asyncio.FIRST_COMPLETED)
				pending -= done
				if waiter in done and pending:
					for dispatch in pending:
						dispatch.cancel()
					await asyncio.gather(*pending, return_exceptions=True)
					return True
		finally:
			waiter.cancel()

		for dispatch in dispatches:
			# Surface unexpected errors from the dispatch wrapper itself
			dispatch.result()
		return False

	async def _record_cancelled(
		self,
		groups: list[tuple[int, list[PlanNode]]],
		results: AggregatedResults,
		record: ResultCallback,
	) -> None:
		results.cancelled = True
		for _, nodes in groups:
			for node in nodes:
				if node not in results:
					await record(ExecutionResult.failure(node, "cancelled"))
