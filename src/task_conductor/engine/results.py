"""
Execution results - one result per plan node, aggregated per plan.

Results are keyed by node id. Consumers look a result up by node (or id)
and iterate all of them to build summaries; insertion order carries no
meaning.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional, Union

from pydantic import BaseModel

from ..plans.models import NodeType, PlanNode


@dataclass
class ExecutionResult:
	"""Outcome of a single node: a payload on success, an error otherwise."""
	node_id: str
	node_type: NodeType
	order: int
	success: bool
	payload: Any = None
	error: Optional[str] = None
	duration_seconds: float = 0.0

	@classmethod
	def ok(cls, node: PlanNode, payload: Any, duration_seconds: float = 0.0) -> "ExecutionResult":
		return cls(
			node_id=node.id,
			node_type=node.type,
			order=node.order,
			success=True,
			payload=payload,
			duration_seconds=duration_seconds,
		)

	@classmethod
	def failure(cls, node: PlanNode, error: str, duration_seconds: float = 0.0) -> "ExecutionResult":
		return cls(
			node_id=node.id,
			node_type=node.type,
			order=node.order,
			success=False,
			error=error,
			duration_seconds=duration_seconds,
		)

	def payload_text(self) -> str:
		"""Best-effort text rendering of the payload."""
		if not self.success:
			return f"FAILED: {self.error}"
		return render_payload(self.payload)


def render_payload(payload: Any) -> str:
	if payload is None:
		return ""
	if hasattr(payload, "to_text"):
		return payload.to_text()
	if isinstance(payload, BaseModel):
		return payload.model_dump_json()
	if isinstance(payload, str):
		return payload
	try:
		return json.dumps(payload, default=str)
	except (TypeError, ValueError):
		return str(payload)


@dataclass
class AggregatedResults:
	"""All execution results of one plan run."""
	_results: dict[str, ExecutionResult] = field(default_factory=dict)
	cancelled: bool = False

	def record(self, result: ExecutionResult) -> None:
		"""Record a node's result. Each node gets exactly one."""
		if result.node_id in self._results:
			raise ValueError(f"Result already recorded for node {result.node_id}")
		self._results[result.node_id] = result

	def get(self, node: Union[PlanNode, str]) -> Optional[ExecutionResult]:
		node_id = node.id if isinstance(node, PlanNode) else node
		return self._results.get(node_id)

	def __getitem__(self, node: Union[PlanNode, str]) -> ExecutionResult:
		result = self.get(node)
		if result is None:
			raise KeyError(node.id if isinstance(node, PlanNode) else node)
		return result

	def __contains__(self, node: object) -> bool:
		if isinstance(node, PlanNode):
			return node.id in self._results
		return node in self._results

	def __iter__(self) -> Iterator[ExecutionResult]:
		return iter(list(self._results.values()))

	def __len__(self) -> int:
		return len(self._results)

	@property
	def succeeded(self) -> int:
		return sum(1 for r in self._results.values() if r.success)

	@property
	def failed(self) -> int:
		return len(self._results) - self.succeeded

	def for_orders(self, orders: Iterable[int]) -> list[ExecutionResult]:
		"""Results of every node in the given order groups."""
		wanted = set(orders)
		return sorted(
			(r for r in self._results.values() if r.order in wanted),
			key=lambda r: (r.order, r.node_id),
		)

	def summary(self) -> str:
		"""Text summary of all results, for evaluation and synthesis."""
		if not self._results:
			note = " (run cancelled)" if self.cancelled else ""
			return f"No sub-tasks were executed{note}."

		lines = [f"{self.succeeded} succeeded, {self.failed} failed out of {len(self._results)} sub-tasks"]
		if self.cancelled:
			lines.append("NOTE: execution was cancelled; results are partial.")
		for result in sorted(self._results.values(), key=lambda r: (r.order, r.node_id)):
			status = "ok" if result.success else "failed"
			lines.append(f"[{result.order}] {result.node_id} {result.node_type.value} ({status}):")
			lines.append(result.payload_text())
		return "\n".join(lines)
