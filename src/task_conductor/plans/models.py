"""
Plan Models - Pydantic schemas for execution plans.

A plan is a flat, ordered list of sub-task nodes. Nodes sharing an
``order`` value form a parallel group; dependencies are order numbers,
not node references, so the DAG needs no cyclic ownership and the
acyclic check is a numeric comparison.
"""

from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class NodeType(str, Enum):
	"""Closed set of sub-task types a plan may contain."""
	RESEARCH = "research"
	DOCUMENT_SEARCH = "document_search"
	DIAGRAM_ANALYSIS = "diagram_analysis"
	DIRECT_QA = "direct_qa"

	@classmethod
	def _missing_(cls, value):
		if not isinstance(value, str):
			return None
		key = value.strip().lower().replace("-", "_").replace(" ", "_")
		key = _TYPE_ALIASES.get(key, key)
		for member in cls:
			if member.value == key:
				return member
		return None


# Agent names used by planners that speak the older vocabulary
_TYPE_ALIASES = {
	"researcher": "research",
	"web_search": "research",
	"contextualizer": "document_search",
	"document": "document_search",
	"analyst": "diagram_analysis",
	"diagram": "diagram_analysis",
	"qa": "direct_qa",
}

# Node types whose query must be present and non-empty
QUERY_REQUIRED_TYPES = frozenset(NodeType)


class PlanNode(BaseModel):
	"""A single sub-task in a plan."""
	model_config = ConfigDict(frozen=True)

	id: str = Field(default="", description="Arena key, assigned from list position when absent")
	type: NodeType = Field(description="Sub-task type")
	order: int = Field(description="Execution group; nodes with the same order run in parallel")
	purpose: str = Field(default="", description="What this node accomplishes")
	dependencies: tuple[int, ...] = Field(default=(), description="Order numbers this node waits on")
	query: Optional[str] = Field(default=None, description="Type-specific query")

	@property
	def label(self) -> str:
		return f"{self.id} ({self.type.value}, order {self.order})"


class Plan(BaseModel):
	"""
	A validated-or-candidate execution plan.

	Plans are immutable; the validator reports on them but never
	changes them.
	"""
	model_config = ConfigDict(frozen=True, populate_by_name=True)

	task: str = Field(description="The original task text")
	nodes: tuple[PlanNode, ...] = Field(
		default=(),
		validation_alias=AliasChoices("nodes", "agents"),
	)

	@model_validator(mode="before")
	@classmethod
	def _assign_node_ids(cls, data):
		if not isinstance(data, dict):
			return data
		key = "nodes" if "nodes" in data else "agents"
		raw_nodes = data.get(key)
		if not isinstance(raw_nodes, (list, tuple)):
			return data

		assigned = []
		for index, node in enumerate(raw_nodes):
			if isinstance(node, dict) and not node.get("id"):
				node = {**node, "id": f"n{index + 1}"}
			elif isinstance(node, PlanNode) and not node.id:
				node = node.model_copy(update={"id": f"n{index + 1}"})
			assigned.append(node)
		return {**data, key: assigned}

	@model_validator(mode="after")
	def _unique_ids(self):
		seen: set[str] = set()
		for node in self.nodes:
			if node.id in seen:
				raise ValueError(f"Duplicate node id: {node.id}")
			seen.add(node.id)
		return self

	@property
	def is_empty(self) -> bool:
		return not self.nodes

	def orders(self) -> set[int]:
		"""All order values present in the plan."""
		return {node.order for node in self.nodes}

	def groups(self) -> list[tuple[int, list[PlanNode]]]:
		"""Nodes grouped by order, ascending. Node order within a group follows the arena."""
		grouped: dict[int, list[PlanNode]] = {}
		for node in self.nodes:
			grouped.setdefault(node.order, []).append(node)
		return sorted(grouped.items())

	def get_node(self, node_id: str) -> Optional[PlanNode]:
		for node in self.nodes:
			if node.id == node_id:
				return node
		return None

	def nodes_of_type(self, node_type: NodeType) -> list[PlanNode]:
		return [node for node in self.nodes if node.type == node_type]

	def to_markdown(self) -> str:
		"""Convert plan to markdown format."""
		lines = [f"# Plan: {self.task}", ""]
		if self.is_empty:
			lines.append("_No sub-tasks; the task can be answered directly._")
			return "\n".join(lines)

		for order, nodes in self.groups():
			lines.append(f"## Group {order}")
			for node in nodes:
				deps = ", ".join(str(d) for d in node.dependencies) or "none"
				lines.append(f"- **{node.type.value}** `{node.id}`: {node.purpose}")
				if node.query:
					lines.append(f"  - query: {node.query}")
				lines.append(f"  - depends on: {deps}")
			lines.append("")
		return "\n".join(lines)
