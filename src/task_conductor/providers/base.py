"""
Capability provider contracts.

Every collaborator the engine calls is described here as a Protocol: the
phase-level capabilities (classification, feasibility, planning,
evaluation, synthesis) and the outbound clients behind each sub-task type.
Sub-task types are served through ``SubtaskProvider``: one implementation
per ``NodeType``, selected by the node's type tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ..models import Classification, EvaluationVerdict, FeasibilityVerdict, Task, Turn
from ..plans.models import NodeType, PlanNode

if TYPE_CHECKING:
	from ..engine.results import AggregatedResults, ExecutionResult
	from ..engine.state import SynthesisInput


# Response payloads of the outbound clients

class SearchHit(BaseModel):
	"""A single web search result."""
	title: Optional[str] = None
	url: str
	text: str = ""


class ResearchResponse(BaseModel):
	"""Results for one research query."""
	query: str
	results: list[SearchHit] = Field(default_factory=list)
	error: Optional[str] = None

	def to_text(self) -> str:
		if self.error:
			return f"Research for '{self.query}' failed: {self.error}"
		lines = [f"Research: {self.query}"]
		for hit in self.results:
			lines.append(f"- {hit.title or 'Untitled'} ({hit.url})")
			if hit.text:
				lines.append(f"  {hit.text[:500]}")
		return "\n".join(lines)


class DocumentSearchResponse(BaseModel):
	"""Snippets found in the caller's local documents."""
	query: str
	found_context: str = ""
	error: Optional[str] = None

	def to_text(self) -> str:
		return f"Document search: {self.query}\n{self.found_context}"


class DiagramResponse(BaseModel):
	"""Diagram source (mermaid.js) produced for an analysis query."""
	query: str
	diagram_source: str = ""
	error: Optional[str] = None

	def to_text(self) -> str:
		return f"Diagram: {self.query}\n```mermaid\n{self.diagram_source}\n```"


class QAResponse(BaseModel):
	"""Direct factual answer extracted from context."""
	query: str
	answer: str = ""
	error: Optional[str] = None

	def to_text(self) -> str:
		return f"Q: {self.query}\nA: {self.answer}"


# Phase-level capabilities

@runtime_checkable
class Classifier(Protocol):
	async def classify(self, query: str) -> Classification: ...


@runtime_checkable
class FeasibilityAssessor(Protocol):
	async def assess(self, query: str, conversation: list[Turn]) -> FeasibilityVerdict: ...


@runtime_checkable
class PlanGenerator(Protocol):
	async def plan(
		self,
		query: str,
		classification: Classification,
		conversation: list[Turn],
		feedback: str = "",
	) -> Any: ...


@runtime_checkable
class EvaluatorProvider(Protocol):
	async def evaluate(self, aggregated: AggregatedResults, query: str, history: str) -> Any: ...


@runtime_checkable
class Synthesizer(Protocol):
	async def synthesize(self, material: SynthesisInput) -> str: ...


# Outbound clients behind the sub-task types

@runtime_checkable
class ResearchClient(Protocol):
	async def research(self, queries: list[str]) -> list[ResearchResponse]: ...


@runtime_checkable
class DocumentSearchClient(Protocol):
	async def search(self, query: str, documents: dict[str, str]) -> DocumentSearchResponse: ...


@runtime_checkable
class DiagramClient(Protocol):
	async def analyze(self, query: str) -> DiagramResponse: ...


@runtime_checkable
class QuestionAnswerer(Protocol):
	async def answer(self, query: str, context: str) -> QAResponse: ...


@dataclass
class NodeRequest:
	"""Input handed to a sub-task provider for one plan node."""
	node: PlanNode
	task: Task
	upstream: list[ExecutionResult] = field(default_factory=list)

	@property
	def query(self) -> str:
		return self.node.query or ""

	def upstream_text(self) -> str:
		"""Results of the dependency groups, as plain text."""
		return "\n\n".join(r.payload_text() for r in self.upstream)


@runtime_checkable
class SubtaskProvider(Protocol):
	"""Runs one plan node. Raises ProviderFailure on a typed failure."""
	node_type: NodeType

	async def run(self, request: NodeRequest) -> Any: ...


@dataclass
class CapabilitySet:
	"""All collaborators a phase controller needs."""
	classifier: Classifier
	feasibility: FeasibilityAssessor
	planner: PlanGenerator
	evaluator: EvaluatorProvider
	synthesizer: Synthesizer
	subtasks: dict[NodeType, SubtaskProvider] = field(default_factory=dict)
