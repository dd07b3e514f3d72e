"""
Task Models - Pydantic schemas for the task, its conversation and the
artifacts produced by the assessment, evaluation and synthesis phases.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .errors import TaskSealedError


def _short_id(prefix: str) -> str:
	return f"{prefix}-{uuid.uuid4().hex[:10]}"


class TurnRole(str, Enum):
	"""Author of a conversation turn."""
	USER = "user"
	ASSISTANT = "assistant"
	SYSTEM = "system"


class Turn(BaseModel):
	"""A single turn in the task's conversation context."""
	role: TurnRole
	content: str
	phase: Optional[str] = Field(default=None, description="Phase that produced this turn")
	answers: Optional[str] = Field(default=None, description="InformationRequest id answered by this turn")
	created_at: str = Field(default_factory=lambda: datetime.now().isoformat())


class Task(BaseModel):
	"""
	One end-to-end user request.

	The conversation is the only mutable shared state of a run. It is
	appended to by the phase controller and by the caller when answering
	an information request, and frozen once synthesis completes.
	"""
	id: str = Field(default_factory=lambda: _short_id("task"))
	query: str = Field(description="The original natural-language request")
	conversation: list[Turn] = Field(default_factory=list)
	documents: dict[str, str] = Field(
		default_factory=dict,
		description="Local reference documents (name -> extracted text)",
	)
	sealed: bool = Field(default=False)

	def append_turn(self, turn: Turn) -> None:
		"""Append a turn, refusing once the task is sealed."""
		if self.sealed:
			raise TaskSealedError(f"Task {self.id} is sealed; cannot append turns")
		self.conversation.append(turn)

	def seal(self) -> None:
		self.sealed = True

	def history_text(self) -> str:
		"""Render the conversation as 'role: content' lines."""
		lines = [f"user: {self.query}"]
		for turn in self.conversation:
			lines.append(f"{turn.role.value}: {turn.content}")
		return "\n".join(lines)


_TIER_ORDER = ["trivial", "minimal", "low", "moderate", "high", "critical"]


class ComplexityTier(str, Enum):
	"""Six ordered complexity levels, from trivial to critical."""
	TRIVIAL = "trivial"
	MINIMAL = "minimal"
	LOW = "low"
	MODERATE = "moderate"
	HIGH = "high"
	CRITICAL = "critical"

	@classmethod
	def _missing_(cls, value):
		# Accept labels like "HIGH_COMPLEXITY"
		if isinstance(value, str):
			key = value.strip().lower().removesuffix("_complexity")
			for member in cls:
				if member.value == key:
					return member
		return None

	@property
	def rank(self) -> int:
		return _TIER_ORDER.index(self.value)

	def __lt__(self, other):
		if not isinstance(other, ComplexityTier):
			return NotImplemented
		return self.rank < other.rank

	def __le__(self, other):
		if not isinstance(other, ComplexityTier):
			return NotImplemented
		return self.rank <= other.rank

	def __gt__(self, other):
		if not isinstance(other, ComplexityTier):
			return NotImplemented
		return self.rank > other.rank

	def __ge__(self, other):
		if not isinstance(other, ComplexityTier):
			return NotImplemented
		return self.rank >= other.rank


class Classification(BaseModel):
	"""Complexity classification produced during assessment."""
	complexity: ComplexityTier
	rationale: str = ""


class FeasibilityVerdict(BaseModel):
	"""Whether the task can be done, and what is still missing if anything."""
	possible: bool
	rationale: str = ""
	missing_information: Optional[str] = Field(
		default=None,
		description="Clarifying question when the task is possible but underspecified",
	)

	@property
	def needs_information(self) -> bool:
		return self.possible and bool(self.missing_information and self.missing_information.strip())


class InformationRequest(BaseModel):
	"""A question the caller must answer before assessment can finish."""
	id: str = Field(default_factory=lambda: _short_id("info"))
	question: str
	target_turn: int = Field(description="Conversation index the answer turn will occupy")


class ConfirmationRequest(BaseModel):
	"""A yes/no approval the caller must give before nodes are dispatched."""
	id: str = Field(default_factory=lambda: _short_id("confirm"))
	question: str
	node_ids: list[str] = Field(default_factory=list)


class Judgement(str, Enum):
	"""Outcome of the evaluation pass."""
	PASSED = "passed"
	HALLUCINATION = "hallucination"
	NOT_VERIFIED = "not_verified"
	NOT_ALIGNED = "not_aligned"
	ERROR = "error"

	@classmethod
	def _missing_(cls, value):
		if isinstance(value, str):
			key = value.strip().lower().replace("-", "_")
			for member in cls:
				if member.value == key:
					return member
		return None


class EvaluationVerdict(BaseModel):
	"""Verdict that gates and annotates synthesis."""
	judgement: Judgement
	explanation: str = ""

	@property
	def passed(self) -> bool:
		return self.judgement == Judgement.PASSED


class Framing(str, Enum):
	"""How the final answer should be framed."""
	NORMAL = "normal"
	NOT_POSSIBLE = "not_possible"
	ASSESSMENT_FAILED = "assessment_failed"
	PLANNING_FAILED = "planning_failed"
	CANCELLED = "cancelled"


class FinalAnswer(BaseModel):
	"""Synthesized answer, tagged with the verdict that gated it."""
	task_id: str
	text: str
	verdict: Optional[EvaluationVerdict] = None
	framing: Framing = Framing.NORMAL
	created_at: str = Field(default_factory=lambda: datetime.now().isoformat())
