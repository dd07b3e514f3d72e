"""
Phase states for the controller's state machine.

Each state carries exactly the data known at that point of a run, so a
state like "has a verdict but no plan" cannot be expressed.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from ..models import (
	Classification,
	ConfirmationRequest,
	EvaluationVerdict,
	FeasibilityVerdict,
	FinalAnswer,
	Framing,
	InformationRequest,
	Task,
)
from ..plans.models import Plan
from .events import Phase
from .results import AggregatedResults


@dataclass
class Assessing:
	task: Task


@dataclass
class Planning:
	task: Task
	classification: Classification
	feasibility: FeasibilityVerdict
	attempt: int = 1
	feedback: str = ""


@dataclass
class Executing:
	task: Task
	classification: Classification
	feasibility: FeasibilityVerdict
	plan: Plan
	declined: list[str] = field(default_factory=list)


@dataclass
class Evaluating:
	task: Task
	classification: Classification
	feasibility: FeasibilityVerdict
	plan: Plan
	results: AggregatedResults


@dataclass
class Synthesizing:
	task: Task
	framing: Framing
	classification: Optional[Classification] = None
	feasibility: Optional[FeasibilityVerdict] = None
	plan: Optional[Plan] = None
	results: Optional[AggregatedResults] = None
	verdict: Optional[EvaluationVerdict] = None
	reason: str = ""


@dataclass
class Synthesized:
	task: Task
	answer: FinalAnswer


PhaseState = Union[Assessing, Planning, Executing, Evaluating, Synthesizing, Synthesized]

STATE_PHASES = {
	Assessing: Phase.ASSESSMENT,
	Planning: Phase.PLANNING,
	Executing: Phase.EXECUTION,
	Evaluating: Phase.EVALUATION,
	Synthesizing: Phase.SYNTHESIS,
	Synthesized: Phase.SYNTHESIS,
}


@dataclass
class SynthesisInput:
	"""Everything accumulated by the time synthesis runs."""
	task: Task
	framing: Framing
	classification: Optional[Classification] = None
	feasibility: Optional[FeasibilityVerdict] = None
	plan: Optional[Plan] = None
	results: Optional[AggregatedResults] = None
	verdict: Optional[EvaluationVerdict] = None
	reason: str = ""

	@classmethod
	def from_state(cls, state: Synthesizing) -> "SynthesisInput":
		return cls(
			task=state.task,
			framing=state.framing,
			classification=state.classification,
			feasibility=state.feasibility,
			plan=state.plan,
			results=state.results,
			verdict=state.verdict,
			reason=state.reason,
		)


class Continuation(BaseModel):
	"""
	A parked run waiting for caller input.

	Holds the task snapshot and the artifacts needed to resume at the
	suspension point; the token is the resume key.
	"""
	token: str = Field(default_factory=lambda: uuid.uuid4().hex)
	task: Task
	phase: Phase
	information_request: Optional[InformationRequest] = None
	confirmation_request: Optional[ConfirmationRequest] = None
	classification: Optional[Classification] = None
	feasibility: Optional[FeasibilityVerdict] = None
	plan: Optional[Plan] = None
	created_at: str = Field(default_factory=lambda: datetime.now().isoformat())

	@property
	def request(self) -> Union[InformationRequest, ConfirmationRequest]:
		return self.information_request or self.confirmation_request


@dataclass
class Suspension:
	"""Outcome of a run that stopped to wait for the caller."""
	token: str
	task_id: str
	request: Union[InformationRequest, ConfirmationRequest]

	@property
	def question(self) -> str:
		return self.request.question

	@property
	def expects_confirmation(self) -> bool:
		return isinstance(self.request, ConfirmationRequest)
