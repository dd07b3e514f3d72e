"""Phase-transition events emitted while a task runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Phase(str, Enum):
	"""The five fixed phases, in execution order."""
	ASSESSMENT = "assessment"
	PLANNING = "planning"
	EXECUTION = "execution"
	EVALUATION = "evaluation"
	SYNTHESIS = "synthesis"


class EventKind(str, Enum):
	"""What an event reports."""
	PHASE_STARTED = "phase_started"
	ARTIFACT = "artifact"
	NODE_RESULT = "node_result"
	WARNING = "warning"
	SUSPENDED = "suspended"
	FINAL_ANSWER = "final_answer"


@dataclass
class PhaseEvent:
	"""
	A single observable step of a run.

	``artifact`` holds whatever the step produced: a Classification,
	FeasibilityVerdict, Plan, ExecutionResult, EvaluationVerdict,
	Suspension or FinalAnswer.
	"""
	task_id: str
	phase: Phase
	kind: EventKind
	artifact: Any = None
	message: str = ""
	timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

	@property
	def is_terminal(self) -> bool:
		return self.kind in (EventKind.SUSPENDED, EventKind.FINAL_ANSWER)
