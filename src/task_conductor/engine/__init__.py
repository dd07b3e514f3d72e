"""Engine module - Phase controller, scheduler, evaluator and continuations."""

from .controller import PhaseController
from .evaluator import Evaluator
from .events import EventKind, Phase, PhaseEvent
from .results import AggregatedResults, ExecutionResult
from .scheduler import Scheduler
from .state import Continuation, Suspension
from .store import ContinuationStore, MemoryContinuationStore, get_continuation_store

__all__ = [
	"PhaseController",
	"Scheduler",
	"Evaluator",
	"Phase",
	"EventKind",
	"PhaseEvent",
	"ExecutionResult",
	"AggregatedResults",
	"Continuation",
	"Suspension",
	"ContinuationStore",
	"MemoryContinuationStore",
	"get_continuation_store",
]
