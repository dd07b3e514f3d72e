"""
Phase Controller - The five-phase state machine driving a task.

Assessment -> Planning -> Execution -> Evaluation -> Synthesis.

Each phase handler receives the current state and yields events, then a
single next state (or a Suspension when the run must wait for the
caller). The only backward edge is Assessment's self-loop after an
information request is answered. Every run ends in a FinalAnswer or a
Suspension; phase-level faults short-circuit to Synthesis instead of
escaping to the caller.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Any, AsyncIterator, Optional, Union

from ..config import Config
from ..errors import (
	PlanValidationError,
	ProviderFailure,
	ResumeMismatchError,
	TaskSealedError,
	UnknownContinuationError,
)
from ..models import (
	ConfirmationRequest,
	FinalAnswer,
	Framing,
	InformationRequest,
	Task,
	Turn,
	TurnRole,
)
from ..plans.models import NodeType
from ..plans.validator import parse_plan, validate_plan
from ..providers.base import CapabilitySet
from .evaluator import Evaluator, error_verdict
from .events import EventKind, Phase, PhaseEvent
from .results import AggregatedResults
from .scheduler import Scheduler
from .state import (
	STATE_PHASES,
	Assessing,
	Continuation,
	Evaluating,
	Executing,
	PhaseState,
	Planning,
	Suspension,
	Synthesized,
	Synthesizing,
	SynthesisInput,
)
from .store import ContinuationBackend, MemoryContinuationStore

logger = logging.getLogger(__name__)

# Items a phase handler yields: events to forward, then the outcome
StepItem = Union[PhaseEvent, PhaseState, Suspension]


class PhaseController:
	"""
	Runs tasks through the phase state machine.

	Usage:
		controller = PhaseController(build_capabilities(config), config)
		outcome = await controller.run(Task(query="What is 2+2?"))
		if isinstance(outcome, Suspension):
			outcome = await controller.resume(outcome.token, "answer text")
	"""

	# Most recent synthesized task ids remembered for the post-terminal guard
	synthesized_history = 1024

	def __init__(
		self,
		capabilities: CapabilitySet,
		config: Optional[Config] = None,
		store: Optional[ContinuationBackend] = None,
		scheduler: Optional[Scheduler] = None,
	):
		self.capabilities = capabilities
		self.config = config or Config()
		self.store = store or MemoryContinuationStore()
		self.scheduler = scheduler or Scheduler(
			capabilities.subtasks,
			max_concurrency_per_type=self.config.max_concurrency_per_type,
			node_timeout=self.config.node_timeout,
		)
		self.evaluator = Evaluator(capabilities.evaluator, timeout=self.config.llm_timeout)
		self._calls = {
			"classify": capabilities.classifier.classify,
			"assess": capabilities.feasibility.assess,
			"plan": capabilities.planner.plan,
			"evaluate": self.evaluator.evaluate,
			"synthesize": capabilities.synthesizer.synthesize,
		}
		self._cancel_events: dict[str, asyncio.Event] = {}
		self._synthesized: OrderedDict[str, None] = OrderedDict()

	# Entry points

	async def run(self, task: Task) -> Union[FinalAnswer, Suspension]:
		"""Run a task until it finishes or suspends."""
		return await self._drain(self.stream(task))

	async def resume(self, token: str, answer: Union[str, bool]) -> Union[FinalAnswer, Suspension]:
		"""Resume a suspended run with the caller's answer."""
		return await self._drain(self.stream_resume(token, answer))

	async def stream(self, task: Task) -> AsyncIterator[PhaseEvent]:
		"""Run a task, yielding an event for every observable step."""
		if task.sealed or task.id in self._synthesized:
			raise TaskSealedError(f"Task {task.id} is already synthesized")
		logger.info(f"Starting task {task.id}: {task.query[:80]}")
		async for event in self._drive(Assessing(task=task)):
			yield event

	async def stream_resume(self, token: str, answer: Union[str, bool]) -> AsyncIterator[PhaseEvent]:
		"""
		Resume a suspended run.

		Args:
			token: Continuation token from the Suspension
			answer: Text for an information request, bool for a confirmation

		Raises:
			UnknownContinuationError: if no run is parked under the token
			ResumeMismatchError: if the answer does not fit the pending request
			TaskSealedError: if the parked task was synthesized in the meantime
		"""
		continuation = await self.store.load(token)
		if continuation is None:
			raise UnknownContinuationError(f"No suspended run for token {token}")

		state = self._resume_state(continuation, answer)
		# Claim the token; a concurrent resume that got here first wins
		if not await self.store.delete(token):
			raise UnknownContinuationError(f"No suspended run for token {token}")
		if continuation.task.id in self._synthesized:
			raise TaskSealedError(f"Task {continuation.task.id} is already synthesized")
		logger.info(f"Resuming task {continuation.task.id} at {continuation.phase.value}")
		async for event in self._drive(state):
			yield event

	def cancel(self, task_id: str) -> bool:
		"""Request cancellation of a running task. Returns False if it is not running."""
		event = self._cancel_events.get(task_id)
		if event is None:
			return False
		logger.info(f"Cancellation requested for task {task_id}")
		event.set()
		return True

	async def invoke(self, task_id: str, capability: str, *args: Any) -> Any:
		"""
		Call a phase-level capability on behalf of a task.

		Calls for a task that already reached Synthesized are logged and
		ignored (returns None).
		"""
		if task_id in self._synthesized:
			logger.warning(f"Ignoring '{capability}' for task {task_id}: task already synthesized")
			return None
		call = self._calls.get(capability)
		if call is None:
			raise ValueError(f"Unknown capability: {capability}")
		return await call(*args)

	# State machine

	async def _drive(self, state: PhaseState) -> AsyncIterator[PhaseEvent]:
		task = state.task
		cancel_event = self._cancel_events.setdefault(task.id, asyncio.Event())
		try:
			while not isinstance(state, Synthesized):
				phase = STATE_PHASES[type(state)]
				logger.info(f"Task {task.id}: entering {phase.value}")
				yield PhaseEvent(task_id=task.id, phase=phase, kind=EventKind.PHASE_STARTED)

				if cancel_event.is_set() and isinstance(state, (Assessing, Planning)):
					state = self._cancelled(
						task, phase,
						classification=getattr(state, "classification", None),
						feasibility=getattr(state, "feasibility", None),
					)
					continue

				next_state = None
				async for item in self._step(state, cancel_event):
					if isinstance(item, PhaseEvent):
						yield item
					elif isinstance(item, Suspension):
						yield PhaseEvent(
							task_id=task.id,
							phase=phase,
							kind=EventKind.SUSPENDED,
							artifact=item,
							message=item.question,
						)
						return
					else:
						next_state = item
				state = next_state

			yield PhaseEvent(
				task_id=task.id,
				phase=Phase.SYNTHESIS,
				kind=EventKind.FINAL_ANSWER,
				artifact=state.answer,
			)
		finally:
			self._cancel_events.pop(task.id, None)

	def _step(self, state: PhaseState, cancel_event: asyncio.Event) -> AsyncIterator[StepItem]:
		if isinstance(state, Assessing):
			return self._assess(state, cancel_event)
		if isinstance(state, Planning):
			return self._plan(state, cancel_event)
		if isinstance(state, Executing):
			return self._execute(state, cancel_event)
		if isinstance(state, Evaluating):
			return self._evaluate(state)
		return self._synthesize(state)

	async def _assess(self, state: Assessing, cancel_event: asyncio.Event) -> AsyncIterator[StepItem]:
		task = state.task
		try:
			classification = await self.invoke(task.id, "classify", task.query)
			if classification is None:
				raise ProviderFailure("classify", "no classification returned")
			yield self._artifact(task, Phase.ASSESSMENT, classification)
			feasibility = await self.invoke(task.id, "assess", task.query, list(task.conversation))
			if feasibility is None:
				raise ProviderFailure("assess", "no feasibility verdict returned")
			yield self._artifact(task, Phase.ASSESSMENT, feasibility)
		except Exception as e:
			failure = e if isinstance(e, ProviderFailure) else ProviderFailure("assessment", str(e), "assessment")
			logger.error(f"Assessment failed for task {task.id}: {failure}")
			yield self._warning(task, Phase.ASSESSMENT, f"Assessment failed: {failure.message}")
			yield Synthesizing(task=task, framing=Framing.ASSESSMENT_FAILED, reason=failure.message)
			return

		if cancel_event.is_set():
			yield self._cancelled(task, Phase.ASSESSMENT, classification, feasibility)
			return

		if not feasibility.possible:
			self._note(task, Phase.ASSESSMENT, f"Task judged not possible: {feasibility.rationale}")
			yield Synthesizing(
				task=task,
				framing=Framing.NOT_POSSIBLE,
				classification=classification,
				feasibility=feasibility,
				reason=feasibility.rationale,
			)
			return

		if feasibility.needs_information:
			self._note(task, Phase.ASSESSMENT, feasibility.missing_information)
			request = InformationRequest(
				question=feasibility.missing_information,
				target_turn=len(task.conversation),
			)
			yield await self._suspend(Continuation(
				task=task,
				phase=Phase.ASSESSMENT,
				information_request=request,
				classification=classification,
				feasibility=feasibility,
			))
			return

		self._note(
			task, Phase.ASSESSMENT,
			f"Assessment complete: {classification.complexity.value} complexity, feasible.",
		)
		yield Planning(task=task, classification=classification, feasibility=feasibility)

	async def _plan(self, state: Planning, cancel_event: asyncio.Event) -> AsyncIterator[StepItem]:
		task = state.task
		attempt, feedback = state.attempt, state.feedback
		while True:
			try:
				raw = await self.invoke(task.id, "plan", task.query, state.classification, list(task.conversation), feedback)
				plan = parse_plan(raw)
				report = validate_plan(plan, self.config.research_group_limit)
				problems = report.feedback()
			except PlanValidationError as e:
				plan, report = None, None
				problems = "The previous plan was rejected. Fix these problems:\n" + "\n".join(
					f"- {issue.message}" for issue in e.issues
				)
			except Exception as e:
				plan, report = None, None
				logger.error(f"Planner failed for task {task.id}: {e}")
				problems = f"The previous planning attempt failed: {e}"

			if report is not None and report.ok:
				break

			logger.info(f"Plan attempt {attempt} rejected for task {task.id}")
			yield self._warning(task, Phase.PLANNING, problems)
			if attempt >= self.config.max_plan_attempts:
				self._note(task, Phase.PLANNING, "Planning failed; no valid plan could be produced.")
				yield Synthesizing(
					task=task,
					framing=Framing.PLANNING_FAILED,
					classification=state.classification,
					feasibility=state.feasibility,
					reason=problems,
				)
				return
			attempt += 1
			feedback = problems

		if cancel_event.is_set():
			yield self._cancelled(task, Phase.PLANNING, state.classification, state.feasibility, plan)
			return

		for warning in report.warnings:
			logger.warning(f"Task {task.id}: {warning.message}")
			yield self._warning(task, Phase.PLANNING, warning.message)
		yield self._artifact(task, Phase.PLANNING, plan)
		self._note(task, Phase.PLANNING, f"Plan ready with {len(plan.nodes)} sub-task(s).")

		gated = [n for n in plan.nodes if n.type in self._confirm_types()]
		if gated:
			labels = ", ".join(f"{n.type.value} '{n.query}'" for n in gated)
			request = ConfirmationRequest(
				question=f"Approve running {len(gated)} sub-task(s): {labels}?",
				node_ids=[n.id for n in gated],
			)
			yield await self._suspend(Continuation(
				task=task,
				phase=Phase.PLANNING,
				confirmation_request=request,
				classification=state.classification,
				feasibility=state.feasibility,
				plan=plan,
			))
			return

		yield Executing(
			task=task,
			classification=state.classification,
			feasibility=state.feasibility,
			plan=plan,
		)

	async def _execute(self, state: Executing, cancel_event: asyncio.Event) -> AsyncIterator[StepItem]:
		task = state.task
		queue: asyncio.Queue = asyncio.Queue()

		async def on_result(result) -> None:
			await queue.put(result)

		run = asyncio.create_task(self.scheduler.execute(
			state.plan,
			task=task,
			cancel_event=cancel_event,
			on_result=on_result,
			declined=state.declined,
		))
		try:
			while True:
				getter = asyncio.create_task(queue.get())
				done, _ = await asyncio.wait({run, getter}, return_when=asyncio.FIRST_COMPLETED)
				if getter in done:
					yield self._node_event(task, getter.result())
					continue
				getter.cancel()
				break
			while not queue.empty():
				yield self._node_event(task, queue.get_nowait())
			results: AggregatedResults = run.result()
		finally:
			if not run.done():
				run.cancel()

		self._note(
			task, Phase.EXECUTION,
			f"Execution finished: {results.succeeded} succeeded, {results.failed} failed.",
		)
		yield Evaluating(
			task=task,
			classification=state.classification,
			feasibility=state.feasibility,
			plan=state.plan,
			results=results,
		)

	async def _evaluate(self, state: Evaluating) -> AsyncIterator[StepItem]:
		task = state.task
		verdict = await self.invoke(task.id, "evaluate", state.results, task, task.history_text())
		if verdict is None:
			verdict = error_verdict("No evaluation verdict returned")
		yield self._artifact(task, Phase.EVALUATION, verdict)
		self._note(task, Phase.EVALUATION, f"Evaluation: {verdict.judgement.value}.")
		yield Synthesizing(
			task=task,
			framing=Framing.CANCELLED if state.results.cancelled else Framing.NORMAL,
			classification=state.classification,
			feasibility=state.feasibility,
			plan=state.plan,
			results=state.results,
			verdict=verdict,
			reason="Execution was cancelled" if state.results.cancelled else "",
		)

	async def _synthesize(self, state: Synthesizing) -> AsyncIterator[StepItem]:
		task = state.task
		material = SynthesisInput.from_state(state)
		try:
			text = await self.invoke(task.id, "synthesize", material)
			if not text or not str(text).strip():
				raise ProviderFailure("synthesize", "empty answer")
		except Exception as e:
			logger.error(f"Synthesis failed for task {task.id}: {e}")
			yield self._warning(task, Phase.SYNTHESIS, f"Synthesis failed: {e}")
			text = fallback_answer(material)

		answer = FinalAnswer(task_id=task.id, text=str(text), verdict=state.verdict, framing=state.framing)
		task.append_turn(Turn(role=TurnRole.ASSISTANT, content=answer.text, phase=Phase.SYNTHESIS.value))
		task.seal()
		self._mark_synthesized(task.id)
		logger.info(f"Task {task.id} synthesized ({state.framing.value})")
		yield Synthesized(task=task, answer=answer)

	# Helpers

	def _resume_state(self, continuation: Continuation, answer: Union[str, bool]) -> PhaseState:
		task = continuation.task
		if continuation.information_request is not None:
			request = continuation.information_request
			if isinstance(answer, bool) or not isinstance(answer, str):
				raise ResumeMismatchError("An information request must be answered with text")
			if not answer.strip():
				raise ResumeMismatchError("Answer text must not be empty")
			task.append_turn(Turn(
				role=TurnRole.USER,
				content=answer,
				phase=Phase.ASSESSMENT.value,
				answers=request.id,
			))
			# Assessment restarts from classification
			return Assessing(task=task)

		request = continuation.confirmation_request
		if not isinstance(answer, bool):
			raise ResumeMismatchError("A confirmation request must be answered with True or False")
		task.append_turn(Turn(
			role=TurnRole.USER,
			content="yes" if answer else "no",
			phase=Phase.PLANNING.value,
			answers=request.id,
		))
		return Executing(
			task=task,
			classification=continuation.classification,
			feasibility=continuation.feasibility,
			plan=continuation.plan,
			declined=[] if answer else list(request.node_ids),
		)

	async def _suspend(self, continuation: Continuation) -> Suspension:
		await self.store.save(continuation)
		logger.info(f"Task {continuation.task.id} suspended at {continuation.phase.value}: {continuation.token}")
		return Suspension(
			token=continuation.token,
			task_id=continuation.task.id,
			request=continuation.request,
		)

	def _cancelled(self, task: Task, phase: Phase, classification=None, feasibility=None, plan=None) -> Synthesizing:
		logger.info(f"Task {task.id} cancelled during {phase.value}")
		return Synthesizing(
			task=task,
			framing=Framing.CANCELLED,
			classification=classification,
			feasibility=feasibility,
			plan=plan,
			reason=f"Cancelled during {phase.value}",
		)

	def _mark_synthesized(self, task_id: str) -> None:
		self._synthesized[task_id] = None
		self._synthesized.move_to_end(task_id)
		while len(self._synthesized) > self.synthesized_history:
			self._synthesized.popitem(last=False)

	def _confirm_types(self) -> set[NodeType]:
		types = set()
		for name in self.config.confirm_node_types:
			try:
				types.add(NodeType(name))
			except ValueError:
				logger.warning(f"Unknown node type in confirm_node_types: {name}")
		return types

	def _note(self, task: Task, phase: Phase, content: str) -> None:
		task.append_turn(Turn(role=TurnRole.ASSISTANT, content=content, phase=phase.value))

	def _artifact(self, task: Task, phase: Phase, artifact: Any) -> PhaseEvent:
		return PhaseEvent(task_id=task.id, phase=phase, kind=EventKind.ARTIFACT, artifact=artifact)

	def _warning(self, task: Task, phase: Phase, message: str) -> PhaseEvent:
		return PhaseEvent(task_id=task.id, phase=phase, kind=EventKind.WARNING, message=message)

	def _node_event(self, task: Task, result) -> PhaseEvent:
		status = "ok" if result.success else f"failed: {result.error}"
		return PhaseEvent(
			task_id=task.id,
			phase=Phase.EXECUTION,
			kind=EventKind.NODE_RESULT,
			artifact=result,
			message=f"{result.node_id} {status}",
		)

	async def _drain(self, events: AsyncIterator[PhaseEvent]) -> Union[FinalAnswer, Suspension]:
		outcome = None
		async for event in events:
			if event.is_terminal:
				outcome = event.artifact
		return outcome


def fallback_answer(material: SynthesisInput) -> str:
	"""Deterministic answer used when the synthesizer itself fails."""
	headline = {
		Framing.NORMAL: "The results below were gathered for your request.",
		Framing.NOT_POSSIBLE: "This request cannot be completed.",
		Framing.ASSESSMENT_FAILED: "The request could not be assessed.",
		Framing.PLANNING_FAILED: "No execution plan could be produced for the request.",
		Framing.CANCELLED: "The request was cancelled before it finished; results are partial.",
	}[material.framing]

	lines = [headline, "", f"Request: {material.task.query}"]
	if material.reason:
		lines.append(f"Reason: {material.reason}")
	if material.results is not None:
		lines.extend(["", material.results.summary()])
	if material.verdict is not None:
		lines.extend(["", f"Evaluation: {material.verdict.judgement.value} ({material.verdict.explanation})"])
	lines.extend(["", "(The final answer could not be written; this is an automatic summary.)"])
	return "\n".join(lines)
