"""
Evaluator - Turns aggregated results into a verdict, never an exception.

Wraps the evaluation provider. Provider errors, timeouts and output that
does not fit an EvaluationVerdict are all reported as judgement ``error``
with the fault as the explanation, so synthesis always has a verdict.
"""

import asyncio
import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..models import EvaluationVerdict, Judgement, Task
from ..providers.base import EvaluatorProvider
from ..schemas import VERDICT_SCHEMA
from .results import AggregatedResults

logger = logging.getLogger(__name__)


def error_verdict(explanation: str) -> EvaluationVerdict:
	return EvaluationVerdict(judgement=Judgement.ERROR, explanation=explanation)


class Evaluator:
	"""Total wrapper around an evaluation provider."""

	def __init__(self, provider: EvaluatorProvider, timeout: float = 120.0):
		self.provider = provider
		self.timeout = timeout

	async def evaluate(
		self,
		aggregated: AggregatedResults,
		task: Task,
		history: Optional[str] = None,
	) -> EvaluationVerdict:
		"""
		Evaluate the results of a run.

		Args:
			aggregated: Results of the execution phase
			task: The task being answered
			history: Conversation history text (defaults to the task's)

		Returns:
			EvaluationVerdict; judgement is ``error`` on any internal fault
		"""
		if history is None:
			history = task.history_text()

		try:
			raw = await asyncio.wait_for(
				self.provider.evaluate(aggregated, task.query, history),
				timeout=self.timeout,
			)
		except asyncio.TimeoutError:
			logger.error(f"Evaluation timed out after {self.timeout}s")
			return error_verdict(f"Evaluation timed out after {self.timeout}s")
		except Exception as e:
			logger.error(f"Evaluation failed: {e}")
			return error_verdict(f"Evaluation failed: {e}")

		verdict = coerce_verdict(raw)
		logger.info(f"Evaluation verdict: {verdict.judgement.value}")
		return verdict


def coerce_verdict(raw: Any) -> EvaluationVerdict:
	"""Accept a verdict, a dict or a JSON string; anything else is an error verdict."""
	if isinstance(raw, EvaluationVerdict):
		return raw

	if isinstance(raw, str):
		is_valid, data, error = VERDICT_SCHEMA.validate(raw)
		if not is_valid:
			return error_verdict(f"Malformed evaluator output: {error}")
		raw = data

	if isinstance(raw, dict):
		try:
			return EvaluationVerdict.model_validate(raw)
		except ValidationError as e:
			return error_verdict(f"Malformed evaluator output: {e.error_count()} validation error(s)")

	return error_verdict(f"Unexpected evaluator output type: {type(raw).__name__}")
