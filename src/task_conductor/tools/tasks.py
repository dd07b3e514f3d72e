"""Task execution tools - run, answer, confirm and list suspended runs."""

import json
import logging
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..engine.controller import PhaseController
from ..engine.state import Suspension
from ..engine.store import get_continuation_store
from ..errors import ResumeMismatchError, TaskSealedError, UnknownContinuationError
from ..models import FinalAnswer, Task
from ..providers.factory import build_capabilities

logger = logging.getLogger(__name__)

_controller: Optional[PhaseController] = None


async def get_controller(config: Config) -> PhaseController:
	"""Get or create the controller shared by the MCP tools."""
	global _controller
	if _controller is None:
		store = await get_continuation_store(str(config.sessions_db_path))
		_controller = PhaseController(build_capabilities(config), config, store)
	return _controller


def outcome_to_dict(outcome: Union[FinalAnswer, Suspension]) -> dict[str, Any]:
	"""JSON-ready view of a run outcome."""
	if isinstance(outcome, Suspension):
		return {
			"status": "suspended",
			"task_id": outcome.task_id,
			"token": outcome.token,
			"question": outcome.question,
			"expects": "confirmation" if outcome.expects_confirmation else "answer",
		}
	return {
		"status": "completed",
		"task_id": outcome.task_id,
		"framing": outcome.framing.value,
		"verdict": outcome.verdict.model_dump(mode="json") if outcome.verdict else None,
		"answer": outcome.text,
	}


def register_task_tools(mcp: FastMCP, config: Config) -> None:
	"""Register task execution tools."""

	@mcp.tool()
	async def run_task(query: str, documents: str = "") -> str:
		"""
		Run a task through assessment, planning, execution, evaluation and synthesis.

		Args:
			query: The natural-language request
			documents: Optional JSON object mapping document names to their text
		"""
		docs: dict[str, str] = {}
		if documents:
			try:
				docs = json.loads(documents)
			except json.JSONDecodeError as e:
				return json.dumps({"error": f"documents must be a JSON object: {e}"})
			if not isinstance(docs, dict):
				return json.dumps({"error": "documents must be a JSON object"})

		controller = await get_controller(config)
		outcome = await controller.run(Task(query=query, documents={str(k): str(v) for k, v in docs.items()}))
		return json.dumps(outcome_to_dict(outcome), indent=2)

	@mcp.tool()
	async def answer_information_request(token: str, answer: str) -> str:
		"""
		Answer the clarifying question of a suspended run and resume it.

		Args:
			token: Continuation token returned when the run suspended
			answer: The answer text
		"""
		controller = await get_controller(config)
		try:
			outcome = await controller.resume(token, answer)
		except (UnknownContinuationError, ResumeMismatchError, TaskSealedError) as e:
			return json.dumps({"error": str(e)})
		return json.dumps(outcome_to_dict(outcome), indent=2)

	@mcp.tool()
	async def confirm_plan(token: str, approve: bool) -> str:
		"""
		Approve or decline the sub-tasks a suspended run is waiting on.

		Args:
			token: Continuation token returned when the run suspended
			approve: True to run the gated sub-tasks, False to skip them
		"""
		controller = await get_controller(config)
		try:
			outcome = await controller.resume(token, approve)
		except (UnknownContinuationError, ResumeMismatchError, TaskSealedError) as e:
			return json.dumps({"error": str(e)})
		return json.dumps(outcome_to_dict(outcome), indent=2)

	@mcp.tool()
	async def list_suspended_runs() -> str:
		"""List runs waiting for an answer or a confirmation."""
		controller = await get_controller(config)
		pending = await controller.store.list_pending()
		return json.dumps({
			"count": len(pending),
			"runs": [
				{
					"token": c.token,
					"task_id": c.task.id,
					"query": c.task.query,
					"phase": c.phase.value,
					"question": c.request.question,
					"created_at": c.created_at,
				}
				for c in pending
			],
		}, indent=2)
