"""Plan validation tool."""

import json

from mcp.server.fastmcp import FastMCP

from ..config import Config
from ..errors import PlanValidationError
from ..plans.validator import parse_plan
from ..plans.validator import validate_plan as check_plan


def register_plans_tools(mcp: FastMCP, config: Config) -> None:
	"""Register plan tools."""

	@mcp.tool()
	async def validate_plan(plan_json: str) -> str:
		"""
		Validate an execution plan without running it.

		Args:
			plan_json: Plan as JSON ({"task": ..., "nodes": [...]}; "agents" is accepted too)
		"""
		try:
			plan = parse_plan(plan_json)
		except PlanValidationError as e:
			return json.dumps({
				"valid": False,
				"errors": [{"code": i.code, "message": i.message, "node_id": i.node_id} for i in e.issues],
				"warnings": [],
			}, indent=2)

		report = check_plan(plan, config.research_group_limit)
		return json.dumps({
			"valid": report.ok,
			"errors": [{"code": i.code, "message": i.message, "node_id": i.node_id} for i in report.errors],
			"warnings": [{"code": i.code, "message": i.message} for i in report.warnings],
			"markdown": plan.to_markdown(),
		}, indent=2)
