"""
Plan Validator - Structural checks run before a plan is executed.

Checks, in order:
1. No dangling dependency (every dependency names an existing order)
2. Dependencies reference strictly earlier groups (acyclic by construction)
3. Every node carries a non-empty query
4. Research nodes per group stay within the rate limit (warning only)

All violations are collected so the planner can be re-prompted with the
full list.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import ValidationError

from ..errors import PlanValidationError
from .models import QUERY_REQUIRED_TYPES, NodeType, Plan

logger = logging.getLogger(__name__)

DEFAULT_RESEARCH_GROUP_LIMIT = 2


class IssueSeverity(str, Enum):
	"""Whether an issue blocks execution."""
	ERROR = "error"
	WARNING = "warning"


@dataclass(frozen=True)
class PlanIssue:
	"""A single validation finding."""
	code: str
	message: str
	node_id: Optional[str] = None
	severity: IssueSeverity = IssueSeverity.ERROR

	def __str__(self) -> str:
		return self.message


@dataclass
class ValidationReport:
	"""Result of validating a plan."""
	errors: list[PlanIssue] = field(default_factory=list)
	warnings: list[PlanIssue] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not self.errors

	def feedback(self) -> str:
		"""Error list formatted as re-planning instructions."""
		if self.ok:
			return ""
		lines = ["The previous plan was rejected. Fix these problems:"]
		lines.extend(f"- {issue.message}" for issue in self.errors)
		return "\n".join(lines)


def validate_plan(plan: Plan, research_group_limit: int = DEFAULT_RESEARCH_GROUP_LIMIT) -> ValidationReport:
	"""
	Check a plan against the structural invariants.

	Args:
		plan: Plan to check (not modified)
		research_group_limit: Max research nodes sharing one order value

	Returns:
		ValidationReport with errors (blocking) and warnings (advisory)
	"""
	report = ValidationReport()
	orders = plan.orders()

	# 1. Dangling dependencies
	for node in plan.nodes:
		for dep in node.dependencies:
			if dep not in orders:
				report.errors.append(PlanIssue(
					code="dangling_dependency",
					message=f"Node {node.id} depends on order {dep}, which no node has",
					node_id=node.id,
				))

	# 2. Dependencies must point at strictly earlier groups
	for node in plan.nodes:
		for dep in node.dependencies:
			if dep == node.order:
				report.errors.append(PlanIssue(
					code="self_dependency",
					message=f"Node {node.id} depends on its own order {dep}",
					node_id=node.id,
				))
			elif dep > node.order:
				report.errors.append(PlanIssue(
					code="forward_dependency",
					message=f"Node {node.id} (order {node.order}) depends on later order {dep}",
					node_id=node.id,
				))

	# 3. Queries
	for node in plan.nodes:
		if node.type in QUERY_REQUIRED_TYPES and not (node.query and node.query.strip()):
			report.errors.append(PlanIssue(
				code="missing_query",
				message=f"Node {node.id} of type {node.type.value} has no query",
				node_id=node.id,
			))

	# 4. Research rate limit (advisory)
	for order, nodes in plan.groups():
		research = [n for n in nodes if n.type == NodeType.RESEARCH]
		if len(research) > research_group_limit:
			report.warnings.append(PlanIssue(
				code="research_rate_limit",
				message=(
					f"Order {order} has {len(research)} research nodes "
					f"(limit {research_group_limit}); calls will be throttled"
				),
				severity=IssueSeverity.WARNING,
			))

	if report.errors:
		logger.info(f"Plan rejected with {len(report.errors)} error(s)")
	return report


def parse_plan(raw: Union[Plan, dict[str, Any], str]) -> Plan:
	"""
	Turn raw planner output into a Plan.

	Args:
		raw: A Plan, a dict, or a JSON string

	Raises:
		PlanValidationError: if the data does not fit the plan schema
	"""
	if isinstance(raw, Plan):
		return raw

	if isinstance(raw, str):
		try:
			raw = json.loads(raw)
		except json.JSONDecodeError as e:
			raise PlanValidationError([PlanIssue(code="invalid_json", message=f"Invalid JSON: {e}")])

	if not isinstance(raw, dict):
		raise PlanValidationError([PlanIssue(
			code="invalid_shape",
			message=f"Plan must be an object, got {type(raw).__name__}",
		)])

	try:
		return Plan.model_validate(raw)
	except ValidationError as e:
		raise PlanValidationError(_issues_from_pydantic(e, raw))


def _issues_from_pydantic(error: ValidationError, raw: dict[str, Any]) -> list[PlanIssue]:
	issues = []
	raw_nodes = raw.get("nodes", raw.get("agents")) or []
	for err in error.errors():
		loc = err.get("loc", ())
		node_id = None
		if len(loc) >= 2 and loc[0] in ("nodes", "agents") and isinstance(loc[1], int):
			index = loc[1]
			node = raw_nodes[index] if index < len(raw_nodes) else {}
			node_id = (node.get("id") if isinstance(node, dict) else None) or f"n{index + 1}"
		where = ".".join(str(part) for part in loc) or "plan"
		issues.append(PlanIssue(code="schema", message=f"{where}: {err.get('msg')}", node_id=node_id))
	return issues
