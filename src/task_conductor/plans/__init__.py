"""Plans module - Plan model and structural validation."""

from .models import NodeType, Plan, PlanNode
from .validator import PlanIssue, ValidationReport, parse_plan, validate_plan

__all__ = [
	"NodeType",
	"Plan",
	"PlanNode",
	"PlanIssue",
	"ValidationReport",
	"parse_plan",
	"validate_plan",
]
