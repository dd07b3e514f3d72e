"""Tests for task and assessment models."""

import pytest

from task_conductor.errors import PlanValidationError, TaskSealedError
from task_conductor.models import (
	ComplexityTier,
	FeasibilityVerdict,
	Judgement,
	Task,
	Turn,
	TurnRole,
)
from task_conductor.plans.validator import PlanIssue


class TestTask:
	def test_sealed_task_rejects_turns(self):
		task = Task(query="q")
		task.append_turn(Turn(role=TurnRole.USER, content="hi"))
		task.seal()
		with pytest.raises(TaskSealedError):
			task.append_turn(Turn(role=TurnRole.USER, content="again"))
		assert len(task.conversation) == 1

	def test_history_text(self):
		task = Task(query="Plan a trip")
		task.append_turn(Turn(role=TurnRole.ASSISTANT, content="Where to?"))
		task.append_turn(Turn(role=TurnRole.USER, content="Lisbon"))
		assert task.history_text() == "user: Plan a trip\nassistant: Where to?\nuser: Lisbon"

	def test_ids_unique(self):
		assert Task(query="a").id != Task(query="b").id


class TestComplexityTier:
	def test_ordering(self):
		assert ComplexityTier.TRIVIAL < ComplexityTier.MINIMAL < ComplexityTier.CRITICAL
		assert ComplexityTier.HIGH >= ComplexityTier.MODERATE
		assert max(ComplexityTier) == ComplexityTier.CRITICAL

	def test_accepts_labels(self):
		assert ComplexityTier("HIGH_COMPLEXITY") == ComplexityTier.HIGH
		assert ComplexityTier("TRIVIAL") == ComplexityTier.TRIVIAL
		with pytest.raises(ValueError):
			ComplexityTier("ENORMOUS")


class TestVerdicts:
	def test_needs_information(self):
		assert FeasibilityVerdict(possible=True, missing_information="Which city?").needs_information
		assert not FeasibilityVerdict(possible=True, missing_information="  ").needs_information
		assert not FeasibilityVerdict(possible=False, missing_information="Which city?").needs_information

	def test_judgement_accepts_hyphens(self):
		assert Judgement("not-aligned") == Judgement.NOT_ALIGNED


def test_plan_validation_error_message():
	error = PlanValidationError([PlanIssue(code="a", message="first"), PlanIssue(code="b", message="second")])
	assert str(error) == "first; second"
	assert len(error.issues) == 2
