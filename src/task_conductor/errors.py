"""Exception types shared across the engine."""

from typing import Optional


class ConductorError(Exception):
	"""Base exception for task-conductor errors."""
	pass


class PlanValidationError(ConductorError):
	"""Raised when a raw plan cannot be turned into a valid Plan."""

	def __init__(self, issues: list):
		self.issues = list(issues)
		summary = "; ".join(issue.message for issue in self.issues) or "invalid plan"
		super().__init__(summary)


class ProviderFailure(ConductorError):
	"""A capability call failed or timed out."""

	def __init__(self, capability: str, message: str, node_id: Optional[str] = None):
		self.capability = capability
		self.message = message
		self.node_id = node_id
		super().__init__(f"{capability}: {message}")


class TaskSealedError(ConductorError):
	"""Raised when a synthesized task is modified."""
	pass


class UnknownContinuationError(ConductorError):
	"""Raised when resuming with a token that has no parked run."""
	pass


class ResumeMismatchError(ConductorError):
	"""Raised when the resume value does not fit the pending request."""
	pass
