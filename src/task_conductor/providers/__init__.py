"""Providers module - Capability contracts, node adapters and default implementations."""

from .adapters import build_subtask_providers
from .base import (
	CapabilitySet,
	DiagramResponse,
	DocumentSearchResponse,
	NodeRequest,
	QAResponse,
	ResearchResponse,
	SearchHit,
	SubtaskProvider,
)
from .factory import build_capabilities

__all__ = [
	"CapabilitySet",
	"NodeRequest",
	"SubtaskProvider",
	"SearchHit",
	"ResearchResponse",
	"DocumentSearchResponse",
	"DiagramResponse",
	"QAResponse",
	"build_subtask_providers",
	"build_capabilities",
]
