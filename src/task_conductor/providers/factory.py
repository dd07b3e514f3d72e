"""Default capability wiring: Claude CLI for language steps, Exa for research."""

import logging

from ..config import Config
from .adapters import build_subtask_providers
from .base import CapabilitySet
from .claude_cli import (
	ClaudeClassifier,
	ClaudeCliBackend,
	ClaudeDiagramAnalyst,
	ClaudeDocumentSearch,
	ClaudeEvaluator,
	ClaudeFeasibilityAssessor,
	ClaudePlanner,
	ClaudeQuestionAnswerer,
	ClaudeSynthesizer,
)
from .exa import ExaResearchClient

logger = logging.getLogger(__name__)


def build_capabilities(config: Config) -> CapabilitySet:
	"""Build the default capability set from config."""
	backend = ClaudeCliBackend(command=config.claude_command, timeout=config.llm_timeout)
	research = ExaResearchClient(api_key=config.exa_api_key, num_results=config.exa_num_results)

	logger.debug(f"Capabilities: claude command '{config.claude_command}', exa results {config.exa_num_results}")
	return CapabilitySet(
		classifier=ClaudeClassifier(backend),
		feasibility=ClaudeFeasibilityAssessor(backend),
		planner=ClaudePlanner(backend),
		evaluator=ClaudeEvaluator(backend),
		synthesizer=ClaudeSynthesizer(backend),
		subtasks=build_subtask_providers(
			research=research,
			documents=ClaudeDocumentSearch(backend),
			diagrams=ClaudeDiagramAnalyst(backend),
			qa=ClaudeQuestionAnswerer(backend),
		),
	)
