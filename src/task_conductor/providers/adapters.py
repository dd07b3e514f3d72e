"""Sub-task adapters: one per node type, wrapping an outbound client."""

import logging
from typing import Optional

from ..errors import ProviderFailure
from ..plans.models import NodeType
from .base import (
	DiagramClient,
	DiagramResponse,
	DocumentSearchClient,
	DocumentSearchResponse,
	NodeRequest,
	QAResponse,
	QuestionAnswerer,
	ResearchClient,
	ResearchResponse,
	SubtaskProvider,
)

logger = logging.getLogger(__name__)


class ResearchAdapter:
	"""Runs a research node as a single-query research call."""
	node_type = NodeType.RESEARCH

	def __init__(self, client: ResearchClient):
		self.client = client

	async def run(self, request: NodeRequest) -> ResearchResponse:
		responses = await self.client.research([request.query])
		if not responses:
			raise ProviderFailure("research", "no response returned", request.node.id)
		response = responses[0]
		if response.error:
			raise ProviderFailure("research", response.error, request.node.id)
		return response


class DocumentSearchAdapter:
	"""Searches the task's local documents."""
	node_type = NodeType.DOCUMENT_SEARCH

	def __init__(self, client: DocumentSearchClient):
		self.client = client

	async def run(self, request: NodeRequest) -> DocumentSearchResponse:
		response = await self.client.search(request.query, request.task.documents)
		if response.error:
			raise ProviderFailure("document_search", response.error, request.node.id)
		return response


class DiagramAdapter:
	"""Produces a diagram for an analysis query."""
	node_type = NodeType.DIAGRAM_ANALYSIS

	def __init__(self, client: DiagramClient):
		self.client = client

	async def run(self, request: NodeRequest) -> DiagramResponse:
		query = request.query
		upstream = request.upstream_text()
		if upstream:
			query = f"{query}\n\nData from earlier steps:\n{upstream}"
		response = await self.client.analyze(query)
		if response.error:
			raise ProviderFailure("diagram_analysis", response.error, request.node.id)
		return response


class DirectQAAdapter:
	"""Answers a factual question from upstream results and the conversation."""
	node_type = NodeType.DIRECT_QA

	def __init__(self, answerer: QuestionAnswerer):
		self.answerer = answerer

	async def run(self, request: NodeRequest) -> QAResponse:
		context_parts = [request.task.history_text()]
		upstream = request.upstream_text()
		if upstream:
			context_parts.append(upstream)
		response = await self.answerer.answer(request.query, "\n\n".join(context_parts))
		if response.error:
			raise ProviderFailure("direct_qa", response.error, request.node.id)
		return response


def build_subtask_providers(
	research: Optional[ResearchClient] = None,
	documents: Optional[DocumentSearchClient] = None,
	diagrams: Optional[DiagramClient] = None,
	qa: Optional[QuestionAnswerer] = None,
) -> dict[NodeType, SubtaskProvider]:
	"""Wrap whichever clients are available in their node adapters."""
	providers: dict[NodeType, SubtaskProvider] = {}
	if research is not None:
		providers[NodeType.RESEARCH] = ResearchAdapter(research)
	if documents is not None:
		providers[NodeType.DOCUMENT_SEARCH] = DocumentSearchAdapter(documents)
	if diagrams is not None:
		providers[NodeType.DIAGRAM_ANALYSIS] = DiagramAdapter(diagrams)
	if qa is not None:
		providers[NodeType.DIRECT_QA] = DirectQAAdapter(qa)

	missing = [t.value for t in NodeType if t not in providers]
	if missing:
		logger.info(f"No provider for node types: {', '.join(missing)}")
	return providers
