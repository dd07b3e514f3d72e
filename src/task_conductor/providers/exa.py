"""
Exa research client - web search with page text in a single call.

Queries run concurrently; a failing query is reported in its own
response and does not affect the others.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .base import ResearchResponse, SearchHit

logger = logging.getLogger(__name__)

EXA_SEARCH_URL = "https://api.exa.ai/search"


class ExaResearchClient:
	"""Research client backed by the Exa search API."""

	def __init__(
		self,
		api_key: str,
		num_results: int = 3,
		timeout: float = 30.0,
		base_url: str = EXA_SEARCH_URL,
	):
		"""
		Initialize the client.

		Args:
			api_key: Exa API key (EXA_API_KEY)
			num_results: Results per query
			timeout: Total timeout per HTTP request in seconds
			base_url: Search endpoint
		"""
		self.api_key = api_key
		self.num_results = num_results
		self.timeout = timeout
		self.base_url = base_url
		if not api_key:
			logger.warning("EXA_API_KEY is not set; research calls will fail")

	async def research(self, queries: list[str]) -> list[ResearchResponse]:
		"""Search every query and return one response per query, in order."""
		if not self.api_key:
			return [
				ResearchResponse(query=q, error="EXA_API_KEY is not configured.")
				for q in queries
			]

		logger.info(f"Exa search for {len(queries)} queries")
		async with aiohttp.ClientSession(
			headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
			timeout=aiohttp.ClientTimeout(total=self.timeout),
		) as session:
			return await asyncio.gather(*(self._search(session, q) for q in queries))

	async def _search(self, session: aiohttp.ClientSession, query: str) -> ResearchResponse:
		payload = {
			"query": query,
			"numResults": self.num_results,
			"contents": {"text": True},
		}
		try:
			async with session.post(self.base_url, json=payload) as response:
				if response.status != 200:
					body = await response.text()
					logger.warning(f"Exa search failed for '{query}': {response.status}")
					return ResearchResponse(query=query, error=f"HTTP {response.status}: {body[:200]}")
				data = await response.json()
		except (aiohttp.ClientError, asyncio.TimeoutError) as e:
			logger.error(f"Exa search error for '{query}': {e}")
			return ResearchResponse(query=query, error=str(e) or type(e).__name__)

		return parse_exa_results(query, data)


def parse_exa_results(query: str, data: Optional[dict[str, Any]]) -> ResearchResponse:
	"""Convert an Exa search payload into a ResearchResponse."""
	hits = []
	for item in (data or {}).get("results", []):
		url = item.get("url")
		if not url:
			continue
		hits.append(SearchHit(
			title=item.get("title") or "No title available",
			url=url,
			text=item.get("text") or "No text content retrieved.",
		))
	logger.debug(f"Query '{query}' returned {len(hits)} results")
	return ResearchResponse(query=query, results=hits)
