"""
Claude CLI providers - LLM-backed capabilities via ``claude --print``.

Each provider builds a prompt, runs the Claude CLI in print mode through
``ClaudeCliBackend`` and parses the reply. Structured replies are
validated against the schemas in ``task_conductor.schemas``; a malformed
reply is reported as a ProviderFailure.
"""

import asyncio
import logging
import re
from typing import Any

from ..errors import ProviderFailure
from ..models import (
	Classification,
	ComplexityTier,
	EvaluationVerdict,
	FeasibilityVerdict,
	Framing,
	Judgement,
	Turn,
)
from ..schemas import (
	CLASSIFICATION_SCHEMA,
	FEASIBILITY_SCHEMA,
	PLAN_SCHEMA,
	VERDICT_SCHEMA,
	ResponseSchema,
)
from .base import DiagramResponse, DocumentSearchResponse, QAResponse

logger = logging.getLogger(__name__)

COMPLEXITY_GUIDELINES = """
CRITICAL_COMPLEXITY: highly intricate processes, expert-level knowledge, multiple dependencies and constraints, critical decision points, extensive planning.
HIGH_COMPLEXITY: multiple sophisticated steps, deep technical knowledge, significant coordination, complex problem-solving.
MODERATE_COMPLEXITY: multiple interconnected steps, specific domain expertise, requires planning and organization.
LOW_COMPLEXITY: multiple basic steps, basic domain knowledge, minor coordination, simple problem-solving.
MINIMAL_COMPLEXITY: basic, straightforward, single-step tasks needing no special knowledge.
TRIVIAL: extremely basic tasks that can be done without thought.
""".strip()

PLANNING_GUIDELINES = """
Available agent types:
- "research": internet research via ONE focused query answerable with a single search. Never combine aspects.
- "document_search": search the user's own files and documents. Required when the user refers to their documents. Put these among the first agents. Include likely keywords in the query.
- "diagram_analysis": ONE analysis or visualization per agent. The query must mention mermaid.js, the diagram type, a single metric or relationship, and the data needed.
- "direct_qa": extract direct factual information from context. Never ask it to synthesize or summarize.

Rules:
- Agents with the same "order" run in parallel. Prefer parallelism for speed.
- Trivial tasks (basic math, yes/no) need at most one agent, or none when the answer is immediate.
- AT MOST 2 "research" agents may share an order number (rate limits). Sequence further researchers into later orders.
- "dependencies" is a list of INTEGER order numbers, each strictly smaller than the agent's own order. Use [] for none.
- Every agent MUST have a non-empty "query".
- Avoid redundant work when the conversation already holds the information.
""".strip()

FRAMING_GUIDANCE = {
	Framing.NORMAL: "Answer the original query using the gathered material.",
	Framing.NOT_POSSIBLE: "The task was judged not possible. Explain why, politely and concretely, and suggest what could be done instead.",
	Framing.ASSESSMENT_FAILED: "The task could not be assessed because an internal step failed. Say so and answer as far as possible.",
	Framing.PLANNING_FAILED: "No valid execution plan could be produced. Say so and answer as far as possible without one.",
	Framing.CANCELLED: "Execution was cancelled before completion. Answer from the partial results and state that they are partial.",
}

VERDICT_GUIDANCE = {
	Judgement.PASSED: "The evaluation passed; answer with confidence.",
	Judgement.HALLUCINATION: "The evaluation flagged possible hallucination; state the uncertain points cautiously.",
	Judgement.NOT_VERIFIED: "The evaluation could not verify some claims; flag them as unverified.",
	Judgement.NOT_ALIGNED: "The evaluation found the material may not fully address the request; say which aspect may be missing.",
	Judgement.ERROR: "The internal evaluation step failed; mention that the answer was not independently checked.",
}


def format_conversation(turns: list[Turn]) -> str:
	"""Render turns as 'role: content' lines."""
	if not turns:
		return "(no prior conversation)"
	return "\n".join(f"{t.role.value}: {t.content}" for t in turns)


class ClaudeCliBackend:
	"""Runs prompts through the Claude CLI in print mode."""

	def __init__(self, command: str = "claude", timeout: float = 120.0):
		self.command = command
		self.timeout = timeout

	async def complete(self, prompt: str, capability: str = "llm") -> str:
		"""Send a prompt and return the text reply."""
		try:
			process = await asyncio.create_subprocess_exec(
				self.command,
				"--print",
				"--output-format", "text",
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
			)
		except FileNotFoundError:
			raise ProviderFailure(capability, f"Claude CLI not found: {self.command}")

		try:
			stdout, stderr = await asyncio.wait_for(
				process.communicate(input=prompt.encode()),
				timeout=self.timeout,
			)
		except asyncio.TimeoutError:
			raise ProviderFailure(capability, f"timed out after {self.timeout}s")
		finally:
			# Also reached when an outer timeout or cancellation interrupts communicate()
			if process.returncode is None:
				try:
					process.kill()
				except ProcessLookupError:
					pass
				await process.wait()

		if process.returncode != 0:
			error = stderr.decode("utf-8", errors="replace").strip()
			logger.error(f"Claude CLI error ({capability}): {error}")
			raise ProviderFailure(capability, error or f"exit code {process.returncode}")

		return stdout.decode("utf-8", errors="replace")

	async def complete_json(self, prompt: str, schema: ResponseSchema, capability: str) -> dict[str, Any]:
		"""Send a prompt that asks for JSON and validate the reply."""
		full_prompt = (
			f"{prompt}\n\n"
			f"Respond ONLY with a JSON object matching this schema:\n"
			f"```json\n{schema.describe()}\n```"
		)
		response = await self.complete(full_prompt, capability)
		is_valid, data, error = schema.validate(response)
		if not is_valid:
			raise ProviderFailure(capability, f"malformed output: {error}")
		return data


class ClaudeClassifier:
	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def classify(self, query: str) -> Classification:
		prompt = (
			f'Classify the following user query: "{query}"\n\n'
			f"Complexity guidelines:\n{COMPLEXITY_GUIDELINES}\n\n"
			"Determine the complexity level and give brief reasoning."
		)
		data = await self.backend.complete_json(prompt, CLASSIFICATION_SCHEMA, "classify")
		return Classification(
			complexity=ComplexityTier(data["complexity"]),
			rationale=data.get("reasoning", ""),
		)


class ClaudeFeasibilityAssessor:
	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def assess(self, query: str, conversation: list[Turn]) -> FeasibilityVerdict:
		prompt = f"""Evaluate whether the following task is possible to accomplish with software alone. Assume the system can access files or text the user has explicitly provided.

Answer YES if the task can be done purely through software, data processing or information retrieval (web search, the user's documents, prior conversation).
Answer NO if it needs physical-world manipulation, human physical intervention, purchases without API access, AGI-level capabilities, or unauthorized access.

If the answer is YES but essential details are missing to do it well, put ONE clarifying question in "missingInformation". Otherwise leave it empty.

Conversation so far:
{format_conversation(conversation)}

Task to evaluate: {query}"""
		data = await self.backend.complete_json(prompt, FEASIBILITY_SCHEMA, "feasibility")
		missing = (data.get("missingInformation") or "").strip()
		return FeasibilityVerdict(
			possible=data["isPossible"] == "YES",
			rationale=data.get("justification", ""),
			missing_information=missing or None,
		)


class ClaudePlanner:
	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def plan(
		self,
		query: str,
		classification: Classification,
		conversation: list[Turn],
		feedback: str = "",
	) -> dict[str, Any]:
		lines = [
			"You are a task planner. Plan the AI agents required for the task below.",
			"",
			f"Task: {query}",
			f"Complexity: {classification.complexity.value} ({classification.rationale})",
			"",
			"Conversation so far:",
			format_conversation(conversation),
			"",
			PLANNING_GUIDELINES,
		]
		if feedback:
			lines.extend(["", feedback])
		data = await self.backend.complete_json("\n".join(lines), PLAN_SCHEMA, "plan")
		return data


class ClaudeDocumentSearch:
	"""Finds relevant snippets in the caller's local documents."""

	MIN_QUERY_LENGTH = 3

	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def search(self, query: str, documents: dict[str, str]) -> DocumentSearchResponse:
		if not query or len(query.strip()) < self.MIN_QUERY_LENGTH:
			return DocumentSearchResponse(
				query=query,
				found_context="Search not performed: query was too short or vague.",
				error="Query too vague for search.",
			)
		if not documents:
			return DocumentSearchResponse(
				query=query,
				found_context="Search not performed: no local documents were provided.",
				error="No local context available.",
			)

		context = "\n\n".join(
			f"--- START FILE: {name} ---\n{text}\n--- END FILE: {name} ---"
			for name, text in documents.items()
		)
		prompt = f"""Search the provided files for information relevant to the user query.
Extract the most relevant sentences or short paragraphs, naming the source file for each.
Do not summarize entire files. If nothing is relevant, say so clearly.

User query: "{query}"

Provided files:
{context}

Relevant snippets:"""
		try:
			text = (await self.backend.complete(prompt, "document_search")).strip()
		except ProviderFailure as e:
			return DocumentSearchResponse(
				query=query,
				found_context="An error occurred while searching the file context.",
				error=e.message,
			)
		if not text:
			return DocumentSearchResponse(
				query=query,
				found_context="No relevant information was found in the provided files.",
				error="Search returned empty.",
			)
		return DocumentSearchResponse(query=query, found_context=text)


class ClaudeDiagramAnalyst:
	"""Produces mermaid.js diagram source for an analysis query."""

	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def analyze(self, query: str) -> DiagramResponse:
		prompt = (
			"Produce ONE mermaid.js diagram for the analysis below. "
			"Reply with the diagram in a ```mermaid fenced block and nothing else.\n\n"
			f"Analysis: {query}"
		)
		try:
			text = await self.backend.complete(prompt, "diagram_analysis")
		except ProviderFailure as e:
			return DiagramResponse(query=query, error=e.message)

		match = re.search(r"```mermaid\s*(.*?)\s*```", text, re.DOTALL)
		source = match.group(1) if match else text.strip()
		if not source:
			return DiagramResponse(query=query, error="No diagram returned.")
		return DiagramResponse(query=query, diagram_source=source)


class ClaudeQuestionAnswerer:
	"""Extracts direct factual answers from supplied context."""

	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def answer(self, query: str, context: str) -> QAResponse:
		prompt = (
			"Answer the question using only facts present in the context or common factual knowledge. "
			"Do not synthesize or summarize; extract the specific information asked for.\n\n"
			f"Context:\n{context}\n\nQuestion: {query}"
		)
		try:
			text = (await self.backend.complete(prompt, "direct_qa")).strip()
		except ProviderFailure as e:
			return QAResponse(query=query, error=e.message)
		if not text:
			return QAResponse(query=query, error="Empty answer.")
		return QAResponse(query=query, answer=text)


class ClaudeEvaluator:
	"""Evaluation council: hallucination, verification and alignment checks."""

	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def evaluate(self, aggregated, query: str, history: str) -> EvaluationVerdict:
		prompt = f"""You are an evaluation council. Assess the gathered material below for the user's query.

Conversation history:
{history}

User query:
{query}

Aggregated results:
{aggregated.summary()}

Checks:
1. Hallucination: does the material make up facts, cite non-existent sources, or misrepresent the context?
2. Verification: are claims, references and usages accurate given the history and established facts?
3. Alignment: does the material address the user's query and intent?

Judgement is 'passed' if all checks pass, otherwise the category of the first failure (hallucination, not_verified, not_aligned)."""
		data = await self.backend.complete_json(prompt, VERDICT_SCHEMA, "evaluate")
		return EvaluationVerdict.model_validate(data)


class ClaudeSynthesizer:
	"""Writes the final answer from everything gathered."""

	def __init__(self, backend: ClaudeCliBackend):
		self.backend = backend

	async def synthesize(self, material) -> str:
		sections = [
			"Write the final answer to the user's original query. Use Markdown. Be thorough unless brevity was requested. Cite research sources where useful.",
			"",
			f"Original query: {material.task.query}",
			"",
			"Conversation:",
			format_conversation(material.task.conversation),
			"",
			f"Framing: {FRAMING_GUIDANCE[material.framing]}",
		]
		if material.reason:
			sections.append(f"Details: {material.reason}")
		if material.classification:
			sections.append(f"Complexity: {material.classification.complexity.value}")
		if material.feasibility and not material.feasibility.possible:
			sections.append(f"Feasibility rationale: {material.feasibility.rationale}")
		if material.plan is not None:
			sections.extend(["", material.plan.to_markdown()])
		if material.results is not None:
			sections.extend(["", "Results:", material.results.summary()])
		if material.verdict is not None:
			sections.extend([
				"",
				f"Evaluation: {material.verdict.judgement.value} - {material.verdict.explanation}",
				VERDICT_GUIDANCE[material.verdict.judgement],
			])

		text = (await self.backend.complete("\n".join(sections), "synthesize")).strip()
		if not text:
			raise ProviderFailure("synthesize", "empty answer")
		return text
