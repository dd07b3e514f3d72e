"""
Structured output schemas for LLM-backed capability providers.

Defines the JSON shapes the providers ask for and a light validator for
the responses, plus extraction of a JSON object from free-form output.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class ResponseSchema:
	"""A schema for structured output from an LLM provider."""

	name: str
	description: str
	json_schema: dict[str, Any] = field(default_factory=dict)

	def validate(self, response_str: str) -> tuple[bool, Optional[dict[str, Any]], Optional[str]]:
		"""
		Parse and validate a response against this schema.

		Returns:
			Tuple of (is_valid, parsed_data, error_message)
		"""
		json_str = extract_json(response_str)
		if json_str is None:
			return False, None, "No JSON object found in response"

		try:
			data = json.loads(json_str)
		except json.JSONDecodeError as e:
			return False, None, f"Invalid JSON: {e}"

		if not isinstance(data, dict):
			return False, None, "Response JSON is not an object"

		# Validate required top-level keys
		required = self.json_schema.get("required", [])
		properties = self.json_schema.get("properties", {})

		for key in required:
			if key not in data:
				return False, data, f"Missing required key: {key}"

		# Validate property types (best-effort)
		for key, prop_schema in properties.items():
			if key in data:
				expected_type = prop_schema.get("type")
				if expected_type and not _check_type(data[key], expected_type):
					return False, data, f"Key '{key}' expected type '{expected_type}', got '{type(data[key]).__name__}'"
				allowed = prop_schema.get("enum")
				if allowed and data[key] not in allowed:
					return False, data, f"Key '{key}' must be one of {allowed}, got '{data[key]}'"

		return True, data, None

	def describe(self) -> str:
		"""Schema as pretty JSON, for embedding in prompts."""
		return json.dumps(self.json_schema, indent=2)


def _check_type(value: Any, expected: str) -> bool:
	"""Check if a value matches the expected JSON schema type."""
	type_map = {
		"string": str,
		"number": (int, float),
		"integer": int,
		"boolean": bool,
		"array": list,
		"object": dict,
	}
	expected_type = type_map.get(expected)
	if expected_type is None:
		return True  # Unknown type, skip validation
	if expected in ("integer", "number") and isinstance(value, bool):
		return False
	return isinstance(value, expected_type)


def extract_json(response: str) -> Optional[str]:
	"""Pull a JSON object out of a response, fenced or raw."""
	fenced = re.search(r"```(?:json)?\s*(.*?)\s*```", response, re.DOTALL)
	if fenced and fenced.group(1).startswith("{"):
		return fenced.group(1)
	start = response.find("{")
	end = response.rfind("}")
	if start == -1 or end <= start:
		return None
	return response[start:end + 1]


# Predefined schemas

CLASSIFICATION_SCHEMA = ResponseSchema(
	name="classification",
	description="Complexity classification of a user query",
	json_schema={
		"type": "object",
		"required": ["complexity", "reasoning"],
		"properties": {
			"complexity": {
				"type": "string",
				"enum": [
					"CRITICAL_COMPLEXITY",
					"HIGH_COMPLEXITY",
					"MODERATE_COMPLEXITY",
					"LOW_COMPLEXITY",
					"MINIMAL_COMPLEXITY",
					"TRIVIAL",
				],
			},
			"reasoning": {"type": "string", "description": "Brief reasoning for the classification"},
		},
	},
)

FEASIBILITY_SCHEMA = ResponseSchema(
	name="feasibility",
	description="Whether a task is possible and what information is missing",
	json_schema={
		"type": "object",
		"required": ["isPossible", "justification"],
		"properties": {
			"isPossible": {"type": "string", "enum": ["YES", "NO"]},
			"justification": {"type": "string"},
			"missingInformation": {
				"type": "string",
				"description": "One clarifying question if essential details are missing, else empty",
			},
		},
	},
)

PLAN_SCHEMA = ResponseSchema(
	name="plan",
	description="Multi-agent execution plan",
	json_schema={
		"type": "object",
		"required": ["task", "agents"],
		"properties": {
			"task": {"type": "string", "description": "The original task description"},
			"agents": {
				"type": "array",
				"items": {
					"type": "object",
					"properties": {
						"type": {"type": "string", "enum": ["research", "document_search", "diagram_analysis", "direct_qa"]},
						"order": {"type": "integer", "description": "Same order = parallel execution"},
						"purpose": {"type": "string"},
						"dependencies": {"type": "array", "items": {"type": "integer"}},
						"query": {"type": "string"},
					},
				},
			},
		},
	},
)

VERDICT_SCHEMA = ResponseSchema(
	name="verdict",
	description="Evaluation council judgement",
	json_schema={
		"type": "object",
		"required": ["judgement", "explanation"],
		"properties": {
			"judgement": {
				"type": "string",
				"enum": ["passed", "hallucination", "not_verified", "not_aligned", "error"],
			},
			"explanation": {"type": "string"},
		},
	},
)

_SCHEMAS: dict[str, ResponseSchema] = {
	"classification": CLASSIFICATION_SCHEMA,
	"feasibility": FEASIBILITY_SCHEMA,
	"plan": PLAN_SCHEMA,
	"verdict": VERDICT_SCHEMA,
}


def get_schema(name: str) -> Optional[ResponseSchema]:
	"""Get a predefined schema by name."""
	return _SCHEMAS.get(name)


def validate_response(
	response_str: str, schema: ResponseSchema,
) -> tuple[bool, Optional[dict[str, Any]], Optional[str]]:
	"""
	Validate a response string against a schema.

	Returns:
		Tuple of (is_valid, parsed_data, error_message)
	"""
	return schema.validate(response_str)
