"""Tool schema model describing a tool offered to the LLM."""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

EMPTY_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass
class ToolSchema:
    """
    Represents a tool the model may call.

    The input schema is a JSON Schema object. Schemas are converted to each
    provider's function calling format by the LLM adapters.
    """

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=lambda: dict(EMPTY_INPUT_SCHEMA))
    category: str | None = None
    required_permissions: list[str] = field(default_factory=list)

    def to_openai_function(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema or EMPTY_INPUT_SCHEMA,
            },
        }

    def to_anthropic_tool(self) -> dict[str, Any]:
        """Convert to Anthropic Messages API tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema or EMPTY_INPUT_SCHEMA,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
            "category": self.category,
            "required_permissions": self.required_permissions,
        }

    @classmethod
    def from_provider_response(cls, data: dict[str, Any]) -> "ToolSchema":
        """
        Create ToolSchema from a tools provider response item.

        Supports both snake_case and camelCase keys.
        """
        input_schema = data.get("input_schema") or data.get("inputSchema") or data.get("parameters")
        if not isinstance(input_schema, dict):
            logger.debug(f"Tool '{data.get('name')}' has no usable input schema, using empty object schema")
            input_schema = dict(EMPTY_INPUT_SCHEMA)

        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            input_schema=input_schema,
            category=data.get("category"),
            required_permissions=list(data.get("required_permissions") or data.get("requiredPermissions") or []),
        )
