"""Typed input payloads for the known CRM tools.

Tool arguments arrive from the model as free-form JSON objects. They are
validated here, at the registry boundary, into one variant of a tagged union
keyed by tool name. Unknown tools fall back to ``GenericToolInput``.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ToolInputBase(BaseModel):
    """Base class for tool input payloads."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    tool: str = Field(default="", exclude=True)


class SearchDealsInput(ToolInputBase):
    """Filters for the ``search_deals`` tool."""

    tool: Literal["search_deals"] = Field(default="search_deals", exclude=True)
    search_term: str | None = Field(default=None, description="Filter deals by name, description or organization name")
    assigned_to: str | None = Field(default=None, description="User id, email, display name or 'current_user'")
    min_amount: float | None = Field(default=None, ge=0, description="Minimum deal value")
    max_amount: float | None = Field(default=None, ge=0, description="Maximum deal value")
    stage: str | None = Field(default=None, description="Deal stage, e.g. 'Proposal' or 'Closed Won'")
    limit: int = Field(default=20, ge=1, le=200, description="Maximum number of deals to return")


class SearchContactsInput(ToolInputBase):
    """Filters for the ``search_contacts`` tool."""

    tool: Literal["search_contacts"] = Field(default="search_contacts", exclude=True)
    search_term: str | None = Field(default=None, description="Contact name or partial name")
    organization_id: str | None = Field(default=None, description="Restrict to one organization")
    email: str | None = Field(default=None, description="Exact email address")
    phone: str | None = Field(default=None, description="Phone number")
    limit: int = Field(default=30, ge=1, le=200, description="Maximum number of contacts to return")


class SearchOrganizationsInput(ToolInputBase):
    """Filters for the ``search_organizations`` tool."""

    tool: Literal["search_organizations"] = Field(default="search_organizations", exclude=True)
    search_term: str = Field(..., min_length=1, description="Organization name or partial name")
    limit: int = Field(default=20, ge=1, le=200, description="Maximum number of organizations to return")


class GetDetailsInput(ToolInputBase):
    """Lookup of one entity for the ``get_details`` tool."""

    tool: Literal["get_details"] = Field(default="get_details", exclude=True)
    entity_type: Literal["deal", "organization", "contact"] = Field(..., description="Type of entity")
    entity_id: str = Field(..., min_length=1, description="Unique id of the entity")


class ThinkInput(ToolInputBase):
    """Structured reasoning recorded by the ``think`` tool."""

    tool: Literal["think"] = Field(default="think", exclude=True)
    reasoning: str = Field(..., min_length=1, description="Analysis of the request")
    strategy: str = Field(..., min_length=1, description="Planned approach")
    next_steps: str = Field(..., min_length=1, description="Concrete next actions")
    acknowledgment: str | None = Field(default=None, description="Restatement of the user's request")
    concerns: str | None = Field(default=None, description="Risks or open questions")


class GenericToolInput(ToolInputBase):
    """Fallback payload for tools without a dedicated input model."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def arguments(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


ToolInput = Union[
    SearchDealsInput,
    SearchContactsInput,
    SearchOrganizationsInput,
    GetDetailsInput,
    ThinkInput,
    GenericToolInput,
]

KNOWN_TOOL_INPUTS: dict[str, type[ToolInputBase]] = {
    "search_deals": SearchDealsInput,
    "search_contacts": SearchContactsInput,
    "search_organizations": SearchOrganizationsInput,
    "get_details": GetDetailsInput,
    "think": ThinkInput,
}


class ToolInputValidationError(ValueError):
    """Raised when tool arguments do not match the tool's input model."""

    def __init__(self, tool_name: str, errors: list[str]) -> None:
        self.tool_name = tool_name
        self.errors = errors
        super().__init__(f"Invalid input for tool '{tool_name}': {'; '.join(errors)}")


def input_model_for(tool_name: str) -> type[ToolInputBase]:
    """Return the input model registered for a tool name, or the generic fallback."""
    return KNOWN_TOOL_INPUTS.get(tool_name, GenericToolInput)


def parse_tool_input(tool_name: str, arguments: dict[str, Any] | None, model: type[ToolInputBase] | None = None) -> ToolInput:
    """Validate raw tool arguments into the matching payload variant.

    Raises:
        ToolInputValidationError: If the arguments fail validation.
    """
    model = model or input_model_for(tool_name)
    try:
        payload = model.model_validate(arguments or {})
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()]
        raise ToolInputValidationError(tool_name, errors) from e
    if isinstance(payload, GenericToolInput):
        payload.tool = tool_name
    return payload  # type: ignore[return-value]


def input_schema_for(model: type[ToolInputBase]) -> dict[str, Any]:
    """Build the JSON schema advertised to the model for an input payload."""
    schema = model.model_json_schema()
    schema.get("properties", {}).pop("tool", None)
    schema.pop("title", None)
    if model is GenericToolInput:
        schema.pop("additionalProperties", None)
    return schema
