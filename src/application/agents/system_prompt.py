"""System prompt assembly.

The instruction text sent with every generation call is a pure function of
the persona prompt and the tool schemas offered in that call. It is rebuilt
for every turn so a changed tool set is always reflected.
"""

from domain.models.tool import ToolSchema

NO_TOOLS_INSTRUCTION = (
    "## FINAL ANSWER\n\n"
    "You have already received all tool results for this request. "
    "Respond to the user now using the information above, without requesting further tools. "
    "If some information could not be retrieved, say so plainly."
)


def _describe_tool(tool: ToolSchema) -> str:
    properties = (tool.input_schema or {}).get("properties") or {}
    required = set((tool.input_schema or {}).get("required") or [])
    line = f"- **{tool.name}**: {tool.description.strip()}"
    if properties:
        params = ", ".join(f"{name}{'' if name in required else '?'}" for name in properties)
        line += f" Parameters: {params}."
    return line


def build_system_prompt(tool_schemas: list[ToolSchema], base_prompt: str, allow_tools: bool = True) -> str:
    """Build the system prompt for one generation call.

    Args:
        tool_schemas: Tools available to the caller for this turn
        base_prompt: Persona and general instructions
        allow_tools: False for the final synthesis call, which must answer without tools

    Returns:
        The assembled instruction text
    """
    sections = [base_prompt.strip()]

    if tool_schemas:
        tool_lines = "\n".join(_describe_tool(tool) for tool in sorted(tool_schemas, key=lambda t: t.name))
        sections.append(f"## AVAILABLE TOOLS\n\n{tool_lines}")
    else:
        sections.append("## AVAILABLE TOOLS\n\nNo tools are available. Answer from the conversation alone.")

    if not allow_tools:
        sections.append(NO_TOOLS_INSTRUCTION)

    return "\n\n".join(sections)
