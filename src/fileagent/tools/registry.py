"""Tool registry: declarations for the model and validated dispatch."""

import inspect
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from ..logger import get_logger, truncate
from ..messages import ToolCall, ToolError, ToolResult, ToolSuccess

_log = get_logger("tools.registry")


class ArgumentValidationError(ValueError):
    """Raw tool arguments did not satisfy the tool's schema."""


def validate_arguments(schema: Type[BaseModel], raw: Any) -> BaseModel:
    """Validate raw model-supplied arguments against a schema.

    ``raw`` may be a mapping, a JSON object string, or None (treated as an
    empty object). Returns the typed arguments or raises
    ArgumentValidationError.
    """
    if raw is None or raw == "":
        raw = {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ArgumentValidationError(f"Arguments are not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ArgumentValidationError(f"Arguments must be an object, got {type(raw).__name__}")
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '(root)'}: {err['msg']}" for err in e.errors()
        )
        raise ArgumentValidationError(f"Invalid arguments: {problems}") from e


@dataclass
class Tool:
    """Definition of a tool that can be called by the LLM."""

    name: str
    description: str
    schema: Type[BaseModel]
    function: Callable

    def to_openai_schema(self) -> Dict[str, Any]:
        """Convert tool to OpenAI-compatible function schema."""
        parameters = self.schema.model_json_schema()
        parameters.pop("title", None)
        for prop in parameters.get("properties", {}).values():
            prop.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    async def execute(self, args: BaseModel) -> Any:
        """Run the executor with validated arguments (sync or async)."""
        if inspect.iscoroutinefunction(self.function):
            return await self.function(args)
        return self.function(args)


class ToolRegistry:
    """Registry for managing available tools."""

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool. Names are unique within a registry."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def tool(self, name: str, description: str, schema: Type[BaseModel]) -> Callable:
        """Decorator to register a function as a tool."""
        def decorator(func: Callable) -> Callable:
            self.register(Tool(name=name, description=description, schema=schema, function=func))
            return func
        return decorator

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def declarations(self) -> List[Dict[str, Any]]:
        """Get all tools in OpenAI-compatible schema."""
        return [tool.to_openai_schema() for tool in self._tools.values()]

    async def dispatch(self, call: ToolCall) -> ToolResult:
        """Validate and execute a tool call. Never raises for tool-level failures."""
        tool = self.get(call.name)
        if tool is None:
            _log.warning("dispatch: unknown tool %r (call_id=%s)", call.name, call.id)
            return ToolResult(
                call_id=call.id,
                name=call.name,
                outcome=ToolError(error=f"Tool '{call.name}' not found"),
            )

        try:
            args = validate_arguments(tool.schema, call.raw_arguments)
        except ArgumentValidationError as e:
            _log.info("dispatch: %s rejected arguments %s: %s",
                      call.name, truncate(call.arguments_json()), e)
            return ToolResult(call_id=call.id, name=call.name, outcome=ToolError(error=str(e)))

        try:
            value = await tool.execute(args)
        except Exception as e:
            _log.exception("dispatch: %s raised", call.name)
            return ToolResult(
                call_id=call.id,
                name=call.name,
                outcome=ToolError(error=f"{type(e).__name__}: {e}"),
            )

        outcome = value if isinstance(value, (ToolSuccess, ToolError)) else ToolSuccess(value=value)
        _log.debug("dispatch: %s call_id=%s outcome=%s", call.name, call.id, outcome.kind)
        return ToolResult(call_id=call.id, name=call.name, outcome=outcome)
