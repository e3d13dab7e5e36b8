"""Conversation data model: messages, tool calls, tool results and stream events."""

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class ToolCall:
    """A model-requested invocation of a declared tool."""

    id: str
    name: str
    raw_arguments: Any = None

    def arguments_json(self) -> str:
        """Arguments in the wire form the model produced (a JSON string)."""
        if isinstance(self.raw_arguments, str):
            return self.raw_arguments
        return json.dumps(self.raw_arguments if self.raw_arguments is not None else {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json()},
        }


@dataclass(frozen=True)
class Message:
    """A chat message. Never mutated once it is in a history."""

    role: str
    content: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: Tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content or None, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, result: "ToolResult") -> "Message":
        return cls(role="tool", content=result.to_message(), tool_call_id=result.call_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a chat-completions compatible dictionary."""
        result: Dict[str, Any] = {"role": self.role}
        if self.content is not None or not self.tool_calls:
            result["content"] = self.content if self.content is not None else ""
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            result["tool_call_id"] = self.tool_call_id
        return result


class ToolSuccess(BaseModel):
    """Successful tool outcome carrying a tool-specific value."""

    kind: Literal["success"] = "success"
    value: Any = None


class ToolError(BaseModel):
    """Failed tool outcome. ``details`` is merged into the payload the model sees."""

    kind: Literal["error"] = "error"
    error: str
    details: Dict[str, Any] = Field(default_factory=dict)


ToolOutcome = Union[ToolSuccess, ToolError]


class ToolResult(BaseModel):
    """Result of dispatching one ToolCall. Always produced, never raised."""

    call_id: str
    name: str
    outcome: ToolOutcome = Field(discriminator="kind")

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, ToolSuccess)

    def to_payload(self) -> Any:
        """The structured payload handed back to the model."""
        if isinstance(self.outcome, ToolSuccess):
            return self.outcome.value
        return {"error": self.outcome.error, **self.outcome.details}

    def to_message(self) -> str:
        """Convert result to a message string for the LLM."""
        return json.dumps(self.to_payload(), default=str)


class ConversationHistory:
    """Ordered, append-only sequence of messages."""

    def __init__(self, messages: Optional[List[Message]] = None):
        self._messages: List[Message] = []
        for message in messages or []:
            self.append(message)

    def append(self, message: Message) -> None:
        if message.role == "system" and any(m.role == "system" for m in self._messages):
            raise ValueError("History already has a system message")
        self._messages.append(message)

    def extend(self, messages) -> None:
        for message in messages:
            self.append(message)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index):
        return self._messages[index]

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)


# ── Stream events ────────────────────────────────────────────


@dataclass(frozen=True)
class TextDelta:
    """A fragment of assistant text, in the order the model emitted it."""

    type: ClassVar[str] = "text-delta"
    text: str


@dataclass(frozen=True)
class ToolCallEvent:
    """The model has requested a tool call."""

    type: ClassVar[str] = "tool-call"
    id: str
    name: str
    arguments: Any = None

    def to_call(self) -> ToolCall:
        return ToolCall(id=self.id, name=self.name, raw_arguments=self.arguments)


@dataclass(frozen=True)
class ToolResultEvent:
    """A tool call has been dispatched and produced a result."""

    type: ClassVar[str] = "tool-result"
    result: ToolResult


@dataclass(frozen=True)
class StepFinish:
    """One model round-trip has finished streaming."""

    type: ClassVar[str] = "step-finish"
    step: int = 0
    finish_reason: str = "stop"
    usage: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class TurnFinish:
    """The outer turn is done."""

    type: ClassVar[str] = "turn-finish"
    steps: int
    hit_step_limit: bool = False


StreamEvent = Union[TextDelta, ToolCallEvent, ToolResultEvent, StepFinish, TurnFinish]
