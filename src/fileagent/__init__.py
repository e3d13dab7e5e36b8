"""Tool-calling file agent: a model reads, lists and edits files in a project directory."""

from .agent import Agent, Session
from .config import Config
from .cost_tracker import CostTracker, CostSummary
from .messages import (
    ConversationHistory,
    Message,
    StepFinish,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolError,
    ToolResult,
    ToolResultEvent,
    ToolSuccess,
    TurnFinish,
)
from .prompts import get_system_prompt
from .renderer import StreamRenderer
from .streaming_client import ModelError, StreamingChatClient
from .tools import ToolRegistry, build_default_registry

__version__ = "0.1.0"
__all__ = [
    "Agent",
    "Session",
    "Config",
    "CostTracker",
    "CostSummary",
    "ConversationHistory",
    "Message",
    "StepFinish",
    "StreamEvent",
    "TextDelta",
    "ToolCall",
    "ToolCallEvent",
    "ToolError",
    "ToolResult",
    "ToolResultEvent",
    "ToolSuccess",
    "TurnFinish",
    "get_system_prompt",
    "StreamRenderer",
    "ModelError",
    "StreamingChatClient",
    "ToolRegistry",
    "build_default_registry",
]
