"""Cost tracking for model round-trips."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# LLM pricing (per 1M tokens) - adjust as needed
DEFAULT_PRICING = {
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1-nano": {"input": 0.10, "output": 0.40},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "default": {"input": 0.50, "output": 1.50},
}


@dataclass
class APICall:
    """Record of a single model round-trip."""

    timestamp: datetime
    model: str
    input_tokens: int
    output_tokens: int
    input_cost: float
    output_cost: float
    duration_ms: float
    tool_calls: int = 0
    finish_reason: str = ""

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def total_cost(self) -> float:
        return self.input_cost + self.output_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "total_cost": round(self.total_cost, 6),
            "duration_ms": round(self.duration_ms, 2),
            "tool_calls": self.tool_calls,
            "finish_reason": self.finish_reason,
        }


@dataclass
class CostSummary:
    """Summary of costs for a session or turn."""

    total_calls: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0
    total_duration_ms: float = 0.0
    total_tool_calls: int = 0

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    def format_human(self) -> str:
        """Format for human display."""
        return (
            f"API Calls: {self.total_calls}\n"
            f"Tokens: {self.total_input_tokens:,} in / {self.total_output_tokens:,} out "
            f"({self.total_tokens:,} total)\n"
            f"Cost: ${self.total_cost:.4f}\n"
            f"Tool Calls: {self.total_tool_calls}\n"
            f"Duration: {self.total_duration_ms / 1000:.2f}s"
        )


class CostTracker:
    """Track API costs and usage statistics."""

    def __init__(self, pricing: Optional[Dict[str, Dict[str, float]]] = None):
        self.pricing = pricing or DEFAULT_PRICING
        self.calls: List[APICall] = []

    def get_pricing(self, model: str) -> Dict[str, float]:
        """Get pricing for a model: exact, then case-insensitive, then longest prefix match."""
        if model in self.pricing:
            return self.pricing[model]
        model_lower = model.lower()
        for key in self.pricing:
            if key.lower() == model_lower:
                return self.pricing[key]
        prefixes = [k for k in self.pricing if k != "default" and model_lower.startswith(k.lower())]
        if prefixes:
            return self.pricing[max(prefixes, key=len)]
        return self.pricing.get("default", {"input": 0.50, "output": 1.50})

    def record_call(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        duration_ms: float,
        tool_calls: int = 0,
        finish_reason: str = "",
    ) -> APICall:
        """Record an API call."""
        pricing = self.get_pricing(model)
        call = APICall(
            timestamp=datetime.now(),
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            input_cost=(input_tokens / 1_000_000) * pricing["input"],
            output_cost=(output_tokens / 1_000_000) * pricing["output"],
            duration_ms=duration_ms,
            tool_calls=tool_calls,
            finish_reason=finish_reason,
        )
        self.calls.append(call)
        return call

    def get_summary(self, since: int = 0) -> CostSummary:
        """Summarize tracked calls, optionally only those from index ``since`` on."""
        summary = CostSummary()
        for call in self.calls[since:]:
            summary.total_calls += 1
            summary.total_input_tokens += call.input_tokens
            summary.total_output_tokens += call.output_tokens
            summary.total_cost += call.total_cost
            summary.total_duration_ms += call.duration_ms
            summary.total_tool_calls += call.tool_calls
        return summary
