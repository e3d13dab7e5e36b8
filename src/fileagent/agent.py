"""Step-bounded agent loop: stream a model step, dispatch its tool calls, repeat."""

import time
from typing import AsyncIterator, List, Optional

from .config import Config
from .cost_tracker import CostTracker
from .logger import get_logger, log_dispatch, log_step, truncate
from .messages import (
    ConversationHistory,
    Message,
    StepFinish,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolResult,
    ToolResultEvent,
    TurnFinish,
)
from .prompts import get_system_prompt
from .streaming_client import StreamingChatClient
from .tools import ToolRegistry, build_default_registry

_log = get_logger("agent")


class Session:
    """Conversation history plus the step counter of the current outer turn."""

    def __init__(self, system_prompt: Optional[str] = None):
        self.history = ConversationHistory()
        if system_prompt:
            self.history.append(Message.system(system_prompt))
        self.step = 0
        self.turns = 0

    def begin_turn(self, user_input: str) -> None:
        """Append the user's message and reset the step counter."""
        self.history.append(Message.user(user_input))
        self.step = 0
        self.turns += 1

    def last_assistant_text(self) -> str:
        for message in reversed(self.history.messages):
            if message.role == "assistant" and message.content:
                return message.content
        return ""


class Agent:
    """Runs outer turns against a model client and a tool registry.

    ``client`` is anything with an async ``stream(messages, tools)`` generator
    of stream events. When omitted, a StreamingChatClient is opened per turn
    from ``config``.
    """

    def __init__(
        self,
        config: Config,
        registry: Optional[ToolRegistry] = None,
        client=None,
        cost_tracker: Optional[CostTracker] = None,
        max_steps: Optional[int] = None,
    ):
        self.config = config
        self.registry = registry or build_default_registry(config.workspace_path, config.max_read_bytes)
        self.client = client
        self.cost_tracker = cost_tracker or CostTracker()
        self.max_steps = max_steps or config.max_steps

    def new_session(self) -> Session:
        return Session(get_system_prompt(str(self.config.workspace_path)))

    async def run_turn(self, session: Session, user_input: str) -> AsyncIterator[StreamEvent]:
        """Run one outer turn, yielding events as they happen."""
        session.begin_turn(user_input)
        _log.info("turn %d start: input=%s", session.turns, truncate(user_input))
        if self.client is not None:
            async for event in self._loop(session, self.client):
                yield event
            return
        async with StreamingChatClient.from_config(self.config) as client:
            async for event in self._loop(session, client):
                yield event

    async def run(self, prompt: str, session: Optional[Session] = None) -> str:
        """Single-shot convenience: run one turn and return the final assistant text."""
        session = session or self.new_session()
        async for _ in self.run_turn(session, prompt):
            pass
        return session.last_assistant_text()

    async def _loop(self, session: Session, client) -> AsyncIterator[StreamEvent]:
        declarations = self.registry.declarations()

        while True:
            step = session.step + 1
            log_step(_log, session.turns, step, self.max_steps, "invoke", history=len(session.history))

            text_parts: List[str] = []
            calls: List[ToolCall] = []
            finish = StepFinish(step=step)
            t0 = time.perf_counter()

            # Nothing is appended to history until the stream completes.
            async for event in client.stream(list(session.history.messages), declarations):
                if isinstance(event, TextDelta):
                    text_parts.append(event.text)
                    yield event
                elif isinstance(event, ToolCallEvent):
                    calls.append(event.to_call())
                    yield event
                elif isinstance(event, StepFinish):
                    finish = StepFinish(step=step, finish_reason=event.finish_reason, usage=event.usage)

            duration_ms = (time.perf_counter() - t0) * 1000
            self.cost_tracker.record_call(
                model=self.config.model,
                input_tokens=finish.usage.get("prompt_tokens", 0),
                output_tokens=finish.usage.get("completion_tokens", 0),
                duration_ms=duration_ms,
                tool_calls=len(calls),
                finish_reason=finish.finish_reason,
            )
            log_step(_log, session.turns, step, self.max_steps, "streamed",
                     text_len=sum(len(t) for t in text_parts), tools=[c.name for c in calls],
                     finish=finish.finish_reason, ms=duration_ms)

            results: List[ToolResult] = []
            for call in calls:
                t_call = time.perf_counter()
                result = await self.registry.dispatch(call)
                log_dispatch(_log, result, (time.perf_counter() - t_call) * 1000)
                results.append(result)
                yield ToolResultEvent(result=result)

            session.history.append(Message.assistant("".join(text_parts), tuple(calls)))
            session.history.extend(Message.tool(r) for r in results)
            yield finish

            session.step += 1
            if not calls:
                log_step(_log, session.turns, session.step, self.max_steps, "done")
                yield TurnFinish(steps=session.step)
                return
            if session.step >= self.max_steps:
                log_step(_log, session.turns, session.step, self.max_steps, "limit", tool_results=len(results))
                yield TurnFinish(steps=session.step, hit_step_limit=True)
                return
