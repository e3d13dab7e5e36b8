"""Tests for the step-bounded agent loop, driven by a scripted model."""

import asyncio
import json
import os
import sys

import pytest
from pydantic import BaseModel

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from fileagent.agent import Agent, Session
from fileagent.config import Config
from fileagent.messages import (
    StepFinish,
    TextDelta,
    ToolCallEvent,
    ToolResultEvent,
    TurnFinish,
)
from fileagent.streaming_client import ModelError
from fileagent.tools import ToolRegistry, build_default_registry


class ScriptedClient:
    """Plays back one list of events per model round-trip."""

    def __init__(self, steps, repeat_last=False):
        self.steps = list(steps)
        self.repeat_last = repeat_last
        self.calls = 0
        self.seen_histories = []

    async def stream(self, messages, tools):
        self.seen_histories.append([m.to_dict() for m in messages])
        idx = self.calls
        self.calls += 1
        if idx >= len(self.steps):
            if not self.repeat_last:
                raise AssertionError("model invoked more often than scripted")
            idx = len(self.steps) - 1
        for event in self.steps[idx]:
            if isinstance(event, Exception):
                raise event
            yield event
            await asyncio.sleep(0)


def _config(tmp_path, **kwargs) -> Config:
    return Config(api_url="http://test.invalid", api_key="k", model="m", workspace_path=tmp_path, **kwargs)


def _collect(agent, session, text):
    async def go():
        return [event async for event in agent.run_turn(session, text)]
    return asyncio.run(go())


class TestTextOnlyTurn:
    def test_single_step_and_history(self, tmp_path):
        client = ScriptedClient([[TextDelta("Hel"), TextDelta("lo"), StepFinish(finish_reason="stop")]])
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()

        events = _collect(agent, session, "hi")

        assert [e.text for e in events if isinstance(e, TextDelta)] == ["Hel", "lo"]
        assert isinstance(events[-1], TurnFinish)
        assert events[-1].steps == 1 and not events[-1].hit_step_limit
        roles = [m.role for m in session.history]
        assert roles == ["system", "user", "assistant"]
        assert session.history[-1].content == "Hello"
        assert client.calls == 1


class TestToolTurn:
    def test_tool_call_then_answer(self, tmp_path):
        (tmp_path / "notes.txt").write_text("remember the milk", encoding="utf-8")
        client = ScriptedClient([
            [ToolCallEvent(id="call_1", name="read_file", arguments={"path": "notes.txt"}), StepFinish(finish_reason="tool_calls")],
            [TextDelta("It says to remember the milk."), StepFinish()],
        ])
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()

        events = _collect(agent, session, "what is in notes.txt?")

        kinds = [type(e).__name__ for e in events]
        assert kinds == [
            "ToolCallEvent", "ToolResultEvent", "StepFinish",
            "TextDelta", "StepFinish", "TurnFinish",
        ]
        roles = [m.role for m in session.history]
        assert roles == ["system", "user", "assistant", "tool", "assistant"]
        tool_msg = session.history[3]
        assert tool_msg.tool_call_id == "call_1"
        assert json.loads(tool_msg.content)["content"] == "remember the milk"

        # The second model call saw the resolved tool call.
        second = client.seen_histories[1]
        assert second[2]["tool_calls"][0]["id"] == "call_1"
        assert second[3] == {"role": "tool", "content": tool_msg.content, "tool_call_id": "call_1"}

    def test_results_appended_in_request_order(self, tmp_path):
        class SlowArgs(BaseModel):
            delay: float

        registry = ToolRegistry()

        @registry.tool("wait", "Sleep then report.", SlowArgs)
        async def wait(args: SlowArgs):
            await asyncio.sleep(args.delay)
            return {"slept": args.delay}

        client = ScriptedClient([
            [
                ToolCallEvent(id="A", name="wait", arguments={"delay": 0.05}),
                ToolCallEvent(id="B", name="wait", arguments={"delay": 0.0}),
                StepFinish(finish_reason="tool_calls"),
            ],
            [TextDelta("done"), StepFinish()],
        ])
        agent = Agent(_config(tmp_path), registry=registry, client=client)
        session = agent.new_session()
        _collect(agent, session, "go")

        assistant = session.history[2]
        assert [c.id for c in assistant.tool_calls] == ["A", "B"]
        assert [m.tool_call_id for m in session.history.messages[3:5]] == ["A", "B"]

    def test_failing_tool_does_not_stop_others(self, tmp_path):
        client = ScriptedClient([
            [
                ToolCallEvent(id="1", name="list_files", arguments={"path": ".git"}),
                ToolCallEvent(id="2", name="hallucinated_tool", arguments={}),
                ToolCallEvent(id="3", name="edit_file", arguments={"path": "x.txt", "old_str": "", "new_str": "made"}),
                StepFinish(finish_reason="tool_calls"),
            ],
            [TextDelta("ok"), StepFinish()],
        ])
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()
        events = _collect(agent, session, "do things")

        results = [e.result for e in events if isinstance(e, ToolResultEvent)]
        assert [r.ok for r in results] == [False, False, True]
        assert (tmp_path / "x.txt").read_text(encoding="utf-8") == "made"

    def test_malformed_arguments_become_error_result(self, tmp_path):
        client = ScriptedClient([
            [ToolCallEvent(id="1", name="read_file", arguments="{not json"), StepFinish()],
            [TextDelta("sorry"), StepFinish()],
        ])
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()
        _collect(agent, session, "read")
        payload = json.loads(session.history[3].content)
        assert "not valid JSON" in payload["error"]


class TestStepBound:
    def test_never_exceeds_five_round_trips(self, tmp_path):
        looping = [ToolCallEvent(id="c", name="list_files", arguments={}), StepFinish(finish_reason="tool_calls")]
        client = ScriptedClient([looping], repeat_last=True)
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()

        events = _collect(agent, session, "list forever")

        assert client.calls == 5
        assert events[-1] == TurnFinish(steps=5, hit_step_limit=True)
        # Every requested call was answered before stopping.
        calls = sum(len(m.tool_calls) for m in session.history if m.role == "assistant")
        answers = sum(1 for m in session.history if m.role == "tool")
        assert calls == answers == 5

    def test_configured_bound(self, tmp_path):
        looping = [ToolCallEvent(id="c", name="list_files", arguments={}), StepFinish()]
        client = ScriptedClient([looping], repeat_last=True)
        agent = Agent(_config(tmp_path, max_steps=2), client=client)
        _collect(agent, agent.new_session(), "go")
        assert client.calls == 2

    def test_counter_resets_each_turn(self, tmp_path):
        looping = [ToolCallEvent(id="c", name="list_files", arguments={}), StepFinish()]
        client = ScriptedClient([looping], repeat_last=True)
        agent = Agent(_config(tmp_path, max_steps=3), client=client)
        session = agent.new_session()

        _collect(agent, session, "first")
        assert session.step == 3
        _collect(agent, session, "second")
        assert session.step == 3
        assert client.calls == 6
        assert [m.content for m in session.history if m.role == "user"] == ["first", "second"]


class TestTransportFailure:
    def test_failed_stream_leaves_history_untouched(self, tmp_path):
        client = ScriptedClient([[TextDelta("partial"), ModelError("connection reset")]])
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()

        with pytest.raises(ModelError):
            _collect(agent, session, "hello")

        assert [m.role for m in session.history] == ["system", "user"]

    def test_session_usable_after_failure(self, tmp_path):
        client = ScriptedClient([
            [ModelError("503")],
            [TextDelta("back"), StepFinish()],
        ])
        agent = Agent(_config(tmp_path), client=client)
        session = agent.new_session()
        with pytest.raises(ModelError):
            _collect(agent, session, "one")
        _collect(agent, session, "two")
        assert [m.role for m in session.history] == ["system", "user", "user", "assistant"]


class TestSingleShot:
    def test_run_returns_final_text_and_tracks_cost(self, tmp_path):
        client = ScriptedClient([
            [ToolCallEvent(id="1", name="edit_file", arguments={"path": "hello.py", "old_str": "", "new_str": "print(1)\n"}),
             StepFinish(usage={"prompt_tokens": 100, "completion_tokens": 20})],
            [TextDelta("Created hello.py"), StepFinish(usage={"prompt_tokens": 150, "completion_tokens": 5})],
        ])
        agent = Agent(_config(tmp_path), client=client)
        text = asyncio.run(agent.run("create hello.py"))
        assert text == "Created hello.py"
        assert (tmp_path / "hello.py").read_text(encoding="utf-8") == "print(1)\n"
        summary = agent.cost_tracker.get_summary()
        assert summary.total_calls == 2
        assert summary.total_input_tokens == 250
        assert summary.total_tool_calls == 1


class TestSession:
    def test_system_prompt_once(self):
        session = Session("sys")
        with pytest.raises(ValueError):
            session.history.append(session.history[0])

    def test_default_registry_bound_to_workspace(self, tmp_path):
        agent = Agent(_config(tmp_path))
        assert sorted(agent.registry.names()) == ["edit_file", "list_files", "read_file"]
        assert build_default_registry(tmp_path).get("read_file") is not None
