"""Streaming chat-completions client with native tool calling."""

import asyncio
import json
import time
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .config import Config
from .logger import get_logger
from .messages import Message, StepFinish, StreamEvent, TextDelta, ToolCallEvent

_log = get_logger("streaming")

RETRYABLE_STATUS = (429, 500, 502, 503)


class ModelError(RuntimeError):
    """The model could not be reached or produced an unusable stream."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _parse_arguments(raw: str) -> Any:
    """Decode streamed tool arguments; keep the raw text when it is not a JSON object."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    return parsed if isinstance(parsed, dict) else raw


def normalize_usage(usage: Dict[str, Any]) -> Dict[str, int]:
    """Normalize OpenAI-compatible usage payloads to prompt/completion/total tokens."""
    if not isinstance(usage, dict):
        return {}
    out: Dict[str, int] = {}
    for key in ("prompt_tokens", "completion_tokens", "total_tokens", "input_tokens", "output_tokens"):
        value = usage.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            out[key] = int(value)

    # Some providers return input/output instead of prompt/completion.
    if "prompt_tokens" not in out and "input_tokens" in out:
        out["prompt_tokens"] = out["input_tokens"]
    if "completion_tokens" not in out and "output_tokens" in out:
        out["completion_tokens"] = out["output_tokens"]
    out.pop("input_tokens", None)
    out.pop("output_tokens", None)
    if "total_tokens" not in out and ("prompt_tokens" in out or "completion_tokens" in out):
        out["total_tokens"] = out.get("prompt_tokens", 0) + out.get("completion_tokens", 0)
    return out


class StreamingChatClient:
    """LLM client that turns a streamed chat completion into stream events.

    Use as an async context manager::

        async with StreamingChatClient.from_config(config) as client:
            async for event in client.stream(messages, tools):
                ...
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4.1-mini",
        temperature: float = 0.2,
        max_tokens: int = 4096,
        max_retries: int = 5,
        retry_base_delay: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "StreamingChatClient":
        return cls(
            api_key=config.api_key,
            base_url=config.api_url,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            **kwargs,
        )

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(600.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
        self._client = None

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(self, messages: List[Message], tools: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    async def stream(
        self,
        messages: List[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one model round-trip.

        Yields TextDelta events as content arrives, then one ToolCallEvent per
        requested call (in the order the model indexed them), then StepFinish.
        Transient failures are retried only before the first event is yielded;
        anything later raises ModelError.
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, tools)
        _log.info("stream: url=%s model=%s msgs=%d tools=%d",
                  url, self.model, len(messages), len(tools or []))

        last_error: Optional[BaseException] = None
        for attempt in range(self.max_retries + 1):
            produced = False
            t0 = time.time()
            try:
                async with self._client.stream(
                    "POST", url, headers=self._get_headers(), json=payload
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        error = ModelError(
                            f"API error {response.status_code}: {body[:2000]}",
                            status_code=response.status_code,
                        )
                        if response.status_code not in RETRYABLE_STATUS or attempt >= self.max_retries:
                            raise error
                        last_error = error
                    else:
                        async for event in self._iter_events(response):
                            produced = True
                            yield event
                        _log.info("stream complete: attempt=%d elapsed=%.1fs", attempt + 1, time.time() - t0)
                        return
            except (httpx.TimeoutException, httpx.RequestError) as e:
                if produced or attempt >= self.max_retries:
                    raise ModelError(f"Request failed: {type(e).__name__}: {e}") from e
                last_error = e

            wait = min(self.retry_base_delay * (2 ** attempt), 60)
            _log.warning("Retrying in %.1fs (attempt %d/%d) reason=%s",
                         wait, attempt + 1, self.max_retries, last_error)
            await asyncio.sleep(wait)

        raise ModelError(f"Failed after {self.max_retries} retries: {last_error}")

    async def _iter_events(self, response: httpx.Response) -> AsyncIterator[StreamEvent]:
        """Parse server-sent events from a chat completions stream."""
        tool_calls_data: Dict[int, Dict[str, str]] = {}
        finish_reason = "stop"
        usage: Dict[str, int] = {}

        async for line in response.aiter_lines():
            line = line.strip()
            if not line.startswith("data:"):
                continue
            data_str = line[5:].strip()
            if data_str == "[DONE]":
                break
            try:
                data = json.loads(data_str)
            except json.JSONDecodeError:
                _log.debug("skipping undecodable chunk: %s", data_str[:200])
                continue

            if data.get("error"):
                raise ModelError(f"Stream error: {data['error']}")
            if data.get("usage"):
                usage = normalize_usage(data["usage"])

            choices = data.get("choices") or []
            if not choices:
                continue
            choice = choices[0]
            delta = choice.get("delta") or {}

            content = delta.get("content")
            if content:
                yield TextDelta(text=content)

            for tc in delta.get("tool_calls") or []:
                idx = tc.get("index", 0)
                entry = tool_calls_data.setdefault(idx, {"id": "", "name": "", "arguments": ""})
                if tc.get("id"):
                    entry["id"] = tc["id"]
                fn = tc.get("function") or {}
                if fn.get("name"):
                    entry["name"] = fn["name"]
                if fn.get("arguments"):
                    entry["arguments"] += fn["arguments"]

            if choice.get("finish_reason"):
                finish_reason = choice["finish_reason"]

        for idx in sorted(tool_calls_data):
            entry = tool_calls_data[idx]
            yield ToolCallEvent(
                id=entry["id"] or f"call_{idx}",
                name=entry["name"],
                arguments=_parse_arguments(entry["arguments"]),
            )
        yield StepFinish(finish_reason=finish_reason, usage=usage)
