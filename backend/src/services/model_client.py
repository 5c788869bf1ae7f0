"""Streaming client for an OpenAI-compatible chat-completions endpoint.

One call to :meth:`ModelClient.stream_turn` is one planning step: it yields
:class:`TextDelta` events as text arrives and finishes with exactly one
:class:`TurnEnd` carrying the full text and any tool calls the model
requested. Transport and HTTP failures are raised as
:class:`ModelProviderError`; they end the user's turn.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from .config import get_config

logger = logging.getLogger(__name__)


class ModelProviderError(Exception):
    """Raised when the model provider cannot serve a planning step."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCallRequest:
    """A tool call as requested by the model; arguments are still raw JSON."""
    id: str
    name: str
    arguments: str = ""


@dataclass
class TurnEnd:
    content: str = ""
    tool_calls: List[ToolCallRequest] = field(default_factory=list)
    finish_reason: Optional[str] = None


ModelEvent = Union[TextDelta, TurnEnd]


def _status_message(status_code: int, body: str) -> str:
    if status_code in (401, 403):
        return "The model provider rejected the API key. Check your key in Settings."
    if status_code == 429:
        return "Rate limited or quota exceeded - please wait a moment and try again"
    if status_code == 400:
        return f"Model provider returned 400 Bad Request. Details: {body[:200]}"
    if status_code >= 500:
        return "Model provider temporarily unavailable - please try again"
    return f"Model provider error: {status_code}"


class SSEToolCallAccumulator:
    """Folds streamed ``delta`` objects into text and complete tool calls."""

    def __init__(self) -> None:
        self.content = ""
        self.finish_reason: Optional[str] = None
        self._calls: Dict[int, Dict[str, str]] = {}
        self._last_index: Optional[int] = None

    def add_tool_call_delta(self, tc: Dict[str, Any]) -> None:
        idx = tc.get("index")
        if idx is None:
            # Providers that omit the index send each call whole
            known = {c["id"]: i for i, c in self._calls.items() if c["id"]}
            if tc.get("id") and tc["id"] in known:
                idx = known[tc["id"]]
            elif tc.get("id") or self._last_index is None:
                idx = len(self._calls)
            else:
                idx = self._last_index
        self._last_index = idx

        slot = self._calls.setdefault(idx, {"id": "", "name": "", "arguments": ""})
        if tc.get("id"):
            slot["id"] = tc["id"]
        function = tc.get("function") or {}
        if function.get("name"):
            slot["name"] = function["name"]
        if function.get("arguments"):
            arguments = function["arguments"]
            slot["arguments"] += arguments if isinstance(arguments, str) else json.dumps(arguments)

    def tool_calls(self) -> List[ToolCallRequest]:
        return [
            ToolCallRequest(
                id=slot["id"] or f"call_{uuid.uuid4().hex[:12]}",
                name=slot["name"],
                arguments=slot["arguments"],
            )
            for _, slot in sorted(self._calls.items())
        ]


class ModelClient:
    """Chat-completions client bound to one user's key and chosen model."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = (base_url or get_config().model_api_base).rstrip("/")
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    async def stream_turn(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
    ) -> AsyncIterator[ModelEvent]:
        """Run one planning step, streaming its output.

        Raises:
            ModelProviderError: On HTTP errors, timeouts, transport failures
                or an error object inside the stream.
        """
        request_body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": True,
            "max_tokens": self.max_tokens,
        }
        if tools:
            request_body["tools"] = tools
            request_body["tool_choice"] = "auto"

        logger.info(
            f"[REQUEST] model={self.model} messages_count={len(messages)} tools_count={len(tools)}"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=request_body,
                ) as response:
                    if response.status_code >= 400:
                        await response.aread()
                    response.raise_for_status()
                    async for event in self._parse_stream(response.aiter_lines()):
                        yield event

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            body = e.response.text[:500] if e.response.text else "No details"
            logger.error(f"Model provider API error: {status_code} - {body}")
            raise ModelProviderError(_status_message(status_code, body), status_code=status_code) from e
        except httpx.TimeoutException as e:
            logger.error("Model provider timeout")
            raise ModelProviderError("Request timeout - please try again") from e
        except httpx.HTTPError as e:
            logger.error(f"Model provider unreachable: {type(e).__name__}")
            raise ModelProviderError(f"Model provider unreachable: {type(e).__name__}") from e

    async def _parse_stream(self, lines: AsyncIterator[str]) -> AsyncIterator[ModelEvent]:
        acc = SSEToolCallAccumulator()
        chunk_count = 0

        async for line in lines:
            if not line.startswith("data:"):
                continue
            data_str = line[5:].strip()
            if data_str == "[DONE]":
                break

            try:
                data = json.loads(data_str)
            except json.JSONDecodeError:
                logger.warning(f"[SSE] Failed to parse: {data_str[:200]}")
                continue

            if isinstance(data, list):
                data = data[0] if data else {}
            if data.get("error"):
                error = data["error"]
                message = error.get("message") if isinstance(error, dict) else str(error)
                code = error.get("code") if isinstance(error, dict) else None
                raise ModelProviderError(
                    f"Model provider error: {message}",
                    status_code=code if isinstance(code, int) else None,
                )

            chunk_count += 1
            choices = data.get("choices") or []
            if not choices:
                continue

            choice = choices[0]
            delta = choice.get("delta") or {}
            # Later chunks may carry finish_reason=None; keep the first real value
            if choice.get("finish_reason"):
                acc.finish_reason = choice["finish_reason"]

            if delta.get("content"):
                acc.content += delta["content"]
                yield TextDelta(delta["content"])

            for tc in delta.get("tool_calls") or []:
                acc.add_tool_call_delta(tc)

        tool_calls = acc.tool_calls()
        logger.info(
            f"[SSE] stream ended after {chunk_count} chunks: finish_reason={acc.finish_reason} "
            f"content_len={len(acc.content)} tool_calls={len(tool_calls)}"
        )
        yield TurnEnd(content=acc.content, tool_calls=tool_calls, finish_reason=acc.finish_reason)


__all__ = [
    "ModelClient",
    "ModelProviderError",
    "ModelEvent",
    "TextDelta",
    "ToolCallRequest",
    "TurnEnd",
    "SSEToolCallAccumulator",
]
