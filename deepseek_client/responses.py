"""Chat completion response types and response body handling."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, BinaryIO


class ResponseError(Exception):
    """Raised when a response body cannot be read, parsed or accepted."""


def _object(data: Any, what: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(f"{what}: expected object, got {type(data).__name__}")
    return data


def _get(data: dict, key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif kind is float:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    if not ok:
        raise TypeError(f"field {key!r}: expected {kind.__name__}, got {type(value).__name__}")
    return float(value) if kind is float else value


def _list(data: dict, key: str) -> list:
    return _get(data, key, list, [])


@dataclass
class ToolCallFunction:
    """A function invoked by a tool call."""

    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    """A tool call made by the model."""

    index: int = 0
    id: str = ""
    type: str = ""
    function: ToolCallFunction = field(default_factory=ToolCallFunction)


def _tool_call_from_dict(data: Any) -> ToolCall:
    data = _object(data, "tool call")
    function = _object(data.get("function"), "function")
    return ToolCall(
        index=_get(data, "index", int, 0),
        id=_get(data, "id", str, ""),
        type=_get(data, "type", str, ""),
        function=ToolCallFunction(
            name=_get(function, "name", str, ""),
            arguments=_get(function, "arguments", str, ""),
        ),
    )


@dataclass
class Message:
    """A message generated by the model."""

    role: str = ""
    content: str = ""
    reasoning_content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Message:
        """Parse a message, taking ``reasoning`` when ``reasoning_content`` is empty."""
        data = _object(data, "message")
        reasoning_content = _get(data, "reasoning_content", str, "")
        reasoning = _get(data, "reasoning", str, None)
        if not reasoning_content and reasoning is not None:
            reasoning_content = reasoning
        return cls(
            role=_get(data, "role", str, ""),
            content=_get(data, "content", str, ""),
            reasoning_content=reasoning_content,
            tool_calls=[_tool_call_from_dict(item) for item in _list(data, "tool_calls")],
        )


@dataclass
class Choice:
    """A completion choice generated by the model."""

    index: int = 0
    message: Message = field(default_factory=Message)
    logprobs: Any = None
    finish_reason: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Choice:
        """Parse a choice; log probabilities are kept as decoded."""
        data = _object(data, "choice")
        return cls(
            index=_get(data, "index", int, 0),
            message=Message.from_dict(data.get("message")),
            logprobs=data.get("logprobs"),
            finish_reason=_get(data, "finish_reason", str, ""),
        )


@dataclass
class Usage:
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    prompt_cache_hit_tokens: int = 0
    prompt_cache_miss_tokens: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> Usage:
        """Parse usage counters; missing ones are zero."""
        data = _object(data, "usage")
        return cls(
            prompt_tokens=_get(data, "prompt_tokens", int, 0),
            completion_tokens=_get(data, "completion_tokens", int, 0),
            total_tokens=_get(data, "total_tokens", int, 0),
            prompt_cache_hit_tokens=_get(data, "prompt_cache_hit_tokens", int, 0),
            prompt_cache_miss_tokens=_get(data, "prompt_cache_miss_tokens", int, 0),
        )


@dataclass
class TopLogprobToken:
    """One of the most likely tokens at a position, with its log probability."""

    token: str = ""
    logprob: float = 0.0
    bytes: list[int] | None = None


@dataclass
class ContentToken:
    """A content token with its log probability and the top alternatives."""

    token: str = ""
    logprob: float = 0.0
    bytes: list[int] | None = None
    top_logprobs: list[TopLogprobToken] = field(default_factory=list)


@dataclass
class Logprobs:
    """Log probability information for a choice."""

    content: list[ContentToken] = field(default_factory=list)


@dataclass
class ChatCompletionResponse:
    """A response from the chat completion endpoint."""

    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[Choice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    system_fingerprint: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> ChatCompletionResponse:
        """Parse a decoded response; wrong field types raise ``TypeError``."""
        data = _object(data, "response")
        return cls(
            id=_get(data, "id", str, ""),
            object=_get(data, "object", str, ""),
            created=_get(data, "created", int, 0),
            model=_get(data, "model", str, ""),
            choices=[Choice.from_dict(item) for item in _list(data, "choices")],
            usage=Usage.from_dict(data.get("usage")),
            system_fingerprint=_get(data, "system_fingerprint", str, None),
        )


def api_error_from_body(body: bytes | str) -> ResponseError:
    """Describe an unparsable response body as a ``ResponseError``."""
    if isinstance(body, (bytes, bytearray)):
        text = bytes(body).decode("utf-8", errors="replace")
    else:
        text = str(body)
    if not text:
        return ResponseError("failed to parse response JSON: empty response body")
    if text.startswith("<!DOCTYPE html>"):
        return ResponseError(
            "unexpected HTML response (model may not exist). This is likely an issue with "
            "the how some external servers return html responses for error. Make sure you "
            "are calling the right path or models"
        )
    if '{"error"' in text:
        return ResponseError(f"failed to parse response JSON: {text}")
    return ResponseError(f"failed to parse response JSON: unexpected end of JSON input. {text}")


def validate_chat_completion_response(response: ChatCompletionResponse | None) -> None:
    """Check that a parsed response has an ID and at least one choice."""
    if response is None:
        raise ResponseError("nil response")
    if not response.id:
        raise ResponseError("missing response ID")
    if not response.choices:
        raise ResponseError("no choices in response")


def handle_chat_completion_response(body_stream: BinaryIO) -> ChatCompletionResponse:
    """Read, parse and validate a chat completion response body."""
    try:
        body = body_stream.read()
    except OSError as exc:
        raise ResponseError(f"failed to read response body: {exc}") from exc

    try:
        parsed = ChatCompletionResponse.from_dict(json.loads(body))
    except (ValueError, TypeError) as exc:
        raise api_error_from_body(body) from exc

    try:
        validate_chat_completion_response(parsed)
    except ResponseError as exc:
        raise ResponseError(f"invalid response: {exc}") from exc
    return parsed