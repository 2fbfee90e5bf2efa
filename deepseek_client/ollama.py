"""Chat completions against a local Ollama server, including image messages."""

from __future__ import annotations

import base64
import binascii
import json
import re
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Iterator

from deepseek_client.images import (
    ChatCompletionMessageWithImage,
    ChatCompletionRequestWithImage,
    ContentItem,
    StreamChatCompletionRequestWithImage,
)
from deepseek_client.request_builder import AuthedRequest, RequestBuildError
from deepseek_client.responses import ChatCompletionResponse, Choice, Message, Usage
from deepseek_client.transport import SendError, send_request

DEFAULT_BASE_URL = "http://localhost:11434"
TAGS_PATH = "/api/tags"
CHAT_PATH = "/api/chat"
STREAM_CHAT_PATH = "/api/chat/"
RUNNING_CHECK_TIMEOUT = 2.0

_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


class OllamaError(Exception):
    """Raised when talking to the Ollama server or converting its data fails."""


@dataclass
class OllamaMessage:
    """A chat message in the form the Ollama server expects."""

    role: str = ""
    content: str = ""
    images: list[bytes] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; images are base64 encoded and left out when absent."""
        result: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.images:
            result["images"] = [base64.b64encode(image).decode("ascii") for image in self.images]
        return result


def _field(data: dict, key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    if not ok:
        raise TypeError(f"field {key!r}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def _message_from_dict(data: Any) -> OllamaMessage:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise TypeError(f"message: expected object, got {type(data).__name__}")
    images = []
    for item in _field(data, "images", list, []):
        if not isinstance(item, str):
            raise TypeError(f"image: expected str, got {type(item).__name__}")
        images.append(base64.b64decode(item, validate=True))
    return OllamaMessage(
        role=_field(data, "role", str, ""),
        content=_field(data, "content", str, ""),
        images=images,
    )


@dataclass
class OllamaStreamResponse:
    """One line of a streamed Ollama chat response."""

    model: str = ""
    created_at: str = ""
    message: OllamaMessage = field(default_factory=OllamaMessage)
    done: bool = False
    done_reason: str = ""
    total_duration: int = 0
    load_duration: int = 0
    prompt_eval_count: int = 0
    prompt_eval_duration: int = 0
    eval_count: int = 0
    eval_duration: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> OllamaStreamResponse:
        """Parse a decoded stream line; wrong field types raise ``TypeError``."""
        if not isinstance(data, dict):
            raise TypeError(f"expected object, got {type(data).__name__}")
        return cls(
            model=_field(data, "model", str, ""),
            created_at=_field(data, "created_at", str, ""),
            message=_message_from_dict(data.get("message")),
            done=_field(data, "done", bool, False),
            done_reason=_field(data, "done_reason", str, ""),
            total_duration=_field(data, "total_duration", int, 0),
            load_duration=_field(data, "load_duration", int, 0),
            prompt_eval_count=_field(data, "prompt_eval_count", int, 0),
            prompt_eval_duration=_field(data, "prompt_eval_duration", int, 0),
            eval_count=_field(data, "eval_count", int, 0),
            eval_duration=_field(data, "eval_duration", int, 0),
        )


class OllamaStream:
    """Reads a streamed Ollama chat response chunk by chunk."""

    def __init__(self, response: BinaryIO) -> None:
        self._response = response

    def recv(self) -> dict[str, Any]:
        """Return the next chunk; raise ``EOFError`` when the stream has ended."""
        while True:
            try:
                raw = self._response.readline()
            except (OSError, ValueError) as exc:
                raise OllamaError(f"error reading stream: {exc}") from exc
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8", errors="replace")
            if not raw.endswith("\n"):
                raise EOFError("end of stream")

            line = raw.strip()
            if not line:
                continue

            try:
                parsed = OllamaStreamResponse.from_dict(json.loads(line))
            except (ValueError, TypeError, binascii.Error) as exc:
                raise OllamaError(f"unmarshal error: {exc}, raw data: {line}") from exc

            if parsed.done and not parsed.message.content:
                raise EOFError("end of stream")

            return {
                "model": parsed.model,
                "choices": [
                    {
                        "index": 0,
                        "delta": {
                            "content": parsed.message.content,
                            "role": parsed.message.role,
                        },
                        "finish_reason": parsed.done_reason,
                    }
                ],
            }

    def __iter__(self) -> Iterator[dict[str, Any]]:
        while True:
            try:
                yield self.recv()
            except EOFError:
                return

    def close(self) -> None:
        """Close the underlying response."""
        try:
            self._response.close()
        except OSError as exc:
            raise OllamaError(f"failed to close response body: {exc}") from exc

    def __enter__(self) -> OllamaStream:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def is_ollama_running(url: str = DEFAULT_BASE_URL + TAGS_PATH) -> bool:
    """Return whether the server at ``url`` answers with 200 OK."""
    try:
        with urllib.request.urlopen(url, timeout=RUNNING_CHECK_TIMEOUT) as response:
            return response.status == 200
    except (OSError, ValueError, urllib.error.URLError):
        return False
    except Exception:  # http.client errors on broken responses
        return False


def _image_bytes(url: str) -> bytes:
    parts = url.split(",")
    if len(parts) != 2:
        raise OllamaError("invalid image URL format")
    try:
        return base64.b64decode(parts[1], validate=True)
    except (binascii.Error, ValueError) as exc:
        raise OllamaError(f"error decoding to base64 {exc}") from exc


def _convert_message(message: ChatCompletionMessageWithImage) -> OllamaMessage:
    content = message.content
    if isinstance(content, str):
        return OllamaMessage(role=message.role, content=content)
    if isinstance(content, list) and all(isinstance(item, ContentItem) for item in content):
        texts: list[str] = []
        images: list[bytes] = []
        for item in content:
            if item.type == "text":
                texts.append(item.text)
            elif item.type == "image_url" and item.image is not None:
                if isinstance(item.image.url, str):
                    images.append(_image_bytes(item.image.url))
        return OllamaMessage(role=message.role, content="\n".join(texts), images=images)
    raise OllamaError(f"unsupported content type: {type(content).__name__}")


def convert_messages_with_image(
    messages: list[ChatCompletionMessageWithImage],
) -> list[OllamaMessage]:
    """Convert messages that may carry data-URL images to Ollama messages."""
    return [_convert_message(message) for message in messages]


def _unix_time(text: str) -> int:
    if not text:
        return 0
    match = _RFC3339.match(text)
    if match is None:
        raise OllamaError(f"invalid created_at timestamp: {text!r}")
    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    zone = match.group(8)
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        tz = timezone(sign * timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6])))
    try:
        moment = datetime(year, month, day, hour, minute, second, tzinfo=tz)
    except ValueError as exc:
        raise OllamaError(f"invalid created_at timestamp: {text!r}") from exc
    return int(moment.timestamp())


def chat_response_to_completion(data: dict[str, Any]) -> ChatCompletionResponse:
    """Convert a decoded Ollama chat response to a chat completion response."""
    try:
        parsed = OllamaStreamResponse.from_dict(data)
    except (TypeError, ValueError, binascii.Error) as exc:
        raise OllamaError(f"invalid Ollama response: {exc}") from exc
    return ChatCompletionResponse(
        model=parsed.model,
        created=_unix_time(parsed.created_at),
        choices=[
            Choice(
                message=Message(role=parsed.message.role, content=parsed.message.content),
                finish_reason=parsed.done_reason,
            )
        ],
        usage=Usage(total_tokens=parsed.prompt_eval_count + parsed.eval_count),
    )


def _status_of(response: Any) -> int:
    status = getattr(response, "status", None)
    if status is None:
        status = getattr(response, "code", 0)
    return int(status or 0)


def _error_text(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace")
    try:
        decoded = json.loads(text)
    except ValueError:
        return text
    if isinstance(decoded, dict) and isinstance(decoded.get("error"), str):
        return decoded["error"]
    return text


def _ensure_running(base_url: str) -> None:
    if not is_ollama_running(base_url + TAGS_PATH):
        raise OllamaError("Ollama server is not running")


def create_ollama_chat_completion_with_image(
    request: ChatCompletionRequestWithImage | None,
    base_url: str = DEFAULT_BASE_URL,
) -> ChatCompletionResponse:
    """Send a non-streamed chat request, images included, to the Ollama server."""
    _ensure_running(base_url)
    if request is None:
        raise OllamaError("request cannot be nil")

    try:
        messages = convert_messages_with_image(request.messages)
    except OllamaError as exc:
        raise OllamaError(f"error converting messages: {exc}") from exc

    body = json.dumps(
        {
            "model": request.model,
            "messages": [message.to_dict() for message in messages],
            "stream": False,
        }
    ).encode("utf-8")
    http_request = urllib.request.Request(
        base_url + CHAT_PATH,
        data=body,
        method="POST",
        headers={"Content-Type": "application/json", "Accept": "application/json"},
    )
    try:
        response = send_request(http_request)
    except SendError as exc:
        raise OllamaError(f"error sending request: {exc}") from exc

    try:
        status = _status_of(response)
        try:
            payload = response.read()
        except OSError as exc:
            raise OllamaError(f"error sending request: {exc}") from exc
    finally:
        response.close()

    if status >= 400:
        raise OllamaError(f"error sending request: {_error_text(payload)}")

    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise OllamaError(f"error sending request: {exc}") from exc
    return chat_response_to_completion(data)


def create_ollama_chat_completion_stream_with_image(
    request: StreamChatCompletionRequestWithImage | None,
    base_url: str = DEFAULT_BASE_URL,
) -> OllamaStream:
    """Send a streamed chat request, images included, and return the stream."""
    _ensure_running(base_url)
    if request is None:
        raise OllamaError("request cannot be nil")

    try:
        messages = convert_messages_with_image(request.messages)
    except OllamaError as exc:
        raise OllamaError(f"error converting messages: {exc}") from exc

    try:
        http_request = (
            AuthedRequest()
            .set_base_url(base_url)
            .set_path(STREAM_CHAT_PATH)
            .set_body_from_struct(
                {
                    "model": request.model,
                    "messages": [message.to_dict() for message in messages],
                    "stream": True,
                }
            )
            .build()
        )
    except RequestBuildError as exc:
        raise OllamaError(f"error building request: {exc}") from exc

    try:
        response = send_request(http_request)
    except SendError as exc:
        raise OllamaError(f"error sending request: {exc}") from exc

    status = _status_of(response)
    if status >= 400:
        try:
            payload = response.read()
        finally:
            response.close()
        raise OllamaError(f"request failed with status {status}: {_error_text(payload)}")

    return OllamaStream(response)