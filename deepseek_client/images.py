"""Chat messages that carry images, and encoding images as data URLs."""

from __future__ import annotations

import base64
import dataclasses
import http.client
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


class ImageError(Exception):
    """Raised when an image cannot be loaded or encoded."""


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, int, float, bool, list, tuple, dict)):
        return not value
    return False


def _compact(pairs: list[tuple[str, Any, bool]]) -> dict[str, Any]:
    """Build a dict from (key, value, omit_if_empty) triples."""
    return {
        key: _encode(value)
        for key, value, omit_empty in pairs
        if not (omit_empty and _is_empty(value))
    }


@dataclass
class ImageContent:
    """The location of an image: a web URL or a base64 data URL."""

    url: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out an empty URL."""
        return _compact([("url", self.url, True)])


@dataclass
class ContentItem:
    """One part of a message's content: text or an image."""

    type: str = ""
    text: str = ""
    image: ImageContent | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the item."""
        return _compact(
            [
                ("type", self.type, False),
                ("text", self.text, True),
                ("image_url", self.image, True),
            ]
        )


@dataclass
class ChatCompletionMessageWithImage:
    """A chat message whose content is a string or a list of content items."""

    role: str = ""
    content: Any = None
    prefix: bool = False
    reasoning_content: str = ""
    tool_call_id: str = ""
    tool_calls: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form of the message."""
        return _compact(
            [
                ("role", self.role, False),
                ("content", self.content, False),
                ("prefix", self.prefix, True),
                ("reasoning_content", self.reasoning_content, True),
                ("tool_call_id", self.tool_call_id, True),
                ("tool_calls", self.tool_calls, True),
            ]
        )


@dataclass
class ChatCompletionRequestWithImage:
    """A chat completion request whose messages may carry images."""

    model: str = ""
    messages: list[ChatCompletionMessageWithImage] = field(default_factory=list)
    frequency_penalty: float = 0.0
    max_tokens: int = 0
    presence_penalty: float = 0.0
    temperature: float = 0.0
    top_p: float = 0.0
    response_format: Any = None
    stop: list[str] = field(default_factory=list)
    tools: list[Any] = field(default_factory=list)
    tool_choice: Any = None
    logprobs: bool = False
    top_logprobs: int = 0
    json_mode: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body, leaving out unset optional fields."""
        return _compact(
            [
                ("model", self.model, False),
                ("messages", self.messages, False),
                ("frequency_penalty", self.frequency_penalty, True),
                ("max_tokens", self.max_tokens, True),
                ("presence_penalty", self.presence_penalty, True),
                ("temperature", self.temperature, True),
                ("top_p", self.top_p, True),
                ("response_format", self.response_format, True),
                ("stop", self.stop, True),
                ("tools", self.tools, True),
                ("tool_choice", self.tool_choice, True),
                ("logprobs", self.logprobs, True),
                ("top_logprobs", self.top_logprobs, True),
                ("json", self.json_mode, True),
            ]
        )


@dataclass
class StreamChatCompletionRequestWithImage:
    """A streamed chat completion request whose messages may carry images."""

    stream: bool = True
    stream_options: Any = None
    model: str = ""
    messages: list[ChatCompletionMessageWithImage] = field(default_factory=list)
    frequency_penalty: float = 0.0
    max_tokens: int = 0
    presence_penalty: float = 0.0
    temperature: float = 0.0
    top_p: float = 0.0
    response_format: Any = None
    stop: list[str] = field(default_factory=list)
    tools: list[Any] = field(default_factory=list)
    logprobs: bool = False
    top_logprobs: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON body, leaving out unset optional fields."""
        return _compact(
            [
                ("stream", self.stream, True),
                ("stream_options", self.stream_options, True),
                ("model", self.model, False),
                ("messages", self.messages, False),
                ("frequency_penalty", self.frequency_penalty, True),
                ("max_tokens", self.max_tokens, True),
                ("presence_penalty", self.presence_penalty, True),
                ("temperature", self.temperature, True),
                ("top_p", self.top_p, True),
                ("response_format", self.response_format, True),
                ("stop", self.stop, True),
                ("tools", self.tools, True),
                ("logprobs", self.logprobs, True),
                ("top_logprobs", self.top_logprobs, True),
            ]
        )


def new_image_message(role: str, text: str, image_url: str) -> ChatCompletionMessageWithImage:
    """Create a message holding ``text`` followed by the image at ``image_url``."""
    return ChatCompletionMessageWithImage(
        role=role,
        content=[
            ContentItem(type="text", text=text),
            ContentItem(type="image_url", image=ImageContent(url=image_url)),
        ],
    )


def _extension(path: str) -> str:
    tail = path.rsplit("/", 1)[-1]
    dot = tail.rfind(".")
    return tail[dot:] if dot != -1 else ""


def _data_url(ext: str, data: bytes) -> str:
    mime = _MIME_TYPES.get(ext)
    if mime is None:
        raise ImageError(f"unsupported image format: {ext}")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def _image_from_url(url: str) -> str:
    try:
        response = urllib.request.urlopen(url)
    except urllib.error.HTTPError as exc:
        exc.close()
        raise ImageError(f"failed to download image: {exc.code} {exc.reason}") from exc
    except (OSError, http.client.HTTPException, ValueError) as exc:
        raise ImageError(f"failed to download image: {exc}") from exc

    with response:
        status = getattr(response, "status", None) or response.getcode()
        if status != 200:
            raise ImageError(f"failed to download image: {status} {response.reason}")
        content_type = response.headers.get("Content-Type", "")
        if not content_type.startswith("image/"):
            raise ImageError(f"invalid content type: {content_type}")
        try:
            data = response.read()
        except (OSError, http.client.HTTPException) as exc:
            raise ImageError(f"failed to read image data: {exc}") from exc

    return _data_url(_extension(url).lower(), data)


def image_to_base64(image_url: str) -> str:
    """Load a local file or web image and return it as a base64 data URL."""
    if not image_url:
        raise ImageError("imageURL cannot be empty")
    ext = _extension(image_url).lower()
    if ext not in _MIME_TYPES:
        raise ImageError(f"unsupported image format: {ext}")

    if image_url.startswith(("http://", "https://")):
        return _image_from_url(image_url)

    try:
        with open(image_url, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise ImageError(f"failed to read image file: {exc}") from exc
    return _data_url(ext, data)