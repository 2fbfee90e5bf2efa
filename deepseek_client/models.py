"""Model identifiers and listing the models the API offers."""

from __future__ import annotations

import json
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from deepseek_client.request_builder import AuthedRequest
from deepseek_client.responses import ResponseError
from deepseek_client.transport import send_request

DEEPSEEK_CHAT = "deepseek-chat"
DEEPSEEK_CODER = "deepseek-coder"
DEEPSEEK_REASONER = "deepseek-reasoner"

AZURE_DEEPSEEK_R1 = "DeepSeek-R1"
OPENROUTER_DEEPSEEK_R1 = "deepseek/deepseek-r1"
OPENROUTER_DEEPSEEK_R1_DISTILL_LLAMA_70B = "deepseek/deepseek-r1-distill-llama-70b"
OPENROUTER_DEEPSEEK_R1_DISTILL_LLAMA_8B = "deepseek/deepseek-r1-distill-llama-8b"
OPENROUTER_DEEPSEEK_R1_DISTILL_QWEN_14B = "deepseek/deepseek-r1-distill-qwen-14b"
OPENROUTER_DEEPSEEK_R1_DISTILL_QWEN_1_5B = "deepseek/deepseek-r1-distill-qwen-1.5b"
OPENROUTER_DEEPSEEK_R1_DISTILL_QWEN_32B = "deepseek/deepseek-r1-distill-qwen-32b"

DEFAULT_BASE_URL = "https://api.deepseek.com/"
MODELS_PATH = "models"


def _string(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"field {key!r}: expected str, got {type(value).__name__}")
    return value


@dataclass
class Model:
    """A model that can be used with the API."""

    id: str = ""
    object: str = ""
    owned_by: str = ""


@dataclass
class APIModels:
    """The list of models returned by the models endpoint."""

    object: str = ""
    data: list[Model] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> APIModels:
        """Parse a decoded models listing; wrong field types raise ``TypeError``."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TypeError(f"expected object, got {type(data).__name__}")
        items = data.get("data") or []
        if not isinstance(items, list):
            raise TypeError(f"field 'data': expected list, got {type(items).__name__}")
        models = []
        for item in items:
            if not isinstance(item, dict):
                raise TypeError(f"model: expected object, got {type(item).__name__}")
            models.append(
                Model(
                    id=_string(item, "id"),
                    object=_string(item, "object"),
                    owned_by=_string(item, "owned_by"),
                )
            )
        return cls(object=_string(data, "object"), data=models)


def _status_of(response: Any) -> int:
    status = getattr(response, "status", None)
    if status is None:
        status = getattr(response, "code", 0)
    return int(status or 0)


def list_all_models(
    auth_token: str,
    opener: urllib.request.OpenerDirector | None = None,
    base_url: str = DEFAULT_BASE_URL,
) -> APIModels:
    """Fetch the models available to ``auth_token``."""
    request = (
        AuthedRequest(auth_token=auth_token)
        .set_base_url(base_url)
        .set_path(MODELS_PATH)
        .build_get()
    )
    response = send_request(request, opener)
    try:
        status = _status_of(response)
        try:
            body = response.read()
        except OSError as exc:
            raise ResponseError(f"error reading response body: {exc}") from exc
    finally:
        response.close()

    if status >= 400:
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body)
        raise ResponseError(f"request failed with status {status}: {text}")

    try:
        return APIModels.from_dict(json.loads(body))
    except (ValueError, TypeError) as exc:
        raise ResponseError(f"failed to parse response JSON: {exc}") from exc