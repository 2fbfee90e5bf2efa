"""Builder for authenticated JSON requests to the chat completion API."""

from __future__ import annotations

import dataclasses
import json
import urllib.request
from dataclasses import dataclass
from typing import Any


class RequestBuildError(ValueError):
    """Raised when a request cannot be assembled."""


def _encode_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


@dataclass
class AuthedRequest:
    """Collects the pieces of an authenticated request and builds it."""

    auth_token: str = ""
    base_url: str = ""
    path: str = ""
    body: bytes = b""

    def set_base_url(self, base_url: str) -> AuthedRequest:
        """Set the base URL and return the builder."""
        self.base_url = base_url
        return self

    def set_path(self, path: str) -> AuthedRequest:
        """Set the path appended to the base URL and return the builder."""
        self.path = path
        return self

    def set_body_from_struct(self, data: Any) -> AuthedRequest:
        """Serialise ``data`` to compact JSON as the request body."""
        try:
            text = json.dumps(
                data,
                default=_encode_default,
                separators=(",", ":"),
                ensure_ascii=False,
            )
        except (TypeError, ValueError) as exc:
            raise RequestBuildError(f"failed to marshal body: {exc}") from exc
        self.body = text.encode("utf-8")
        return self

    def _build(self, method: str, extra_headers: dict[str, str] | None = None) -> urllib.request.Request:
        if not self.base_url or not self.path:
            raise RequestBuildError("BaseURL or path not set")
        url = f"{self.base_url}{self.path}"
        try:
            request = urllib.request.Request(url, data=self.body or None, method=method)
        except ValueError as exc:
            raise RequestBuildError(f"error creating request: {exc}") from exc
        request.add_header("Authorization", f"Bearer {self.auth_token}")
        for name, value in (extra_headers or {}).items():
            request.add_header(name, value)
        request.add_header("Content-Type", "application/json")
        return request

    def build(self) -> urllib.request.Request:
        """Build a POST request."""
        return self._build("POST")

    def build_stream(self) -> urllib.request.Request:
        """Build a POST request meant for a streamed response."""
        return self._build("POST", {"cache-control": "no-cache"})

    def build_get(self) -> urllib.request.Request:
        """Build a GET request."""
        return self._build("GET")