"""Sending requests and resolving the request timeout."""

from __future__ import annotations

import http.client
import os
import re
import urllib.error
import urllib.request
from typing import Any

from dotenv import load_dotenv

DEFAULT_TIMEOUT = 300.0
TIMEOUT_ENV_VAR = "DEEPSEEK_TIMEOUT"

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_MAX_SECONDS = (2**63 - 1) / 1e9
_COMPONENT = re.compile(r"(\d*)(?:(\.)(\d*))?([^\d.]*)")


class SendError(ConnectionError):
    """Raised when a request could not be sent or no response arrived."""


class TimeoutConfigError(ValueError):
    """Raised when a configured timeout cannot be understood."""


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"1h30m"`` or ``"250ms"`` into seconds."""
    original = text
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise TimeoutConfigError(f'invalid duration "{original}"')

    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, dot, fraction, unit = match.groups()
        if not whole and not fraction:
            raise TimeoutConfigError(f'invalid duration "{original}"')
        if not unit:
            raise TimeoutConfigError(f'missing unit in duration "{original}"')
        if unit not in _UNITS:
            raise TimeoutConfigError(f'unknown unit "{unit}" in duration "{original}"')
        number = float(f"{whole or '0'}.{fraction or '0'}") if dot else float(whole)
        total += number * _UNITS[unit]
        if total > _MAX_SECONDS:
            raise TimeoutConfigError(f'invalid duration "{original}"')
        pos = match.end()
    return -total if negative else total


def handle_timeout() -> float:
    """Return the timeout in seconds from ``DEEPSEEK_TIMEOUT``, default five minutes."""
    load_dotenv(os.path.join(os.getcwd(), ".env"))
    text = os.environ.get(TIMEOUT_ENV_VAR, "")
    if not text:
        return DEFAULT_TIMEOUT
    try:
        return parse_duration(text)
    except TimeoutConfigError as exc:
        raise TimeoutConfigError(f'invalid timeout duration "{text}": {exc}') from exc


def resolve_timeout(timeout: float | None) -> float | None:
    """Return the timeout to apply, consulting the environment when none is set.

    ``None`` in the result means no timeout at all.
    """
    if timeout is None or timeout <= 0:
        try:
            timeout = handle_timeout()
        except TimeoutConfigError as exc:
            raise TimeoutConfigError(f"error getting timeout from environment: {exc}") from exc
    return timeout if timeout > 0 else None


def send_request(
    request: urllib.request.Request,
    opener: urllib.request.OpenerDirector | None = None,
    timeout: float | None = None,
) -> Any:
    """Send ``request`` and return the response, whatever its status code."""
    opener = opener or urllib.request.build_opener()
    kwargs = {} if timeout is None else {"timeout": timeout}
    try:
        return opener.open(request, **kwargs)
    except urllib.error.HTTPError as exc:
        return exc
    except (OSError, http.client.HTTPException) as exc:
        raise SendError(f"error sending request: {exc}") from exc