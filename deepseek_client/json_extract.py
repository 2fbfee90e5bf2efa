"""Extraction of structured JSON data from model responses."""

from __future__ import annotations

import json
from typing import Any, Callable

from deepseek_client.responses import ChatCompletionResponse


class JSONExtractionError(ValueError):
    """Raised when JSON cannot be found, validated or decoded in a response."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal: {name}")


def _loads(text: str | bytes) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def _is_valid_json(text: str) -> bool:
    try:
        _loads(text)
    except (ValueError, RecursionError):
        return False
    return True


def _find_matching(content: str, opening: str, closing: str) -> int:
    if not content.startswith(opening):
        return -1
    depth = 0
    for position, char in enumerate(content):
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return position
    return -1


class JSONExtractor:
    """Finds JSON in model output, optionally checking it against a schema."""

    def __init__(self, schema: str | bytes | None = None) -> None:
        self.schema = schema

    def extract_json(self, response: ChatCompletionResponse | None) -> Any:
        """Return the JSON value found in the first choice of ``response``."""
        if response is None:
            raise JSONExtractionError("response cannot be nil")
        if not response.choices:
            raise JSONExtractionError("no choices in response")

        content = response.choices[0].message.content
        if not content:
            raise JSONExtractionError("empty content in response")

        json_text = self.extract_json_content(content)
        if json_text is None:
            raise JSONExtractionError("no valid JSON content found in response")

        if self.schema is not None:
            try:
                self.validate_json(json_text)
            except JSONExtractionError as exc:
                raise JSONExtractionError(f"JSON validation failed: {exc}") from exc

        try:
            return _loads(json_text)
        except (ValueError, RecursionError) as exc:
            raise JSONExtractionError(f"failed to parse JSON: {exc}") from exc

    def validate_json(self, data: str | bytes) -> None:
        """Check ``data`` against the basic ``type`` of the schema."""
        schema_text = self.schema if self.schema is not None else ""
        try:
            schema = _loads(schema_text)
        except (ValueError, RecursionError) as exc:
            raise JSONExtractionError(f"invalid schema: {exc}") from exc
        if schema is None:
            schema = {}
        if not isinstance(schema, dict):
            raise JSONExtractionError(
                f"invalid schema: expected object, got {type(schema).__name__}"
            )

        try:
            value = _loads(data)
        except (ValueError, RecursionError) as exc:
            raise JSONExtractionError(f"invalid JSON data: {exc}") from exc

        schema_type = schema.get("type")
        if schema_type == "object" and not isinstance(value, dict):
            raise JSONExtractionError(f"expected object, got {type(value).__name__}")
        if schema_type == "array" and not isinstance(value, list):
            raise JSONExtractionError(f"expected array, got {type(value).__name__}")

    def extract_json_content(self, content: str) -> str | None:
        """Return the JSON text within ``content``, or ``None`` if there is none."""
        content = content.strip()
        if _is_valid_json(content):
            return content

        strategies: list[Callable[[str], str | None]] = [
            lambda text: self._extract_between(text, "```json\n", "```"),
            lambda text: self._extract_between(text, "```json", "```"),
            lambda text: self._extract_between(text, "```\n", "```"),
            lambda text: self._extract_between(text, "```", "```"),
            self._find_json_in_text,
        ]
        for strategy in strategies:
            result = strategy(content)
            if result:
                return result
        return None

    def find_matching_brace(self, content: str) -> int:
        """Return the index of the brace closing the object at the start, or -1."""
        return _find_matching(content, "{", "}")

    def find_matching_bracket(self, content: str) -> int:
        """Return the index of the bracket closing the array at the start, or -1."""
        return _find_matching(content, "[", "]")

    def _extract_between(self, content: str, start: str, end: str) -> str | None:
        start_index = content.find(start)
        if start_index == -1:
            return None
        rest = content[start_index + len(start):]
        end_index = rest.find(end)
        if end_index == -1:
            return None
        result = rest[:end_index].strip()
        return result if _is_valid_json(result) else None

    def _find_json_in_text(self, content: str) -> str | None:
        for opening, finder in (("{", self.find_matching_brace), ("[", self.find_matching_bracket)):
            start = content.find(opening)
            if start == -1:
                continue
            end = finder(content[start:])
            if end == -1:
                continue
            result = content[start:start + end + 1]
            return result if _is_valid_json(result) else None
        return None