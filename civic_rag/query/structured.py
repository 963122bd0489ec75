"""Parsing of JSON-mode LLM output."""

import json
import re
from enum import Enum
from typing import Any, TypeVar

from civic_rag.errors import MalformedStructuredOutput

E = TypeVar("E", bound=Enum)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_object(stage: str, raw: str, required: tuple[str, ...] = ()) -> dict[str, Any]:
    """Parse a JSON object emitted by a model.

    Args:
        stage: Pipeline stage name, used in the error
        raw: Raw completion text
        required: Keys that must be present

    Returns:
        The decoded object

    Raises:
        MalformedStructuredOutput: If the text is not a JSON object or lacks a required key
    """
    text = _FENCE_RE.sub("", (raw or "").strip())
    if not text.startswith("{"):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedStructuredOutput(stage, raw, "no JSON object found")
        text = text[start:end + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedStructuredOutput(stage, raw, str(e)) from e

    if not isinstance(data, dict):
        raise MalformedStructuredOutput(stage, raw, "top-level value is not an object")

    missing = [key for key in required if key not in data]
    if missing:
        raise MalformedStructuredOutput(stage, raw, f"missing fields: {', '.join(missing)}")
    return data


def coerce_enum(enum_cls: type[E], value: Any, default: E) -> E:
    """Return ``enum_cls(value)`` or ``default`` for unknown values."""
    try:
        return enum_cls(value)
    except ValueError:
        return default


def string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if str(item).strip()]
