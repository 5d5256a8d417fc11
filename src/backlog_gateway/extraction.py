"""Recovery of JSON values embedded in free-form model output.

Strategies run in order and the first one that parses wins:

1. the text verbatim
2. the inside of the first fenced code block
3. the span from the first ``{``/``[`` to the last matching closer
4. that span again, with literal control characters inside string
   literals escaped
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from backlog_gateway.exceptions import ResponseValidationError, StructuredOutputError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

PREVIEW_CHARS = 200

_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}
_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


@dataclass(frozen=True)
class ExtractionResult:
    value: Any
    strategy: str


# ── Strategies ──────────────────────────────────────────────────


def parse_verbatim(text: str) -> Any:
    return json.loads(text)


def parse_fenced_block(text: str) -> Any:
    match = _FENCE_RE.search(text)
    if match is None:
        raise ValueError("no fenced code block")
    return json.loads(match.group(1).strip())


def bracket_span(text: str) -> str:
    """Slice from the first opening bracket to the last closer of the same kind.

    Raises:
        ValueError: If there is no opening bracket or no matching closer after it.
    """
    positions = [pos for pos in (text.find("{"), text.find("[")) if pos != -1]
    if not positions:
        raise ValueError("no opening bracket")
    start = min(positions)
    end = text.rfind(_CLOSERS[text[start]])
    if end <= start:
        raise ValueError("no matching closing bracket")
    return text[start : end + 1]


def parse_bracket_span(text: str) -> Any:
    return json.loads(bracket_span(text))


def sanitize_control_characters(span: str) -> str:
    """Escape raw control characters that appear inside JSON string literals.

    Characters outside strings are left alone, so structural whitespace
    survives. Quote and escape state are tracked one character at a time.
    """
    out: list[str] = []
    in_string = False
    escaped = False
    for char in span:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            elif char in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[char])
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def parse_sanitized_span(text: str) -> Any:
    return json.loads(sanitize_control_characters(bracket_span(text)))


STRATEGIES: tuple[tuple[str, Callable[[str], Any]], ...] = (
    ("verbatim", parse_verbatim),
    ("fenced_block", parse_fenced_block),
    ("bracket_span", parse_bracket_span),
    ("sanitized_span", parse_sanitized_span),
)


# ── Public API ──────────────────────────────────────────────────


def extract_with_strategy(text: str) -> ExtractionResult:
    """Parse ``text`` and report which strategy succeeded.

    Raises:
        StructuredOutputError: If every strategy fails. Carries a bounded preview.
    """
    tried: list[str] = []
    for name, strategy in STRATEGIES:
        tried.append(name)
        try:
            value = strategy(text)
        except (ValueError, RecursionError) as exc:
            logger.debug("Extraction strategy %s failed: %s", name, exc)
            continue
        return ExtractionResult(value=value, strategy=name)
    raise StructuredOutputError(text, tried, preview_chars=PREVIEW_CHARS)


def extract_structured(text: str) -> Any:
    """Return the first JSON value recoverable from ``text``."""
    return extract_with_strategy(text).value


def extract_model(text: str, model_cls: type[M]) -> M:
    """Extract a JSON value and validate it as ``model_cls``.

    Raises:
        StructuredOutputError: If no JSON value can be recovered.
        ResponseValidationError: If the value does not fit the model.
    """
    value = extract_structured(text)
    try:
        return model_cls.model_validate(value)
    except ValidationError as exc:
        raise ResponseValidationError(model_cls.__name__, str(exc)) from exc
