"""Tests for JSON recovery from model output."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from backlog_gateway.exceptions import ResponseValidationError, StructuredOutputError
from backlog_gateway.extraction import (
    PREVIEW_CHARS,
    STRATEGIES,
    bracket_span,
    extract_model,
    extract_structured,
    extract_with_strategy,
    sanitize_control_characters,
)


class BacklogItem(BaseModel):
    title: str
    priority: int


@pytest.mark.unit
class TestStrategies:
    def test_verbatim_json(self) -> None:
        result = extract_with_strategy('{"title": "Export", "priority": 2}')
        assert result.strategy == "verbatim"
        assert result.value == {"title": "Export", "priority": 2}

    def test_fenced_block_with_language_tag(self) -> None:
        text = 'Here you go:\n```json\n[{"title": "A"}, {"title": "B"}]\n```\nThanks!'
        result = extract_with_strategy(text)
        assert result.strategy == "fenced_block"
        assert result.value == [{"title": "A"}, {"title": "B"}]

    def test_fenced_block_without_language_tag(self) -> None:
        result = extract_with_strategy('```\n{"ok": true}\n```')
        assert result.strategy == "fenced_block"
        assert result.value == {"ok": True}

    def test_bracket_span_in_prose(self) -> None:
        text = 'Sure! The items are {"items": [{"title": "Login"}]} as requested.'
        result = extract_with_strategy(text)
        assert result.strategy == "bracket_span"
        assert result.value == {"items": [{"title": "Login"}]}

    def test_sanitized_span_escapes_raw_newlines(self) -> None:
        text = 'Result: {"title": "Line one\nline two", "tab": "a\tb"}'
        result = extract_with_strategy(text)
        assert result.strategy == "sanitized_span"
        assert result.value == {"title": "Line one\nline two", "tab": "a\tb"}

    def test_strategy_order(self) -> None:
        assert [name for name, _ in STRATEGIES] == [
            "verbatim",
            "fenced_block",
            "bracket_span",
            "sanitized_span",
        ]

    def test_extract_structured_returns_value(self) -> None:
        assert extract_structured("[1, 2, 3]") == [1, 2, 3]


@pytest.mark.unit
class TestHelpers:
    def test_bracket_span_prefers_earliest_opener(self) -> None:
        assert bracket_span('x [1, {"a": 2}] y') == '[1, {"a": 2}]'

    def test_bracket_span_without_opener(self) -> None:
        with pytest.raises(ValueError):
            bracket_span("no json here")

    def test_bracket_span_without_closer(self) -> None:
        with pytest.raises(ValueError):
            bracket_span('{"a": 1')

    def test_sanitize_leaves_structural_whitespace(self) -> None:
        span = '{\n  "a": "x\ny"\n}'
        assert sanitize_control_characters(span) == '{\n  "a": "x\\ny"\n}'

    def test_sanitize_respects_escaped_quotes(self) -> None:
        span = '{"a": "say \\"hi\\"\n"}'
        assert sanitize_control_characters(span) == '{"a": "say \\"hi\\"\\n"}'


@pytest.mark.unit
class TestFailure:
    def test_all_strategies_fail(self) -> None:
        text = "I could not produce any structured output for this transcript."
        with pytest.raises(StructuredOutputError) as exc_info:
            extract_structured(text)
        assert exc_info.value.strategies == [name for name, _ in STRATEGIES]
        assert exc_info.value.preview == text

    def test_preview_is_bounded(self) -> None:
        text = "z" * 1000
        with pytest.raises(StructuredOutputError) as exc_info:
            extract_structured(text)
        assert len(exc_info.value.preview) == PREVIEW_CHARS

    def test_empty_text(self) -> None:
        with pytest.raises(StructuredOutputError):
            extract_structured("")

    def test_deeply_nested_input_fails_cleanly(self) -> None:
        with pytest.raises(StructuredOutputError) as exc_info:
            extract_structured("[" * 100_000)
        assert exc_info.value.preview == "[" * PREVIEW_CHARS


@pytest.mark.unit
class TestExtractModel:
    def test_valid_model(self) -> None:
        item = extract_model('```json\n{"title": "Dark mode", "priority": 1}\n```', BacklogItem)
        assert item == BacklogItem(title="Dark mode", priority=1)

    def test_invalid_model(self) -> None:
        with pytest.raises(ResponseValidationError, match="BacklogItem"):
            extract_model('{"title": "Dark mode"}', BacklogItem)

    def test_unparseable_text(self) -> None:
        with pytest.raises(StructuredOutputError):
            extract_model("nothing", BacklogItem)
