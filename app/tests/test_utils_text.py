"""Tests for model-output text helpers."""
from __future__ import annotations

from app.utils.text import markdown_to_plain_text, split_paragraphs, strip_code_fence


def test_strip_code_fence_removes_language_tagged_fence() -> None:
    assert strip_code_fence('```json\n[{"title": "x"}]\n```') == '[{"title": "x"}]'


def test_strip_code_fence_removes_bare_fence_and_whitespace() -> None:
    assert strip_code_fence('  ```\n{"details": "d"}\n```  ') == '{"details": "d"}'


def test_strip_code_fence_leaves_plain_json_alone() -> None:
    assert strip_code_fence('{"a": 1}') == '{"a": 1}'


def test_markdown_to_plain_text_strips_headings_and_links() -> None:
    source = "### Heading\nSummary with a [link](https://example.com) and **bold** text."
    result = markdown_to_plain_text(source)
    assert result == "Heading Summary with a link and bold text."


def test_markdown_to_plain_text_handles_non_string_values() -> None:
    assert markdown_to_plain_text(None) == ""
    assert markdown_to_plain_text(42) == ""


def test_split_paragraphs_breaks_on_blank_lines() -> None:
    source = "Sleep resets the *body*.\n\n  \nA steady routine helps.\nEvery night."
    assert split_paragraphs(source) == ["Sleep resets the body.", "A steady routine helps. Every night."]


def test_split_paragraphs_handles_empty_values() -> None:
    assert split_paragraphs("") == []
    assert split_paragraphs(None) == []
