"""Utilities for working with model-generated text."""
from __future__ import annotations

import re
from typing import Any


_MARKDOWN_HEADING_RE = re.compile(r"(^|\n)#{1,6}\s*")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_MARKDOWN_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_MARKDOWN_EMPHASIS_RE = re.compile(r"([*_]{1,3})([^*_]+)\1")
_CODE_FENCE_RE = re.compile(r"```[a-zA-Z]*\n?")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def strip_code_fence(value: str) -> str:
    """Remove Markdown code-fence markers (with or without a language tag).

    Models are told to answer with raw JSON but regularly wrap it in
    ```json ... ``` anyway; every fence marker is dropped wherever it appears.
    """

    return _CODE_FENCE_RE.sub("", value).strip()


def markdown_to_plain_text(value: Any) -> str:
    """Convert inline Markdown in a single line of model output into plain text.

    Non-string inputs return an empty string to keep template rendering predictable.
    """

    if not isinstance(value, str):
        return ""

    text = value
    text = _MARKDOWN_LINK_RE.sub(r"\1", text)
    text = _MARKDOWN_INLINE_CODE_RE.sub(r"\1", text)
    text = _MARKDOWN_HEADING_RE.sub(r"\1", text)
    text = _MARKDOWN_EMPHASIS_RE.sub(r"\2", text)
    text = text.replace("\r", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def split_paragraphs(value: Any) -> list[str]:
    """Split a details block into plain-text paragraphs on blank lines."""

    if not isinstance(value, str):
        return []
    paragraphs = (markdown_to_plain_text(chunk) for chunk in _PARAGRAPH_BREAK_RE.split(value))
    return [paragraph for paragraph in paragraphs if paragraph]


__all__ = ["markdown_to_plain_text", "split_paragraphs", "strip_code_fence"]
