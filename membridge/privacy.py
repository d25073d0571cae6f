from __future__ import annotations

import re
from typing import Any, NamedTuple

PRIVATE_PLACEHOLDER = "[private content removed]"
CONTEXT_PLACEHOLDER = "[system context removed]"

# Unterminated tags never match, so their content is left in place.
PRIVATE_TAG_RE = re.compile(r"<private>.*?</private>", re.IGNORECASE | re.DOTALL)
CONTEXT_TAG_RE = re.compile(
    r"<claude-mem-context>.*?</claude-mem-context>", re.IGNORECASE | re.DOTALL
)


class PrivacyTagCounts(NamedTuple):
    private: int
    context: int


def _substitute(text: str, *, private: str, context: str) -> tuple[str, PrivacyTagCounts]:
    stripped, private_count = PRIVATE_TAG_RE.subn(private, text)
    stripped, context_count = CONTEXT_TAG_RE.subn(context, stripped)
    return stripped, PrivacyTagCounts(private_count, context_count)


def strip_from_text(text: str) -> str:
    if not text:
        return text
    stripped, _ = _substitute(text, private=PRIVATE_PLACEHOLDER, context=CONTEXT_PLACEHOLDER)
    return stripped


def strip_from_json(value: Any) -> Any:
    """Strip privacy tags from every string leaf of a JSON-like tree.

    Dict keys, list lengths and non-string leaves are preserved as-is.
    """

    if isinstance(value, str):
        return strip_from_text(value)
    if isinstance(value, dict):
        return {key: strip_from_json(item) for key, item in value.items()}
    if isinstance(value, list):
        return [strip_from_json(item) for item in value]
    if isinstance(value, tuple):
        return tuple(strip_from_json(item) for item in value)
    return value


def count_privacy_tags(text: str) -> PrivacyTagCounts:
    if not text:
        return PrivacyTagCounts(0, 0)
    _, counts = _substitute(text, private=PRIVATE_PLACEHOLDER, context=CONTEXT_PLACEHOLDER)
    return counts


def has_privacy_tags(text: str) -> bool:
    counts = count_privacy_tags(text)
    return counts.private + counts.context > 0


def is_fully_private(text: str) -> bool:
    if not text:
        return False
    remainder, counts = _substitute(text, private="", context="")
    if counts.private + counts.context == 0:
        return False
    return not remainder.strip()
