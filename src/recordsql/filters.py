"""
Input filter: strips SQL statement keywords from untrusted values.

This is a second line of defense. Condition and CRUD values are always
sent as bound parameters; the filter only removes a fixed blacklist of
keywords from text before it gets there.

Each keyword is matched with its leading space (``" select"``), so
identifiers that merely contain the word (``"selection"`` at the start of
a value, ``"preselect"``) survive. Matching is case-insensitive and is
repeated until a full pass removes nothing, which makes :func:`sanitize`
idempotent even when a removal splices a new occurrence together
(``"se select lect"`` → ``"se lect"``).

Examples:
    >>> sanitize("a select b")
    'a b'
    >>> sanitize("Robert'); DROP table students")
    "Robert'); table students"
    >>> sanitize(42)
    42

Tags:
    input-filter, sanitization, sql-injection, recordsql
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, TypeVar

from recordsql.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

BLACKLIST: tuple[str, ...] = (
    " select",
    " insert",
    " update",
    " delete",
    " drop",
    " alter",
    " create",
    " exec",
    " union",
    " join",
)

_BLACKLIST_RE = re.compile("|".join(re.escape(word) for word in BLACKLIST), re.IGNORECASE)


def sanitize_text(text: str) -> str:
    """Remove every blacklisted keyword; returns ``text`` itself if clean."""
    cleaned = text
    while True:
        stripped = _BLACKLIST_RE.sub("", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    if cleaned is not text:
        logger.debug("input_sanitized", original_length=len(text), cleaned_length=len(cleaned))
    return cleaned


def _sanitize_record(record: Any) -> Any:
    changes = {}
    for f in dataclasses.fields(record):
        value = getattr(record, f.name)
        cleaned = sanitize(value)
        if cleaned is not value:
            changes[f.name] = cleaned
    if not changes:
        return record
    return dataclasses.replace(record, **changes)


def sanitize(value: T) -> T:
    """
    Sanitize an untrusted value.

    - ``str``: blacklisted keywords removed
    - dataclass instance: every field sanitized; a new instance is built
      only if some field changed, otherwise the same object is returned
    - ``list`` / ``tuple``: sanitized element-wise (same container type)
    - anything else: returned unchanged
    """
    if isinstance(value, str):
        return sanitize_text(value)  # type: ignore[return-value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _sanitize_record(value)
    if isinstance(value, list):
        return [sanitize(item) for item in value]  # type: ignore[return-value]
    if isinstance(value, tuple) and not hasattr(value, "_fields"):
        items = tuple(sanitize(item) for item in value)
        if all(a is b for a, b in zip(items, value)):
            return value
        return items  # type: ignore[return-value]
    return value


__all__ = [
    "BLACKLIST",
    "sanitize",
    "sanitize_text",
]
