"""Defensive access to raw GraphQL payloads.

Response bodies from the Ad Library are undocumented and change shape
without notice. Nothing here assumes a path exists: every lookup returns
``MISSING`` instead of raising, and decoding failures yield no documents.
"""

import json
from typing import Any, Iterable

from .logging import get_logger

logger = get_logger(__name__)


class _Missing:
    """Sentinel for a path segment that is absent, null or of the wrong type."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def dig(value: Any, *path: str | int) -> Any:
    """Follow ``path`` through nested dicts and lists.

    String segments index dicts, integer segments index lists. Returns
    ``MISSING`` as soon as a segment is absent, null, or applied to a
    value of the wrong type. A null leaf is also reported as ``MISSING``.

    Example:
        dig(payload, "data", "ad_library_main", "search_results_connection", "edges")
    """
    current = value
    for segment in path:
        if current is None or current is MISSING:
            return MISSING
        if isinstance(segment, int):
            if not isinstance(current, list) or not -len(current) <= segment < len(current):
                return MISSING
            current = current[segment]
        else:
            if not isinstance(current, dict) or segment not in current:
                return MISSING
            current = current[segment]
    return MISSING if current is None else current


def as_list(value: Any) -> list[Any]:
    """Return ``value`` if it is a list, else an empty list."""
    return value if isinstance(value, list) else []


def first_present(candidates: Iterable[Any]) -> Any:
    """Return the first candidate that is neither ``MISSING`` nor empty."""
    for candidate in candidates:
        if candidate is MISSING or candidate is None:
            continue
        if isinstance(candidate, (str, list, dict)) and not candidate:
            continue
        return candidate
    return MISSING


def decode_payload(body: str | bytes | None) -> list[Any]:
    """Decode a response body into JSON documents.

    GraphQL responses for streamed queries arrive as several JSON
    documents separated by newlines; each parseable line is returned in
    order. A body that is empty, absent, not JSON at all, or nested too
    deeply for the decoder yields an empty list.

    Args:
        body: Raw response text (or bytes), or None if it could not be read

    Returns:
        List of decoded documents (possibly empty)
    """
    if body is None:
        return []
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")

    text = body.strip()
    if not text:
        return []

    # Facebook prefixes some JSON responses with an anti-hijacking guard
    if text.startswith("for (;;);"):
        text = text[len("for (;;);"):]

    try:
        return [json.loads(text)]
    except (ValueError, RecursionError):
        pass

    documents = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            documents.append(json.loads(line))
        except (ValueError, RecursionError):
            continue

    if not documents:
        logger.debug("Failed to parse JSON response", extra={"body_prefix": text[:80]})
    return documents
