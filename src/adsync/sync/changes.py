"""Change detection between a stored ad and a fresh capture.

Only the tracked fields decide the outcome. ``raw_data`` and
``fetched_at`` differ on every capture and are ignored, as is
``snapshot_url``.
"""

from typing import Any

from ..models import TRACKED_FIELDS, AdRecord, ChangeKind


def _comparable(record: AdRecord, name: str) -> Any:
    value = getattr(record, name)
    if name == "creative_bodies":
        # Absent and empty bodies compare equal; order matters
        return list(value or [])
    return value


def diff(previous: AdRecord, candidate: AdRecord) -> list[str]:
    """Names of tracked fields whose values differ."""
    return [
        name
        for name in TRACKED_FIELDS
        if _comparable(previous, name) != _comparable(candidate, name)
    ]


def classify(previous: AdRecord | None, candidate: AdRecord) -> ChangeKind:
    """Classify a captured ad against the last stored version of it.

    Args:
        previous: Stored record for the same id, or None if never stored
        candidate: Freshly normalized record

    Returns:
        ChangeKind.NEW, CHANGED or UNCHANGED
    """
    if previous is None:
        return ChangeKind.NEW
    if diff(previous, candidate):
        return ChangeKind.CHANGED
    return ChangeKind.UNCHANGED


class ChangeDetector:
    """Stateless wrapper so the detector can be swapped in orchestrators."""

    tracked_fields = TRACKED_FIELDS

    def classify(self, previous: AdRecord | None, candidate: AdRecord) -> ChangeKind:
        return classify(previous, candidate)

    def diff(self, previous: AdRecord, candidate: AdRecord) -> list[str]:
        return diff(previous, candidate)
