"""Record normalization.

Turns one raw ad-like object from a ``collated_results`` list into an
``AdRecord``. Each logical field is resolved through an ordered chain of
candidate lookups; the first candidate holding a usable value wins.
Ads whose identity cannot be resolved are rejected rather than given a
placeholder id.
"""

import copy
import math
from typing import Any, Callable

from pydantic import ValidationError

from ..logging import get_logger
from ..models import AdRecord, utcnow
from ..payload import MISSING, dig, first_present

logger = get_logger(__name__)

# A candidate looks a value up in (raw ad, snapshot) and returns MISSING if absent
Candidate = Callable[[dict[str, Any], dict[str, Any]], Any]


def top(*path: str) -> Candidate:
    """Candidate reading a path from the ad object itself."""
    return lambda raw, snapshot: dig(raw, *path)


def snap(*path: str) -> Candidate:
    """Candidate reading a path from the ad's ``snapshot`` sub-object."""
    return lambda raw, snapshot: dig(snapshot, *path)


# Fallback chains, in priority order
ID_CANDIDATES: tuple[Candidate, ...] = (top("ad_archive_id"), top("id"))
PAGE_ID_CANDIDATES: tuple[Candidate, ...] = (top("page_id"), snap("page_id"))
START_DATE_CANDIDATES: tuple[Candidate, ...] = (top("start_date"), top("delivery_start_time"))
END_DATE_CANDIDATES: tuple[Candidate, ...] = (top("end_date"), top("delivery_stop_time"))
SNAPSHOT_URL_CANDIDATES: tuple[Candidate, ...] = (top("snapshot_url"),)


def _as_text(value: Any) -> str | None:
    """Render an id or date value as text.

    Numbers are accepted since ids and epoch timestamps sometimes arrive
    unquoted; integral floats are rendered without a fractional part.
    Booleans, non-finite floats, containers and blank strings are not usable.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_url(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _resolve(
    chain: tuple[Candidate, ...],
    raw: dict[str, Any],
    snapshot: dict[str, Any],
    coerce: Callable[[Any], Any] = _as_text,
) -> Any:
    """First candidate in ``chain`` that ``coerce`` accepts, else None."""
    value = first_present(coerce(candidate(raw, snapshot)) for candidate in chain)
    return None if value is MISSING else value


def _creative_bodies(raw: dict[str, Any], snapshot: dict[str, Any]) -> list[str]:
    text = dig(snapshot, "body", "text")
    if isinstance(text, str) and text.strip():
        return [text]

    bodies = dig(raw, "creative_bodies")
    if isinstance(bodies, list):
        return [body for body in bodies if isinstance(body, str) and body.strip()]

    return []


class RecordNormalizer:
    """Normalizes raw ad-like objects into ``AdRecord`` values.

    Args:
        clock: Callable returning the capture timestamp. Every record is
            stamped at normalization time; upstream timestamps are ignored.
    """

    def __init__(self, clock: Callable[[], Any] = utcnow):
        self._clock = clock

    def normalize(self, raw: Any) -> AdRecord | None:
        """Normalize one ad-like object.

        Args:
            raw: Element of a ``collated_results`` list

        Returns:
            A fully populated AdRecord, or None if the element has no
            usable ad id or page id
        """
        if not isinstance(raw, dict):
            return None

        snapshot = raw.get("snapshot")
        if not isinstance(snapshot, dict):
            snapshot = {}

        ad_id = _resolve(ID_CANDIDATES, raw, snapshot)
        page_id = _resolve(PAGE_ID_CANDIDATES, raw, snapshot)
        if ad_id is None or page_id is None:
            logger.debug(
                "Rejected ad without identity",
                extra={"has_ad_id": ad_id is not None, "has_page_id": page_id is not None},
            )
            return None

        is_active = raw.get("is_active")

        try:
            return AdRecord(
                id=ad_id,
                page_id=page_id,
                is_active=is_active if isinstance(is_active, bool) else True,
                start_date=_resolve(START_DATE_CANDIDATES, raw, snapshot),
                end_date=_resolve(END_DATE_CANDIDATES, raw, snapshot),
                snapshot_url=_resolve(SNAPSHOT_URL_CANDIDATES, raw, snapshot, coerce=_as_url),
                creative_bodies=_creative_bodies(raw, snapshot),
                fetched_at=self._clock(),
                raw_data=copy.deepcopy({**raw, "snapshot": snapshot}),
            )
        except ValidationError as e:
            logger.debug(f"Rejected ad {ad_id}: {e.error_count()} validation errors")
            return None
        except RecursionError:
            logger.debug(f"Rejected ad {ad_id}: source object nested too deeply to copy")
            return None


def normalize(raw: Any) -> AdRecord | None:
    """Normalize one ad-like object with the default clock."""
    return RecordNormalizer().normalize(raw)
