"""Payload extraction.

Locates ad-like objects inside an intercepted GraphQL payload. The ads
live under a search-results connection whose edges each bundle one or
more ads in ``node.collated_results`` (paired or variant creatives).
Every step is a defensive lookup: a payload that lacks the path, or has
null or mistyped segments anywhere along it, simply yields nothing.
"""

from dataclasses import dataclass, field
from typing import Any

from ..logging import get_logger, log_schema_drift
from ..models import AdRecord
from ..payload import MISSING, as_list, decode_payload, dig
from .normalizer import RecordNormalizer

logger = get_logger(__name__)

# Locations of the search-results edge list, tried in order
ANCHOR_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "ad_library_main", "search_results_connection", "edges"),
    ("data", "ad_library_main", "search_results", "edges"),
    ("data", "adLibraryMain", "searchResultsConnection", "edges"),
)

# Location of the ad list inside one edge
COLLATED_PATH: tuple[str, ...] = ("node", "collated_results")


@dataclass
class ExtractionBatch:
    """Normalized ads found in one response."""

    records: list[AdRecord] = field(default_factory=list)
    found: int = 0
    rejected: int = 0

    def __len__(self) -> int:
        return len(self.records)


class PayloadExtractor:
    """Finds and normalizes ads in raw GraphQL payloads.

    Usage:
        extractor = PayloadExtractor()
        batch = extractor.extract_records(json.loads(body))
        for record in batch.records:
            ...
    """

    def __init__(
        self,
        normalizer: RecordNormalizer | None = None,
        anchor_paths: tuple[tuple[str, ...], ...] = ANCHOR_PATHS,
    ):
        self.normalizer = normalizer or RecordNormalizer()
        self.anchor_paths = anchor_paths

    def find_edges(self, payload: Any) -> list[Any]:
        """Return the first anchor path that resolves to a list of edges."""
        for path in self.anchor_paths:
            edges = dig(payload, *path)
            if isinstance(edges, list):
                return edges
        return []

    def extract(self, payload: Any) -> list[dict[str, Any]]:
        """Collect raw ad-like objects from a decoded payload.

        Args:
            payload: Any JSON-decoded value

        Returns:
            Ad-like dicts in payload order (possibly empty)
        """
        ads: list[dict[str, Any]] = []
        for edge in self.find_edges(payload):
            collated = dig(edge, *COLLATED_PATH)
            if collated is MISSING:
                continue
            for candidate in as_list(collated):
                if isinstance(candidate, dict):
                    ads.append(candidate)
        return ads

    def extract_records(self, payload: Any, source_url: str | None = None) -> ExtractionBatch:
        """Extract and normalize ads from a decoded payload.

        Args:
            payload: Any JSON-decoded value
            source_url: URL of the response, used only for logging

        Returns:
            ExtractionBatch with the records and the rejection count
        """
        batch = ExtractionBatch()
        raw_ads = self.extract(payload)
        batch.found = len(raw_ads)

        if not raw_ads:
            keys = sorted(payload.keys()) if isinstance(payload, dict) else []
            log_schema_drift(source_url, keys)
            return batch

        for raw in raw_ads:
            record = self.normalizer.normalize(raw)
            if record is None:
                batch.rejected += 1
            else:
                batch.records.append(record)

        logger.debug(
            f"Extracted {len(batch.records)} ads ({batch.rejected} rejected)",
            extra={"source_url": source_url},
        )
        return batch

    def extract_from_body(self, body: str | bytes | None, source_url: str | None = None) -> ExtractionBatch:
        """Decode a response body and extract ads from every document in it."""
        combined = ExtractionBatch()
        for document in decode_payload(body):
            batch = self.extract_records(document, source_url=source_url)
            combined.records.extend(batch.records)
            combined.found += batch.found
            combined.rejected += batch.rejected
        return combined


_extractor: PayloadExtractor | None = None


def get_payload_extractor() -> PayloadExtractor:
    """Get the shared extractor instance."""
    global _extractor
    if _extractor is None:
        _extractor = PayloadExtractor()
    return _extractor


def extract(payload: Any) -> list[dict[str, Any]]:
    """Collect raw ad-like objects from a decoded payload."""
    return get_payload_extractor().extract(payload)
