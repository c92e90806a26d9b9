"""Ad extraction from intercepted Ad Library payloads."""

from .extractor import (
    ANCHOR_PATHS,
    ExtractionBatch,
    PayloadExtractor,
    extract,
    get_payload_extractor,
)
from .normalizer import RecordNormalizer, normalize

__all__ = [
    "ANCHOR_PATHS",
    "ExtractionBatch",
    "PayloadExtractor",
    "RecordNormalizer",
    "extract",
    "get_payload_extractor",
    "normalize",
]
