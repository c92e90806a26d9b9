"""Sync engine: session deduplication, change detection and orchestration."""

from .changes import ChangeDetector, classify, diff
from .orchestrator import BaseSync, FullCaptureSync, IncrementalSync
from .session import SessionDeduplicator

__all__ = [
    "BaseSync",
    "ChangeDetector",
    "FullCaptureSync",
    "IncrementalSync",
    "SessionDeduplicator",
    "classify",
    "diff",
]
