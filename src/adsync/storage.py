"""Ad store for adsync.

Persists one JSON file per ad under a directory per page, plus a
``_metadata.json`` file per page:

    <root>/<page_id>/<ad_id>.json
    <root>/<page_id>/_metadata.json

Writes are atomic (temp file + rename) and skipped when the file already
holds identical content, so saving the same record twice is a no-op.
"""

import hashlib
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .exceptions import PersistenceError
from .logging import get_logger
from .models import AdRecord, PageMetadata

logger = get_logger(__name__)

METADATA_FILENAME = "_metadata.json"
JSON_INDENT = 2

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.-]")


class AdStore(Protocol):
    """Persistence interface the sync orchestrators depend on."""

    def save(self, record: AdRecord) -> bool: ...

    def load(self, page_id: str, ad_id: str) -> AdRecord | None: ...

    def save_metadata(self, metadata: PageMetadata) -> bool: ...

    def load_metadata(self, page_id: str) -> PageMetadata | None: ...

    def list_ads(self, page_id: str) -> list[AdRecord]: ...


def compute_content_hash(data: bytes) -> str:
    """Compute SHA-256 hash of content.

    Args:
        data: Content to hash

    Returns:
        Hex-encoded SHA-256 hash
    """
    return hashlib.sha256(data).hexdigest()


def safe_segment(value: str) -> str:
    """Make an id usable as a single path segment.

    Ad Library ids are numeric; anything else is escaped so an id can
    never address a file outside its page directory.
    """
    cleaned = _UNSAFE_SEGMENT.sub("_", value)
    if cleaned in ("", ".", ".."):
        cleaned = cleaned.replace(".", "_") or "_"
    return cleaned


def serialize(model: AdRecord | PageMetadata) -> bytes:
    """Render a model the way it is stored on disk."""
    text = json.dumps(model.model_dump(mode="json"), indent=JSON_INDENT, ensure_ascii=False)
    return text.encode("utf-8")


class FileAdStore:
    """JSON file store rooted at a directory.

    Args:
        root: Root directory; created on first write
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def page_dir(self, page_id: str) -> Path:
        return self.root / safe_segment(page_id)

    def ad_path(self, page_id: str, ad_id: str) -> Path:
        return self.page_dir(page_id) / f"{safe_segment(ad_id)}.json"

    def metadata_path(self, page_id: str) -> Path:
        return self.page_dir(page_id) / METADATA_FILENAME

    # =========================
    # Ads
    # =========================

    def save(self, record: AdRecord) -> bool:
        """Persist an ad.

        Returns:
            True if the file was written, False if it already held
            identical content

        Raises:
            PersistenceError: If the file could not be written
        """
        return self._write(self.ad_path(record.page_id, record.id), serialize(record))

    def load(self, page_id: str, ad_id: str) -> AdRecord | None:
        """Load the stored version of an ad, or None if there is none."""
        data = self._read_json(self.ad_path(page_id, ad_id))
        if data is None:
            return None
        try:
            return AdRecord.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid stored ad {page_id}/{ad_id}: {e.error_count()} errors")
            return None

    def list_ads(self, page_id: str) -> list[AdRecord]:
        """All stored ads of a page, ordered by file name."""
        page_dir = self.page_dir(page_id)
        if not page_dir.is_dir():
            return []

        records = []
        for path in sorted(page_dir.glob("*.json")):
            if path.name == METADATA_FILENAME:
                continue
            data = self._read_json(path)
            if data is None:
                continue
            try:
                records.append(AdRecord.model_validate(data))
            except ValidationError:
                logger.warning(f"Skipping invalid stored ad {path}")
        return records

    def list_pages(self) -> list[str]:
        """Directory names of all stored pages."""
        if not self.root.is_dir():
            return []
        return sorted(path.name for path in self.root.iterdir() if path.is_dir())

    # =========================
    # Page metadata
    # =========================

    def save_metadata(self, metadata: PageMetadata) -> bool:
        """Overwrite the metadata file of a page."""
        return self._write(self.metadata_path(metadata.page_id), serialize(metadata))

    def load_metadata(self, page_id: str) -> PageMetadata | None:
        data = self._read_json(self.metadata_path(page_id))
        if data is None:
            return None
        try:
            return PageMetadata.model_validate(data)
        except ValidationError:
            logger.warning(f"Ignoring invalid metadata for page {page_id}")
            return None

    # =========================
    # File helpers
    # =========================

    def _read_json(self, path: Path) -> dict | None:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}", path=str(path)) from e

        try:
            data = json.loads(text)
        except (ValueError, RecursionError):
            logger.warning(f"Ignoring corrupt JSON file {path}")
            return None
        return data if isinstance(data, dict) else None

    def _write(self, path: Path, content: bytes) -> bool:
        try:
            if path.exists() and compute_content_hash(path.read_bytes()) == compute_content_hash(content):
                return False

            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}", path=str(path)) from e
        return True


class InMemoryAdStore:
    """Dict-backed store with the same semantics as FileAdStore.

    Used for dry runs and tests. ``writes`` counts effective writes.
    """

    def __init__(self):
        self.ads: dict[tuple[str, str], AdRecord] = {}
        self.metadata: dict[str, PageMetadata] = {}
        self.writes = 0

    def save(self, record: AdRecord) -> bool:
        key = (record.page_id, record.id)
        existing = self.ads.get(key)
        if existing is not None and serialize(existing) == serialize(record):
            return False
        self.ads[key] = record
        self.writes += 1
        return True

    def load(self, page_id: str, ad_id: str) -> AdRecord | None:
        return self.ads.get((page_id, ad_id))

    def list_ads(self, page_id: str) -> list[AdRecord]:
        return [record for (page, _), record in sorted(self.ads.items()) if page == page_id]

    def save_metadata(self, metadata: PageMetadata) -> bool:
        self.metadata[metadata.page_id] = metadata
        self.writes += 1
        return True

    def load_metadata(self, page_id: str) -> PageMetadata | None:
        return self.metadata.get(page_id)


def get_store(root: str | Path | None = None) -> FileAdStore:
    """Create a file store rooted at ``root`` or the configured data dir."""
    if root is None:
        from .config import get_settings

        root = get_settings().data_dir
    return FileAdStore(root)
