"""Sync orchestrators.

Both modes are push-based: the browsing collaborator hands every
intercepted response to ``handle_response`` as it arrives, then calls
``finish`` once it stops browsing.

- ``FullCaptureSync`` collects every ad it sees (up to an optional cap),
  saves each accepted ad immediately and rewrites page metadata at the end.
- ``IncrementalSync`` is scoped to one page and only persists ads that are
  new or whose tracked fields changed since the last sync.

Responses that are not 200, not JSON, or carry no ads contribute nothing.
Store failures abort the run with ``PersistenceError``; ads saved before
the failure stay on disk.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from ..exceptions import AdSyncError, PersistenceError, SyncStateError
from ..extraction import PayloadExtractor, RecordNormalizer
from ..logging import (
    get_context_logger,
    log_record_processed,
    log_sync_complete,
    log_sync_error,
    log_sync_start,
)
from ..models import AdRecord, ChangeKind, PageMetadata, SyncMode, SyncResult, utcnow
from ..payload import decode_payload
from ..storage import AdStore
from .changes import ChangeDetector
from .session import SessionDeduplicator


class BaseSync(ABC):
    """Shared response handling and bookkeeping for one sync run.

    Args:
        store: Persistence collaborator
        extractor: Payload extractor (defaults to one using ``clock``)
        detector: Change detector
        clock: Source of capture and sync timestamps
    """

    mode: SyncMode

    def __init__(
        self,
        store: AdStore,
        page_id: str | None = None,
        extractor: PayloadExtractor | None = None,
        detector: ChangeDetector | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.page_id = page_id
        self.clock = clock
        self.extractor = extractor or PayloadExtractor(RecordNormalizer(clock=clock))
        self.detector = detector or ChangeDetector()
        self.result = SyncResult(mode=self.mode, page_id=page_id, started_at=clock())
        self._outcomes: dict[str, ChangeKind] = {}
        self._finished = False

        self.run_id = str(self.result.run_id)
        self.logger = get_context_logger(
            f"adsync.sync.{self.mode.value}",
            run_id=self.run_id,
            mode=self.mode.value,
            page_id=page_id,
        )
        log_sync_start(self.mode.value, self.run_id, page_id)

    @property
    def finished(self) -> bool:
        return self._finished

    def should_continue(self) -> bool:
        """Whether the browsing collaborator should keep loading ads."""
        return not self._finished

    def handle_response(
        self,
        body: str | bytes | None,
        url: str | None = None,
        status: int | None = 200,
    ) -> int:
        """Process one intercepted response body.

        Args:
            body: Response text, or None if it could not be read
            url: Response URL (logging only)
            status: HTTP status; anything but 200 is ignored

        Returns:
            Number of ads accepted (full) or persisted (incremental)

        Raises:
            PersistenceError: If the store fails; the run is marked failed
            SyncStateError: If the run already finished
        """
        self._check_open()
        self.result.responses_seen += 1

        if status is not None and status != 200:
            self.logger.debug(f"Ignoring HTTP {status} response", extra={"source_url": url})
            return 0

        accepted = 0
        for document in decode_payload(body):
            self.result.payloads_decoded += 1
            accepted += self.handle_payload(document, url=url)
        return accepted

    def handle_payload(self, payload: Any, url: str | None = None) -> int:
        """Process one decoded JSON document."""
        self._check_open()
        batch = self.extractor.extract_records(payload, source_url=url)
        self.result.records_extracted += len(batch.records)
        self.result.records_rejected += batch.rejected

        if batch.records:
            self.logger.info(f"Found {len(batch.records)} ads in response")

        accepted = 0
        for record in batch.records:
            if not self.should_continue():
                break
            try:
                accepted += self._process(record)
            except PersistenceError as e:
                self.fail(e)
                raise
        return accepted

    def finish(self) -> SyncResult:
        """Finalize the run and write page metadata.

        Raises:
            PersistenceError: If page metadata could not be written
        """
        self._check_open()
        try:
            self._finalize()
        except PersistenceError as e:
            self.fail(e)
            raise

        self._finished = True
        self.result.status = "completed"
        self.result.completed_at = self.clock()
        self._tally()
        log_sync_complete(
            self.mode.value,
            self.run_id,
            self.result.records_saved,
            self.result.duration_seconds or 0,
        )
        return self.result

    def fail(self, error: Exception) -> SyncResult:
        """Mark the run failed because of a fatal error."""
        if self._finished:
            return self.result
        self._finished = True
        self.result.status = "failed"
        self.result.completed_at = self.clock()
        self.result.errors.append({
            "error": str(error),
            "error_type": type(error).__name__,
            "fatal": True,
        })
        self._tally()
        log_sync_error(self.mode.value, self.run_id, str(error))
        return self.result

    # =========================
    # Hooks
    # =========================

    @abstractmethod
    def _process(self, record: AdRecord) -> int:
        """Handle one normalized record; return 1 if it was taken."""
        ...

    @abstractmethod
    def _finalize(self) -> None:
        """Write page metadata at the end of the run."""
        ...

    # =========================
    # Helpers
    # =========================

    def _check_open(self) -> None:
        if self._finished:
            raise SyncStateError(f"{self.mode.value} sync {self.run_id} already finished")

    def _save(self, record: AdRecord) -> None:
        if self.store.save(record):
            self.result.records_saved += 1

    def _record_outcome(self, ad_id: str, kind: ChangeKind) -> None:
        # An id keeps its first outcome unless a later sighting changes it
        if self._outcomes.get(ad_id) in (None, ChangeKind.UNCHANGED):
            self._outcomes[ad_id] = kind
        self._tally()

    def _tally(self) -> None:
        kinds = list(self._outcomes.values())
        self.result.records_new = kinds.count(ChangeKind.NEW)
        self.result.records_changed = kinds.count(ChangeKind.CHANGED)
        self.result.records_unchanged = kinds.count(ChangeKind.UNCHANGED)


class FullCaptureSync(BaseSync):
    """Capture every ad seen during a browsing session.

    Args:
        store: Persistence collaborator
        max_ads: Optional cap on distinct ads captured
    """

    mode = SyncMode.FULL

    def __init__(self, store: AdStore, max_ads: int | None = None, **kwargs: Any):
        super().__init__(store, **kwargs)
        self.session = SessionDeduplicator(max_ads)

    def should_continue(self) -> bool:
        return super().should_continue() and not self.session.cap_reached

    def _process(self, record: AdRecord) -> int:
        resighted = record.id in self.session
        if not self.session.accept(record):
            self.result.cap_reached = True
            log_record_processed(self.run_id, record.id, record.page_id, "refused")
            return 0

        if not resighted:
            previous = self.store.load(record.page_id, record.id)
            kind = self.detector.classify(previous, record)
            self._record_outcome(record.id, kind)
            log_record_processed(self.run_id, record.id, record.page_id, kind.value)

        self._save(record)
        self.result.records_total = self.session.size()

        if self.session.cap_reached and not self.result.cap_reached:
            self.result.cap_reached = True
            self.logger.info(f"Reached maximum limit of {self.session.max_records} ads")
        return 1

    def _finalize(self) -> None:
        now = self.clock()
        for page_id in self.session.page_ids():
            total = self.session.count_for_page(page_id)
            self.store.save_metadata(PageMetadata(page_id=page_id, last_synced=now, total_ads=total))
            self.logger.info(f"Page {page_id}: {total} ads captured")
        self.result.records_total = self.session.size()


class IncrementalSync(BaseSync):
    """Refresh the stored ads of one page.

    Args:
        store: Persistence collaborator
        page_id: Page whose ads are refreshed; ads of other pages are ignored
    """

    mode = SyncMode.INCREMENTAL

    def __init__(self, store: AdStore, page_id: str, **kwargs: Any):
        if not page_id:
            raise AdSyncError("Incremental sync requires a page id")
        super().__init__(store, page_id=page_id, **kwargs)
        self.previous_metadata = store.load_metadata(page_id)
        self.updated: dict[str, AdRecord] = {}

        last = self.previous_metadata.last_synced.isoformat() if self.previous_metadata else "never"
        self.logger.info(f"Last synced: {last}")

    @property
    def update_count(self) -> int:
        """Distinct ads persisted during this run."""
        return len(self.updated)

    def _process(self, record: AdRecord) -> int:
        if record.page_id != self.page_id:
            return 0

        previous = self.store.load(self.page_id, record.id)
        kind = self.detector.classify(previous, record)
        self._record_outcome(record.id, kind)
        log_record_processed(self.run_id, record.id, record.page_id, kind.value)

        if kind is ChangeKind.UNCHANGED:
            return 0

        if kind is ChangeKind.CHANGED:
            fields = ", ".join(self.detector.diff(previous, record))
            self.logger.info(f"Updated ad: {record.id} (modified: {fields})")
        else:
            self.logger.info(f"Updated ad: {record.id} (new)")

        self._save(record)
        self.updated[record.id] = record
        return 1

    def _finalize(self) -> None:
        previous_total = self.previous_metadata.total_ads if self.previous_metadata else 0
        new_count = sum(1 for kind in self._outcomes.values() if kind is ChangeKind.NEW)
        total = previous_total + new_count
        self.store.save_metadata(
            PageMetadata(page_id=self.page_id, last_synced=self.clock(), total_ads=total)
        )
        self.result.records_total = total
        self.logger.info(f"Incremental sync completed. Updated ads: {self.update_count}")
