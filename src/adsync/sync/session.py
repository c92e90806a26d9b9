"""Per-run accumulation of captured ads."""

from ..models import AdRecord


class SessionDeduplicator:
    """Collects ads by id for the duration of one capture run.

    A later sighting of an id replaces the earlier one, since later
    responses during a scroll session are at least as complete. With a
    cap set, every ``accept`` after the cap is reached is refused.

    Args:
        max_records: Optional cap on distinct ads held
    """

    def __init__(self, max_records: int | None = None):
        if max_records is not None and max_records < 0:
            raise ValueError("max_records must be non-negative")
        self.max_records = max_records
        self._records: dict[str, AdRecord] = {}

    def accept(self, record: AdRecord) -> bool:
        """Add or replace a record.

        Returns:
            False if the cap is reached
        """
        if self.cap_reached:
            return False
        self._records[record.id] = record
        return True

    @property
    def cap_reached(self) -> bool:
        """Whether the session holds as many ads as it may."""
        return self.max_records is not None and len(self._records) >= self.max_records

    def size(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, ad_id: object) -> bool:
        return ad_id in self._records

    def get(self, ad_id: str) -> AdRecord | None:
        return self._records.get(ad_id)

    def records(self) -> list[AdRecord]:
        """Held records in first-seen order."""
        return list(self._records.values())

    def page_ids(self) -> list[str]:
        """Distinct page ids in first-seen order."""
        return list(dict.fromkeys(record.page_id for record in self._records.values()))

    def count_for_page(self, page_id: str) -> int:
        return sum(1 for record in self._records.values() if record.page_id == page_id)
