"""Core models for captured ads and sync runs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# Fields whose difference alone makes a previously stored ad "changed"
TRACKED_FIELDS: tuple[str, ...] = ("is_active", "start_date", "end_date", "creative_bodies")


class ChangeKind(str, Enum):
    """Classification of a captured ad against the stored one."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class SyncMode(str, Enum):
    """Operating modes of a sync run."""

    FULL = "full"
    INCREMENTAL = "incremental"


class AdRecord(BaseModel):
    """Canonical ad record as persisted to the store."""

    id: str = Field(..., min_length=1, description="Ad Archive ID")
    page_id: str = Field(..., min_length=1, description="Advertiser page ID")
    is_active: bool = True
    start_date: str | None = None
    end_date: str | None = Field(default=None, description="Absent while the ad still runs")
    snapshot_url: str | None = None
    creative_bodies: list[str] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=utcnow)
    raw_data: dict[str, Any] = Field(default_factory=dict, description="Source object, verbatim")

    model_config = ConfigDict(frozen=True)

    @field_validator("creative_bodies", mode="before")
    @classmethod
    def _bodies_never_null(cls, value: Any) -> Any:
        return [] if value is None else value

    def tracked_fields(self) -> tuple[Any, ...]:
        """Values of the fields that drive change classification."""
        return tuple(getattr(self, name) for name in TRACKED_FIELDS)


class PageMetadata(BaseModel):
    """Per-page sync bookkeeping, overwritten on every sync."""

    page_id: str = Field(..., min_length=1)
    last_synced: datetime
    total_ads: int = Field(default=0, ge=0)


class SyncResult(BaseModel):
    """Result of a full or incremental sync run."""

    run_id: UUID = Field(default_factory=uuid4)
    mode: SyncMode
    page_id: str | None = None
    status: str = "running"  # "running", "completed", "failed"
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    responses_seen: int = 0
    payloads_decoded: int = 0
    records_extracted: int = 0
    records_rejected: int = 0
    records_new: int = 0
    records_changed: int = 0
    records_unchanged: int = 0
    records_saved: int = 0
    records_total: int = 0
    cap_reached: bool = False
    errors: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(use_enum_values=True)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate run duration in seconds."""
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None
