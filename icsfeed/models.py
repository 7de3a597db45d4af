"""Data models for feed ingestion and occurrence expansion."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DATE_FORMAT = "%Y-%m-%d"
DATE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"

DEFAULT_SUMMARY = "No title"


class DateKind(str, Enum):
    """Kinds of start/end values carried by an occurrence."""

    DATE = "date"
    DATE_TIME = "dateTime"


class DateValue(BaseModel):
    """All-day date or wall-clock timestamp, stored exactly as printed in the feed.

    No timezone conversion is ever applied: ``20250601T090000Z`` and
    ``TZID=Europe/Paris:20250601T090000`` both become ``2025-06-01T09:00:00``.
    """

    kind: DateKind
    value: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_date(cls, value: date) -> DateValue:
        return cls(kind=DateKind.DATE, value=value.strftime(DATE_FORMAT))

    @classmethod
    def from_datetime(cls, value: datetime) -> DateValue:
        return cls(kind=DateKind.DATE_TIME, value=value.strftime(DATE_TIME_FORMAT))

    @property
    def is_all_day(self) -> bool:
        return self.kind == DateKind.DATE

    @property
    def day_key(self) -> str:
        """Date-only prefix (``YYYY-MM-DD``) of the value."""
        return self.value.split("T", 1)[0]

    def to_datetime(self) -> datetime:
        """Return a naive datetime (midnight for all-day values).

        Raises:
            ValueError: If the stored digits do not form a real date/time
        """
        if self.is_all_day:
            return datetime.strptime(self.value, DATE_FORMAT)
        return datetime.strptime(self.value, DATE_TIME_FORMAT)

    def to_date(self) -> date:
        """Return the calendar day of this value."""
        return self.to_datetime().date()

    def __str__(self) -> str:
        return self.value


class EventOccurrence(BaseModel):
    """One concrete instance of an event, immutable once produced."""

    summary: str = Field(default=DEFAULT_SUMMARY, description="Event title")
    start: Optional[DateValue] = Field(default=None, description="Occurrence start")
    end: Optional[DateValue] = Field(default=None, description="Occurrence end")
    uid: Optional[str] = Field(default=None, description="UID of the source VEVENT")
    is_override: bool = Field(
        default=False, description="True when the block carried a RECURRENCE-ID"
    )
    recurrence_id: Optional[DateValue] = Field(
        default=None, description="Anchor of the generated instance this override replaces"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def fingerprint(self) -> tuple[str, Optional[str]]:
        """Deduplication key shared across feeds: (summary, start value)."""
        return (self.summary, self.start.value if self.start else None)


class FeedSource(BaseModel):
    """Per-feed validators and change-detection metadata kept between polls."""

    url: str = Field(..., description="Feed URL")
    etag: Optional[str] = Field(default=None, description="Last ETag returned by the server")
    last_modified: Optional[str] = Field(
        default=None, description="Last Last-Modified header returned by the server"
    )
    content_hash: Optional[str] = Field(default=None, description="SHA-256 of the last body")
    last_checked_at: Optional[datetime] = Field(default=None, description="Last poll time")

    model_config = ConfigDict(frozen=True)

    def conditional_headers(self) -> dict[str, str]:
        """Get conditional request headers for re-fetching this feed."""
        headers = {}

        if self.etag:
            headers["If-None-Match"] = self.etag

        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified

        return headers


class FetchStatus(str, Enum):
    """Outcome of a single conditional fetch."""

    UNCHANGED = "unchanged"
    OK = "ok"
    FAILED = "failed"


class FetchResult(BaseModel):
    """Response from a feed fetch operation."""

    status: FetchStatus
    body: Optional[str] = None
    status_code: Optional[int] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def unchanged(cls, status_code: int = 304) -> FetchResult:
        return cls(status=FetchStatus.UNCHANGED, status_code=status_code)

    @classmethod
    def ok(
        cls,
        body: str,
        status_code: int = 200,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> FetchResult:
        return cls(
            status=FetchStatus.OK,
            body=body,
            status_code=status_code,
            etag=etag,
            last_modified=last_modified,
        )

    @classmethod
    def failed(cls, reason: str, status_code: Optional[int] = None) -> FetchResult:
        return cls(status=FetchStatus.FAILED, reason=reason, status_code=status_code)

    @property
    def is_not_modified(self) -> bool:
        """Check if the server reported the feed as not modified."""
        return self.status == FetchStatus.UNCHANGED

    @property
    def success(self) -> bool:
        return self.status != FetchStatus.FAILED
