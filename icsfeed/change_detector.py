"""Change detection for polled feeds using HTTP validators and content hashes."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .models import FeedSource, FetchResult

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def content_hash(body: Optional[str]) -> str:
    """Return the SHA-256 hex digest of a feed body."""
    return hashlib.sha256((body or "").encode("utf-8")).hexdigest()


class ChangeDetector:
    """Decides whether a fetched feed differs from what was seen on the last poll."""

    def __init__(self, time_provider: Optional[Callable[[], datetime]] = None) -> None:
        """Initialize change detector.

        Args:
            time_provider: Callable returning the current time, used for last_checked_at
        """
        self.time_provider = time_provider or _now_utc

    def has_changed(self, result: FetchResult, feed: FeedSource) -> tuple[bool, FeedSource]:
        """Compare a fetch result with stored metadata.

        ETags are compared when both the response and the stored metadata
        carry one; otherwise the body hash is compared with the stored hash.
        A missing prior hash/ETag counts as changed.

        Args:
            result: Outcome of the latest fetch
            feed: Stored metadata for the feed

        Returns:
            Tuple of (changed, updated_feed). The updated feed always carries a
            fresh last_checked_at; validators and hash are refreshed only when
            a body was received.
        """
        checked_at = self.time_provider()

        if not result.success:
            logger.debug("No change recorded for %s: fetch failed (%s)", feed.url, result.reason)
            return False, feed.model_copy(update={"last_checked_at": checked_at})
        if result.is_not_modified:
            return False, feed.model_copy(update={"last_checked_at": checked_at})

        new_hash = content_hash(result.body)

        if result.etag and feed.etag:
            changed = result.etag != feed.etag
            basis = "etag"
        else:
            changed = new_hash != feed.content_hash
            basis = "hash"

        updated = feed.model_copy(
            update={
                "etag": result.etag or feed.etag,
                "last_modified": result.last_modified or feed.last_modified,
                "content_hash": new_hash,
                "last_checked_at": checked_at,
            }
        )

        logger.debug("Feed %s changed=%s (compared by %s)", feed.url, changed, basis)
        return changed, updated
