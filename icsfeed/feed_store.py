"""Feed metadata store keyed by URL, optionally backed by a JSON file with atomic writes."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .models import FeedSource

logger = logging.getLogger(__name__)


class FeedStore:
    """In-memory map of url -> FeedSource with optional JSON persistence.

    The on-disk format is a JSON object mapping url -> metadata object.
    Only the poll loop writes to the store; there is no locking.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        feeds: Iterable[FeedSource] = (),
    ) -> None:
        """Create a FeedStore.

        Args:
            path: Optional path to a JSON file. Without it the store is memory-only.
            feeds: Initial feed metadata (e.g. from configuration); persisted
                entries loaded from ``path`` take precedence for the same URL.
        """
        self._path = Path(path) if path else None
        self._feeds: dict[str, FeedSource] = {}

        for feed in feeds:
            self._feeds[feed.url] = feed

        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                logger.debug("Could not ensure directory for feed store: %s", self._path.parent)
            self.load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def load(self) -> None:
        """Load JSON from disk (if it exists) and merge it into memory.

        Malformed entries are skipped. Safe to call multiple times.
        """
        if self._path is None or not self._path.exists():
            logger.debug("Feed store file not found; starting from memory: %s", self._path)
            return

        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read feed store %s: %s", self._path, exc)
            return

        if not isinstance(data, dict):
            logger.warning("Feed store %s root is not an object; ignoring", self._path)
            return

        loaded = 0
        for url, meta in data.items():
            if not url or not isinstance(meta, dict):
                continue
            try:
                self._feeds[url] = FeedSource.model_validate({**meta, "url": url})
                loaded += 1
            except ValidationError as exc:
                logger.warning("Skipping malformed feed store entry %r: %s", url, exc)

        logger.debug("Loaded feed store %s (%d entries)", self._path, loaded)

    def save(self) -> None:
        """Persist the store to disk atomically (no-op without a path).

        Writes to a temporary file in the same directory, then replaces the target.
        """
        if self._path is None:
            return

        data = {
            url: feed.model_dump(mode="json", exclude={"url"})
            for url, feed in self._feeds.items()
        }

        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", dir=self._path.parent, delete=False, encoding="utf-8"
            ) as tf:
                tmp_path = Path(tf.name)
                json.dump(data, tf, ensure_ascii=False, indent=2)
                tf.flush()
                with contextlib.suppress(OSError):
                    os.fsync(tf.fileno())
            tmp_path.replace(self._path)
        except OSError as exc:
            logger.warning("Failed to persist feed store to %s: %s", self._path, exc)
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

    def get(self, url: str) -> Optional[FeedSource]:
        return self._feeds.get(url)

    def ensure(self, url: str) -> FeedSource:
        """Return the stored feed for ``url``, creating an empty entry if needed."""
        feed = self._feeds.get(url)
        if feed is None:
            feed = FeedSource(url=url)
            self._feeds[url] = feed
        return feed

    def put(self, feed: FeedSource) -> None:
        self._feeds[feed.url] = feed

    def remove(self, url: str) -> bool:
        """Drop a feed that was removed from configuration."""
        removed = self._feeds.pop(url, None) is not None
        if removed:
            logger.info("Removed feed metadata for %s", url)
        return removed

    def reset(self, url: str) -> bool:
        """Forget the content hash and last-checked time so the next poll counts as new.

        Validators are kept.

        Returns:
            True if the feed was known
        """
        feed = self._feeds.get(url)
        if feed is None:
            return False
        self._feeds[url] = feed.model_copy(update={"content_hash": None, "last_checked_at": None})
        return True

    def urls(self) -> list[str]:
        return list(self._feeds)

    def __contains__(self, url: object) -> bool:
        return url in self._feeds

    def __len__(self) -> int:
        return len(self._feeds)
