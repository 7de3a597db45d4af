"""icsfeed.config_loader

Config loader for icsfeed.

- Reads YAML (PyYAML ``safe_load``); JSON files load the same way since JSON
  is valid YAML.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from .aggregator import DEFAULT_WINDOW_DAYS, clamp_window_days
from .exceptions import FeedConfigError
from .feed_fetcher import FeedFetcher
from .models import FeedSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "icsfeed.yaml"
DEFAULT_POLL_INTERVAL_MINUTES = 1
MIN_POLL_INTERVAL_MINUTES = 1


def validate_feed_url(url: Any) -> str:
    """Return the stripped URL or raise FeedConfigError for empty/invalid ones."""
    if url is None or not str(url).strip():
        raise FeedConfigError("Feed URL is empty")
    text = str(url).strip()
    if not FeedFetcher.validate_url(text):
        raise FeedConfigError(f"Invalid feed URL: {text!r}")
    return text


def _feed_from_entry(entry: Any) -> FeedSource:
    """Build a FeedSource from a URL string or a mapping with cached validators."""
    if isinstance(entry, dict):
        url = validate_feed_url(entry.get("url"))
        return FeedSource(
            url=url,
            etag=entry.get("etag") or None,
            last_modified=entry.get("lastModified") or entry.get("last_modified") or None,
            content_hash=entry.get("hash") or entry.get("content_hash") or None,
        )
    return FeedSource(url=validate_feed_url(entry))


@dataclass
class Config:
    """Typed configuration for icsfeed.

    Fields:
        feeds: feed descriptors (URL plus any cached validators)
        poll_interval_minutes: minutes between poll cycles (>= 1)
        window_days: days shown after today (1..30)
        metadata_path: optional JSON file persisting feed validators
        log_level: logging level name
    """

    feeds: list[FeedSource] = field(default_factory=list)
    poll_interval_minutes: int = DEFAULT_POLL_INTERVAL_MINUTES
    window_days: int = DEFAULT_WINDOW_DAYS
    metadata_path: Optional[str] = None
    log_level: str = "INFO"

    @property
    def feed_urls(self) -> list[str]:
        return [feed.url for feed in self.feeds]

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric values are coerced to int, invalid or duplicate feed entries
        are dropped, the poll interval has a floor of one minute and the
        window is clamped to 1..30 days. Coercions are logged as warnings.
        """
        if data is None:
            data = {}

        # Feeds: accept the `icals` key as well
        feeds_raw = data.get("feeds") if "feeds" in data else data.get("icals", [])
        if feeds_raw is None:
            feeds_raw = []
        if not isinstance(feeds_raw, (list, tuple)):
            logger.warning("Config `feeds` is not a list; coercing to single-item list")
            feeds_raw = [feeds_raw]

        feeds: list[FeedSource] = []
        seen: set[str] = set()
        for entry in feeds_raw:
            try:
                feed = _feed_from_entry(entry)
            except FeedConfigError as e:
                logger.warning("Ignoring feed entry %r: %s", entry, e.message)
                continue
            if feed.url in seen:
                logger.warning("Ignoring duplicate feed %s", feed.url)
                continue
            seen.add(feed.url)
            feeds.append(feed)

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        interval = _coerce_int("poll_interval_minutes", DEFAULT_POLL_INTERVAL_MINUTES)
        if interval < MIN_POLL_INTERVAL_MINUTES:
            logger.warning(
                "poll_interval_minutes %d below minimum; coercing to %d",
                interval,
                MIN_POLL_INTERVAL_MINUTES,
            )
            interval = MIN_POLL_INTERVAL_MINUTES

        window_days = _coerce_int("window_days", DEFAULT_WINDOW_DAYS)
        clamped = clamp_window_days(window_days)
        if clamped != window_days:
            logger.warning("window_days %d out of range; coercing to %d", window_days, clamped)

        metadata_path = data.get("metadata_path")
        metadata_path = str(metadata_path) if metadata_path else None

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            feeds=feeds,
            poll_interval_minutes=interval,
            window_days=clamped,
            metadata_path=metadata_path,
            log_level=log_level,
        )


def _load_mapping(path: Path) -> Any:
    """Load a YAML or JSON document; an empty file yields an empty dict."""
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Unable to parse config file {path}: {exc}") from exc
    return {} if loaded is None else loaded


def _apply_env_overrides(cfg: Config) -> Config:
    env_level = os.getenv("ICSFEED_LOG_LEVEL", "").strip().upper()
    if env_level:
        logger.debug("Log level overridden by ICSFEED_LOG_LEVEL=%s", env_level)
        cfg = replace(cfg, log_level=env_level)
    return cfg


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ./icsfeed.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    - ICSFEED_LOG_LEVEL overrides ``log_level``.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return _apply_env_overrides(Config())

    raw = _load_mapping(p)
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = _apply_env_overrides(Config.from_dict(raw))
    logger.info("Loaded configuration from %s (%d feeds)", p, len(cfg.feeds))
    logger.debug("Configuration values: %s", cfg)
    return cfg
