"""Merge per-feed occurrences into one windowed, deduplicated list."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Optional, Union

from .models import EventOccurrence

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 14
MIN_WINDOW_DAYS = 1
MAX_WINDOW_DAYS = 30


def clamp_window_days(
    days: int, min_days: int = MIN_WINDOW_DAYS, max_days: int = MAX_WINDOW_DAYS
) -> int:
    """Clamp a requested display window into ``[min_days, max_days]``."""
    return max(min_days, min(max_days, days))


def occurrence_day(occurrence: EventOccurrence) -> Optional[date]:
    """Return the calendar day an occurrence starts on, or None if it has no usable start."""
    if occurrence.start is None:
        return None
    try:
        return occurrence.start.to_date()
    except ValueError:
        logger.debug(
            "Unreadable start %r for %r", occurrence.start.value, occurrence.summary
        )
        return None


def filter_window(
    occurrences: Iterable[EventOccurrence], first_day: date, last_day: date
) -> list[EventOccurrence]:
    """Keep occurrences whose start day falls in ``[first_day, last_day]``."""
    kept = []
    dropped_no_day = 0
    for occurrence in occurrences:
        day = occurrence_day(occurrence)
        if day is None:
            dropped_no_day += 1
            continue
        if first_day <= day <= last_day:
            kept.append(occurrence)

    if dropped_no_day:
        logger.debug("Dropped %d occurrences without a usable start", dropped_no_day)
    return kept


def deduplicate(occurrences: Iterable[EventOccurrence]) -> list[EventOccurrence]:
    """Drop occurrences whose (summary, start) fingerprint was already seen; first wins."""
    seen: set[tuple[str, Optional[str]]] = set()
    unique = []
    for occurrence in occurrences:
        key = occurrence.fingerprint
        if key in seen:
            continue
        seen.add(key)
        unique.append(occurrence)
    return unique


def aggregate(
    per_feed: Iterable[Iterable[EventOccurrence]],
    window_start: Union[date, datetime],
    window_days: int = DEFAULT_WINDOW_DAYS,
    min_days: int = MIN_WINDOW_DAYS,
    max_days: int = MAX_WINDOW_DAYS,
) -> list[EventOccurrence]:
    """Combine occurrences from all feeds into the display list.

    The window runs from the day of ``window_start`` through the end of the
    day ``window_days`` later, both inclusive.

    Args:
        per_feed: Occurrence lists, one per feed
        window_start: Reference time; only its calendar day matters
        window_days: Requested window length, clamped to ``[min_days, max_days]``
        min_days: Lower clamp bound
        max_days: Upper clamp bound

    Returns:
        Deduplicated occurrences inside the window, in input order
    """
    days = clamp_window_days(window_days, min_days, max_days)
    if days != window_days:
        logger.debug("Window of %d days clamped to %d", window_days, days)

    first_day = window_start.date() if isinstance(window_start, datetime) else window_start
    last_day = first_day + timedelta(days=days)

    combined: list[EventOccurrence] = []
    for occurrences in per_feed:
        combined.extend(occurrences)

    windowed = filter_window(combined, first_day, last_day)
    result = deduplicate(windowed)

    logger.debug(
        "Aggregated %d occurrences -> %d in window %s..%s (%d duplicates removed)",
        len(combined),
        len(result),
        first_day,
        last_day,
        len(windowed) - len(result),
    )
    return result
