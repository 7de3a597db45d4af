"""EXDATE exclusion and RECURRENCE-ID override handling for expanded occurrences.

Generated instances of a recurring event can be removed in two ways: an
EXDATE on the base event, or a separate VEVENT sharing the base UID whose
RECURRENCE-ID names the instance it replaces (or cancels).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import DateValue, EventOccurrence

logger = logging.getLogger(__name__)

OverrideAnchor = tuple[str, DateValue]


def is_excluded(start: DateValue | None, exclusions: set[str]) -> bool:
    """Check a start value against an exclusion set (full value or date-only prefix)."""
    if start is None or not exclusions:
        return False
    return start.value in exclusions or start.day_key in exclusions


def apply_exclusions(
    occurrences: list[EventOccurrence], exclusions: set[str]
) -> list[EventOccurrence]:
    """Remove occurrences whose start appears in the exclusion set.

    Args:
        occurrences: Expanded occurrences of one base event
        exclusions: Normalized EXDATE values of that base event

    Returns:
        Occurrences that were not excluded
    """
    if not exclusions:
        return occurrences

    kept = [o for o in occurrences if not is_excluded(o.start, exclusions)]
    if len(kept) != len(occurrences):
        logger.debug("EXDATE removed %d occurrences", len(occurrences) - len(kept))
    return kept


def _matches_anchor(start: DateValue | None, anchor: DateValue) -> bool:
    if start is None:
        return False
    if anchor.is_all_day:
        return start.day_key == anchor.value
    return start.value == anchor.value


def collect_override_anchors(occurrences: Iterable[EventOccurrence]) -> list[OverrideAnchor]:
    """Return (uid, recurrence_id) for every override occurrence."""
    return [
        (o.uid, o.recurrence_id)
        for o in occurrences
        if o.is_override and o.uid and o.recurrence_id is not None
    ]


def apply_overrides(
    occurrences: list[EventOccurrence],
    cancelled_anchors: Iterable[OverrideAnchor] = (),
) -> list[EventOccurrence]:
    """Drop generated instances superseded by an override or cancelled by one.

    An instance is superseded when it is not itself an override, shares the
    override's UID, and starts at the override's RECURRENCE-ID. The override
    occurrence stays in the list.

    Args:
        occurrences: All occurrences parsed from one feed
        cancelled_anchors: (uid, recurrence_id) of cancelled override blocks

    Returns:
        Occurrences with superseded instances removed
    """
    anchors: dict[str, list[DateValue]] = {}
    for uid, anchor in [*collect_override_anchors(occurrences), *cancelled_anchors]:
        anchors.setdefault(uid, []).append(anchor)

    if not anchors:
        return occurrences

    kept = []
    suppressed = 0
    for occurrence in occurrences:
        if (
            not occurrence.is_override
            and occurrence.uid in anchors
            and any(_matches_anchor(occurrence.start, a) for a in anchors[occurrence.uid])
        ):
            logger.debug(
                "Suppressing instance %r at %s (replaced by RECURRENCE-ID)",
                occurrence.summary,
                occurrence.start,
            )
            suppressed += 1
            continue
        kept.append(occurrence)

    if suppressed:
        logger.info("RECURRENCE-ID processing suppressed %d generated occurrences", suppressed)
    return kept
