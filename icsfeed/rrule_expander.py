"""RRULE expansion for parsed feed events."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from .exceptions import RRuleExpansionError
from .models import DateValue, EventOccurrence

logger = logging.getLogger(__name__)

# Hard cap on generated instances per rule, whatever COUNT the feed asks for.
MAX_OCCURRENCES = 14
DEFAULT_COUNT = MAX_OCCURRENCES
DEFAULT_INTERVAL = 1

SUPPORTED_FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value: Optional[str]) -> Optional[int]:
    """Read the leading integer of a rule value ("5", " 5", "5x"), or None."""
    if not value:
        return None
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def parse_rrule_string(rrule_string: str) -> dict[str, str]:
    """Parse ``KEY=VALUE;KEY=VALUE`` into a dict with upper-cased keys.

    Parts without ``=`` or with an empty key/value are ignored.
    """
    parts: dict[str, str] = {}
    for part in rrule_string.split(";"):
        key, sep, value = part.partition("=")
        key = key.strip().upper()
        value = value.strip()
        if sep and key and value:
            parts[key] = value
    return parts


class RRuleExpander:
    """Expands a base occurrence into a bounded list of instances.

    Only FREQ, COUNT and INTERVAL are honored; BYxxx parts are ignored.
    """

    def __init__(self, max_occurrences: int = MAX_OCCURRENCES) -> None:
        self.max_occurrences = max_occurrences

    def expand(self, base: EventOccurrence, rrule_string: str) -> list[EventOccurrence]:
        """Expand ``base`` according to ``rrule_string``.

        Unsupported or missing frequencies, and any expansion failure, yield
        ``[base]`` instead of an error.
        """
        try:
            return self._expand(base, rrule_string)
        except RRuleExpansionError as e:
            logger.debug("RRULE expansion fell back to base event %r: %s", base.summary, e)
        except Exception:
            logger.exception("RRULE expansion failed for %r (%s)", base.summary, rrule_string)
        return [base]

    def _expand(self, base: EventOccurrence, rrule_string: str) -> list[EventOccurrence]:
        rule = parse_rrule_string(rrule_string)

        freq = rule.get("FREQ", "").upper()
        if freq not in SUPPORTED_FREQUENCIES:
            raise RRuleExpansionError(f"Unsupported frequency: {freq or '<missing>'}")
        if base.start is None:
            raise RRuleExpansionError("Base event has no start")

        count = _parse_int(rule.get("COUNT"))
        if not count or count <= 0:
            count = DEFAULT_COUNT
        count = min(count, self.max_occurrences)

        interval = _parse_int(rule.get("INTERVAL"))
        if not interval or interval <= 0:
            interval = DEFAULT_INTERVAL

        try:
            base_start = base.start.to_datetime()
        except ValueError as e:
            raise RRuleExpansionError(f"Unparsable start {base.start.value!r}") from e

        duration = self._duration(base, base_start)

        occurrences = []
        for i in range(count):
            step = i * interval
            occurrence_start = base_start + self._offset(freq, step)
            occurrences.append(
                EventOccurrence(
                    summary=base.summary,
                    start=self._format(occurrence_start, base.start.is_all_day),
                    end=(
                        self._format(occurrence_start + duration, base.start.is_all_day)
                        if duration is not None
                        else None
                    ),
                    uid=base.uid,
                    is_override=base.is_override,
                    recurrence_id=base.recurrence_id,
                )
            )

        logger.debug(
            "Expanded %r: FREQ=%s COUNT=%d INTERVAL=%d -> %d occurrences",
            base.summary,
            freq,
            count,
            interval,
            len(occurrences),
        )
        return occurrences or [base]

    @staticmethod
    def _offset(freq: str, step: int) -> relativedelta:
        if freq == "DAILY":
            return relativedelta(days=step)
        if freq == "WEEKLY":
            return relativedelta(days=7 * step)
        if freq == "MONTHLY":
            return relativedelta(months=step)
        return relativedelta(years=step)

    @staticmethod
    def _duration(base: EventOccurrence, base_start: datetime) -> Optional[timedelta]:
        """Return ``end - start`` of the base event, or None when it has no usable end."""
        if base.end is None:
            return None
        try:
            return base.end.to_datetime() - base_start
        except ValueError:
            logger.debug("Ignoring unparsable end %r of %r", base.end.value, base.summary)
            return None

    @staticmethod
    def _format(value: datetime, all_day: bool) -> DateValue:
        return DateValue.from_date(value.date()) if all_day else DateValue.from_datetime(value)
