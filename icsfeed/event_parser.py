"""Tolerant VEVENT scanner turning ICS text into event occurrences.

The scanner works line by line instead of building a full calendar object:
folded lines are joined, each content line is split into name/params/value on
its own, and every field of a VEVENT is extracted independently, so one
malformed line or field never hides the rest of the event.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Optional

from icalendar.parser import Contentlines

from .exceptions import FeedParseError
from .models import DEFAULT_SUMMARY, DateKind, DateValue, EventOccurrence
from .occurrence_filter import OverrideAnchor, apply_exclusions, apply_overrides
from .rrule_expander import RRuleExpander

logger = logging.getLogger(__name__)

# (NAME, VALUE) of one content line inside a VEVENT
Property = tuple[str, str]

_DATE_TIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})?(\d{2})?(\d{2})?")
_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def parse_ics_date(raw: str) -> DateValue:
    """Convert an ICS date or date-time value to a DateValue, keeping its digits.

    ``20250601T090000Z`` -> dateTime ``2025-06-01T09:00:00``;
    ``20250601`` -> date ``2025-06-01``. Missing time digits become ``00``.

    Raises:
        FeedParseError: If the value does not start with an 8-digit date
    """
    text = raw.strip().upper().rstrip("Z").replace("-", "").replace(":", "")

    if "T" in text:
        match = _DATE_TIME_RE.match(text)
        if not match:
            raise FeedParseError(f"Invalid date-time value: {raw!r}")
        year, month, day, hour, minute, second = match.groups()
        return DateValue(
            kind=DateKind.DATE_TIME,
            value=f"{year}-{month}-{day}T{hour or '00'}:{minute or '00'}:{second or '00'}",
        )

    match = _DATE_RE.match(text)
    if not match:
        raise FeedParseError(f"Invalid date value: {raw!r}")
    year, month, day = match.groups()
    return DateValue(kind=DateKind.DATE, value=f"{year}-{month}-{day}")


def normalize_exdates(raw: str) -> set[str]:
    """Split one EXDATE value on commas and normalize every entry like DTSTART.

    Entries that are not recognizable dates are kept verbatim (minus a UTC marker).
    """
    normalized = set()
    for part in raw.split(","):
        part = part.strip().rstrip("Zz")
        if not part:
            continue
        try:
            normalized.add(parse_ics_date(part).value)
        except FeedParseError:
            normalized.add(part)
    return normalized


@dataclass
class ParsedBlock:
    """Fields extracted from one VEVENT block before expansion."""

    occurrence: EventOccurrence
    rrule: Optional[str] = None
    exclusions: set[str] = field(default_factory=set)
    cancelled: bool = False

    @property
    def override_anchor(self) -> Optional[OverrideAnchor]:
        occurrence = self.occurrence
        if occurrence.uid and occurrence.recurrence_id is not None:
            return (occurrence.uid, occurrence.recurrence_id)
        return None


class IcsEventParser:
    """Parses ICS text into EventOccurrence objects.

    Recurring events are expanded through an RRuleExpander, EXDATEs are
    removed per event and RECURRENCE-ID overrides replace the generated
    instance they point at.
    """

    def __init__(self, expander: Optional[RRuleExpander] = None) -> None:
        self.expander = expander or RRuleExpander()

    def parse(self, ics_text: str) -> list[EventOccurrence]:
        """Parse ICS content into occurrences.

        Malformed blocks are skipped; a failure of the whole document yields
        an empty list. Never raises.

        Args:
            ics_text: Raw ICS feed content

        Returns:
            Occurrences in document order (expanded instances grouped per event)
        """
        if not ics_text or not ics_text.strip():
            logger.debug("Empty ICS content provided")
            return []

        try:
            occurrences: list[EventOccurrence] = []
            cancelled: list[OverrideAnchor] = []
            block_count = 0
            skipped = 0

            for properties in self.iter_event_blocks(ics_text):
                block_count += 1
                try:
                    block = self.parse_block(properties)
                except Exception as e:
                    skipped += 1
                    logger.warning("Skipping malformed VEVENT block #%d: %s", block_count, e)
                    continue

                if block.cancelled:
                    anchor = block.override_anchor
                    if anchor is not None:
                        cancelled.append(anchor)
                    continue

                occurrences.extend(self._block_occurrences(block))

            result = apply_overrides(occurrences, cancelled)

            logger.debug(
                "Parsed %d occurrences from %d VEVENT blocks (%d skipped, %d cancelled overrides)",
                len(result),
                block_count,
                skipped,
                len(cancelled),
            )
            return result

        except Exception:
            logger.exception("Failed to parse ICS content")
            return []

    def _block_occurrences(self, block: ParsedBlock) -> list[EventOccurrence]:
        base = block.occurrence

        if block.rrule and base.start is not None:
            expanded = self.expander.expand(base, block.rrule)
            return apply_exclusions(expanded, block.exclusions)

        # Avoid empty events: need a real title or a start
        if base.summary != DEFAULT_SUMMARY or base.start is not None:
            return [base]
        return []

    def iter_event_blocks(self, ics_text: str) -> Iterator[list[Property]]:
        """Yield the top-level properties of every complete VEVENT block.

        Properties of nested components (VALARM, ...) are not included. An
        unterminated block is dropped when the next BEGIN:VEVENT or the end of
        the input is reached.
        """
        block: Optional[list[Property]] = None
        nested = 0

        for name, value in self._iter_content_lines(ics_text):
            if name == "BEGIN":
                component = value.strip().upper()
                if component == "VEVENT":
                    if block is not None:
                        logger.warning("Discarding unterminated VEVENT block")
                    block, nested = [], 0
                elif block is not None:
                    nested += 1
                continue

            if name == "END":
                component = value.strip().upper()
                if component == "VEVENT":
                    if block is not None:
                        yield block
                    block, nested = None, 0
                elif block is not None and nested > 0:
                    nested -= 1
                continue

            if block is not None and nested == 0:
                block.append((name, value))

        if block is not None:
            logger.warning("Incomplete VEVENT at end of input")

    def _iter_content_lines(self, ics_text: str) -> Iterator[Property]:
        """Unfold the text and yield (NAME, value) per parsable content line."""
        for line in Contentlines.from_ical(ics_text):
            if not line:
                continue
            try:
                name, _params, value = line.parts()
            except ValueError as e:
                logger.debug("Skipping malformed content line: %s", e)
                continue
            yield name.upper(), value

    def parse_block(self, properties: list[Property]) -> ParsedBlock:
        """Extract the fields of one VEVENT block.

        Each field is read independently; an unreadable DTSTART, DTEND or
        RECURRENCE-ID is left unset without affecting the others.

        Raises:
            FeedParseError: If the block has no properties at all
        """
        if not properties:
            raise FeedParseError("Empty VEVENT block")

        first: dict[str, str] = {}
        exclusions: set[str] = set()

        for name, value in properties:
            if name == "EXDATE":
                exclusions |= normalize_exdates(value)
            elif name not in first:
                first[name] = value

        # Values from Contentline.parts() are already TEXT-unescaped
        summary = first.get("SUMMARY", "").strip() or DEFAULT_SUMMARY
        uid = first.get("UID", "").strip() or None

        occurrence = EventOccurrence(
            summary=summary,
            start=self._date_field(first, "DTSTART"),
            end=self._date_field(first, "DTEND"),
            uid=uid,
            is_override="RECURRENCE-ID" in first,
            recurrence_id=self._date_field(first, "RECURRENCE-ID"),
        )

        rrule = first.get("RRULE", "").strip() or None
        cancelled = first.get("STATUS", "").strip().upper() == "CANCELLED"

        return ParsedBlock(
            occurrence=occurrence,
            rrule=rrule,
            exclusions=exclusions,
            cancelled=cancelled,
        )

    @staticmethod
    def _date_field(fields: dict[str, str], name: str) -> Optional[DateValue]:
        raw = fields.get(name)
        if raw is None:
            return None
        try:
            return parse_ics_date(raw)
        except FeedParseError as e:
            logger.debug("Ignoring %s: %s", name, e.message)
            return None


def parse_ics(ics_text: str) -> list[EventOccurrence]:
    """Parse ICS text with a default parser."""
    return IcsEventParser().parse(ics_text)
