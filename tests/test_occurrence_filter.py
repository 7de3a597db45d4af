"""Unit tests for icsfeed.occurrence_filter (EXDATE and RECURRENCE-ID handling)."""

import pytest

from icsfeed.models import DateKind, DateValue, EventOccurrence
from icsfeed.occurrence_filter import (
    apply_exclusions,
    apply_overrides,
    collect_override_anchors,
    is_excluded,
)

pytestmark = [pytest.mark.unit]


def _occ(summary, start, uid=None, is_override=False, recurrence_id=None, kind=DateKind.DATE_TIME):
    return EventOccurrence(
        summary=summary,
        start=DateValue(kind=kind, value=start),
        uid=uid,
        is_override=is_override,
        recurrence_id=(
            DateValue(kind=DateKind.DATE if "T" not in recurrence_id else DateKind.DATE_TIME, value=recurrence_id)
            if recurrence_id
            else None
        ),
    )


def test_is_excluded_when_full_value_or_day_listed_then_true() -> None:
    """test_is_excluded_when_full_value_or_day_listed_then_true"""
    start = DateValue(kind=DateKind.DATE_TIME, value="2025-06-08T09:00:00")

    assert is_excluded(start, {"2025-06-08T09:00:00"})
    assert is_excluded(start, {"2025-06-08"})
    assert not is_excluded(start, {"2025-06-08T10:00:00"})
    assert not is_excluded(None, {"2025-06-08"})
    assert not is_excluded(start, set())


def test_apply_exclusions_when_matching_then_removed_in_order() -> None:
    """test_apply_exclusions_when_matching_then_removed_in_order"""
    occurrences = [
        _occ("A", "2025-06-01T09:00:00"),
        _occ("A", "2025-06-08T09:00:00"),
        _occ("A", "2025-06-15T09:00:00"),
    ]

    kept = apply_exclusions(occurrences, {"2025-06-08T09:00:00"})

    assert [o.start.value for o in kept] == ["2025-06-01T09:00:00", "2025-06-15T09:00:00"]


def test_apply_exclusions_when_empty_set_then_same_list() -> None:
    """test_apply_exclusions_when_empty_set_then_same_list"""
    occurrences = [_occ("A", "2025-06-01T09:00:00")]

    assert apply_exclusions(occurrences, set()) is occurrences


def test_collect_override_anchors_when_override_lacks_uid_then_ignored() -> None:
    """test_collect_override_anchors_when_override_lacks_uid_then_ignored"""
    occurrences = [
        _occ("Moved", "2025-06-08T11:00:00", uid="s", is_override=True, recurrence_id="2025-06-08T09:00:00"),
        _occ("Orphan", "2025-06-09T11:00:00", is_override=True, recurrence_id="2025-06-09T09:00:00"),
    ]

    anchors = collect_override_anchors(occurrences)

    assert [(uid, anchor.value) for uid, anchor in anchors] == [("s", "2025-06-08T09:00:00")]


def test_apply_overrides_when_override_matches_then_generated_instance_dropped() -> None:
    """test_apply_overrides_when_override_matches_then_generated_instance_dropped"""
    occurrences = [
        _occ("Review", "2025-06-01T09:00:00", uid="s"),
        _occ("Review", "2025-06-08T09:00:00", uid="s"),
        _occ("Review (moved)", "2025-06-08T11:00:00", uid="s", is_override=True, recurrence_id="2025-06-08T09:00:00"),
        _occ("Review", "2025-06-08T09:00:00", uid="other"),
    ]

    kept = apply_overrides(occurrences)

    assert [(o.summary, o.start.value, o.uid) for o in kept] == [
        ("Review", "2025-06-01T09:00:00", "s"),
        ("Review (moved)", "2025-06-08T11:00:00", "s"),
        ("Review", "2025-06-08T09:00:00", "other"),
    ]


def test_apply_overrides_when_anchor_is_date_then_matches_by_day() -> None:
    """test_apply_overrides_when_anchor_is_date_then_matches_by_day"""
    occurrences = [
        _occ("Trip", "2025-06-01", uid="t", kind=DateKind.DATE),
        _occ("Trip", "2025-06-02", uid="t", kind=DateKind.DATE),
        _occ("Trip (late)", "2025-06-03", uid="t", kind=DateKind.DATE, is_override=True, recurrence_id="2025-06-02"),
    ]

    kept = apply_overrides(occurrences)

    assert [o.start.value for o in kept] == ["2025-06-01", "2025-06-03"]


def test_apply_overrides_when_cancelled_anchor_then_instance_dropped() -> None:
    """test_apply_overrides_when_cancelled_anchor_then_instance_dropped"""
    occurrences = [
        _occ("Review", "2025-06-01T09:00:00", uid="s"),
        _occ("Review", "2025-06-08T09:00:00", uid="s"),
    ]
    anchor = DateValue(kind=DateKind.DATE_TIME, value="2025-06-08T09:00:00")

    kept = apply_overrides(occurrences, [("s", anchor)])

    assert [o.start.value for o in kept] == ["2025-06-01T09:00:00"]


def test_apply_overrides_when_no_overrides_then_unchanged() -> None:
    """test_apply_overrides_when_no_overrides_then_unchanged"""
    occurrences = [_occ("A", "2025-06-01T09:00:00", uid="a")]

    assert apply_overrides(occurrences) is occurrences
