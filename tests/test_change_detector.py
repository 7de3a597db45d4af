"""Unit tests for icsfeed.change_detector."""

import hashlib
from datetime import datetime, timezone

import pytest

from icsfeed.change_detector import ChangeDetector, content_hash
from icsfeed.models import FeedSource, FetchResult

pytestmark = [pytest.mark.unit]

URL = "https://calendar.example.com/team.ics"
BODY = "BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
FIXED_NOW = datetime(2025, 6, 1, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def detector() -> ChangeDetector:
    return ChangeDetector(time_provider=lambda: FIXED_NOW)


def test_content_hash_when_body_given_then_sha256_hex() -> None:
    """test_content_hash_when_body_given_then_sha256_hex"""
    assert content_hash(BODY) == hashlib.sha256(BODY.encode("utf-8")).hexdigest()
    assert content_hash(None) == content_hash("")


def test_has_changed_when_first_fetch_then_changed_and_metadata_stored(detector) -> None:
    """test_has_changed_when_first_fetch_then_changed_and_metadata_stored"""
    result = FetchResult.ok(BODY, etag='"v1"', last_modified="Sun, 01 Jun 2025 08:00:00 GMT")

    changed, updated = detector.has_changed(result, FeedSource(url=URL))

    assert changed is True
    assert updated.etag == '"v1"'
    assert updated.last_modified == "Sun, 01 Jun 2025 08:00:00 GMT"
    assert updated.content_hash == content_hash(BODY)
    assert updated.last_checked_at == FIXED_NOW


def test_has_changed_when_same_body_without_etag_then_unchanged(detector) -> None:
    """test_has_changed_when_same_body_without_etag_then_unchanged"""
    feed = FeedSource(url=URL, content_hash=content_hash(BODY))

    changed, updated = detector.has_changed(FetchResult.ok(BODY), feed)

    assert changed is False
    assert updated.content_hash == feed.content_hash


def test_has_changed_when_body_differs_then_changed(detector) -> None:
    """test_has_changed_when_body_differs_then_changed"""
    feed = FeedSource(url=URL, content_hash=content_hash(BODY))

    changed, updated = detector.has_changed(FetchResult.ok(BODY + "X"), feed)

    assert changed is True
    assert updated.content_hash == content_hash(BODY + "X")


def test_has_changed_when_both_etags_present_then_etags_decide(detector) -> None:
    """test_has_changed_when_both_etags_present_then_etags_decide"""
    feed = FeedSource(url=URL, etag='"v1"', content_hash="stale")

    changed, _ = detector.has_changed(FetchResult.ok(BODY, etag='"v1"'), feed)
    assert changed is False

    changed, updated = detector.has_changed(FetchResult.ok(BODY, etag='"v2"'), feed)
    assert changed is True
    assert updated.etag == '"v2"'


def test_has_changed_when_server_omits_validators_then_previous_kept(detector) -> None:
    """test_has_changed_when_server_omits_validators_then_previous_kept"""
    feed = FeedSource(url=URL, etag='"v1"', last_modified="yesterday", content_hash=content_hash(BODY))

    changed, updated = detector.has_changed(FetchResult.ok(BODY), feed)

    assert changed is False
    assert updated.etag == '"v1"'
    assert updated.last_modified == "yesterday"


def test_has_changed_when_not_modified_then_unchanged_and_checked(detector) -> None:
    """test_has_changed_when_not_modified_then_unchanged_and_checked"""
    feed = FeedSource(url=URL, etag='"v1"', content_hash="abc")

    changed, updated = detector.has_changed(FetchResult.unchanged(), feed)

    assert changed is False
    assert updated.etag == '"v1"'
    assert updated.content_hash == "abc"
    assert updated.last_checked_at == FIXED_NOW


def test_has_changed_when_fetch_failed_then_only_checked_time_updated(detector) -> None:
    """test_has_changed_when_fetch_failed_then_only_checked_time_updated"""
    feed = FeedSource(url=URL, etag='"v1"', last_modified="yesterday", content_hash="abc")

    changed, updated = detector.has_changed(FetchResult.failed("HTTP 500: Internal Server Error", 500), feed)

    assert changed is False
    assert updated.model_dump(exclude={"last_checked_at"}) == feed.model_dump(exclude={"last_checked_at"})
    assert updated.last_checked_at == FIXED_NOW


def test_has_changed_when_called_then_input_feed_not_mutated(detector) -> None:
    """test_has_changed_when_called_then_input_feed_not_mutated"""
    feed = FeedSource(url=URL)

    detector.has_changed(FetchResult.ok(BODY, etag='"v1"'), feed)

    assert feed.etag is None
    assert feed.content_hash is None
