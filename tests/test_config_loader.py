"""Unit tests for icsfeed.config_loader."""

import json

import pytest

from icsfeed.config_loader import Config, load_config, validate_feed_url
from icsfeed.exceptions import FeedConfigError

pytestmark = [pytest.mark.unit]


def test_config_from_dict_when_empty_then_defaults() -> None:
    """test_config_from_dict_when_empty_then_defaults"""
    cfg = Config.from_dict({})

    assert cfg.feeds == []
    assert cfg.poll_interval_minutes == 1
    assert cfg.window_days == 14
    assert cfg.metadata_path is None
    assert cfg.log_level == "INFO"


def test_config_from_dict_when_feed_entries_mixed_then_invalid_and_duplicates_dropped() -> None:
    """test_config_from_dict_when_feed_entries_mixed_then_invalid_and_duplicates_dropped"""
    cfg = Config.from_dict(
        {
            "feeds": [
                "https://a.example.com/cal.ics",
                "",
                "ftp://b.example.com/cal.ics",
                None,
                {"url": "https://c.example.com/cal.ics", "etag": '"e"', "lastModified": "lm", "hash": "h"},
                " https://a.example.com/cal.ics ",
                {"etag": "no url"},
            ]
        }
    )

    assert cfg.feed_urls == ["https://a.example.com/cal.ics", "https://c.example.com/cal.ics"]
    stored = cfg.feeds[1]
    assert stored.etag == '"e"'
    assert stored.last_modified == "lm"
    assert stored.content_hash == "h"


def test_config_from_dict_when_icals_key_then_used_as_feeds() -> None:
    """test_config_from_dict_when_icals_key_then_used_as_feeds"""
    cfg = Config.from_dict({"icals": "https://a.example.com/cal.ics"})

    assert cfg.feed_urls == ["https://a.example.com/cal.ics"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [({"window_days": 0}, 1), ({"window_days": 45}, 30), ({"window_days": "7"}, 7), ({"window_days": "x"}, 14)],
)
def test_config_from_dict_when_window_days_given_then_clamped(raw, expected) -> None:
    """test_config_from_dict_when_window_days_given_then_clamped"""
    assert Config.from_dict(raw).window_days == expected


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (-10, 1), (5, 5), ("15", 15), (None, 1)])
def test_config_from_dict_when_poll_interval_given_then_floor_of_one(raw, expected) -> None:
    """test_config_from_dict_when_poll_interval_given_then_floor_of_one"""
    assert Config.from_dict({"poll_interval_minutes": raw}).poll_interval_minutes == expected


def test_validate_feed_url_when_invalid_then_raises() -> None:
    """test_validate_feed_url_when_invalid_then_raises"""
    assert validate_feed_url(" http://x.example.com/a.ics ") == "http://x.example.com/a.ics"
    for bad in ("", "   ", None, "mailto:someone@example.com", "https:///nohost"):
        with pytest.raises(FeedConfigError):
            validate_feed_url(bad)


def test_load_config_when_file_missing_then_defaults(tmp_path) -> None:
    """test_load_config_when_file_missing_then_defaults"""
    cfg = load_config(str(tmp_path / "missing.yaml"))

    assert cfg == Config()


def test_load_config_when_yaml_file_then_values_loaded(tmp_path) -> None:
    """test_load_config_when_yaml_file_then_values_loaded"""
    path = tmp_path / "icsfeed.yaml"
    path.write_text(
        "feeds:\n"
        "  - https://a.example.com/cal.ics\n"
        "  - url: https://b.example.com/cal.ics\n"
        "    etag: '\"v1\"'\n"
        "poll_interval_minutes: 5\n"
        "window_days: 7\n"
        "metadata_path: /tmp/feeds.json\n"
        "log_level: debug\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.feed_urls == ["https://a.example.com/cal.ics", "https://b.example.com/cal.ics"]
    assert cfg.feeds[1].etag == '"v1"'
    assert cfg.poll_interval_minutes == 5
    assert cfg.window_days == 7
    assert cfg.metadata_path == "/tmp/feeds.json"
    assert cfg.log_level == "DEBUG"


def test_load_config_when_json_file_then_values_loaded(tmp_path) -> None:
    """test_load_config_when_json_file_then_values_loaded"""
    path = tmp_path / "icsfeed.json"
    path.write_text(json.dumps({"feeds": ["https://a.example.com/cal.ics"], "window_days": 3}), encoding="utf-8")

    cfg = load_config(str(path))

    assert cfg.feed_urls == ["https://a.example.com/cal.ics"]
    assert cfg.window_days == 3


def test_load_config_when_empty_file_then_defaults(tmp_path) -> None:
    """test_load_config_when_empty_file_then_defaults"""
    path = tmp_path / "icsfeed.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) == Config()


def test_load_config_when_top_level_not_mapping_then_raises(tmp_path) -> None:
    """test_load_config_when_top_level_not_mapping_then_raises"""
    path = tmp_path / "icsfeed.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(str(path))


def test_load_config_when_yaml_invalid_then_raises(tmp_path) -> None:
    """test_load_config_when_yaml_invalid_then_raises"""
    path = tmp_path / "icsfeed.yaml"
    path.write_text("feeds: [unterminated\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(str(path))


def test_load_config_when_log_level_env_set_then_overrides(tmp_path, monkeypatch) -> None:
    """test_load_config_when_log_level_env_set_then_overrides"""
    monkeypatch.setenv("ICSFEED_LOG_LEVEL", "warning")

    cfg = load_config(str(tmp_path / "missing.yaml"))

    assert cfg.log_level == "WARNING"
