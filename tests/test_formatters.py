from datetime import date

import pytest

from worklog_migrator.utils.formatters import (
    format_date,
    format_provenance_comment,
    format_time,
    parse_date,
    parse_formatted_time,
    parse_provenance_key,
)
from worklog_migrator.utils.validators import validate_date, validate_display_mode, validate_issue_key


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0h"),
        (59, "0h"),
        (60, "1m"),
        (1800, "30m"),
        (3600, "1h"),
        (5400, "1h 30m"),
        (27000, "7h 30m"),
        (-5, "0h"),
    ],
)
def test_format_time_hm(seconds, expected):
    assert format_time(seconds, "hm") == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0"),
        (3600, "1"),
        (5400, "1.5"),
        (900, "0.25"),
        (36000, "10"),
        (1000, "0.28"),
    ],
)
def test_format_time_decimal(seconds, expected):
    assert format_time(seconds, "decimal") == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1h 30m", 5400),
        ("1h30m", 5400),
        ("1.5h", 5400),
        ("1,5h", 5400),
        ("1,5 H", 5400),
        ("90m", 5400),
        ("0.5m", 30),
        ("2", 7200),  # below 8 -> hours
        ("7", 25200),
        ("8", 480),  # 8 and above -> minutes
        ("45", 2700),
        ("1.5", 5400),  # decimal separator -> hours
        ("10.0", 36000),
        ("0h", 0),
        ("", 0),
        (None, 0),
        ("abc", 0),
        ("h", 0),
        ("1x", 0),
    ],
)
def test_parse_formatted_time(text, expected):
    assert parse_formatted_time(text) == expected


def test_parse_decimal_mode_reads_bare_numbers_as_hours():
    assert parse_formatted_time("10", mode="decimal") == 36000
    assert parse_formatted_time("10") == 600


@pytest.mark.parametrize("seconds", [0, 1, 59, 60, 61, 1799, 3600, 5400, 5459, 28800, 86399, 123456])
def test_hm_round_trip_is_minute_lossy_and_stable(seconds):
    text = format_time(seconds, "hm")
    parsed = parse_formatted_time(text)
    assert 0 <= seconds - parsed < 60
    assert format_time(parsed, "hm") == text
    if seconds % 60 == 0:
        assert parsed == seconds


@pytest.mark.parametrize("seconds", [0, 36, 900, 3600, 5400, 5399, 28800, 36000, 123456])
def test_decimal_round_trip_within_rounding(seconds):
    text = format_time(seconds, "decimal")
    parsed = parse_formatted_time(text, mode="decimal")
    rounded = round(round(seconds / 3600, 2) * 3600)
    assert abs(parsed - rounded) < 1
    assert format_time(parsed, "decimal") == text


def test_provenance_comment_round_trip():
    comment = format_provenance_comment("PROJ-12", "Fixed login")
    assert comment == "[PROJ-12] Fixed login"
    assert parse_provenance_key(comment) == "PROJ-12"
    assert format_provenance_comment("PROJ-12", "") == "[PROJ-12]"


@pytest.mark.parametrize("comment", [None, "", "No prefix", "PROJ-1] x", "[] x"])
def test_parse_provenance_key_without_prefix(comment):
    assert parse_provenance_key(comment) is None


def test_dates():
    assert format_date(date(2026, 1, 5)) == "2026-01-05"
    assert format_date(None) == ""
    assert parse_date("2026-01-05") == date(2026, 1, 5)
    with pytest.raises(ValueError):
        parse_date("05.01.2026")


def test_validators():
    assert validate_date("2026-02-28")
    assert not validate_date("2026-02-30")
    assert validate_issue_key("PROJ-123")
    assert validate_issue_key("ab2-1")
    assert not validate_issue_key("PROJ")
    assert not validate_issue_key("PROJ-12a")
    assert validate_display_mode("hm")
    assert not validate_display_mode("minutes")
