"""Tests for day and tournament-type classification."""
from datetime import datetime, timedelta

import pytest

import config
from standings.errors import InvalidTournamentTypeError
from standings.services.schedule import (
    classify_day,
    classify_tournament_type,
    resolve_event,
    resolve_partition,
)

# 2024-01-20 is a Saturday, 2024-01-21 a Sunday
SATURDAY = datetime(2024, 1, 20, 13, 30)
SUNDAY_1330 = datetime(2024, 1, 21, 13, 30)


def test_day_override_is_lowercased():
    assert classify_day("Sunday", SATURDAY) == "sunday"
    assert classify_day("  Finals-Day ", SATURDAY) == "finals-day"


def test_day_from_clock_covers_every_weekday():
    monday = datetime(2024, 1, 15, 9, 0)
    days = [classify_day(now=monday + timedelta(days=i)) for i in range(7)]
    assert days == ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def test_blank_override_falls_back_to_clock():
    assert classify_day("", SUNDAY_1330) == "sunday"
    assert classify_day("   ", SUNDAY_1330) == "sunday"


@pytest.mark.parametrize("hour", range(24))
def test_saturday_is_always_all_day(hour):
    assert classify_tournament_type("saturday", None, SATURDAY.replace(hour=hour)) == "all-day"


@pytest.mark.parametrize(
    "clock,expected",
    [
        ((12, 59, 59), "all-day"),
        ((13, 0, 0), "special"),
        ((13, 30, 0), "special"),
        ((13, 59, 59), "special"),
        ((14, 0, 0), "all-day"),
        ((9, 0, 0), "all-day"),
    ],
)
def test_sunday_special_window(clock, expected):
    h, m, s = clock
    assert classify_tournament_type("sunday", None, SUNDAY_1330.replace(hour=h, minute=m, second=s)) == expected


def test_other_days_are_all_day_even_in_window():
    assert classify_tournament_type("monday", None, SUNDAY_1330) == "all-day"
    assert classify_tournament_type("finals-day", None, SUNDAY_1330) == "all-day"


def test_explicit_type_wins():
    assert classify_tournament_type("saturday", "special", SATURDAY) == "special"
    assert classify_tournament_type("sunday", "all-day", SUNDAY_1330) == "all-day"


def test_invalid_type_rejected():
    with pytest.raises(InvalidTournamentTypeError):
        classify_tournament_type("sunday", "weekly", SUNDAY_1330)


def test_classification_is_pure():
    assert classify_day(None, SUNDAY_1330) == classify_day(None, SUNDAY_1330)
    assert classify_tournament_type("sunday", None, SUNDAY_1330) == classify_tournament_type(
        "sunday", None, SUNDAY_1330
    )


def test_event_defaults_to_current_event():
    assert resolve_event() == config.CURRENT_EVENT
    assert resolve_event("hobby-horizon") == "hobby-horizon"


def test_resolve_partition():
    assert resolve_partition(now=SUNDAY_1330) == ("sunday", "special", config.CURRENT_EVENT)
    assert resolve_partition("Saturday", None, "ev", now=SUNDAY_1330) == ("saturday", "all-day", "ev")
