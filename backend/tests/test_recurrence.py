from __future__ import annotations

from datetime import date

import pytest

from habitual.services.errors import RuleParseError
from habitual.services.recurrence import cron_weekday, fires, occurrence_dates, parse_rule, weekly_rule


def test_cron_weekday_counts_from_sunday() -> None:
    assert cron_weekday(date(2024, 1, 7)) == 0  # Sunday
    assert cron_weekday(date(2024, 1, 1)) == 1  # Monday
    assert cron_weekday(date(2024, 1, 6)) == 6  # Saturday


def test_all_wildcards_fire_every_day() -> None:
    assert all(fires("0 0 * * *", day) for day in (date(2024, 1, 1), date(2024, 2, 29), date(2024, 12, 31)))


def test_day_of_month_and_weekday_are_ored_when_both_restricted() -> None:
    rule = "0 0 1 * 1"
    assert fires(rule, date(2024, 1, 1))  # 1st and a Monday
    assert fires(rule, date(2024, 1, 8))  # Monday only
    assert fires(rule, date(2024, 2, 1))  # 1st, a Thursday
    assert not fires(rule, date(2024, 1, 2))


def test_single_restricted_day_field_decides_alone() -> None:
    assert fires("0 0 15 * *", date(2024, 3, 15))
    assert not fires("0 0 15 * *", date(2024, 3, 16))
    assert fires("0 0 * * 3", date(2024, 1, 3))
    assert not fires("0 0 * * 3", date(2024, 1, 4))


def test_month_is_a_hard_gate() -> None:
    assert fires("0 0 * 3 *", date(2024, 3, 5))
    assert not fires("0 0 * 3 *", date(2024, 4, 5))
    # Monday in June fires, but a Monday-the-1st in July does not.
    assert fires("0 0 1 6 1", date(2024, 6, 3))
    assert not fires("0 0 1 6 1", date(2024, 7, 1))


def test_stepped_field_counts_as_restricted() -> None:
    rule = "0 0 */2 * 1"
    assert fires(rule, date(2024, 1, 3))  # odd day
    assert fires(rule, date(2024, 1, 8))  # Monday, even day
    assert not fires(rule, date(2024, 1, 2))


def test_question_mark_is_a_day_wildcard() -> None:
    assert fires("0 0 ? * 1", date(2024, 1, 8))
    assert not fires("0 0 ? * 1", date(2024, 1, 9))


def test_seven_is_sunday_and_names_are_accepted() -> None:
    assert fires("0 0 * * 7", date(2024, 1, 7))
    assert fires("0 0 * jan mon-fri", date(2024, 1, 5))
    assert not fires("0 0 * jan mon-fri", date(2024, 1, 6))
    assert not fires("0 0 * jan mon-fri", date(2024, 2, 5))


def test_macros_expand() -> None:
    assert fires("@weekly", date(2024, 1, 7))
    assert not fires("@weekly", date(2024, 1, 8))
    assert fires("@monthly", date(2024, 5, 1))
    assert fires("@daily", date(2024, 5, 2))


def test_minute_and_hour_do_not_affect_the_date() -> None:
    assert parse_rule("30 18 * * *").matches(date(2024, 1, 1))
    assert parse_rule("5/15 */6 * * *").matches(date(2024, 1, 1))


@pytest.mark.parametrize(
    "expression",
    [
        "",
        "bad",
        "* * * *",
        "0 0 32 * *",
        "0 0 * 13 *",
        "0 0 * * 8",
        "60 0 * * *",
        "? 0 * * *",
        "0 0 * * 5-1",
        "0 0 1,,2 * *",
        "0 0 ² * *",
        "0 0 */² * *",
        "0 0 ١ * *",
    ],
)
def test_malformed_rules_raise_and_never_fire(expression: str) -> None:
    with pytest.raises(RuleParseError):
        parse_rule(expression)
    assert fires(expression, date(2024, 1, 1)) is False


def test_missing_rule_never_fires() -> None:
    assert fires(None, date(2024, 1, 1)) is False


def test_occurrence_dates_lists_matching_days_in_window() -> None:
    assert occurrence_dates("0 0 * * 1", date(2024, 1, 1), 14) == [date(2024, 1, 1), date(2024, 1, 8)]
    assert occurrence_dates("0 0 * * 1", date(2024, 1, 1), 0) == []


def test_weekly_rule_builds_sorted_expression() -> None:
    assert weekly_rule([5, 1, 3]) == "0 12 * * 1,3,5"
    assert weekly_rule([7, 0]) == "0 12 * * 0"
    assert fires(weekly_rule([1]), date(2024, 1, 8))


@pytest.mark.parametrize("weekdays", [[], [8], [-1]])
def test_weekly_rule_rejects_bad_weekdays(weekdays) -> None:
    with pytest.raises(RuleParseError):
        weekly_rule(weekdays)
