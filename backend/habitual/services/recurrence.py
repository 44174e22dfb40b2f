"""Cron-style recurrence rules evaluated at day resolution.

Activities carry a standard five-field expression
(``minute hour day-of-month month day-of-week``). Tasks are materialized per
calendar day, so only the three date fields decide whether a rule fires:

* ``month`` is a hard gate: a date in a month outside the set never fires.
* ``day-of-month`` and ``day-of-week`` follow the classic cron OR rule. When
  both are restricted, a date fires if *either* one matches; when only one is
  restricted, that one alone decides; when both are wildcards every day fires.

Minute and hour are validated but otherwise ignored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from habitual.core.dates import iter_days
from habitual.services.errors import RuleParseError

logger = logging.getLogger(__name__)

WILDCARDS = {"*", "?"}

MONTH_NAMES: Dict[str, int] = {
    name: index
    for index, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
WEEKDAY_NAMES: Dict[str, int] = {
    name: index for index, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}

MACROS: Dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
}


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    low: int
    high: int
    names: Optional[Dict[str, int]] = None


_FIELDS = (
    _FieldSpec("minute", 0, 59),
    _FieldSpec("hour", 0, 23),
    _FieldSpec("day_of_month", 1, 31),
    _FieldSpec("month", 1, 12, MONTH_NAMES),
    # 7 is accepted as an alias for Sunday and folded onto 0.
    _FieldSpec("day_of_week", 0, 7, WEEKDAY_NAMES),
)


@dataclass(frozen=True)
class RecurrenceRule:
    """Parsed recurrence; ``None`` in a field means wildcard."""

    minute: Optional[FrozenSet[int]] = None
    hour: Optional[FrozenSet[int]] = None
    day_of_month: Optional[FrozenSet[int]] = None
    month: Optional[FrozenSet[int]] = None
    day_of_week: Optional[FrozenSet[int]] = None
    expression: str = ""

    def matches(self, day: date) -> bool:
        if self.month is not None and day.month not in self.month:
            return False

        dom_wild = self.day_of_month is None
        dow_wild = self.day_of_week is None
        if dom_wild and dow_wild:
            return True

        dom_hit = not dom_wild and day.day in self.day_of_month
        dow_hit = not dow_wild and cron_weekday(day) in self.day_of_week
        if dom_wild:
            return dow_hit
        if dow_wild:
            return dom_hit
        return dom_hit or dow_hit


def cron_weekday(day: date) -> int:
    """Return the cron day-of-week for ``day`` (0=Sunday .. 6=Saturday)."""
    return day.isoweekday() % 7


@lru_cache(maxsize=1024)
def parse_rule(expression: str) -> RecurrenceRule:
    """Parse a cron expression, raising RuleParseError when it is malformed."""
    if not isinstance(expression, str) or not expression.strip():
        raise RuleParseError(str(expression), "expression is empty")

    normalized = expression.strip()
    source = MACROS.get(normalized.lower(), normalized)
    tokens = source.split()
    if len(tokens) != len(_FIELDS):
        raise RuleParseError(expression, f"expected {len(_FIELDS)} fields, got {len(tokens)}")

    values = {spec.name: _parse_field(expression, spec, token) for spec, token in zip(_FIELDS, tokens)}
    return RecurrenceRule(expression=normalized, **values)


def fires(rule: Union[RecurrenceRule, str, None], day: date) -> bool:
    """Return True when ``rule`` schedules an occurrence on ``day``.

    Malformed expressions never fire; the failure is logged and swallowed.
    """
    if isinstance(rule, RecurrenceRule):
        return rule.matches(day)
    try:
        parsed = parse_rule(rule)  # type: ignore[arg-type]
    except RuleParseError as exc:
        logger.warning("Recurrence evaluation skipped: %s", exc)
        return False
    return parsed.matches(day)


def occurrence_dates(rule: Union[RecurrenceRule, str, None], start: date, days: int) -> List[date]:
    """List the days in ``[start, start + days)`` on which ``rule`` fires."""
    return [day for day in iter_days(start, days) if fires(rule, day)]


def weekly_rule(weekdays: Iterable[int]) -> str:
    """Build the expression used for personal recurring tasks (noon on the given weekdays)."""
    days: set[int] = set()
    for value in weekdays:
        day = int(value)
        if not 0 <= day <= 7:
            raise RuleParseError(str(value), "weekday must be between 0 (Sunday) and 6 (Saturday)")
        days.add(day % 7)
    if not days:
        raise RuleParseError("", "at least one weekday (0=Sunday..6=Saturday) is required")
    return f"0 12 * * {','.join(str(day) for day in sorted(days))}"


def _parse_field(expression: str, spec: _FieldSpec, token: str) -> Optional[FrozenSet[int]]:
    text = token.lower()
    if text in WILDCARDS:
        if text == "?" and spec.name not in {"day_of_month", "day_of_week"}:
            raise RuleParseError(expression, f"'?' is only allowed in day fields, not {spec.name}")
        return None

    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise RuleParseError(expression, f"empty list item in {spec.name}")
        base, _, step_text = part.partition("/")
        step = 1
        if step_text:
            step = _to_int(expression, spec, step_text)
            if step < 1:
                raise RuleParseError(expression, f"step must be positive in {spec.name}")

        if base in WILDCARDS:
            start, end = spec.low, spec.high
        elif "-" in base:
            low_text, _, high_text = base.partition("-")
            start = _to_value(expression, spec, low_text)
            end = _to_value(expression, spec, high_text)
            if start > end:
                raise RuleParseError(expression, f"descending range {base!r} in {spec.name}")
        else:
            start = _to_value(expression, spec, base)
            # "5/15" means every 15th value starting at 5.
            end = spec.high if step_text else start

        values.update(range(start, end + 1, step))

    if spec.name == "day_of_week":
        values = {value % 7 for value in values}
    return frozenset(values)


def _to_value(expression: str, spec: _FieldSpec, text: str) -> int:
    if spec.names and text in spec.names:
        return spec.names[text]
    value = _to_int(expression, spec, text)
    if not spec.low <= value <= spec.high:
        raise RuleParseError(expression, f"{value} is outside {spec.low}-{spec.high} for {spec.name}")
    return value


def _to_int(expression: str, spec: _FieldSpec, text: str) -> int:
    # str.isdigit() also accepts non-ASCII digits such as superscripts.
    if not (text.isascii() and text.isdigit()):
        raise RuleParseError(expression, f"{text!r} is not a valid {spec.name} value")
    return int(text)
