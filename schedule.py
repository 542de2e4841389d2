"""
Recurring subject schedules.

A subject may carry a weekly schedule: a daily minute target, the weekdays it
applies on and an optional inclusive date range. Anything with the attributes
``daily_minutes_goal``, ``days_of_week``, ``start_date`` and ``finish_date``
can be evaluated here (ORM rows, schemas, plain namespaces).

Dates are compared as ``YYYY-MM-DD`` strings, which orders the same way as the
calendar.
"""
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Optional, Union

from errors import ValidationError

WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

DayLike = Union[date, str]


def parse_day(value: Optional[DayLike], field: str = "date") -> Optional[str]:
    """Validate a calendar date and return it in ``YYYY-MM-DD`` form. Empty input gives None."""
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError as exc:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format") from exc


def to_date(value: DayLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def iter_days(start: DayLike, finish: DayLike) -> Iterator[date]:
    """Yield every calendar date from start to finish, both inclusive."""
    current, last = to_date(start), to_date(finish)
    while current <= last:
        yield current
        current += timedelta(days=1)


def weekday_name(day: DayLike) -> str:
    # date.weekday() is Monday=0
    return WEEKDAYS[(to_date(day).weekday() + 1) % 7]


def normalize_day(name: str) -> str:
    trimmed = str(name).strip()
    return trimmed[:1].upper() + trimmed[1:].lower()


def normalize_days(days: Optional[Iterable[str]]) -> List[str]:
    """Canonical weekday names in input order, duplicates and unknown names dropped."""
    seen = []
    for raw in days or []:
        name = normalize_day(raw)
        if name in WEEKDAYS and name not in seen:
            seen.append(name)
    return seen


def has_schedule(subject) -> bool:
    return bool(subject.daily_minutes_goal) and bool(normalize_days(subject.days_of_week))


def applies_on(subject, day: DayLike) -> bool:
    if not has_schedule(subject):
        return False
    if weekday_name(day) not in normalize_days(subject.days_of_week):
        return False

    day_str = to_date(day).isoformat()
    start = parse_day(subject.start_date, "startDate")
    finish = parse_day(subject.finish_date, "finishDate")
    if start and day_str < start:
        return False
    if finish and day_str > finish:
        return False
    return True


def target_minutes_on(subject, day: DayLike) -> int:
    return int(subject.daily_minutes_goal) if applies_on(subject, day) else 0


def nominal_weekly_minutes(subject) -> int:
    """Weekly load ignoring the date range: daily goal times the number of scheduled days."""
    if not has_schedule(subject):
        return 0
    return int(subject.daily_minutes_goal) * len(normalize_days(subject.days_of_week))
