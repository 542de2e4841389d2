"""
Progress aggregation for goals and subjects.

Targets come from the subjects' recurring schedules, studied time from the
completed sessions (or, for the total view, from the running counters kept by
the ledger). All sums are whole minutes.
"""
import calendar
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import schemas
from errors import ValidationError
from schedule import (
    DayLike,
    iter_days,
    nominal_weekly_minutes,
    parse_day,
    target_minutes_on,
    to_date,
)

# Weeks assumed when a goal has no date range (about three months).
DEFAULT_TOTAL_WEEKS = 12


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    TOTAL = "total"


def view_mode_of(value) -> ViewMode:
    try:
        return ViewMode(value)
    except ValueError as exc:
        raise ValidationError("view must be one of day, week, month, total") from exc


def percentage(studied: int, target: int) -> float:
    if target <= 0:
        return 0.0
    return min(studied / target * 100, 100.0)


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if mins else f"{hours}h"


def make_progress(mode: ViewMode, target: int, studied: int, remaining: Optional[int] = None) -> schemas.Progress:
    # a zero target means "no goal set", not "goal reached"
    return schemas.Progress(
        view=mode.value,
        targetMinutes=target,
        studiedMinutes=studied,
        percentage=percentage(studied, target),
        hasTarget=target > 0,
        remainingMinutes=remaining,
        targetDisplay=format_minutes(target),
        studiedDisplay=format_minutes(studied),
    )


def week_bounds(reference: DayLike) -> Tuple[date, date]:
    """Sunday-to-Saturday week containing the reference date."""
    ref = to_date(reference)
    start = ref - timedelta(days=(ref.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def month_bounds(reference: DayLike) -> Tuple[date, date]:
    ref = to_date(reference)
    last = calendar.monthrange(ref.year, ref.month)[1]
    return ref.replace(day=1), ref.replace(day=last)


def is_completed(session) -> bool:
    return session.end_time is not None


def studied_between(sessions: Iterable, start: DayLike, finish: DayLike) -> int:
    lo, hi = to_date(start).isoformat(), to_date(finish).isoformat()
    return sum(s.duration for s in sessions if is_completed(s) and lo <= s.date <= hi)


def target_between(subjects: Iterable, start: DayLike, finish: DayLike) -> int:
    subjects = list(subjects)
    return sum(target_minutes_on(subject, day) for day in iter_days(start, finish) for subject in subjects)


def _is_goal(entity) -> bool:
    return hasattr(entity, "total_study_time")


def _scope(entity, sessions: Iterable) -> Tuple[List, List]:
    """Subjects contributing to the target and the sessions belonging to the entity."""
    if _is_goal(entity):
        return list(entity.subjects), [s for s in sessions if s.goal_id == entity.id]
    return [entity], [s for s in sessions if s.subject_id == entity.id]


def _total_range(entity) -> Optional[Tuple[str, str]]:
    goal = entity if _is_goal(entity) else getattr(entity, "goal", None)
    if goal is not None and goal.start_date and goal.finish_date:
        return goal.start_date, goal.finish_date
    if not _is_goal(entity) and entity.start_date and entity.finish_date:
        return entity.start_date, entity.finish_date
    return None


def compute_progress(entity, sessions: Iterable, view_mode, reference_date: DayLike) -> schemas.Progress:
    """Target and studied minutes of a goal or subject for one view window."""
    mode = view_mode_of(view_mode)
    ref = to_date(parse_day(reference_date))
    subjects, own_sessions = _scope(entity, sessions)

    if mode is ViewMode.DAY:
        target = sum(target_minutes_on(subject, ref) for subject in subjects)
        studied = studied_between(own_sessions, ref, ref)
        return make_progress(mode, target, studied, max(0, target - studied))

    if mode is ViewMode.WEEK:
        start, finish = week_bounds(ref)
    elif mode is ViewMode.MONTH:
        start, finish = month_bounds(ref)
    else:
        studied = entity.total_study_time if _is_goal(entity) else entity.study_time
        bounds = _total_range(entity)
        if bounds:
            target = target_between(subjects, *bounds)
        else:
            target = sum(nominal_weekly_minutes(subject) for subject in subjects) * DEFAULT_TOTAL_WEEKS
        return make_progress(mode, target, studied)

    target = target_between(subjects, start, finish)
    studied = studied_between(own_sessions, start, finish)
    return make_progress(mode, target, studied)


def overall_progress(goals: Iterable, sessions: Iterable, view_mode, reference_date: DayLike) -> schemas.Progress:
    sessions = list(sessions)
    parts = [compute_progress(goal, sessions, view_mode, reference_date) for goal in goals]
    mode = view_mode_of(view_mode)
    target = sum(p.targetMinutes for p in parts)
    studied = sum(p.studiedMinutes for p in parts)
    remaining = max(0, target - studied) if mode is ViewMode.DAY else None
    return make_progress(mode, target, studied, remaining)


def days_info(goal, today: DayLike) -> Optional[schemas.DaysInfo]:
    if not goal.start_date or not goal.finish_date:
        return None

    start, finish = to_date(goal.start_date), to_date(goal.finish_date)
    total = (finish - start).days
    elapsed = max(0, (to_date(today) - start).days)
    remaining = max(0, total - elapsed)
    progress = elapsed / total * 100 if total > 0 else 0.0
    return schemas.DaysInfo(totalDays=total, elapsedDays=elapsed, remainingDays=remaining, dayProgress=progress)


def month_calendar(subjects: Iterable, sessions: Iterable, year: int, month: int) -> List[schemas.CalendarDay]:
    subjects, sessions = list(subjects), list(sessions)
    start, finish = month_bounds(date(year, month, 1))

    minutes_by_date = {}
    for s in sessions:
        minutes_by_date[s.date] = minutes_by_date.get(s.date, 0) + s.duration

    days = []
    for day in iter_days(start, finish):
        key = day.isoformat()
        studied = minutes_by_date.get(key, 0)
        target = sum(target_minutes_on(subject, day) for subject in subjects)
        days.append(
            schemas.CalendarDay(
                date=key, studiedMinutes=studied, targetMinutes=target, percentage=percentage(studied, target)
            )
        )
    return days
