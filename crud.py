from typing import List, Optional

from loguru import logger
from sqlalchemy.orm import Session

import models
from errors import NotFoundError, ValidationError
from schedule import WEEKDAYS, normalize_day, parse_day


def _require_name(name, label: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{label} name is required")
    return name.strip()


def _check_range(start: Optional[str], finish: Optional[str]) -> None:
    if start and finish and start > finish:
        raise ValidationError("startDate must not be after finishDate")


# GOALS
def list_goals(db: Session) -> List[models.Goal]:
    return db.query(models.Goal).order_by(models.Goal.created_at.desc()).all()


def get_goal(db: Session, goal_id: str) -> models.Goal:
    goal = db.get(models.Goal, goal_id) if goal_id else None
    if goal is None:
        raise NotFoundError("Goal not found")
    return goal


def create_goal(db: Session, name) -> models.Goal:
    goal = models.Goal(name=_require_name(name, "Goal"), total_study_time=0)
    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info(f"Created goal {goal.id} ({goal.name})")
    return goal


def update_goal_dates(db: Session, goal_id: str, start_date=None, finish_date=None) -> models.Goal:
    goal = get_goal(db, goal_id)
    start = parse_day(start_date, "startDate")
    finish = parse_day(finish_date, "finishDate")
    _check_range(start, finish)

    goal.start_date = start
    goal.finish_date = finish
    db.commit()
    db.refresh(goal)
    return goal


def delete_goal(db: Session, goal_id: str) -> None:
    goal = get_goal(db, goal_id)
    db.delete(goal)
    db.commit()
    logger.info(f"Deleted goal {goal_id} with its subjects, topics and sessions")


# SUBJECTS
def get_subject(db: Session, subject_id: str) -> models.Subject:
    subject = db.get(models.Subject, subject_id) if subject_id else None
    if subject is None:
        raise NotFoundError("Subject not found")
    return subject


def create_subject(db: Session, goal_id: str, name) -> models.Subject:
    clean_name = _require_name(name, "Subject")
    get_goal(db, goal_id)

    subject = models.Subject(goal_id=goal_id, name=clean_name, study_time=0)
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject


def _clean_days(days_of_week) -> Optional[List[str]]:
    if days_of_week is None:
        return None
    if isinstance(days_of_week, str) or not all(isinstance(d, str) for d in days_of_week):
        raise ValidationError("daysOfWeek must be a list of weekday names")

    cleaned = []
    for raw in days_of_week:
        name = normalize_day(raw)
        if name not in WEEKDAYS:
            raise ValidationError(f"Unknown weekday: {raw!r}")
        if name.lower() not in cleaned:
            cleaned.append(name.lower())
    return cleaned


def update_subject_schedule(
    db: Session,
    subject_id: str,
    daily_minutes_goal=None,
    days_of_week=None,
    start_date=None,
    finish_date=None,
) -> models.Subject:
    """Replace the subject's schedule fields. Omitted fields are cleared."""
    subject = get_subject(db, subject_id)

    if daily_minutes_goal is not None and (
        isinstance(daily_minutes_goal, bool) or not isinstance(daily_minutes_goal, int) or daily_minutes_goal < 0
    ):
        raise ValidationError("dailyMinutesGoal must be a non-negative whole number of minutes")
    days = _clean_days(days_of_week)
    start = parse_day(start_date, "startDate")
    finish = parse_day(finish_date, "finishDate")
    _check_range(start, finish)

    subject.daily_minutes_goal = daily_minutes_goal
    subject.days_of_week = days
    subject.start_date = start
    subject.finish_date = finish
    db.commit()
    db.refresh(subject)
    return subject


# TOPICS
def get_topic(db: Session, topic_id: str) -> models.Topic:
    topic = db.get(models.Topic, topic_id) if topic_id else None
    if topic is None:
        raise NotFoundError("Topic not found")
    return topic


def create_topic(db: Session, subject_id: str, name) -> models.Topic:
    clean_name = _require_name(name, "Topic")
    get_subject(db, subject_id)

    topic = models.Topic(subject_id=subject_id, name=clean_name, study_time=0)
    db.add(topic)
    db.commit()
    db.refresh(topic)
    return topic
