"""Tests for goal, subject and topic management."""

import pytest

import crud
import models
from errors import NotFoundError, ValidationError


def test_create_goal_starts_empty(db):
    goal = crud.create_goal(db, "  Exam Prep ")

    assert goal.name == "Exam Prep"
    assert goal.total_study_time == 0
    assert goal.created_at.endswith("Z")
    assert goal.start_date is None and goal.finish_date is None


@pytest.mark.parametrize("name", [None, "", "   ", 42])
def test_goal_name_is_required(db, name):
    with pytest.raises(ValidationError):
        crud.create_goal(db, name)


def test_create_subject_and_topic(db, goal):
    subject = crud.create_subject(db, goal.id, "Math")
    topic = crud.create_topic(db, subject.id, "Algebra")

    assert subject.goal_id == goal.id and subject.study_time == 0
    assert topic.subject_id == subject.id and topic.study_time == 0
    assert [s.name for s in crud.get_goal(db, goal.id).subjects] == ["Math"]


def test_subject_requires_existing_goal(db):
    with pytest.raises(NotFoundError):
        crud.create_subject(db, "missing", "Math")


def test_topic_requires_existing_subject_and_name(db, subject):
    with pytest.raises(NotFoundError):
        crud.create_topic(db, "missing", "Algebra")
    with pytest.raises(ValidationError):
        crud.create_topic(db, subject.id, "")


def test_nested_subjects_are_sorted_by_name(db, goal):
    crud.create_subject(db, goal.id, "Physics")
    crud.create_subject(db, goal.id, "Biology")
    db.expire_all()

    assert [s.name for s in crud.get_goal(db, goal.id).subjects] == ["Biology", "Physics"]


def test_update_subject_schedule_normalizes_days(db, subject):
    updated = crud.update_subject_schedule(
        db, subject.id, daily_minutes_goal=30, days_of_week=[" Monday", "WEDNESDAY", "monday"],
        start_date="2024-03-01", finish_date="2024-03-31",
    )

    assert updated.daily_minutes_goal == 30
    assert updated.days_of_week == ["monday", "wednesday"]
    assert (updated.start_date, updated.finish_date) == ("2024-03-01", "2024-03-31")


def test_update_subject_schedule_replaces_fields(db, subject):
    crud.update_subject_schedule(db, subject.id, 30, ["friday"], "2024-03-01", "2024-03-31")
    updated = crud.update_subject_schedule(db, subject.id, daily_minutes_goal=45)

    assert updated.daily_minutes_goal == 45
    assert updated.days_of_week is None
    assert updated.start_date is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"days_of_week": ["funday"]},
        {"days_of_week": "monday"},
        {"daily_minutes_goal": -1},
        {"start_date": "2024-04-01", "finish_date": "2024-03-01"},
        {"finish_date": "31/03/2024"},
    ],
)
def test_update_subject_schedule_validation(db, subject, kwargs):
    with pytest.raises(ValidationError):
        crud.update_subject_schedule(db, subject.id, **kwargs)


def test_update_goal_dates(db, goal):
    updated = crud.update_goal_dates(db, goal.id, "2024-03-01", "2024-06-30")
    assert (updated.start_date, updated.finish_date) == ("2024-03-01", "2024-06-30")

    cleared = crud.update_goal_dates(db, goal.id)
    assert cleared.start_date is None and cleared.finish_date is None

    with pytest.raises(NotFoundError):
        crud.update_goal_dates(db, "missing", "2024-03-01")


def test_delete_goal_cascades(db, ledger, goal, subject):
    topic = crud.create_topic(db, subject.id, "Algebra")
    ledger.add(goal.id, subject.id, 30, "2024-06-01", topic_id=topic.id)
    keep = crud.create_goal(db, "Keep")

    crud.delete_goal(db, goal.id)

    assert db.query(models.Goal).all() == [keep]
    assert db.query(models.Subject).count() == 0
    assert db.query(models.Topic).count() == 0
    assert db.query(models.StudySession).count() == 0
    with pytest.raises(NotFoundError):
        crud.get_goal(db, goal.id)
