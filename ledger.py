"""
Session ledger: start/stop/add/edit/delete study sessions.

Goals, subjects and topics carry running totals of completed session minutes.
Every ledger operation validates its input first, then applies the session
change and all counter adjustments in a single transaction. Counters are
updated with SQL-side increments. The session row itself is written with a
conditional statement that only matches the values the operation read, so a
stop, edit or delete racing another request on the same session affects no
row and is rejected instead of counting its minutes twice.
"""
import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

from loguru import logger
from sqlalchemy.orm import Session

import crud
import models
from errors import AlreadyStoppedError, ConflictError, NotFoundError, ValidationError
from progress import format_minutes
from schedule import parse_day

UNSET = object()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def noon_utc(day: str) -> str:
    """Placeholder timestamp for sessions where only the date is meaningful."""
    return f"{day}T12:00:00Z"


def elapsed_minutes(start: datetime, end: datetime) -> int:
    # half-up rounding to the nearest minute
    seconds = (end - start).total_seconds()
    return max(0, math.floor(seconds / 60 + 0.5))


class SessionLedger:
    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or utc_now

    # Lookups
    def get(self, session_id: str) -> models.StudySession:
        session = self.db.get(models.StudySession, session_id) if session_id else None
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def list(self, goal_id=None, subject_id=None, topic_id=None) -> List[models.StudySession]:
        query = self.db.query(models.StudySession)
        if goal_id:
            query = query.filter(models.StudySession.goal_id == goal_id)
        if subject_id:
            query = query.filter(models.StudySession.subject_id == subject_id)
        if topic_id:
            query = query.filter(models.StudySession.topic_id == topic_id)
        return query.order_by(models.StudySession.start_time.desc()).all()

    # Transitions
    def start(self, goal_id, subject_id, topic_id=None) -> models.StudySession:
        if not goal_id:
            raise ValidationError("Goal ID is required")
        if not subject_id:
            raise ValidationError("Subject ID is required to start a session")
        self._check_refs(goal_id, subject_id, topic_id)

        now = self.clock()
        session = models.StudySession(
            goal_id=goal_id,
            subject_id=subject_id,
            topic_id=topic_id or None,
            start_time=models.format_timestamp(now),
            date=now.astimezone().date().isoformat(),
            duration=0,
        )
        with self._transaction("start"):
            self.db.add(session)
        logger.info(f"Started session {session.id} on subject {subject_id}")
        return session

    def stop(self, session_id) -> models.StudySession:
        if not session_id:
            raise ValidationError("Session ID is required to stop a session")
        session = self.get(session_id)
        if not session.is_running:
            logger.warning(f"Rejected stop of session {session_id}: already stopped")
            raise AlreadyStoppedError(session_id)

        now = self.clock()
        duration = elapsed_minutes(models.parse_timestamp(session.start_time), now)
        goal_id, subject_id, topic_id = session.goal_id, session.subject_id, session.topic_id
        with self._transaction("stop"):
            # only the request that actually closes the row may count its minutes
            stopped = (
                self.db.query(models.StudySession)
                .filter(models.StudySession.id == session_id, models.StudySession.end_time.is_(None))
                .update(
                    {
                        models.StudySession.end_time: models.format_timestamp(now),
                        models.StudySession.duration: duration,
                    },
                    synchronize_session="fetch",
                )
            )
            if stopped != 1:
                self._check_exists(session_id)
                raise AlreadyStoppedError(session_id)
            self._apply(goal_id, subject_id, topic_id, duration)
        logger.info(f"Stopped session {session_id} after {format_minutes(duration)}")
        return session

    def add(self, goal_id, subject_id, duration, date=None, topic_id=None, comment=None) -> models.StudySession:
        if not goal_id:
            raise ValidationError("Goal ID is required")
        if not subject_id:
            raise ValidationError("Subject ID is required")
        duration = self._check_duration(duration)
        day = parse_day(date) or self.clock().astimezone().date().isoformat()
        self._check_refs(goal_id, subject_id, topic_id)

        stamp = noon_utc(day)
        session = models.StudySession(
            goal_id=goal_id,
            subject_id=subject_id,
            topic_id=topic_id or None,
            start_time=stamp,
            end_time=stamp,
            duration=duration,
            date=day,
            comment=comment or None,
        )
        with self._transaction("add"):
            self.db.add(session)
            self._apply(goal_id, subject_id, topic_id, duration)
        logger.info(f"Added {format_minutes(duration)} session {session.id} on {day}")
        return session

    def edit(
        self,
        session_id,
        duration=UNSET,
        date=UNSET,
        comment=UNSET,
        subject_id=UNSET,
        topic_id=UNSET,
    ) -> models.StudySession:
        session = self.get(session_id)
        if session.is_running:
            raise ConflictError("Cannot edit a running session; stop it first")

        old_duration = session.duration
        old_subject, old_topic = session.subject_id, session.topic_id

        new_duration = old_duration if duration is UNSET else self._check_duration(duration)
        new_subject = old_subject if subject_id is UNSET else (subject_id or None)
        new_topic = old_topic if topic_id is UNSET else (topic_id or None)
        new_date = session.date
        if date is not UNSET:
            new_date = parse_day(date)
            if new_date is None:
                raise ValidationError("date is required")

        if new_subject != old_subject and new_subject:
            self._check_refs(session.goal_id, new_subject, None)
        if new_topic and (new_topic != old_topic or new_subject != old_subject):
            if topic_id is UNSET:
                # topic left behind by a subject change no longer applies
                if crud.get_topic(self.db, new_topic).subject_id != new_subject:
                    new_topic = None
            else:
                self._check_topic(new_subject, new_topic)

        diff = new_duration - old_duration
        S = models.StudySession
        values = {S.duration: new_duration, S.subject_id: new_subject, S.topic_id: new_topic}
        if comment is not UNSET:
            values[S.comment] = comment or None
        if new_date != session.date:
            values[S.date] = new_date
            values[S.start_time] = values[S.end_time] = noon_utc(new_date)

        goal_id = session.goal_id
        with self._transaction("edit"):
            guard = self._unchanged(session)
            if guard.update(values, synchronize_session="fetch") != 1:
                self._raise_stale(session_id)

            self._bump(models.Goal, models.Goal.total_study_time, goal_id, diff)
            self._move(models.Subject, old_subject, new_subject, old_duration, new_duration)
            self._move(models.Topic, old_topic, new_topic, old_duration, new_duration)
        logger.info(f"Edited session {session_id} ({old_duration}m -> {new_duration}m)")
        return session

    def delete(self, session_id) -> None:
        session = self.get(session_id)
        running, duration = session.is_running, session.duration
        goal_id, subject_id, topic_id = session.goal_id, session.subject_id, session.topic_id
        with self._transaction("delete"):
            guard = self._unchanged(session)
            if guard.delete(synchronize_session="fetch") != 1:
                self._raise_stale(session_id)
            if not running:
                self._apply(goal_id, subject_id, topic_id, -duration)
        logger.info(f"Deleted session {session_id}")

    # Helpers
    @contextmanager
    def _transaction(self, action: str):
        try:
            yield
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error(f"Rolled back session {action}: {exc}")
            raise

    def _unchanged(self, session):
        """Query matching the session row only while it still holds the values read from it."""
        S = models.StudySession
        return self.db.query(S).filter(
            S.id == session.id,
            S.end_time.is_not_distinct_from(session.end_time),
            S.duration == session.duration,
            S.subject_id.is_not_distinct_from(session.subject_id),
            S.topic_id.is_not_distinct_from(session.topic_id),
        )

    def _check_exists(self, session_id) -> None:
        if self.db.query(models.StudySession.id).filter(models.StudySession.id == session_id).first() is None:
            raise NotFoundError("Session not found")

    def _raise_stale(self, session_id) -> None:
        self._check_exists(session_id)
        logger.warning(f"Session {session_id} changed while being updated")
        raise ConflictError("Session was changed by another request; reload and try again")

    def _check_duration(self, duration) -> int:
        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise ValidationError("Duration must be a positive whole number of minutes")
        return duration

    def _check_refs(self, goal_id, subject_id, topic_id) -> None:
        crud.get_goal(self.db, goal_id)
        subject = crud.get_subject(self.db, subject_id)
        if subject.goal_id != goal_id:
            raise ValidationError("Subject does not belong to this goal")
        if topic_id:
            self._check_topic(subject_id, topic_id)

    def _check_topic(self, subject_id, topic_id) -> None:
        topic = crud.get_topic(self.db, topic_id)
        if topic.subject_id != subject_id:
            raise ValidationError("Topic does not belong to this subject")

    def _apply(self, goal_id, subject_id, topic_id, delta: int) -> None:
        # goal, then subject, then topic; all inside the caller's transaction
        self._bump(models.Goal, models.Goal.total_study_time, goal_id, delta)
        if subject_id:
            self._bump(models.Subject, models.Subject.study_time, subject_id, delta)
        if topic_id:
            self._bump(models.Topic, models.Topic.study_time, topic_id, delta)

    def _move(self, model, old_id, new_id, old_duration: int, new_duration: int) -> None:
        if old_id == new_id:
            if old_id:
                self._bump(model, model.study_time, old_id, new_duration - old_duration)
            return
        if old_id:
            self._bump(model, model.study_time, old_id, -old_duration)
        if new_id:
            self._bump(model, model.study_time, new_id, new_duration)

    def _bump(self, model, column, entity_id: str, delta: int) -> None:
        if not delta:
            return
        updated = (
            self.db.query(model)
            .filter(model.id == entity_id)
            .update({column: column + delta}, synchronize_session="fetch")
        )
        if updated != 1:
            raise NotFoundError(f"{model.__name__} not found")
