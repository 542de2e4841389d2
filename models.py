import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship
from database import Base

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def new_id():
    return str(uuid.uuid4())


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class Goal(Base):
    __tablename__ = "goals"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    created_at = Column(String, nullable=False, default=lambda: format_timestamp(datetime.now(timezone.utc)))
    total_study_time = Column(Integer, nullable=False, default=0)  # minutes
    start_date = Column(String, nullable=True)  # YYYY-MM-DD
    finish_date = Column(String, nullable=True)

    subjects = relationship(
        "Subject", back_populates="goal", cascade="all, delete-orphan", order_by="Subject.name"
    )
    sessions = relationship("StudySession", back_populates="goal", cascade="all, delete-orphan")


class Subject(Base):
    __tablename__ = "subjects"
    id = Column(String, primary_key=True, default=new_id)
    goal_id = Column(String, ForeignKey("goals.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    study_time = Column(Integer, nullable=False, default=0)

    # Recurring schedule; days_of_week is a JSON array of lowercase weekday names
    daily_minutes_goal = Column(Integer, nullable=True)
    days_of_week = Column(JSON, nullable=True)
    start_date = Column(String, nullable=True)
    finish_date = Column(String, nullable=True)

    goal = relationship("Goal", back_populates="subjects")
    topics = relationship("Topic", back_populates="subject", cascade="all, delete-orphan")


class Topic(Base):
    __tablename__ = "topics"
    id = Column(String, primary_key=True, default=new_id)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    study_time = Column(Integer, nullable=False, default=0)

    subject = relationship("Subject", back_populates="topics")


class StudySession(Base):
    __tablename__ = "study_sessions"
    id = Column(String, primary_key=True, default=new_id)
    goal_id = Column(String, ForeignKey("goals.id"), nullable=False, index=True)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=True, index=True)
    topic_id = Column(String, ForeignKey("topics.id"), nullable=True, index=True)
    start_time = Column(String, nullable=False)  # ISO-8601 UTC
    end_time = Column(String, nullable=True)  # unset while running
    duration = Column(Integer, nullable=False, default=0)  # minutes
    date = Column(String, nullable=False, index=True)  # YYYY-MM-DD
    comment = Column(Text, nullable=True)

    goal = relationship("Goal", back_populates="sessions")
    subject = relationship("Subject")
    topic = relationship("Topic")

    @property
    def is_running(self):
        return self.end_time is None
