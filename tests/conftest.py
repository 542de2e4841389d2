"""Shared fixtures: in-memory database, fixed clock, ledger and API client."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import crud
import models
from database import get_db, init_db
from ledger import SessionLedger


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock() -> FakeClock:
    # a Monday morning
    return FakeClock(datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger(db, clock) -> SessionLedger:
    return SessionLedger(db, clock=clock)


@pytest.fixture
def goal(db) -> models.Goal:
    return crud.create_goal(db, "Exam Prep")


@pytest.fixture
def subject(db, goal) -> models.Subject:
    return crud.create_subject(db, goal.id, "Math")


@pytest.fixture
def client(session_factory, clock):
    import main

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_get_ledger(db=Depends(get_db)):
        return SessionLedger(db, clock=clock)

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[main.get_ledger] = override_get_ledger
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
