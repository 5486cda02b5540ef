"""Shared test fixtures for the scheduling engine."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PRACTICE_TIMEZONE", "UTC")

from datetime import datetime
from typing import Generator

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cabinet.cache import Cache, PreferenceStore
from cabinet.database import Base
from cabinet.domain.scheduling.calendar_view import CalendarViewState
from cabinet.domain.scheduling.repository import PatientRepository, SqlAlchemyAppointmentRepository
from cabinet.domain.scheduling.service import SchedulingService
from cabinet.models import Patient, User

# Monday 26 January 2026, noon
NOW = datetime(2026, 1, 26, 12, 0)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def practitioner(db_session) -> User:
    user = User(email="dr.martin@cabinet.test", full_name="Dr. Claire Martin")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def alice(db_session) -> Patient:
    patient = Patient(first_name="Alice", last_name="Durand", phone="0612345678")
    db_session.add(patient)
    db_session.commit()
    return patient


@pytest.fixture
def bob(db_session) -> Patient:
    patient = Patient(first_name="Bob", last_name="Lefevre", phone="0698765432")
    db_session.add(patient)
    db_session.commit()
    return patient


@pytest.fixture
def repository(db_session) -> SqlAlchemyAppointmentRepository:
    return SqlAlchemyAppointmentRepository(db_session)


@pytest.fixture
def view_state() -> CalendarViewState:
    return CalendarViewState(clock=fixed_clock)


@pytest.fixture
def service(db_session, repository, practitioner, view_state) -> SchedulingService:
    """Authenticated service wired to clear the session's calendar cache."""
    return SchedulingService(
        repository,
        PatientRepository(db_session),
        identity=lambda: practitioner,
        clock=fixed_clock,
        on_change=view_state.clear_cache,
    )


@pytest.fixture
def anonymous_service(db_session, repository) -> SchedulingService:
    return SchedulingService(
        repository,
        PatientRepository(db_session),
        identity=lambda: None,
        clock=fixed_clock,
    )


@pytest.fixture
def preference_store() -> PreferenceStore:
    return PreferenceStore(Cache(client=fakeredis.FakeRedis(decode_responses=True)))
