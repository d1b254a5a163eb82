"""
Test configuration and shared fixtures for the Clinic Scheduling test suite.

Uses an in-memory SQLite database by default (override with TEST_DATABASE_URL)
with transaction-based isolation. Each test gets a clean database state via
automatic transaction rollback.
"""

import os
from datetime import date, time
from typing import Generator, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, enable_sqlite_savepoints

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models.clinician import Clinician
from models.weekly_availability_block import WeeklyAvailabilityBlock
from models.availability_exception import AvailabilityException
from models.time_block import TimeBlock
from models.appointment import Appointment
from models.availability_settings import AvailabilitySettings


# Test database URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def db_engine():
    """
    Create a database engine for the test session.

    This engine is shared across all tests for performance. In-memory SQLite
    uses StaticPool so every checkout sees the same database.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
        enable_sqlite_savepoints(engine)
    else:
        engine = create_engine(TEST_DATABASE_URL, echo=False)

    yield engine

    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_test_database(db_engine):
    """Create the schema once per session and drop it afterwards."""
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    yield

    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Provide a database session for a test with automatic rollback.

    This fixture uses the "nested transaction" pattern:
    1. Start a transaction on a dedicated connection
    2. Bind the session so every commit/rollback only touches a savepoint
    3. Run the test
    4. Rollback the outer transaction (undoes all test changes)

    This ensures perfect test isolation - each test gets a clean database
    state, but we don't recreate the database between tests (fast!).
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    TestSession = sessionmaker(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    session = TestSession()

    yield session

    # Teardown: rollback everything
    session.close()
    transaction.rollback()
    connection.close()


# ===== Helper factories =====

def create_clinician(
    db_session: Session,
    name: str = "Dr. Test",
    time_zone: str = "America/Chicago",
    email: Optional[str] = None
) -> Clinician:
    """Create and flush a clinician."""
    clinician = Clinician(name=name, time_zone=time_zone, email=email, is_active=True)
    db_session.add(clinician)
    db_session.flush()
    return clinician


def create_weekly_block(
    db_session: Session,
    clinician: Clinician,
    day_of_week: int,
    start_time: time,
    end_time: time,
    is_active: bool = True
) -> WeeklyAvailabilityBlock:
    """Create a weekly block for a clinician (0=Monday)."""
    block = WeeklyAvailabilityBlock(
        clinician_id=clinician.id,
        day_of_week=day_of_week,
        start_time=start_time,
        end_time=end_time,
        is_active=is_active,
    )
    db_session.add(block)
    db_session.flush()
    return block


def create_exception(
    db_session: Session,
    clinician: Clinician,
    specific_date: date,
    original_block: Optional[WeeklyAvailabilityBlock] = None,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
    is_deleted: bool = False
) -> AvailabilityException:
    """Create an availability exception; no parent block means one-time availability."""
    exception = AvailabilityException(
        clinician_id=clinician.id,
        specific_date=specific_date,
        original_block_id=original_block.id if original_block else None,
        start_time=start_time,
        end_time=end_time,
        is_deleted=is_deleted,
    )
    db_session.add(exception)
    db_session.flush()
    return exception


def create_time_block(
    db_session: Session,
    clinician: Clinician,
    block_date: date,
    start_time: time,
    end_time: time,
    reason: Optional[str] = None
) -> TimeBlock:
    """Create time off for a clinician."""
    time_block = TimeBlock(
        clinician_id=clinician.id,
        date=block_date,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )
    db_session.add(time_block)
    db_session.flush()
    return time_block


def create_appointment(
    db_session: Session,
    clinician: Clinician,
    appointment_date: date,
    start_time: time,
    end_time: time,
    status: str = "scheduled",
    client_id: Optional[int] = None
) -> Appointment:
    """Create an appointment directly, bypassing booking validation."""
    appointment = Appointment(
        clinician_id=clinician.id,
        client_id=client_id,
        date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        status=status,
    )
    db_session.add(appointment)
    db_session.flush()
    return appointment


def create_settings(
    db_session: Session,
    clinician: Clinician,
    time_granularity: int = 60,
    min_notice_days: int = 1,
    max_advance_days: int = 30,
    min_notice_hours: Optional[int] = None,
    buffer_minutes: int = 0,
    time_zone: Optional[str] = None
) -> AvailabilitySettings:
    """Create the availability settings row for a clinician."""
    settings = AvailabilitySettings(
        clinician_id=clinician.id,
        time_granularity=time_granularity,
        min_notice_days=min_notice_days,
        max_advance_days=max_advance_days,
        min_notice_hours=min_notice_hours,
        buffer_minutes=buffer_minutes,
        time_zone=time_zone or clinician.time_zone,
    )
    db_session.add(settings)
    db_session.flush()
    return settings


@pytest.fixture
def clinician(db_session: Session) -> Clinician:
    """A clinician in America/Chicago with no settings row."""
    return create_clinician(db_session)
