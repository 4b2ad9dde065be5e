import os
from datetime import date, time
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base, get_db
from app.core.redis import get_slot_locker
from app.main import app
from app.models.appointment import Appointment, AppointmentStatus

# In-memory SQLite unless a real database is given
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# 2025-01-15 is a Wednesday
WEDNESDAY = date(2025, 1, 15)
SATURDAY = date(2025, 1, 18)
SUNDAY = date(2025, 1, 19)


@pytest_asyncio.fixture
async def db():
    """Create a fresh database session for each test."""
    engine_kwargs = {"echo": False}
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine_kwargs["poolclass"] = StaticPool
    engine = create_async_engine(TEST_DATABASE_URL, **engine_kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def slot_locker():
    """Stand-in for the Redis slot hold that always grants the lock."""
    locker = AsyncMock()
    locker.acquire_slot_lock.return_value = True
    locker.release_slot_lock.return_value = True
    return locker


@pytest.fixture(autouse=True)
def override_dependencies(db: AsyncSession, slot_locker):
    """Point the app at the test database and the fake slot hold."""

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_slot_locker] = lambda: slot_locker
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client():
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def make_appointment(db: AsyncSession):
    """Insert an appointment directly, bypassing the booking checks."""

    async def _make(
        appointment_time: time,
        appointment_date: date = WEDNESDAY,
        branch: str = "Cabugao",
        doctor_id=None,
        status: AppointmentStatus = AppointmentStatus.PENDING,
        patient_id: str = "patient-1",
        notes=None,
    ) -> Appointment:
        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            branch=branch,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            status=status.value,
            notes=notes,
            reschedule_count=0,
        )
        db.add(appointment)
        await db.commit()
        await db.refresh(appointment)
        return appointment

    return _make
