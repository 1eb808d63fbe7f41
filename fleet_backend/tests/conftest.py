"""
Centralized Test Configuration.
"""

import asyncio
from types import SimpleNamespace

import pytest
from httpx import AsyncClient, ASGITransport
from redis.exceptions import LockError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from fleet_backend.app.main import app
from fleet_backend.app.db.session import get_db, Base
from fleet_backend.app.core.jwt import create_access_token
import fleet_backend.app.core.redis_client as redis_client_module
from fleet_backend.app.models.bus import Bus
from fleet_backend.app.models.company import Company
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.fleet_enums import BusStatus, FuelLevel
from fleet_backend.app.models.route import Route, RouteStop, RouteSchool
from fleet_backend.app.models.school import School
from fleet_backend.app.models.student import Student, ParentChildLink
from fleet_backend.app.models.user import User

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockLock:
    """asyncio-backed stand-in for ``redis.asyncio.lock.Lock``."""

    def __init__(self, redis, name, timeout=None, blocking_timeout=None):
        self.redis = redis
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self._owned = False

    async def acquire(self):
        lock = self.redis.locks.setdefault(self.name, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
        except asyncio.TimeoutError:
            return False
        self._owned = True
        return True

    async def release(self):
        if not self._owned:
            raise LockError("Cannot release an unlocked lock")
        self._owned = False
        self.redis.locks[self.name].release()


class MockRedis:
    def __init__(self):
        self.store = {}
        self.locks = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    def lock(self, name, timeout=None, blocking_timeout=None):
        return MockLock(self, name, timeout=timeout, blocking_timeout=blocking_timeout)

    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.locks = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by the resource locks
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


def auth_headers(user: User) -> dict:
    token = create_access_token(data={
        "sub": user.email,
        "user_id": user.id,
        "role": user.role.value,
        "company_id": user.company_id,
    })
    return {"Authorization": f"Bearer {token}"}


async def fresh(session: AsyncSession, model, ident):
    """Re-read a row, bypassing the session's identity map."""
    return await session.get(model, ident, populate_existing=True)


@pytest.fixture
async def fleet(db_session):
    """
    One company with an admin, two drivers, a parent and a second parent,
    two idle buses, a bus in maintenance, and route R with stops S1..S3.

    Riders: Mia at S1 (guardians: parent, parent2), Leo at S3 (guardian: parent).
    A second company with its own driver and bus checks tenant scoping.
    """
    company = Company(name="Acme School Transport")
    other_company = Company(name="Other Transport")
    db_session.add_all([company, other_company])
    await db_session.flush()

    def person(email, role, company_id, first, last):
        return User(email=email, role=role, company_id=company_id, first_name=first, last_name=last)

    admin = person("admin@acme.test", UserRole.ADMIN, company.id, "Ada", "Admin")
    driver = person("driver@acme.test", UserRole.DRIVER, company.id, "Dan", "Driver")
    driver2 = person("driver2@acme.test", UserRole.DRIVER, company.id, "Dora", "Driver")
    parent = person("parent@acme.test", UserRole.PARENT, company.id, "Pat", "Parent")
    parent2 = person("parent2@acme.test", UserRole.PARENT, company.id, "Pia", "Parent")
    outsider = person("driver@other.test", UserRole.DRIVER, other_company.id, "Otto", "Outsider")
    db_session.add_all([admin, driver, driver2, parent, parent2, outsider])
    await db_session.flush()

    school = School(company_id=company.id, name="Hillside Elementary", address="1 School Lane")
    other_school = School(company_id=other_company.id, name="Riverside Academy", address="9 River Road")
    db_session.add_all([school, other_school])
    await db_session.flush()

    route = Route(company_id=company.id, name="Route R", is_active=True)
    inactive_route = Route(company_id=company.id, name="Route Z", is_active=False)
    db_session.add_all([route, inactive_route])
    await db_session.flush()

    stops = [
        RouteStop(route_id=route.id, name=f"S{i}", address=f"{i}0 Maple Street", order=i)
        for i in (1, 2, 3)
    ]
    db_session.add_all(stops)
    db_session.add(RouteSchool(route_id=route.id, school_id=school.id, visit_order=1))

    bus = Bus(company_id=company.id, bus_number="42", status=BusStatus.IDLE,
              fuel_level=FuelLevel.HALF, mileage=12000)
    bus2 = Bus(company_id=company.id, bus_number="43", status=BusStatus.IDLE,
               fuel_level=FuelLevel.FULL, mileage=8000)
    broken_bus = Bus(company_id=company.id, bus_number="44", status=BusStatus.MAINTENANCE)
    other_bus = Bus(company_id=other_company.id, bus_number="99", status=BusStatus.IDLE)
    db_session.add_all([bus, bus2, broken_bus, other_bus])
    await db_session.flush()

    mia = Student(company_id=company.id, first_name="Mia", last_name="Parent",
                  school_id=school.id, route_id=route.id, stop_id=stops[0].id)
    leo = Student(company_id=company.id, first_name="Leo", last_name="Parent",
                  school_id=school.id, route_id=route.id, stop_id=stops[2].id)
    db_session.add_all([mia, leo])
    await db_session.flush()

    db_session.add_all([
        ParentChildLink(parent_id=parent.id, student_id=mia.id),
        ParentChildLink(parent_id=parent2.id, student_id=mia.id),
        ParentChildLink(parent_id=parent.id, student_id=leo.id),
    ])
    await db_session.commit()

    # Detached snapshots; tests re-read live rows with ``fresh``
    db_session.expunge_all()

    return SimpleNamespace(
        company=company, other_company=other_company,
        admin=admin, driver=driver, driver2=driver2,
        parent=parent, parent2=parent2, outsider=outsider,
        school=school, other_school=other_school, route=route, inactive_route=inactive_route, stops=stops,
        bus=bus, bus2=bus2, broken_bus=broken_bus, other_bus=other_bus,
        mia=mia, leo=leo,
    )


def check_in_payload(fleet, driver=None, bus=None, route=None, fuel_level="Full"):
    return {
        "driver_id": (driver or fleet.driver).id,
        "bus_id": (bus or fleet.bus).id,
        "route_id": (route or fleet.route).id,
        "fuel_level": fuel_level,
        "interior_clean": True,
        "exterior_clean": True,
    }
