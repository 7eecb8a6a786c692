"""
Test configuration and fixtures for the blood request lifecycle service.
Provides isolated databases, authenticated HTTP clients and data factories.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Override environment variables for testing
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt-tokens")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

from app.main import app
from app.db.base import Base
from app.dependencies import get_db
from app.models.hospital import Hospital
from app.models.request import BloodRequest
from app.models.user import User
from app.schemas.base_schema import BloodType, UserRole
from app.schemas.request import RequestStatus, Urgency
from app.services.state_machine import Actor
from app.utils.security import TokenManager, get_password_hash

TEST_PASSWORD = "donate123"
_PASSWORD_HASH = None


def password_hash() -> str:
    """Argon2 is slow on purpose; hash the shared test password once."""
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = get_password_hash(TEST_PASSWORD)
    return _PASSWORD_HASH


# --- Database fixtures ---


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database and session for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def client(tmp_path) -> TestClient:
    """
    HTTP client backed by a throwaway SQLite file.

    TestClient runs the app on its own event loop, so every request opens
    its own connection (NullPool) instead of sharing the test's session.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'api.sqlite3'}",
        poolclass=NullPool,
    )

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                if session.in_transaction():
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


# --- Data Factories ---


class TestDataFactory:
    """Factory for realistic donors, hospitals and requests."""

    __test__ = False

    ACCRA = (5.6037, -0.1870)

    @staticmethod
    def unique_email(prefix: str = "donor") -> str:
        return f"{prefix}_{uuid4().hex[:8]}@example.com"

    @staticmethod
    def user_payload(
        blood_group: str = "O-",
        role: str = "user",
        name: str = "Ama Mensah",
    ) -> dict:
        return {
            "email": TestDataFactory.unique_email(role),
            "name": name,
            "phone": "+233244000000",
            "password": TEST_PASSWORD,
            "password_confirm": TEST_PASSWORD,
            "blood_group": blood_group,
            "role": role,
        }

    @staticmethod
    def hospital_payload() -> dict:
        return {
            "hospital_name": "Korle Bu Teaching Hospital",
            "address": "Guggisberg Ave, Accra",
            "license_number": f"LIC-{uuid4().hex[:6]}",
            "contact_number": "0302000000",
            "city": "Accra",
            "latitude": TestDataFactory.ACCRA[0],
            "longitude": TestDataFactory.ACCRA[1],
        }

    @staticmethod
    def request_payload(
        blood_group: str = "A+",
        urgency: str = "normal",
        units_needed: int = 2,
        location: Optional[tuple] = None,
    ) -> dict:
        lat, lng = location or TestDataFactory.ACCRA
        return {
            "blood_group": blood_group,
            "units_needed": units_needed,
            "urgency": urgency,
            "hospital_name": "Ridge Hospital",
            "hospital_address": "Castle Rd, Accra",
            "location": {"latitude": lat, "longitude": lng},
        }

    @staticmethod
    async def create_user(
        db: AsyncSession,
        blood_group: BloodType = BloodType.O_NEGATIVE,
        role: UserRole = UserRole.USER,
        availability: bool = True,
        location: Optional[tuple] = None,
        name: str = "Kwame Boateng",
    ) -> User:
        lat, lng = location if location else (None, None)
        user = User(
            name=name,
            email=TestDataFactory.unique_email(role.value),
            password=password_hash(),
            phone="+233200000000",
            role=role,
            blood_group=blood_group,
            availability=availability,
            latitude=lat,
            longitude=lng,
            total_donations=0,
            badges=[],
        )
        db.add(user)
        await db.flush()
        return user

    @staticmethod
    async def create_hospital(db: AsyncSession, manager: User) -> Hospital:
        hospital = Hospital(
            hospital_name="37 Military Hospital",
            address="Liberation Rd, Accra",
            license_number=f"LIC-{uuid4().hex[:6]}",
            contact_number="0302111111",
            latitude=TestDataFactory.ACCRA[0],
            longitude=TestDataFactory.ACCRA[1],
            manager_id=manager.id,
        )
        db.add(hospital)
        await db.flush()
        return hospital

    @staticmethod
    async def create_request(
        db: AsyncSession,
        requester: Optional[User] = None,
        hospital: Optional[Hospital] = None,
        blood_group: BloodType = BloodType.A_POSITIVE,
        urgency: Urgency = Urgency.NORMAL,
        status: RequestStatus = RequestStatus.PENDING,
        location: Optional[tuple] = None,
    ) -> BloodRequest:
        lat, lng = location or TestDataFactory.ACCRA
        blood_request = BloodRequest(
            requester_id=requester.id if requester else None,
            hospital_id=hospital.id if hospital else None,
            blood_group=blood_group,
            units_needed=2,
            urgency=urgency,
            hospital_name="Ridge Hospital",
            hospital_address="Castle Rd, Accra",
            latitude=lat,
            longitude=lng,
            status=status,
        )
        db.add(blood_request)
        await db.flush()
        return blood_request


def hospital_actor(manager: User, hospital: Hospital) -> Actor:
    return Actor(user_id=manager.id, role=UserRole.HOSPITAL, hospital_id=hospital.id)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {TokenManager.create_user_token(user)}"}


# --- HTTP helpers ---


def register_and_login(client: TestClient, **payload_overrides) -> dict:
    """Register through the API and return the login response body plus headers."""
    payload = TestDataFactory.user_payload(**payload_overrides)
    response = client.post("/api/users/register", json=payload)
    assert response.status_code == 201, response.text

    login = client.post(
        "/api/users/auth/login",
        json={"email": payload["email"], "password": TEST_PASSWORD},
    )
    assert login.status_code == 200, login.text
    body = login.json()
    body["headers"] = {"Authorization": f"Bearer {body['access_token']}"}
    return body


def assert_error_code(response, status_code: int, code: str):
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is False
    assert body["code"] == code
    assert body["message"]
