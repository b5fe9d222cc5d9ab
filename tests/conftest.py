from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from landverify.database import Base, get_db
from landverify.main import app
from landverify.api.deps import get_clock, get_land_lookup
from landverify.core.clock import FrozenClock
from landverify.core.constants import UserRole
from landverify.core.security import create_access_token
from landverify.schemas.auth import Principal
from landverify.services.land_lookup import LandFacts
import landverify.models  # noqa: F401

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

CLEAN_LAND = "LAND-001"
LITIGATED_LAND = "LAND-002"


class FakeLandLookup:
    def __init__(self):
        self.lands = {
            CLEAN_LAND: LandFacts(
                land_id=CLEAN_LAND,
                current_owner="Adaeze Okafor",
                owner_registered=True,
            ),
            LITIGATED_LAND: LandFacts(
                land_id=LITIGATED_LAND,
                current_owner="Bello Family",
                has_encumbrances=True,
                active_legal_cases=1,
            ),
        }

    async def get_land_facts(self, land_id: str) -> Optional[LandFacts]:
        return self.lands.get(land_id)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
def land_lookup() -> FakeLandLookup:
    return FakeLandLookup()


@pytest_asyncio.fixture
async def client(clock: FrozenClock, land_lookup: FakeLandLookup) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_land_lookup] = lambda: land_lookup

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def citizen() -> Principal:
    return Principal(id="citizen-1", role=UserRole.CITIZEN)


@pytest.fixture
def other_citizen() -> Principal:
    return Principal(id="citizen-2", role=UserRole.CITIZEN)


@pytest.fixture
def officer() -> Principal:
    return Principal(id="officer-1", role=UserRole.GOVERNMENT)


@pytest.fixture
def surveyor() -> Principal:
    return Principal(id="surveyor-1", role=UserRole.SURVEYOR)


@pytest.fixture
def admin() -> Principal:
    return Principal(id="admin-1", role=UserRole.ADMIN)


def get_auth_headers(principal: Principal) -> dict:
    token = create_access_token({"sub": principal.id, "role": principal.role.value})
    return {"Authorization": f"Bearer {token}"}


async def create_verification(
    client: AsyncClient,
    principal: Principal,
    urgency: str = "standard",
    land_id: str = CLEAN_LAND,
    scope: Optional[dict] = None,
) -> dict:
    body = {"land_id": land_id, "purpose": "purchase", "urgency": urgency}
    if scope is not None:
        body["scope"] = scope
    response = await client.post("/api/v1/verifications", headers=get_auth_headers(principal), json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def work_step(client: AsyncClient, verification_id: str, step: str, officer: Principal) -> dict:
    """Assign the officer to a step and complete it."""
    headers = get_auth_headers(officer)
    response = await client.post(
        f"/api/v1/verifications/{verification_id}/steps/{step}/assign",
        headers=headers,
        json={"officer_id": officer.id},
    )
    assert response.status_code == 200, response.text
    response = await client.post(
        f"/api/v1/verifications/{verification_id}/steps/{step}/complete",
        headers=headers,
        json={"notes": f"{step} done", "deliverables": [f"doc://{step}"]},
    )
    assert response.status_code == 200, response.text
    return response.json()


CLEAN_FINDINGS = {
    "ownership_details": {
        "current_owner": "Adaeze Okafor",
        "ownership_type": "individual",
        "owner_registered": True,
        "owner_verified": True,
    },
    "title_verification": {
        "certificate_of_occupancy": {
            "exists": True,
            "number": "CO-LAG-2019-0042",
            "status": "active",
            "verified": True,
        },
        "deed_of_assignment": {"exists": True, "registered": True},
        "survey_plan": {"exists": True, "survey_number": "SP-1182"},
    },
    "encumbrances": {"has_encumbrances": False},
    "physical_verification": {
        "conducted": True,
        "verified_by": "surveyor-1",
        "findings": {"land_exists": True, "boundaries_match": True, "no_encroachment": True},
    },
}


async def pay_in_full(client: AsyncClient, created: dict, cashier: Principal) -> dict:
    """Confirm the whole fee so work on the verification can start."""
    response = await client.post(
        f"/api/v1/verifications/{created['verification_id']}/payments",
        headers=get_auth_headers(cashier),
        json={"amount": created["ledger"]["total_amount"], "method": "online"},
    )
    assert response.status_code == 200, response.text
    return response.json()
