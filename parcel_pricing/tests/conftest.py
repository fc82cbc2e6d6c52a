"""
Centralized Test Configuration.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from parcel_pricing.app.main import app
from parcel_pricing.app.db.session import get_db, Base
from parcel_pricing.app.core.redis_client import get_redis
import parcel_pricing.app.core.redis_client as redis_client_module
from parcel_pricing.app.schemas.pricing import (
    Area, PricingRuleSnapshot, PriceCalculationRequest, Tier,
)

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

ORIGIN = Area(province="Jawa Timur", city="Surabaya")
DESTINATION = Area(province="DKI Jakarta", city="Jakarta Selatan")


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
    
    async def ping(self):
        if self._closed:
            return False
        return True
    
    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)
        
    async def set(self, key, value, ex=None, nx=False):
        if self._closed:
            return False
        if nx and key in self.store:
            return None
        self.store[key] = str(value)
        return True
    
    async def incrby(self, key, amount):
        value = int(self.store.get(key, 0)) + amount
        self.store[key] = str(value)
        return value
    
    async def incr(self, key):
        return await self.incrby(key, 1)
    
    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0
        
    async def flushdb(self):
        if not self._closed:
            self.store = {}
        
    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory, mock_redis, monkeypatch):
    """Async client for testing, wired to the test database and MockRedis."""
    monkeypatch.setattr(redis_client_module, "redis_client", mock_redis)
    
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    
    app.dependency_overrides = {}


@pytest.fixture
def weight_tiers():
    """[0,1) 10000/kg, [1,3) 9000/kg, [3,inf) 8000/kg."""
    return (
        Tier(minimum=Decimal("0"), maximum=Decimal("1"), price_per_unit=Decimal("10000")),
        Tier(minimum=Decimal("1"), maximum=Decimal("3"), price_per_unit=Decimal("9000")),
        Tier(minimum=Decimal("3"), price_per_unit=Decimal("8000")),
    )


@pytest.fixture
def make_rule(weight_tiers):
    """Build a rule snapshot; keyword arguments override the defaults."""
    def _make_rule(**overrides) -> PricingRuleSnapshot:
        fields = {
            "code": "PR-20260101-001",
            "name": "Surabaya - Jakarta Regular",
            "service_type": "regular",
            "origin_area": ORIGIN,
            "destination_area": DESTINATION,
            "pricing_type": "weight",
            "base_price": Decimal("15000"),
            "weight_tiers": weight_tiers,
            "tax_percentage": Decimal("0"),
            "insurance_percentage": Decimal("0.2"),
            "effective_date": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return PricingRuleSnapshot(**fields)
    return _make_rule


@pytest.fixture
def make_request():
    """Build a calculation request for the default lane."""
    def _make_request(**overrides) -> PriceCalculationRequest:
        fields = {
            "service_type": "regular",
            "origin_area": ORIGIN,
            "destination_area": DESTINATION,
            "weight": Decimal("2"),
        }
        fields.update(overrides)
        return PriceCalculationRequest(**fields)
    return _make_request
