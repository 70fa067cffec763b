"""Pytest configuration and fixtures for NomNom tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from nomnom.config import reset_config
from nomnom.db.connection import create_engine_for_url
from nomnom.db.models import Base
from nomnom.models import MenuItem

SAMPLE_REPORT = """\
דוח מכירות לפי מוצרים
שם העסק,"קפה הדרך"
מספר עוסק,"514789632"
תאריך,"01/03/2024","01/03/2024"
מוצרים / מחלקות,מחיר מכירה ממוצע,הנחה,סכום הנחה,כמות שנמכרה,סה״כ הכנסות
"קפה הפוך גדול",12.50,0,0,8,100.00
הפוך גדול,14.00,0,0,10,140.00

אמריקנו,10.00,0,0,5,50.00
Chocolate Muffin,12.00,10,12.00,4,36.00
מיץ תפוזים טבעי,15.00,0,0,3,45.00
שורה שבורה,1,2,3
מאפין,8.00,0,0,0,0
סה״כ,,,12.00,30,371.00
"""


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("DEFAULT_BUSINESS_ID", "test-business")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def business_id() -> str:
    """Test business ID."""
    return "test-business"


@pytest.fixture
def sample_report_text() -> str:
    """Bilingual payment-provider export: 5 good rows, 2 bad rows, a total line."""
    return SAMPLE_REPORT


@pytest.fixture
def catalog() -> list[MenuItem]:
    """Small café menu."""
    return [
        MenuItem(name="הפוך גדול", price=14.0, category="Coffee"),
        MenuItem(name="Iced Latte", price=16.0, category="Coffee"),
        MenuItem(name="אמריקנו", price=10.0, category="Coffee"),
        MenuItem(name="Chocolate Muffin", price=12.0, category="Pastries"),
        MenuItem(name="כריך טונה", price=28.0, category="Sandwiches"),
    ]


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()
