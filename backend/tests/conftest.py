"""
Shared test fixtures for the firm analytics test suite.

Pins the engine configuration through environment variables, provides an
httpx client wired to the FastAPI app, and Factory Boy factories that build
raw time-entry payloads the way the time-tracking store exports them.
"""

import os
from datetime import date, datetime

import factory
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ---- Environment overrides MUST come before any app imports ----
os.environ["ENVIRONMENT"] = "test"
os.environ["REFERENCE_TIMEZONE"] = "America/Los_Angeles"
os.environ["VISIBILITY_RULES"] = '[{"person_name": "Departed Partner", "hide_after": "2025-12-31"}]'

from firm_analytics.analytics.schemas import EngineConfig, VisibilityRule  # noqa: E402
from firm_analytics.main import app  # noqa: E402

# Wednesday, mid-way through October 2025 (11 of 23 business days elapsed)
NOW = datetime(2025, 10, 15, 12, 0)


# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------
@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(
        visibility_rules=(VisibilityRule(person_name="Departed Partner", hide_after=date(2025, 12, 31)),),
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def person_names() -> dict[str, str]:
    return {
        "u-alice": "Alice Archer",
        "u-bob": "Bob Barnes",
        "u-dp": "Departed Partner",
    }


# ---------------------------------------------------------------------------
# HTTP client fixture
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def client() -> AsyncClient:
    """httpx async client wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factory Boy factories
# ---------------------------------------------------------------------------
class TimeEntryFactory(factory.Factory):
    """Raw billable entry payload in the store's camelCase export format."""

    class Meta:
        model = dict

    personId = "u-alice"
    date = "2025-10-06T10:00:00"
    billableHours = 1.5
    opsHours = 0
    billingCategory = "Contract Review"
    client = "Acme Corp"
    earnings = 450
    notes = factory.Faker("sentence")


class OpsEntryFactory(factory.Factory):
    """Raw operations (non-billable) entry payload."""

    class Meta:
        model = dict

    personId = "u-alice"
    date = "2025-10-07T14:00:00"
    billableHours = 0
    opsHours = 2
    opsCategory = "Recruiting"
    client = "Acme Corp"
    notes = factory.Faker("sentence")
