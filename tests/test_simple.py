"""
Simple test cases to verify test configuration.
"""
import pytest
from httpx import AsyncClient
from datetime import datetime, timedelta, timezone
from sqlalchemy import text
from sqlmodel.ext.asyncio.session import AsyncSession

from portal.types import as_utc


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Test that app answers."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_trace_id_header(client: AsyncClient):
    """Test that every response carries the request trace id."""
    response = await client.get("/health", headers={"X-Trace-ID": "abc123"})
    assert response.headers["X-Trace-ID"] == "abc123"


@pytest.mark.asyncio
async def test_database_session(async_session: AsyncSession):
    """Test that database session works."""
    result = await async_session.execute(text("SELECT 1"))
    assert result.scalar() == 1


@pytest.mark.asyncio
async def test_unauthenticated_request_rejected(client: AsyncClient):
    """Test that protected endpoints need a token."""
    response = await client.get("/api/v1/connections/")
    assert response.status_code == 401


def test_naive_datetimes_read_as_utc():
    """Test that naive input gets UTC and aware input keeps its offset."""
    assert as_utc(datetime(2026, 3, 10, 9, 30)).tzinfo == timezone.utc
    plus_two = timezone(timedelta(hours=2))
    assert as_utc(datetime(2026, 3, 10, 9, 30, tzinfo=plus_two)).tzinfo == plus_two
