from __future__ import annotations

from typing import Any, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from apps.api.services.etickets import ETicketService, ETicketStore


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def store(engine: AsyncEngine) -> ETicketStore:
    store = ETicketStore(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    await store.ensure_schema()
    return store


@pytest_asyncio.fixture
async def service(store: ETicketStore) -> ETicketService:
    return ETicketService(store)


@pytest.fixture
def ticket_payload() -> Callable[..., dict[str, Any]]:
    def build(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ticket_id": "DEMO123",
            "passenger_name": "John Doe",
            "travel_date": "2024-01-15",
            "travel_time": "14:30",
            "origin": "New York",
            "destination": "Boston",
            "seat_number": "12A",
            "booking_reference": "ABC123XYZ",
        }
        payload.update(overrides)
        return payload

    return build


@pytest_asyncio.fixture
async def file_store(tmp_path) -> ETicketStore:
    # A real database file gives every session its own connection, unlike :memory:.
    store = ETicketStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'etickets.db'}")
    await store.ensure_schema()
    try:
        yield store
    finally:
        await store.close()
