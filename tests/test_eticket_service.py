from __future__ import annotations

import asyncio
import time
from datetime import date
from unittest.mock import AsyncMock

import pytest

from apps.api.services.eticket_fields import ETicketPatch
from apps.api.services.etickets import (
    ETicket,
    ETicketConflictError,
    ETicketService,
    ETicketValidationError,
    NewETicket,
    default_qr_code_data,
)


class DummyStore:
    def __init__(self):
        self.insert = AsyncMock()
        self.find_by_ticket_id = AsyncMock(return_value=None)
        self.list_all = AsyncMock(return_value=[])
        self.update_by_id = AsyncMock(return_value=None)


def test_default_qr_code_data():
    assert default_qr_code_data("DEMO123", "ABC123XYZ") == "TICKET:DEMO123:ABC123XYZ"


@pytest.mark.asyncio
async def test_create_derives_qr_code_when_missing(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload())

    assert created.qr_code_data == "TICKET:DEMO123:ABC123XYZ"
    assert created.travel_date == date(2024, 1, 15)


@pytest.mark.asyncio
async def test_create_keeps_supplied_qr_code(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload(qr_code_data="CUSTOM_QR"))

    assert created.qr_code_data == "CUSTOM_QR"


@pytest.mark.asyncio
async def test_create_treats_empty_qr_code_as_missing(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload(qr_code_data=""))

    assert created.qr_code_data == "TICKET:DEMO123:ABC123XYZ"


@pytest.mark.asyncio
async def test_create_then_get_round_trips_every_field(service: ETicketService, ticket_payload):
    payload = ticket_payload(ticket_id="ROUND-1", qr_code_data="QR-ROUND-1")

    created = await service.create_ticket(payload)
    fetched = await service.get_ticket("ROUND-1")

    assert fetched == created
    assert fetched.ticket_id == payload["ticket_id"]
    assert fetched.passenger_name == payload["passenger_name"]
    assert fetched.travel_date.isoformat() == payload["travel_date"]
    assert fetched.travel_time == payload["travel_time"]
    assert fetched.origin == payload["origin"]
    assert fetched.destination == payload["destination"]
    assert fetched.seat_number == payload["seat_number"]
    assert fetched.booking_reference == payload["booking_reference"]
    assert fetched.qr_code_data == payload["qr_code_data"]


@pytest.mark.asyncio
async def test_duplicate_ticket_id_yields_one_success_and_one_conflict(service: ETicketService, ticket_payload):
    outcomes = []
    for passenger in ("First Passenger", "Second Passenger"):
        try:
            await service.create_ticket(ticket_payload(passenger_name=passenger))
        except ETicketConflictError:
            outcomes.append("conflict")
        else:
            outcomes.append("created")

    assert sorted(outcomes) == ["conflict", "created"]
    stored = await service.get_ticket("DEMO123")
    assert stored is not None
    assert stored.passenger_name == "First Passenger"


@pytest.mark.asyncio
async def test_get_missing_ticket_returns_none(service: ETicketService):
    assert await service.get_ticket("MISSING") is None


@pytest.mark.asyncio
async def test_list_tickets_returns_every_ticket_newest_first(service: ETicketService, ticket_payload):
    for index in range(3):
        await service.create_ticket(ticket_payload(ticket_id=f"LIST-{index}"))
        time.sleep(0.002)

    listed = await service.list_tickets()

    assert [ticket.ticket_id for ticket in listed] == ["LIST-2", "LIST-1", "LIST-0"]


@pytest.mark.asyncio
async def test_update_with_no_fields_only_advances_updated_at(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload())

    updated = await service.update_ticket(created.id, {})

    assert updated is not None
    assert updated.updated_at > created.updated_at
    for field in (
        "id",
        "ticket_id",
        "passenger_name",
        "travel_date",
        "travel_time",
        "origin",
        "destination",
        "seat_number",
        "booking_reference",
        "qr_code_data",
        "created_at",
    ):
        assert getattr(updated, field) == getattr(created, field)


@pytest.mark.asyncio
async def test_update_ignores_ticket_id(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload())

    updated = await service.update_ticket(created.id, {"ticket_id": "HIJACKED", "seat_number": "15B"})

    assert updated is not None
    assert updated.ticket_id == "DEMO123"
    assert updated.seat_number == "15B"
    assert await service.get_ticket("HIJACKED") is None


@pytest.mark.asyncio
async def test_update_all_fields(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload())

    updated = await service.update_ticket(
        created.id,
        {
            "passenger_name": "Jane Smith",
            "travel_date": "2024-02-20",
            "travel_time": "14:45",
            "origin": "Chicago",
            "destination": "Denver",
            "seat_number": "15B",
            "booking_reference": "NEW_REF789",
            "qr_code_data": "UPDATED_QR_DATA",
        },
    )

    assert updated is not None
    assert updated.passenger_name == "Jane Smith"
    assert updated.travel_date == date(2024, 2, 20)
    assert updated.travel_time == "14:45"
    assert updated.origin == "Chicago"
    assert updated.destination == "Denver"
    assert updated.booking_reference == "NEW_REF789"
    assert updated.qr_code_data == "UPDATED_QR_DATA"
    assert updated.created_at == created.created_at


@pytest.mark.asyncio
async def test_update_unknown_id_returns_none(service: ETicketService):
    assert await service.update_ticket(12345, {"passenger_name": "Nobody"}) is None


@pytest.mark.asyncio
async def test_successive_updates_strictly_increase_updated_at(service: ETicketService, ticket_payload):
    created = await service.create_ticket(ticket_payload())

    stamps = [created.updated_at]
    for _ in range(5):
        updated = await service.update_ticket(created.id, {})
        assert updated is not None
        stamps.append(updated.updated_at)

    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="requires time.tzset")
@pytest.mark.asyncio
@pytest.mark.parametrize("tz_name", ["Pacific/Honolulu", "Asia/Tokyo", "UTC"])
async def test_travel_date_survives_server_timezone(service: ETicketService, ticket_payload, monkeypatch, tz_name):
    monkeypatch.setenv("TZ", tz_name)
    time.tzset()
    try:
        await service.create_ticket(ticket_payload(travel_date="2024-12-25"))
        fetched = await service.get_ticket("DEMO123")
    finally:
        monkeypatch.undo()
        time.tzset()

    assert fetched is not None
    assert fetched.travel_date == date(2024, 12, 25)
    assert fetched.travel_date.isoformat() == "2024-12-25"


@pytest.mark.asyncio
async def test_create_validates_before_touching_store(ticket_payload):
    store = DummyStore()
    service = ETicketService(store)  # type: ignore[arg-type]

    with pytest.raises(ETicketValidationError) as exc:
        await service.create_ticket(ticket_payload(travel_time="25:99"))

    assert exc.value.fields == ("travel_time",)
    store.insert.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_passes_resolved_ticket_to_store(ticket_payload):
    store = DummyStore()
    service = ETicketService(store)  # type: ignore[arg-type]

    await service.create_ticket(ticket_payload())

    store.insert.assert_awaited_once()
    (ticket,) = store.insert.await_args.args
    assert isinstance(ticket, NewETicket)
    assert ticket.qr_code_data == "TICKET:DEMO123:ABC123XYZ"
    assert ticket.travel_date == date(2024, 1, 15)


@pytest.mark.asyncio
async def test_create_propagates_conflict(ticket_payload):
    store = DummyStore()
    store.insert.side_effect = ETicketConflictError("DEMO123")
    service = ETicketService(store)  # type: ignore[arg-type]

    with pytest.raises(ETicketConflictError):
        await service.create_ticket(ticket_payload())


@pytest.mark.asyncio
async def test_update_validates_before_touching_store():
    store = DummyStore()
    service = ETicketService(store)  # type: ignore[arg-type]

    with pytest.raises(ETicketValidationError):
        await service.update_ticket(1, {"travel_date": "2024-99-99"})

    store.update_by_id.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_hands_typed_patch_to_store():
    store = DummyStore()
    service = ETicketService(store)  # type: ignore[arg-type]

    assert await service.update_ticket(7, {"origin": "Chicago"}) is None

    ticket_pk, patch = store.update_by_id.await_args.args
    assert ticket_pk == 7
    assert isinstance(patch, ETicketPatch)
    assert patch.changes() == {"origin": "Chicago"}


@pytest.mark.asyncio
async def test_concurrent_creates_with_same_ticket_id_store_exactly_one(file_store, ticket_payload):
    service = ETicketService(file_store)

    results = await asyncio.gather(
        *[service.create_ticket(ticket_payload(passenger_name=f"Passenger {i}")) for i in range(5)],
        return_exceptions=True,
    )

    created = [result for result in results if isinstance(result, ETicket)]
    conflicts = [result for result in results if isinstance(result, ETicketConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 4
    assert [ticket.ticket_id for ticket in await service.list_tickets()] == ["DEMO123"]
