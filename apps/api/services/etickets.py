from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select

from apps.api.services.eticket_errors import (
    ETicketConflictError,
    ETicketServiceError,
    ETicketStoreUnavailableError,
    ETicketValidationError,
    FieldIssue,
)
from apps.api.services.eticket_fields import (
    ETicketCreate,
    ETicketPatch,
    travel_date_from_storage,
    travel_date_to_storage,
    validate_create,
    validate_patch,
)
from packages.db.models import ETicketTable

__all__ = [
    "ETicket",
    "ETicketConflictError",
    "ETicketService",
    "ETicketServiceError",
    "ETicketStore",
    "ETicketStoreUnavailableError",
    "ETicketValidationError",
    "FieldIssue",
    "NewETicket",
    "default_qr_code_data",
    "to_async_dsn",
]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ETicket:
    """Issued electronic ticket as stored."""

    id: int
    ticket_id: str
    passenger_name: str
    travel_date: date
    travel_time: str
    origin: str
    destination: str
    seat_number: str
    booking_reference: str
    qr_code_data: str
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class NewETicket:
    """Ticket content ready to be inserted; the store assigns id and timestamps."""

    ticket_id: str
    passenger_name: str
    travel_date: date
    travel_time: str
    origin: str
    destination: str
    seat_number: str
    booking_reference: str
    qr_code_data: str


def default_qr_code_data(ticket_id: str, booking_reference: str) -> str:
    return f"TICKET:{ticket_id}:{booking_reference}"


def to_async_dsn(dsn: str) -> str:
    """Ensure a PostgreSQL DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    return dsn


class ETicketStore:
    """Persistence for the ``e_tickets`` table.

    Uniqueness of ``ticket_id`` is enforced by the database index, so two racing
    inserts can never both succeed. Updates lock the target row for the length
    of their transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> "ETicketStore":
        engine = create_async_engine(to_async_dsn(url), future=True, echo=echo)
        return cls(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._guard("schema creation"):
            async with self._engine.begin() as connection:
                await connection.run_sync(SQLModel.metadata.create_all)

    async def ping(self) -> bool:
        async with self._guard("ping"):
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        return True

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def insert(self, ticket: NewETicket) -> ETicket:
        now = _utcnow()
        row = ETicketTable(
            ticket_id=ticket.ticket_id,
            passenger_name=ticket.passenger_name,
            travel_date=travel_date_to_storage(ticket.travel_date),
            travel_time=ticket.travel_time,
            origin=ticket.origin,
            destination=ticket.destination,
            seat_number=ticket.seat_number,
            booking_reference=ticket.booking_reference,
            qr_code_data=ticket.qr_code_data,
            created_at=now,
            updated_at=now,
        )
        async with self._guard("insert"):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        session.add(row)
                        await session.flush()
                        return self._table_to_ticket(row)
            except IntegrityError as exc:
                raise ETicketConflictError(ticket.ticket_id) from exc

    async def find_by_ticket_id(self, ticket_id: str) -> ETicket | None:
        async with self._guard("lookup"):
            async with self._session_factory() as session:
                result = await session.execute(select(ETicketTable).where(ETicketTable.ticket_id == ticket_id))
                row = result.scalars().first()
        if row is None:
            return None
        return self._table_to_ticket(row)

    async def list_all(self) -> list[ETicket]:
        async with self._guard("listing"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ETicketTable).order_by(ETicketTable.created_at.desc(), ETicketTable.id.asc())
                )
                rows = result.scalars().all()
        return [self._table_to_ticket(row) for row in rows]

    async def update_by_id(self, ticket_pk: int, patch: ETicketPatch) -> ETicket | None:
        changes = patch.changes()
        if "travel_date" in changes:
            changes["travel_date"] = travel_date_to_storage(changes["travel_date"])

        async with self._guard("update"):
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(ETicketTable).where(ETicketTable.id == ticket_pk).with_for_update()
                    )
                    row = result.scalars().first()
                    if row is None:
                        return None
                    for name, value in changes.items():
                        setattr(row, name, value)
                    row.updated_at = _next_timestamp(_ensure_datetime(row.updated_at))
                    await session.flush()
                    return self._table_to_ticket(row)

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except (DBAPIError, PoolTimeoutError, OSError) as exc:
            logger.exception("E-ticket store failed during %s", action)
            raise ETicketStoreUnavailableError(f"Ticket store unavailable during {action}") from exc

    @staticmethod
    def _table_to_ticket(row: ETicketTable) -> ETicket:
        if row.id is None:
            raise RuntimeError("Ticket row has not been assigned an id")
        return ETicket(
            id=row.id,
            ticket_id=row.ticket_id,
            passenger_name=row.passenger_name,
            travel_date=travel_date_from_storage(row.travel_date),
            travel_time=row.travel_time,
            origin=row.origin,
            destination=row.destination,
            seat_number=row.seat_number,
            booking_reference=row.booking_reference,
            qr_code_data=row.qr_code_data,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _next_timestamp(previous: datetime) -> datetime:
    # updated_at must move forward on every update, even within one clock tick.
    now = _utcnow()
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    raise TypeError("Expected datetime value from database")


class ETicketService:
    """High level orchestration for issuing, looking up and amending tickets."""

    def __init__(self, store: ETicketStore) -> None:
        self._store = store

    async def create_ticket(self, payload: Mapping[str, Any] | ETicketCreate) -> ETicket:
        data = validate_create(payload)
        ticket = NewETicket(
            ticket_id=data.ticket_id,
            passenger_name=data.passenger_name,
            travel_date=data.travel_date,
            travel_time=data.travel_time,
            origin=data.origin,
            destination=data.destination,
            seat_number=data.seat_number,
            booking_reference=data.booking_reference,
            qr_code_data=data.qr_code_data or default_qr_code_data(data.ticket_id, data.booking_reference),
        )
        try:
            created = await self._store.insert(ticket)
        except ETicketConflictError:
            logger.warning("Rejected duplicate ticket %s", ticket.ticket_id)
            raise
        logger.info("Created ticket %s (id=%s)", created.ticket_id, created.id)
        return created

    async def get_ticket(self, ticket_id: str) -> ETicket | None:
        return await self._store.find_by_ticket_id(ticket_id)

    async def list_tickets(self) -> Sequence[ETicket]:
        return await self._store.list_all()

    async def update_ticket(self, ticket_pk: int, patch: Mapping[str, Any] | ETicketPatch) -> ETicket | None:
        changes = validate_patch(patch)
        updated = await self._store.update_by_id(ticket_pk, changes)
        if updated is None:
            logger.info("Update skipped, no ticket with id=%s", ticket_pk)
            return None
        logger.info("Updated ticket %s fields=%s", updated.ticket_id, sorted(changes.model_fields_set))
        return updated
