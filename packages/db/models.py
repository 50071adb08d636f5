"""SQLModel table definitions for the e-ticket data layer."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class ETicketTable(SQLModel, table=True):
    """Issued electronic travel tickets."""

    __tablename__ = "e_tickets"

    id: int | None = Field(default=None, primary_key=True)
    ticket_id: str = Field(sa_column=Column(String(255), nullable=False, unique=True, index=True))
    passenger_name: str = Field(sa_column=Column(String(255), nullable=False))
    # Calendar date kept as ISO text so no driver ever applies a timezone to it.
    travel_date: str = Field(sa_column=Column(String(10), nullable=False))
    travel_time: str = Field(sa_column=Column(String(5), nullable=False))
    origin: str = Field(sa_column=Column(String(255), nullable=False))
    destination: str = Field(sa_column=Column(String(255), nullable=False))
    seat_number: str = Field(sa_column=Column(String(50), nullable=False))
    booking_reference: str = Field(sa_column=Column(String(255), nullable=False))
    qr_code_data: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
