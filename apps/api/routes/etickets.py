from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from pydantic import BaseModel

from apps.api.services.etickets import (
    ETicket,
    ETicketConflictError,
    ETicketService,
    ETicketStoreUnavailableError,
    ETicketValidationError,
)


router = APIRouter(prefix="/etickets", tags=["etickets"])


async def get_eticket_service(request: Request) -> ETicketService:
    service = getattr(request.app.state, "eticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not available")
    return service


ETicketServiceDep = Annotated[ETicketService, Depends(get_eticket_service)]
JSONBody = Annotated[dict[str, Any], Body()]


class ETicketModel(BaseModel):
    id: int
    ticket_id: str
    passenger_name: str
    travel_date: str
    travel_time: str
    origin: str
    destination: str
    seat_number: str
    booking_reference: str
    qr_code_data: str
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, entity: ETicket) -> "ETicketModel":
        return cls(
            id=entity.id,
            ticket_id=entity.ticket_id,
            passenger_name=entity.passenger_name,
            travel_date=entity.travel_date.isoformat(),
            travel_time=entity.travel_time,
            origin=entity.origin,
            destination=entity.destination,
            seat_number=entity.seat_number,
            booking_reference=entity.booking_reference,
            qr_code_data=entity.qr_code_data,
            created_at=entity.created_at.isoformat(),
            updated_at=entity.updated_at.isoformat(),
        )


def _validation_failed(exc: ETicketValidationError) -> HTTPException:
    detail = [{"field": issue.field, "rule": issue.rule, "message": issue.message} for issue in exc.issues]
    return HTTPException(status_code=422, detail=detail)


def _store_unavailable(exc: ETicketStoreUnavailableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("", response_model=list[ETicketModel], summary="List all tickets, newest first")
async def list_etickets(service: ETicketServiceDep) -> list[ETicketModel]:
    try:
        tickets = await service.list_tickets()
    except ETicketStoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    return [ETicketModel.from_entity(item) for item in tickets]


@router.post("", response_model=ETicketModel, status_code=status.HTTP_201_CREATED)
async def create_eticket(payload: JSONBody, service: ETicketServiceDep) -> ETicketModel:
    try:
        ticket = await service.create_ticket(payload)
    except ETicketValidationError as exc:
        raise _validation_failed(exc) from exc
    except ETicketConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ETicketStoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    return ETicketModel.from_entity(ticket)


@router.get(
    "/{ticket_id}",
    response_model=ETicketModel | None,
    summary="Look up a ticket by its public id; null when unknown",
)
async def get_eticket(ticket_id: str, service: ETicketServiceDep) -> ETicketModel | None:
    try:
        ticket = await service.get_ticket(ticket_id)
    except ETicketStoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    if ticket is None:
        return None
    return ETicketModel.from_entity(ticket)


@router.patch(
    "/{eticket_id}",
    response_model=ETicketModel | None,
    summary="Apply a partial update; null when the id is unknown",
)
async def update_eticket(eticket_id: int, payload: JSONBody, service: ETicketServiceDep) -> ETicketModel | None:
    try:
        ticket = await service.update_ticket(eticket_id, payload)
    except ETicketValidationError as exc:
        raise _validation_failed(exc) from exc
    except ETicketStoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    if ticket is None:
        return None
    return ETicketModel.from_entity(ticket)
