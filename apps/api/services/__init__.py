"""Service layer exports."""

from .eticket_errors import (
    ETicketConflictError,
    ETicketServiceError,
    ETicketStoreUnavailableError,
    ETicketValidationError,
    FieldIssue,
)
from .etickets import ETicket, ETicketService, ETicketStore, NewETicket

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
]
