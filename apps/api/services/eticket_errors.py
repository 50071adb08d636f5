from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True, slots=True)
class FieldIssue:
    """A single rejected input field."""

    field: str
    rule: str
    message: str


class ETicketServiceError(RuntimeError):
    """Base error for e-ticket service issues."""


class ETicketValidationError(ETicketServiceError):
    """Raised when ticket input is malformed or incomplete."""

    def __init__(self, issues: Sequence[FieldIssue]) -> None:
        self.issues: tuple[FieldIssue, ...] = tuple(issues)
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(f"Invalid ticket input ({summary})" if summary else "Invalid ticket input")

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(issue.field for issue in self.issues)


class ETicketConflictError(ETicketServiceError):
    """Raised when a ticket with the same ticket_id already exists."""

    def __init__(self, ticket_id: str) -> None:
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} already exists")


class ETicketStoreUnavailableError(ETicketServiceError):
    """Raised when the underlying database cannot serve a request."""
