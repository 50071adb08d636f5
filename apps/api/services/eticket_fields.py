"""Validation and normalisation of raw e-ticket input.

Nothing in this module touches the database: callers get either a fully typed
``ETicketCreate``/``ETicketPatch`` or an ``ETicketValidationError`` listing every
rejected field.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from apps.api.services.eticket_errors import ETicketValidationError, FieldIssue

TRAVEL_TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"

_RULE_BY_ERROR_TYPE: Mapping[str, str] = {
    "missing": "required",
    "not_null": "not_null",
    "string_type": "string",
    "string_too_short": "non_empty",
    "string_pattern_mismatch": "time_format",
}


def coerce_calendar_date(value: Any) -> date:
    """Return the calendar date carried by ``value``.

    Datetimes (and ISO datetime strings) keep the date exactly as written;
    the time of day and any offset are discarded rather than converted.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError as exc:
            raise ValueError(f"'{value}' is not a valid calendar date") from exc
    raise ValueError("Travel date must be an ISO date string")


def travel_date_to_storage(value: date | datetime | str) -> str:
    """Convert a wire travel date into its ``YYYY-MM-DD`` storage form."""

    return coerce_calendar_date(value).isoformat()


def travel_date_from_storage(value: str) -> date:
    """Parse a stored ``YYYY-MM-DD`` travel date back into a calendar date."""

    if len(value) != 10:
        raise ValueError(f"Stored travel date {value!r} is not in YYYY-MM-DD form")
    return date.fromisoformat(value)


class ETicketCreate(BaseModel):
    """Validated input for issuing a new ticket."""

    model_config = ConfigDict(extra="ignore")

    ticket_id: str = Field(..., min_length=1)
    passenger_name: str = Field(..., min_length=1)
    travel_date: date
    travel_time: str = Field(..., pattern=TRAVEL_TIME_PATTERN)
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    seat_number: str = Field(..., min_length=1)
    booking_reference: str = Field(..., min_length=1)
    qr_code_data: str | None = None

    @field_validator(
        "ticket_id",
        "passenger_name",
        "travel_time",
        "origin",
        "destination",
        "seat_number",
        "booking_reference",
        mode="before",
    )
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("not_null", "Value cannot be null")
        return value

    @field_validator("travel_date", mode="before")
    @classmethod
    def _parse_travel_date(cls, value: Any) -> date:
        if value is None:
            raise PydanticCustomError("not_null", "Value cannot be null")
        return coerce_calendar_date(value)


class ETicketPatch(BaseModel):
    """Partial update of a ticket.

    A field is part of the patch only when the caller supplied it; explicit
    nulls are rejected since there is nothing to clear. ``id`` and ``ticket_id``
    are dropped because neither may change.
    """

    model_config = ConfigDict(extra="ignore")

    passenger_name: str | None = Field(default=None, min_length=1)
    travel_date: date | None = None
    travel_time: str | None = Field(default=None, pattern=TRAVEL_TIME_PATTERN)
    origin: str | None = Field(default=None, min_length=1)
    destination: str | None = Field(default=None, min_length=1)
    seat_number: str | None = Field(default=None, min_length=1)
    booking_reference: str | None = Field(default=None, min_length=1)
    qr_code_data: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("not_null", "Value cannot be null")
        return value

    @field_validator("travel_date", mode="before")
    @classmethod
    def _parse_travel_date(cls, value: Any) -> date:
        if value is None:
            raise PydanticCustomError("not_null", "Value cannot be null")
        return coerce_calendar_date(value)

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller supplied."""

        return {name: getattr(self, name) for name in self.model_fields_set}

    def is_empty(self) -> bool:
        return not self.model_fields_set


def validate_create(payload: Mapping[str, Any] | ETicketCreate) -> ETicketCreate:
    if isinstance(payload, ETicketCreate):
        return payload
    try:
        return ETicketCreate.model_validate(dict(payload))
    except ValidationError as exc:
        raise ETicketValidationError(_issues_from(exc)) from exc


def validate_patch(payload: Mapping[str, Any] | ETicketPatch) -> ETicketPatch:
    if isinstance(payload, ETicketPatch):
        return payload
    try:
        return ETicketPatch.model_validate(dict(payload))
    except ValidationError as exc:
        raise ETicketValidationError(_issues_from(exc)) from exc


def _issues_from(exc: ValidationError) -> list[FieldIssue]:
    issues: list[FieldIssue] = []
    for error in exc.errors():
        location = error.get("loc") or ("__root__",)
        field = str(location[0])
        issues.append(FieldIssue(field=field, rule=_rule_for(field, error["type"]), message=error["msg"]))
    return issues


def _rule_for(field: str, error_type: str) -> str:
    if error_type in ("missing", "not_null"):
        return _RULE_BY_ERROR_TYPE[error_type]
    if field == "travel_date":
        return "calendar_date"
    return _RULE_BY_ERROR_TYPE.get(error_type, error_type)
