"""Reservation input validation.

Required fields are the same for create and update. The result keeps track
of which optional timestamps were actually supplied, since update only
touches checkin_time / checkout_time when the caller sent them.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from roomdesk.domain.errors import ReservationValidationError

# column ranges: counts and prices are int4, room ids bigint
MAX_INT4 = 2_147_483_647
MAX_INT8 = 9_223_372_036_854_775_807


class ReservationInput(BaseModel):
    """Validated reservation form payload."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    room_id: list[Annotated[int, Field(ge=1, le=MAX_INT8)]] = Field(min_length=1)
    guest_name: str = Field(min_length=3, max_length=256)
    total_person: int = Field(ge=1, le=MAX_INT4)
    total_price: int = Field(ge=-MAX_INT4 - 1, le=MAX_INT4)
    from_date: date
    to_date: date
    checkin_time: datetime | None = None
    checkout_time: datetime | None = None

    @field_validator("room_id", mode="before")
    @classmethod
    def _single_room_as_list(cls, value: Any) -> Any:
        if isinstance(value, (int, str)):
            return [value]
        return value

    @field_validator("room_id")
    @classmethod
    def _unique_rooms(cls, value: list[int]) -> list[int]:
        # order-preserving dedupe; the join table holds one row per room
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _dates_in_order(self) -> "ReservationInput":
        if self.from_date > self.to_date:
            raise ValueError("to_date must be a date after or equal to from_date")
        return self

    def supplied(self, field: str) -> bool:
        """True if the field was present in the raw payload."""
        return field in self.model_fields_set


def _field_key(loc: tuple) -> str:
    # model-level errors come from the date range check
    if not loc:
        return "to_date"
    return ".".join(str(part) for part in loc)


def _clean_message(message: str) -> str:
    return message.removeprefix("Value error, ")


def validate_reservation_input(data: Mapping[str, Any]) -> ReservationInput:
    """Validate a raw reservation payload.

    Args:
        data: Request payload (JSON object).

    Returns:
        ReservationInput with normalized values.

    Raises:
        ReservationValidationError: With messages keyed by field name
            (room_id.0 for list items, to_date for range errors).
    """
    try:
        return ReservationInput.model_validate(dict(data))
    except ValidationError as exc:
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            key = _field_key(tuple(error["loc"]))
            errors.setdefault(key, []).append(_clean_message(error["msg"]))
        raise ReservationValidationError(errors) from exc
