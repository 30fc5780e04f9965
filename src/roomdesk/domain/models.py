"""Typed aggregates returned by the repositories."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class Room:
    id: int
    room_number: str
    price: int


@dataclass
class Reservation:
    """A reservation together with the rooms it holds."""

    id: int
    user_id: str
    guest_name: str
    total_person: int
    total_price: int
    from_date: date
    to_date: date
    checkin_time: datetime | None
    checkout_time: datetime | None
    status: str
    room_ids: list[int] = field(default_factory=list)
    room_numbers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReservationFilter:
    """Date window for the listing; an open bound is unbounded."""

    from_date: date | None = None
    to_date: date | None = None
    user_id: str | None = None


@dataclass
class Page:
    items: list[Reservation]
    current_page: int
    per_page: int
    total: int

    @property
    def last_page(self) -> int:
        if self.total == 0:
            return 1
        return (self.total + self.per_page - 1) // self.per_page
