"""Reservation error taxonomy.

Validation and availability errors are user-actionable; persistence errors
are reported generically (the caller must not assume anything was saved).
"""

from __future__ import annotations

from typing import Sequence


class ReservationError(Exception):
    """Base class for reservation service errors."""

    pass


class ReservationValidationError(ReservationError):
    """Raised when required fields are missing or malformed."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        fields = ", ".join(sorted(errors))
        super().__init__(f"Invalid reservation input: {fields}")


class RoomUnavailableError(ReservationError):
    """Raised when a requested room is already reserved on the given dates."""

    def __init__(self, room_ids: Sequence[int], room_numbers: Sequence[str]) -> None:
        self.room_ids = list(room_ids)
        self.room_numbers = list(room_numbers)
        rooms = ", ".join(self.room_numbers) or ", ".join(str(r) for r in self.room_ids)
        super().__init__(f"Room(s) {rooms} already reserved on given dates")


class NotFoundError(ReservationError):
    """Raised when a reservation does not exist."""

    pass


class UnauthorizedError(ReservationError):
    """Raised when the policy gate denies an operation."""

    pass


class PersistenceError(ReservationError):
    """Raised when the storage layer fails during a write; the unit of work was rolled back."""

    pass
