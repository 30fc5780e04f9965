"""Reservation lifecycle - create, read, update, delete.

Write flows run inside a single DB transaction:
authorize → validate → lock rooms → overlap check → write → commit → notify.

Notifications go out only after commit and never undo the write.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Mapping, Sequence

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extensions import cursor as PgCursor

from roomdesk.domain.errors import (
    NotFoundError,
    PersistenceError,
    ReservationError,
    ReservationValidationError,
    RoomUnavailableError,
)
from roomdesk.domain.models import Reservation, ReservationFilter, Room
from roomdesk.domain.notifications import send_booking_created, send_booking_updated
from roomdesk.domain.policy import Actor, authorize, is_customer
from roomdesk.domain.room_conflict import assert_rooms_available
from roomdesk.domain.validation import ReservationInput, validate_reservation_input
from roomdesk.infra.db import txn
from roomdesk.infra.repositories import reservations_repository, rooms_repository
from roomdesk.infra.time import utc_now
from roomdesk.observability.logging import get_logger

logger = get_logger(__name__)

PAGE_SIZE = 5
# keeps the OFFSET of the last page well inside bigint
MAX_PAGE = 100_000

SAVE_FAILED = "The reservation could not be saved."
LOAD_FAILED = "Reservations could not be loaded."
DELETE_FAILED = "The reservation could not be deleted."

STATUS_RESERVED = "reserved"
STATUS_CHECKED_IN = "checked_in"
STATUS_CHECKED_OUT = "checked_out"


def derive_status(checkin_time: datetime | None, checkout_time: datetime | None) -> str:
    """Stay status from the recorded timestamps."""
    if checkout_time is not None:
        return STATUS_CHECKED_OUT
    if checkin_time is not None:
        return STATUS_CHECKED_IN
    return STATUS_RESERVED


@contextmanager
def _unit_of_work(room_ids: Sequence[int] = (), *, failure: str = SAVE_FAILED) -> Iterator[PgCursor]:
    """txn() with storage failures mapped onto the reservation errors.

    failure is the PersistenceError message shown to the caller.

    The transaction is already rolled back when the mapped error is raised.
    """
    try:
        with txn() as cur:
            yield cur
    except ReservationError:
        raise
    except pg_errors.ExclusionViolation as exc:
        # no_room_overlap constraint: a concurrent booking won the race
        logger.warning(
            "room overlap rejected by database",
            extra={"extra_fields": {"room_ids": list(room_ids)}},
        )
        raise RoomUnavailableError(room_ids=room_ids, room_numbers=[]) from exc
    except psycopg2.Error as exc:
        logger.error(
            "reservation storage failure",
            exc_info=True,
            extra={"extra_fields": {"error_type": type(exc).__name__}},
        )
        raise PersistenceError(failure) from exc


def _resolve_rooms(cur: PgCursor, room_ids: Sequence[int]) -> list[Room]:
    """Lock the requested rooms; unknown ids are a validation error."""
    found = {room.id: room for room in rooms_repository.lock_rooms(cur, room_ids)}
    errors = {
        f"room_id.{index}": [f"The selected room_id.{index} is invalid."]
        for index, room_id in enumerate(room_ids)
        if room_id not in found
    }
    if errors:
        raise ReservationValidationError(errors)
    return [found[room_id] for room_id in room_ids]


def _load_or_404(cur: PgCursor, reservation_id: int, *, lock: bool = False) -> Reservation:
    reservation = reservations_repository.get_reservation(cur, reservation_id, lock=lock)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    return reservation


def _isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ── Read projections ─────────────────────────────────────────────────────────


def _summary(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "guest_name": reservation.guest_name,
        "room_id": reservation.room_numbers,
        "total_person": reservation.total_person,
        "total_price": reservation.total_price,
        "from_date": reservation.from_date.isoformat(),
        "to_date": reservation.to_date.isoformat(),
        "checkin_time": _isoformat(reservation.checkin_time),
        "checkout_time": _isoformat(reservation.checkout_time),
    }


def list_reservations(
    actor: Actor,
    *,
    from_date: date | None = None,
    to_date: date | None = None,
    page: int = 1,
) -> dict:
    """List reservations overlapping an optional date window, PAGE_SIZE per page.

    Customers only see their own reservations.

    Returns:
        {"data": [summary, ...], "meta": {current_page, per_page, total, last_page}}
    """
    authorize(actor, "view_any")
    if not 1 <= page <= MAX_PAGE:
        raise ReservationValidationError({"page": [f"The page must be between 1 and {MAX_PAGE}."]})

    filters = ReservationFilter(
        from_date=from_date,
        to_date=to_date,
        user_id=actor.id if is_customer(actor) else None,
    )
    with _unit_of_work(failure=LOAD_FAILED) as cur:
        result = reservations_repository.paginate_reservations(
            cur, filters, page=page, per_page=PAGE_SIZE
        )

    return {
        "data": [_summary(reservation) for reservation in result.items],
        "meta": {
            "current_page": result.current_page,
            "per_page": result.per_page,
            "total": result.total,
            "last_page": result.last_page,
        },
    }


def create_form(actor: Actor) -> dict:
    """Room catalogue for the create form."""
    authorize(actor, "create")
    with _unit_of_work(failure=LOAD_FAILED) as cur:
        rooms = rooms_repository.list_rooms(cur, ["id", "room_number", "price"])
    return {"rooms": rooms}


def show_reservation(reservation_id: int, actor: Actor) -> dict:
    """Full reservation with its room ids.

    Unset check-in/check-out are shown as the current time.
    """
    authorize(actor, "view")
    with _unit_of_work(failure=LOAD_FAILED) as cur:
        reservation = _load_or_404(cur, reservation_id)
    authorize(actor, "view", owner_id=reservation.user_id)

    now = utc_now()
    return {
        "id": reservation.id,
        "guest_name": reservation.guest_name,
        "total_person": reservation.total_person,
        "total_price": reservation.total_price,
        "from_date": reservation.from_date.isoformat(),
        "to_date": reservation.to_date.isoformat(),
        "room_ids": reservation.room_ids,
        "checkin_time": (reservation.checkin_time or now).isoformat(),
        "checkout_time": (reservation.checkout_time or now).isoformat(),
        "status": reservation.status,
    }


def edit_reservation(reservation_id: int, actor: Actor) -> dict:
    """Edit form state: reservation, selected room ids and the room catalogue.

    Unset check-in/check-out are returned as empty strings.
    """
    authorize(actor, "update")
    with _unit_of_work(failure=LOAD_FAILED) as cur:
        reservation = _load_or_404(cur, reservation_id)
        authorize(actor, "update", owner_id=reservation.user_id)
        rooms = rooms_repository.list_rooms(cur, ["id", "room_number", "price"])

    return {
        "id": reservation.id,
        "guest_name": reservation.guest_name,
        "total_person": reservation.total_person,
        "total_price": reservation.total_price,
        "from_date": reservation.from_date.isoformat(),
        "to_date": reservation.to_date.isoformat(),
        "room_id": reservation.room_ids,
        "checkin_time": _isoformat(reservation.checkin_time) or "",
        "checkout_time": _isoformat(reservation.checkout_time) or "",
        "status": reservation.status,
        "rooms": rooms,
    }


# ── Writes ───────────────────────────────────────────────────────────────────


def create_reservation(data: Mapping[str, Any], actor: Actor) -> Reservation:
    """Create a reservation for the given rooms and dates.

    This function:
    1. Validates the payload (field messages on failure)
    2. Locks the requested rooms (unknown ids are a validation error)
    3. Rejects the request if any room overlaps an existing stay
    4. Inserts the reservation and its room links in one transaction
    5. After commit, emails the booking confirmation to the actor

    Args:
        data: Raw reservation payload.
        actor: Acting user; becomes the reservation owner.

    Returns:
        The stored Reservation with room ids and numbers.

    Raises:
        UnauthorizedError: If the actor may not create reservations.
        ReservationValidationError: If the payload or a room id is invalid.
        RoomUnavailableError: If any requested room is taken on those dates.
        PersistenceError: If the write failed (nothing was saved).
    """
    authorize(actor, "create")
    payload = validate_reservation_input(data)

    with _unit_of_work(payload.room_id) as cur:
        rooms = _resolve_rooms(cur, payload.room_id)
        assert_rooms_available(
            cur,
            rooms=rooms,
            from_date=payload.from_date,
            to_date=payload.to_date,
        )
        reservation_id = reservations_repository.insert_reservation(
            cur,
            user_id=actor.id,
            guest_name=payload.guest_name,
            total_person=payload.total_person,
            total_price=payload.total_price,
            from_date=payload.from_date,
            to_date=payload.to_date,
            checkin_time=payload.checkin_time,
            checkout_time=payload.checkout_time,
            status=derive_status(payload.checkin_time, payload.checkout_time),
        )
        reservations_repository.replace_room_associations(
            cur,
            reservation_id,
            payload.room_id,
            from_date=payload.from_date,
            to_date=payload.to_date,
        )
        reservation = _load_or_404(cur, reservation_id)

    logger.info(
        "reservation created",
        extra={
            "extra_fields": {
                "reservation_id": reservation.id,
                "room_ids": reservation.room_ids,
                "user_id": actor.id,
            }
        },
    )

    send_booking_created(reservation, actor.email)
    return reservation


def _merged_timestamps(payload: ReservationInput, existing: Reservation) -> tuple[datetime | None, datetime | None]:
    """Take checkin/checkout from the payload only when the caller sent them."""
    checkin_time = payload.checkin_time if payload.supplied("checkin_time") else existing.checkin_time
    checkout_time = payload.checkout_time if payload.supplied("checkout_time") else existing.checkout_time
    return checkin_time, checkout_time


def update_reservation(reservation_id: int, data: Mapping[str, Any], actor: Actor) -> Reservation:
    """Replace a reservation's fields and room links.

    Guest name, person count, price and dates are always overwritten;
    checkin_time / checkout_time only when present in the payload. Room
    links are deleted and re-inserted. The overlap check runs again,
    ignoring the reservation itself. Customers get a change notice after
    commit; staff edits are silent.

    Raises:
        UnauthorizedError: If the actor may not update this reservation.
        ReservationValidationError: If the payload or a room id is invalid.
        NotFoundError: If the reservation does not exist.
        RoomUnavailableError: If the new rooms/dates collide with another stay.
        PersistenceError: If the write failed (nothing was saved).
    """
    authorize(actor, "update")
    payload = validate_reservation_input(data)

    with _unit_of_work(payload.room_id) as cur:
        existing = _load_or_404(cur, reservation_id, lock=True)
        authorize(actor, "update", owner_id=existing.user_id)

        rooms = _resolve_rooms(cur, payload.room_id)
        assert_rooms_available(
            cur,
            rooms=rooms,
            from_date=payload.from_date,
            to_date=payload.to_date,
            exclude_reservation_id=reservation_id,
        )

        checkin_time, checkout_time = _merged_timestamps(payload, existing)
        reservations_repository.update_reservation(
            cur,
            reservation_id,
            guest_name=payload.guest_name,
            total_person=payload.total_person,
            total_price=payload.total_price,
            from_date=payload.from_date,
            to_date=payload.to_date,
            checkin_time=checkin_time,
            checkout_time=checkout_time,
            status=derive_status(checkin_time, checkout_time),
        )
        reservations_repository.replace_room_associations(
            cur,
            reservation_id,
            payload.room_id,
            from_date=payload.from_date,
            to_date=payload.to_date,
        )
        reservation = _load_or_404(cur, reservation_id)

    logger.info(
        "reservation updated",
        extra={
            "extra_fields": {
                "reservation_id": reservation_id,
                "room_ids": reservation.room_ids,
                "user_id": actor.id,
            }
        },
    )

    if is_customer(actor):
        send_booking_updated(reservation, actor.email)
    return reservation


def delete_reservation(reservation_id: int, actor: Actor) -> None:
    """Delete a reservation and its room links atomically.

    Raises:
        UnauthorizedError: If the actor may not delete reservations.
        NotFoundError: If the reservation does not exist.
        PersistenceError: If the delete failed (nothing was removed).
    """
    authorize(actor, "delete")

    with _unit_of_work(failure=DELETE_FAILED) as cur:
        existing = _load_or_404(cur, reservation_id, lock=True)
        authorize(actor, "delete", owner_id=existing.user_id)
        links = reservations_repository.delete_associations(cur, reservation_id)
        reservations_repository.delete_reservation(cur, reservation_id)

    logger.info(
        "reservation deleted",
        extra={
            "extra_fields": {
                "reservation_id": reservation_id,
                "room_links_deleted": links,
                "user_id": actor.id,
            }
        },
    )
