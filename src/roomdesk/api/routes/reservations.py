"""Reservations endpoints for the admin dashboard.

GET    /reservations?from_date=&to_date=&page=   → index (5 per page)
GET    /reservations/create                      → rooms for the create form
POST   /reservations                             → create (201)
GET    /reservations/{id}                        → show
GET    /reservations/{id}/edit                   → edit form state
PUT    /reservations/{id}                        → update
DELETE /reservations/{id}                        → delete (204)

Bodies are passed to the service untouched so that validation messages and
"was this field sent" semantics live in one place. Service errors are mapped
to HTTP responses by the handlers registered in roomdesk.api.factory.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Path, Query, Response

from roomdesk.api.auth import CurrentUser, CurrentUserDep
from roomdesk.domain import reservations as service
from roomdesk.domain.models import Reservation

router = APIRouter(prefix="/reservations", tags=["reservations"])


def _reservation_to_dict(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "guest_name": reservation.guest_name,
        "total_person": reservation.total_person,
        "total_price": reservation.total_price,
        "from_date": reservation.from_date.isoformat(),
        "to_date": reservation.to_date.isoformat(),
        "checkin_time": reservation.checkin_time.isoformat() if reservation.checkin_time else None,
        "checkout_time": reservation.checkout_time.isoformat() if reservation.checkout_time else None,
        "status": reservation.status,
        "room_ids": reservation.room_ids,
    }


@router.get("")
def index(
    user: CurrentUser = CurrentUserDep,
    from_date: date | None = Query(None, description="Stay ends on or after this date"),
    to_date: date | None = Query(None, description="Stay starts on or before this date"),
    page: int = Query(1, ge=1, le=service.MAX_PAGE, description="1-based page number"),
) -> dict:
    """List reservations, newest first."""
    return service.list_reservations(user, from_date=from_date, to_date=to_date, page=page)


@router.get("/create")
def create_form(user: CurrentUser = CurrentUserDep) -> dict:
    """Room catalogue for the create form."""
    return service.create_form(user)


@router.post("", status_code=201)
def store(
    body: dict[str, Any] = Body(...),
    user: CurrentUser = CurrentUserDep,
) -> dict:
    """Create a reservation. 409 if a room is taken on the given dates."""
    reservation = service.create_reservation(body, user)
    return _reservation_to_dict(reservation)


@router.get("/{reservation_id}")
def show(
    reservation_id: int = Path(..., description="Reservation id"),
    user: CurrentUser = CurrentUserDep,
) -> dict:
    return service.show_reservation(reservation_id, user)


@router.get("/{reservation_id}/edit")
def edit(
    reservation_id: int = Path(..., description="Reservation id"),
    user: CurrentUser = CurrentUserDep,
) -> dict:
    return service.edit_reservation(reservation_id, user)


@router.put("/{reservation_id}")
def update(
    body: dict[str, Any] = Body(...),
    reservation_id: int = Path(..., description="Reservation id"),
    user: CurrentUser = CurrentUserDep,
) -> dict:
    """Replace a reservation. Omitted checkin_time/checkout_time are kept."""
    reservation = service.update_reservation(reservation_id, body, user)
    return _reservation_to_dict(reservation)


@router.delete("/{reservation_id}", status_code=204)
def destroy(
    reservation_id: int = Path(..., description="Reservation id"),
    user: CurrentUser = CurrentUserDep,
) -> Response:
    service.delete_reservation(reservation_id, user)
    return Response(status_code=204)
