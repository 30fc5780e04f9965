"""Booking notifications.

Fire-and-forget from the caller's point of view: delivery problems are
logged and reported through the boolean return value, never raised.
"""

from __future__ import annotations

from datetime import datetime

from roomdesk.domain.models import Reservation
from roomdesk.mail.outbound import send_email
from roomdesk.mail.templates import render
from roomdesk.observability.logging import get_logger

logger = get_logger(__name__)


def _format_timestamp(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def _booking_params(reservation: Reservation) -> dict:
    rooms = reservation.room_numbers or [str(room_id) for room_id in reservation.room_ids]
    return {
        "reservation_id": reservation.id,
        "guest_name": reservation.guest_name,
        "rooms": ", ".join(rooms),
        "from_date": reservation.from_date.isoformat(),
        "to_date": reservation.to_date.isoformat(),
        "total_person": reservation.total_person,
        "total_price": reservation.total_price,
    }


def _dispatch(template_key: str, params: dict, reservation: Reservation, recipient: str | None) -> bool:
    log_fields = {"template": template_key, "reservation_id": reservation.id}

    if not recipient:
        logger.warning("notification skipped: no recipient", extra={"extra_fields": log_fields})
        return False

    try:
        subject, text = render(template_key, params)
        send_email(to=recipient, subject=subject, text=text)
    except Exception as exc:
        logger.error(
            "notification failed",
            exc_info=True,
            extra={"extra_fields": {**log_fields, "error_type": type(exc).__name__}},
        )
        return False

    logger.info("notification dispatched", extra={"extra_fields": log_fields})
    return True


def send_booking_created(reservation: Reservation, recipient: str | None) -> bool:
    """Send the booking confirmation for a newly created reservation."""
    return _dispatch("booking_created", _booking_params(reservation), reservation, recipient)


def send_booking_updated(reservation: Reservation, recipient: str | None) -> bool:
    """Send the change notice for an updated reservation."""
    params = {
        **_booking_params(reservation),
        "checkin_time": _format_timestamp(reservation.checkin_time),
        "checkout_time": _format_timestamp(reservation.checkout_time),
    }
    return _dispatch("booking_updated", params, reservation, recipient)
