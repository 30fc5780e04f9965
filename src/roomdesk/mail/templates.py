"""Booking email templates.

Each template declares the params it may receive; rendering refuses
anything else so that stray fields never end up in an outgoing mail.
"""

from typing import Any

_SIGNATURE = "\n\n-- \nFront desk"

TEMPLATES: dict[str, dict[str, Any]] = {
    "booking_created": {
        "subject": "Booking confirmed: reservation #{reservation_id}",
        "text": (
            "Hello,\n\n"
            "A new reservation has been recorded.\n\n"
            "Reservation: #{reservation_id}\n"
            "Guest: {guest_name}\n"
            "Room(s): {rooms}\n"
            "Stay: {from_date} to {to_date}\n"
            "Guests: {total_person}\n"
            "Total price: {total_price}"
            + _SIGNATURE
        ),
        "allowed_params": [
            "reservation_id",
            "guest_name",
            "rooms",
            "from_date",
            "to_date",
            "total_person",
            "total_price",
        ],
    },
    "booking_updated": {
        "subject": "Booking updated: reservation #{reservation_id}",
        "text": (
            "Hello,\n\n"
            "Your reservation #{reservation_id} has been updated.\n\n"
            "Guest: {guest_name}\n"
            "Room(s): {rooms}\n"
            "Stay: {from_date} to {to_date}\n"
            "Guests: {total_person}\n"
            "Total price: {total_price}\n"
            "Check-in: {checkin_time}\n"
            "Check-out: {checkout_time}"
            + _SIGNATURE
        ),
        "allowed_params": [
            "reservation_id",
            "guest_name",
            "rooms",
            "from_date",
            "to_date",
            "total_person",
            "total_price",
            "checkin_time",
            "checkout_time",
        ],
    },
}


def render(template_key: str, params: dict[str, Any]) -> tuple[str, str]:
    """Render a template's subject and body.

    Args:
        template_key: Template identifier.
        params: Values to interpolate (must be in allowed_params).

    Returns:
        (subject, text) tuple.

    Raises:
        ValueError: If template_key is unknown or params has disallowed keys.
        KeyError: If a placeholder has no value.
    """
    if template_key not in TEMPLATES:
        raise ValueError(f"Unknown template: {template_key}")

    template = TEMPLATES[template_key]
    extras = set(params) - set(template["allowed_params"])
    if extras:
        raise ValueError(f"Disallowed params for {template_key}: {sorted(extras)}")

    return template["subject"].format(**params), template["text"].format(**params)
