"""Room conflict detection.

Checks whether the rooms requested for a stay already carry reservations in
the same period. Stays are inclusive on both ends:

    [a1, a2] and [b1, b2] overlap  <=>  a1 <= b2 AND b1 <= a2

so a stay ending on June 5 blocks another one starting on June 5, while a
stay starting on June 6 is free.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from roomdesk.domain.errors import RoomUnavailableError
from roomdesk.domain.models import Room
from roomdesk.infra.repositories import reservations_repository
from roomdesk.observability.logging import get_logger

logger = get_logger(__name__)


def ranges_overlap(a_from: date, a_to: date, b_from: date, b_to: date) -> bool:
    """Return True if the inclusive ranges [a_from, a_to] and [b_from, b_to] intersect."""
    return a_from <= b_to and b_from <= a_to


def find_room_conflicts(
    cur: PgCursor,
    *,
    room_ids: Sequence[int],
    from_date: date,
    to_date: date,
    exclude_reservation_id: int | None = None,
) -> dict[int, list[int]]:
    """Collect overlapping reservations for each requested room.

    Args:
        cur: Database cursor (should be within a transaction).
        room_ids: Rooms requested for the stay.
        from_date: First night (inclusive).
        to_date: Last day (inclusive).
        exclude_reservation_id: Reservation to ignore (the one being edited).

    Returns:
        Mapping room_id -> conflicting reservation ids, only for rooms that
        have at least one conflict.
    """
    conflicts: dict[int, list[int]] = {}
    for room_id in room_ids:
        rows = reservations_repository.find_reservations_overlapping(
            cur,
            room_id,
            from_date,
            to_date,
            exclude_reservation_id=exclude_reservation_id,
        )
        if rows:
            conflicts[room_id] = [row[0] for row in rows]
    return conflicts


def assert_rooms_available(
    cur: PgCursor,
    *,
    rooms: Sequence[Room],
    from_date: date,
    to_date: date,
    exclude_reservation_id: int | None = None,
) -> None:
    """Raise RoomUnavailableError if any room is already reserved in the period.

    Args:
        cur: Database cursor (should be within a transaction).
        rooms: Rooms requested for the stay, already resolved and locked.
        from_date: First night (inclusive).
        to_date: Last day (inclusive).
        exclude_reservation_id: Reservation to ignore (the one being edited).
    """
    conflicts = find_room_conflicts(
        cur,
        room_ids=[room.id for room in rooms],
        from_date=from_date,
        to_date=to_date,
        exclude_reservation_id=exclude_reservation_id,
    )
    if not conflicts:
        return

    unavailable = [room for room in rooms if room.id in conflicts]
    # ids and dates only, no guest data
    logger.warning(
        "room conflict detected",
        extra={
            "extra_fields": {
                "room_ids": [room.id for room in unavailable],
                "requested_from": from_date.isoformat(),
                "requested_to": to_date.isoformat(),
                "exclude_reservation_id": exclude_reservation_id,
                "conflicting_reservation_ids": sorted(
                    {rid for ids in conflicts.values() for rid in ids}
                ),
            },
        },
    )
    raise RoomUnavailableError(
        room_ids=[room.id for room in unavailable],
        room_numbers=[room.room_number for room in unavailable],
    )
