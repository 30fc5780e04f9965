"""Rooms repository - read-only lookups over the room catalogue.

Uses raw SQL with psycopg2 (no ORM).
"""

from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from roomdesk.domain.models import Room
from roomdesk.infra.db import fetchall

_ROOM_FIELDS = ("id", "room_number", "price")


def _row_to_room(row: tuple) -> Room:
    return Room(id=row[0], room_number=row[1], price=row[2])


def list_rooms(cur: PgCursor, fields: Sequence[str] = _ROOM_FIELDS) -> list[dict]:
    """List the room catalogue ordered by room number.

    Args:
        cur: Database cursor.
        fields: Subset of id, room_number, price to project.

    Returns:
        List of dicts with only the requested keys.
    """
    unknown = [f for f in fields if f not in _ROOM_FIELDS]
    if unknown:
        raise ValueError(f"Unknown room fields: {unknown}")

    rows = fetchall(cur, "SELECT id, room_number, price FROM rooms ORDER BY room_number")
    return [
        {key: value for key, value in zip(_ROOM_FIELDS, row) if key in fields}
        for row in rows
    ]


def lock_rooms(cur: PgCursor, room_ids: Sequence[int]) -> list[Room]:
    """Lock the given room rows for the rest of the transaction.

    Rows are locked in id order so that concurrent bookings touching the
    same rooms serialize instead of deadlocking. Unknown ids are simply
    absent from the result.
    """
    rows = fetchall(
        cur,
        """
        SELECT id, room_number, price
        FROM rooms
        WHERE id = ANY(%s)
        ORDER BY id
        FOR UPDATE
        """,
        (list(room_ids),),
    )
    return [_row_to_room(row) for row in rows]
