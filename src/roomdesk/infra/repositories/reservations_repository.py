"""Reservations repository - persistence for reservations and their room links.

Uses raw SQL with psycopg2 (no ORM). All writes expect to run inside
roomdesk.infra.db.txn() so the caller controls the unit of work.
"""

from datetime import date, datetime
from typing import Sequence

from psycopg2.extensions import cursor as PgCursor

from roomdesk.domain.models import Page, Reservation, ReservationFilter
from roomdesk.infra.db import fetchall, fetchone

_SELECT_RESERVATION = """
    SELECT id, user_id, guest_name, total_person, total_price,
           from_date, to_date, checkin_time, checkout_time, status
    FROM reservations
"""


def _row_to_reservation(row: tuple) -> Reservation:
    return Reservation(
        id=row[0],
        user_id=str(row[1]),
        guest_name=row[2],
        total_person=row[3],
        total_price=row[4],
        from_date=row[5],
        to_date=row[6],
        checkin_time=row[7],
        checkout_time=row[8],
        status=row[9],
    )


def _load_rooms(cur: PgCursor, reservation_ids: Sequence[int]) -> dict[int, list[tuple[int, str]]]:
    """Map reservation id -> [(room_id, room_number), ...]."""
    if not reservation_ids:
        return {}
    rows = fetchall(
        cur,
        """
        SELECT rr.reservation_id, rm.id, rm.room_number
        FROM reservation_room rr
        JOIN rooms rm ON rm.id = rr.room_id
        WHERE rr.reservation_id = ANY(%s)
        ORDER BY rr.reservation_id, rm.room_number
        """,
        (list(reservation_ids),),
    )
    rooms: dict[int, list[tuple[int, str]]] = {}
    for reservation_id, room_id, room_number in rows:
        rooms.setdefault(reservation_id, []).append((room_id, room_number))
    return rooms


def _attach_rooms(cur: PgCursor, reservations: list[Reservation]) -> None:
    rooms = _load_rooms(cur, [r.id for r in reservations])
    for reservation in reservations:
        linked = rooms.get(reservation.id, [])
        reservation.room_ids = [room_id for room_id, _ in linked]
        reservation.room_numbers = [number for _, number in linked]


def get_reservation(
    cur: PgCursor,
    reservation_id: int,
    *,
    lock: bool = False,
) -> Reservation | None:
    """Load a reservation with its resolved room ids.

    Args:
        cur: Database cursor.
        reservation_id: Reservation id.
        lock: If True, lock the reservation row FOR UPDATE.

    Returns:
        Reservation aggregate, or None if it does not exist.
    """
    query = _SELECT_RESERVATION + " WHERE id = %s"
    if lock:
        query += " FOR UPDATE"
    row = fetchone(cur, query, (reservation_id,))
    if row is None:
        return None

    reservation = _row_to_reservation(row)
    _attach_rooms(cur, [reservation])
    return reservation


def find_reservations_overlapping(
    cur: PgCursor,
    room_id: int,
    from_date: date,
    to_date: date,
    *,
    exclude_reservation_id: int | None = None,
) -> list[tuple[int, date, date]]:
    """Find reservations of a room whose stay intersects [from_date, to_date].

    Both ranges are inclusive. A stored stay conflicts when it starts inside
    the requested range, ends inside it, or spans it entirely.

    Returns:
        List of (reservation_id, from_date, to_date), earliest first.
    """
    conditions = [
        "rr.room_id = %s",
        """(
            r.from_date BETWEEN %s AND %s
            OR r.to_date BETWEEN %s AND %s
            OR (r.from_date <= %s AND r.to_date >= %s)
        )""",
    ]
    params: list = [
        room_id,
        from_date, to_date,
        from_date, to_date,
        from_date, to_date,
    ]

    if exclude_reservation_id is not None:
        conditions.append("r.id <> %s")
        params.append(exclude_reservation_id)

    where = " AND ".join(conditions)
    rows = fetchall(
        cur,
        f"""
        SELECT r.id, r.from_date, r.to_date
        FROM reservations r
        JOIN reservation_room rr ON rr.reservation_id = r.id
        WHERE {where}
        ORDER BY r.from_date
        """,
        params,
    )
    return [(row[0], row[1], row[2]) for row in rows]


def insert_reservation(
    cur: PgCursor,
    *,
    user_id: str,
    guest_name: str,
    total_person: int,
    total_price: int,
    from_date: date,
    to_date: date,
    checkin_time: datetime | None,
    checkout_time: datetime | None,
    status: str,
) -> int:
    """Insert a reservation row and return its id."""
    row = fetchone(
        cur,
        """
        INSERT INTO reservations (
            user_id, guest_name, total_person, total_price,
            from_date, to_date, checkin_time, checkout_time, status
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            user_id,
            guest_name,
            total_person,
            total_price,
            from_date,
            to_date,
            checkin_time,
            checkout_time,
            status,
        ),
    )
    return row[0]


def update_reservation(
    cur: PgCursor,
    reservation_id: int,
    *,
    guest_name: str,
    total_person: int,
    total_price: int,
    from_date: date,
    to_date: date,
    checkin_time: datetime | None,
    checkout_time: datetime | None,
    status: str,
) -> bool:
    """Overwrite every scalar field of a reservation.

    Returns:
        True if a row was updated.
    """
    cur.execute(
        """
        UPDATE reservations
        SET guest_name = %s,
            total_person = %s,
            total_price = %s,
            from_date = %s,
            to_date = %s,
            checkin_time = %s,
            checkout_time = %s,
            status = %s,
            updated_at = now()
        WHERE id = %s
        """,
        (
            guest_name,
            total_person,
            total_price,
            from_date,
            to_date,
            checkin_time,
            checkout_time,
            status,
            reservation_id,
        ),
    )
    return cur.rowcount > 0


def delete_associations(cur: PgCursor, reservation_id: int) -> int:
    """Delete every room link of a reservation. Returns rows deleted."""
    cur.execute(
        "DELETE FROM reservation_room WHERE reservation_id = %s",
        (reservation_id,),
    )
    return cur.rowcount


def replace_room_associations(
    cur: PgCursor,
    reservation_id: int,
    room_ids: Sequence[int],
    *,
    from_date: date,
    to_date: date,
) -> None:
    """Recreate a reservation's room links wholesale (delete-all then insert).

    The stay is copied onto each link as an inclusive daterange, which the
    no_room_overlap exclusion constraint checks.
    """
    delete_associations(cur, reservation_id)
    for room_id in room_ids:
        cur.execute(
            """
            INSERT INTO reservation_room (reservation_id, room_id, stay, updated_at)
            VALUES (%s, %s, daterange(%s, %s, '[]'), now())
            """,
            (reservation_id, room_id, from_date, to_date),
        )


def delete_reservation(cur: PgCursor, reservation_id: int) -> bool:
    """Delete the reservation row. Returns True if a row was deleted."""
    cur.execute("DELETE FROM reservations WHERE id = %s", (reservation_id,))
    return cur.rowcount > 0


def paginate_reservations(
    cur: PgCursor,
    filters: ReservationFilter,
    *,
    page: int,
    per_page: int,
) -> Page:
    """List reservations overlapping the filter window, newest first.

    Args:
        cur: Database cursor.
        filters: Optional date window and owner restriction.
        page: 1-based page number.
        per_page: Page size.

    Returns:
        Page with reservations (rooms attached) and the total match count.
    """
    conditions: list[str] = []
    params: list = []

    if filters.from_date is not None:
        conditions.append("to_date >= %s")
        params.append(filters.from_date)

    if filters.to_date is not None:
        conditions.append("from_date <= %s")
        params.append(filters.to_date)

    if filters.user_id is not None:
        conditions.append("user_id = %s")
        params.append(filters.user_id)

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    total = fetchone(cur, f"SELECT count(*) FROM reservations {where_clause}", params)[0]

    rows = fetchall(
        cur,
        f"""
        {_SELECT_RESERVATION}
        {where_clause}
        ORDER BY id DESC
        LIMIT %s OFFSET %s
        """,
        [*params, per_page, (page - 1) * per_page],
    )
    items = [_row_to_reservation(row) for row in rows]
    _attach_rooms(cur, items)

    return Page(items=items, current_page=page, per_page=per_page, total=total)
