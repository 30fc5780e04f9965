"""Shared test helpers for Roomdesk tests.

Regular functions and classes (not fixtures) importable by conftest.py and
individual test modules.
"""

from __future__ import annotations

import base64
import copy
import time
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Sequence

import jwt
import psycopg2
from cryptography.hazmat.primitives.asymmetric import rsa

from roomdesk.api.auth import CurrentUser
from roomdesk.domain.models import Page, Reservation, ReservationFilter, Room
from roomdesk.domain.room_conflict import ranges_overlap

# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------


def _generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    return private_key, private_key.public_key()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create JWKS from public key."""
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return (
            base64.urlsafe_b64encode(n.to_bytes(byte_length, "big"))
            .rstrip(b"=")
            .decode()
        )

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    iss: str = "https://auth.example.com",
    aud: str = "roomdesk-api",
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    """Create signed JWT for testing."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if azp:
        payload["azp"] = azp

    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


OIDC_ENV = {
    "OIDC_ISSUER": "https://auth.example.com",
    "OIDC_AUDIENCE": "roomdesk-api",
    "OIDC_JWKS_URL": "https://auth.example.com/.well-known/jwks.json",
}


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


def make_user(role: str = "staff", user_id: str = "staff-1", email: str | None = "desk@example.com") -> CurrentUser:
    return CurrentUser(
        id=user_id,
        external_subject=f"sub-{user_id}",
        email=email,
        name=f"{role.title()} User",
        role=role,
    )


# ---------------------------------------------------------------------------
# In-memory persistence
# ---------------------------------------------------------------------------

ROOMS = [
    Room(id=101, room_number="101", price=50000),
    Room(id=102, room_number="102", price=30000),
    Room(id=103, room_number="103", price=45000),
]

_RESERVATION_REPO_FUNCS = (
    "get_reservation",
    "find_reservations_overlapping",
    "insert_reservation",
    "update_reservation",
    "delete_associations",
    "replace_room_associations",
    "delete_reservation",
    "paginate_reservations",
)
_ROOM_REPO_FUNCS = ("lock_rooms", "list_rooms")


class FakeStore:
    """Stand-in for the reservations/rooms repositories plus txn().

    State is snapshotted when a transaction starts and restored if the body
    raises, so partial writes are never visible after a failure.

    Set fail_on to a repository function name to make that call raise
    psycopg2.OperationalError.
    """

    def __init__(self, rooms: Sequence[Room] = ROOMS) -> None:
        self.rooms: dict[int, Room] = {room.id: room for room in rooms}
        self.reservations: dict[int, Reservation] = {}
        self.links: list[tuple[int, int, date, date]] = []
        self.next_id = 1
        self.fail_on: str | None = None
        self.commits = 0
        self.rollbacks = 0

    def install(self, monkeypatch) -> "FakeStore":
        from roomdesk.infra.repositories import reservations_repository, rooms_repository

        monkeypatch.setattr("roomdesk.domain.reservations.txn", self.txn)
        for name in _RESERVATION_REPO_FUNCS:
            monkeypatch.setattr(reservations_repository, name, getattr(self, name))
        for name in _ROOM_REPO_FUNCS:
            monkeypatch.setattr(rooms_repository, name, getattr(self, name))
        return self

    @contextmanager
    def txn(self, conn=None):
        snapshot = copy.deepcopy((self.reservations, self.links, self.next_id))
        try:
            yield "fake-cursor"
        except Exception:
            self.reservations, self.links, self.next_id = snapshot
            self.rollbacks += 1
            raise
        self.commits += 1

    def _maybe_fail(self, name: str) -> None:
        if self.fail_on == name:
            raise psycopg2.OperationalError(f"simulated failure in {name}")

    # -- seeding / inspection ------------------------------------------------

    def seed(self, *, room_ids: Sequence[int], from_date: date, to_date: date, user_id: str = "staff-1", **fields) -> int:
        reservation_id = self.insert_reservation(
            None,
            user_id=user_id,
            guest_name=fields.get("guest_name", "Seeded Guest"),
            total_person=fields.get("total_person", 1),
            total_price=fields.get("total_price", 10000),
            from_date=from_date,
            to_date=to_date,
            checkin_time=fields.get("checkin_time"),
            checkout_time=fields.get("checkout_time"),
            status=fields.get("status", "reserved"),
        )
        self.replace_room_associations(None, reservation_id, room_ids, from_date=from_date, to_date=to_date)
        return reservation_id

    def links_for(self, reservation_id: int) -> list[int]:
        return [room_id for rid, room_id, _, _ in self.links if rid == reservation_id]

    # -- rooms_repository ----------------------------------------------------

    def lock_rooms(self, cur, room_ids):
        self._maybe_fail("lock_rooms")
        return [self.rooms[room_id] for room_id in sorted(set(room_ids)) if room_id in self.rooms]

    def list_rooms(self, cur, fields=("id", "room_number", "price")):
        rooms = sorted(self.rooms.values(), key=lambda room: room.room_number)
        return [{field: getattr(room, field) for field in fields} for room in rooms]

    # -- reservations_repository ---------------------------------------------

    def get_reservation(self, cur, reservation_id, *, lock=False):
        self._maybe_fail("get_reservation")
        stored = self.reservations.get(reservation_id)
        if stored is None:
            return None
        room_ids = sorted(self.links_for(reservation_id), key=lambda rid: self.rooms[rid].room_number)
        return replace(
            stored,
            room_ids=room_ids,
            room_numbers=[self.rooms[rid].room_number for rid in room_ids],
        )

    def find_reservations_overlapping(self, cur, room_id, from_date, to_date, *, exclude_reservation_id=None):
        self._maybe_fail("find_reservations_overlapping")
        rows = []
        for rid, linked_room, stay_from, stay_to in self.links:
            if linked_room != room_id or rid == exclude_reservation_id:
                continue
            if ranges_overlap(stay_from, stay_to, from_date, to_date):
                rows.append((rid, stay_from, stay_to))
        return sorted(rows, key=lambda row: row[1])

    def insert_reservation(self, cur, **fields) -> int:
        self._maybe_fail("insert_reservation")
        reservation_id = self.next_id
        self.next_id += 1
        self.reservations[reservation_id] = Reservation(id=reservation_id, **fields)
        return reservation_id

    def update_reservation(self, cur, reservation_id, **fields) -> bool:
        self._maybe_fail("update_reservation")
        if reservation_id not in self.reservations:
            return False
        self.reservations[reservation_id] = replace(self.reservations[reservation_id], **fields)
        return True

    def delete_associations(self, cur, reservation_id) -> int:
        self._maybe_fail("delete_associations")
        before = len(self.links)
        self.links = [link for link in self.links if link[0] != reservation_id]
        return before - len(self.links)

    def replace_room_associations(self, cur, reservation_id, room_ids, *, from_date, to_date) -> None:
        self._maybe_fail("replace_room_associations")
        self.links = [link for link in self.links if link[0] != reservation_id]
        for room_id in room_ids:
            self.links.append((reservation_id, room_id, from_date, to_date))

    def delete_reservation(self, cur, reservation_id) -> bool:
        self._maybe_fail("delete_reservation")
        return self.reservations.pop(reservation_id, None) is not None

    def paginate_reservations(self, cur, filters: ReservationFilter, *, page, per_page) -> Page:
        matches = []
        for reservation in self.reservations.values():
            if filters.from_date is not None and reservation.to_date < filters.from_date:
                continue
            if filters.to_date is not None and reservation.from_date > filters.to_date:
                continue
            if filters.user_id is not None and reservation.user_id != filters.user_id:
                continue
            matches.append(self.get_reservation(cur, reservation.id))
        matches.sort(key=lambda r: r.id, reverse=True)
        start = (page - 1) * per_page
        return Page(items=matches[start:start + per_page], current_page=page, per_page=per_page, total=len(matches))


def booking(room_ids=(101,), from_date="2024-06-01", to_date="2024-06-05", **overrides) -> dict:
    """Valid reservation payload as the form would post it."""
    payload = {
        "room_id": list(room_ids),
        "guest_name": "Ada Lovelace",
        "total_person": 2,
        "total_price": 50000,
        "from_date": from_date,
        "to_date": to_date,
    }
    payload.update(overrides)
    return payload


def ts(value: str) -> datetime:
    return datetime.fromisoformat(value)
