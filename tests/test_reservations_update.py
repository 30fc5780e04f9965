"""Tests for reservation update: field replacement, room relinking, notifications."""

from __future__ import annotations

from datetime import date

import pytest

from roomdesk.domain.errors import (
    NotFoundError,
    PersistenceError,
    ReservationValidationError,
    RoomUnavailableError,
    UnauthorizedError,
)
from roomdesk.domain.reservations import update_reservation

from .helpers import booking, ts


@pytest.fixture
def existing(store):
    """Reservation on room 101, June 1-5, checked in at 14:00."""
    return store.seed(
        room_ids=[101],
        from_date=date(2024, 6, 1),
        to_date=date(2024, 6, 5),
        user_id="cust-1",
        checkin_time=ts("2024-06-01T14:00:00"),
        status="checked_in",
    )


class TestCheckinCheckoutSemantics:
    def test_omitted_checkin_is_kept(self, store, notifier, staff, existing):
        updated = update_reservation(existing, booking([101]), staff)

        assert updated.checkin_time == ts("2024-06-01T14:00:00")
        assert updated.status == "checked_in"

    def test_supplied_checkin_overwrites(self, store, notifier, staff, existing):
        updated = update_reservation(
            existing,
            booking([101], checkin_time="2024-06-01T16:30:00"),
            staff,
        )

        assert updated.checkin_time == ts("2024-06-01T16:30:00")

    def test_explicit_null_clears(self, store, notifier, staff, existing):
        updated = update_reservation(existing, booking([101], checkin_time=None), staff)

        assert updated.checkin_time is None
        assert updated.status == "reserved"

    def test_supplied_checkout_marks_checked_out(self, store, notifier, staff, existing):
        updated = update_reservation(
            existing,
            booking([101], checkout_time="2024-06-05T10:00:00"),
            staff,
        )

        assert updated.checkin_time == ts("2024-06-01T14:00:00")
        assert updated.checkout_time == ts("2024-06-05T10:00:00")
        assert updated.status == "checked_out"


class TestFieldReplacement:
    def test_scalar_fields_always_overwritten(self, store, notifier, staff, existing):
        updated = update_reservation(
            existing,
            booking(
                [101],
                "2024-06-02",
                "2024-06-04",
                guest_name="Grace Hopper",
                total_person=3,
                total_price=72000,
            ),
            staff,
        )

        assert updated.guest_name == "Grace Hopper"
        assert updated.total_person == 3
        assert updated.total_price == 72000
        assert updated.from_date == date(2024, 6, 2)
        assert updated.to_date == date(2024, 6, 4)
        assert updated.user_id == "cust-1"

    def test_room_links_replaced_wholesale(self, store, notifier, staff, existing):
        updated = update_reservation(existing, booking([102, 103]), staff)

        assert sorted(store.links_for(existing)) == [102, 103]
        assert updated.room_numbers == ["102", "103"]


class TestUpdateOverlap:
    def test_own_dates_do_not_conflict(self, store, notifier, staff, existing):
        updated = update_reservation(existing, booking([101], "2024-06-01", "2024-06-06"), staff)

        assert updated.to_date == date(2024, 6, 6)

    def test_collision_with_other_reservation_rejected(self, store, notifier, staff, existing):
        store.seed(room_ids=[102], from_date=date(2024, 6, 3), to_date=date(2024, 6, 9))

        with pytest.raises(RoomUnavailableError) as exc_info:
            update_reservation(existing, booking([101, 102]), staff)

        assert exc_info.value.room_numbers == ["102"]
        assert store.links_for(existing) == [101]


class TestUpdateFailures:
    def test_unknown_reservation(self, store, notifier, staff):
        with pytest.raises(NotFoundError):
            update_reservation(404, booking(), staff)

    def test_empty_room_list_rejected(self, store, notifier, staff, existing):
        with pytest.raises(ReservationValidationError) as exc_info:
            update_reservation(existing, booking([]), staff)

        assert "room_id" in exc_info.value.errors
        assert store.links_for(existing) == [101]

    def test_reversed_dates_rejected(self, store, notifier, staff, existing):
        with pytest.raises(ReservationValidationError) as exc_info:
            update_reservation(existing, booking([101], "2024-06-05", "2024-06-01"), staff)

        assert "to_date" in exc_info.value.errors

    def test_storage_failure_restores_previous_state(self, store, notifier, staff, existing):
        store.fail_on = "replace_room_associations"

        with pytest.raises(PersistenceError):
            update_reservation(existing, booking([102], guest_name="Grace Hopper"), staff)

        assert store.reservations[existing].guest_name == "Seeded Guest"
        assert store.links_for(existing) == [101]

    def test_customer_cannot_update_foreign_reservation(self, store, notifier, customer):
        other = store.seed(
            room_ids=[103],
            from_date=date(2024, 7, 1),
            to_date=date(2024, 7, 2),
            user_id="someone-else",
        )

        with pytest.raises(UnauthorizedError):
            update_reservation(other, booking([103], "2024-07-01", "2024-07-02"), customer)

        assert store.reservations[other].guest_name == "Seeded Guest"


class TestUpdateNotification:
    def test_customer_update_notifies(self, store, notifier, customer, existing):
        update_reservation(existing, booking([101]), customer)

        notifier.send_booking_updated.assert_called_once()
        reservation, recipient = notifier.send_booking_updated.call_args.args
        assert reservation.id == existing
        assert recipient == "guest@example.com"

    def test_staff_update_is_silent(self, store, notifier, staff, existing):
        update_reservation(existing, booking([101]), staff)

        notifier.send_booking_updated.assert_not_called()

    def test_admin_update_is_silent(self, store, notifier, admin, existing):
        update_reservation(existing, booking([101]), admin)

        notifier.send_booking_updated.assert_not_called()
