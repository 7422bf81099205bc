"""
Tests for per-client booking rate limits.
"""

from datetime import timedelta

import pytest

from conftest import FROZEN_NOW, at
from salon_booking.services.scheduling.errors import DuplicateBookingError, RateLimitError
from salon_booking.services.scheduling.spam import SpamGuard


@pytest.mark.spam
class TestSpamGuard:
    def test_fresh_client_passes(self, db, users, clock):
        SpamGuard(db.session, clock=clock).check(users.client.id)

    def test_fourth_active_booking_is_refused(self, db, users, clock, make_appointment):
        for hour in (10, 12, 14):
            make_appointment(users.stylist, at(hour), client=users.client)

        with pytest.raises(RateLimitError) as exc:
            SpamGuard(db.session, clock=clock).check(users.client.id)

        assert exc.value.status_code == 429
        assert exc.value.error == "Maximum pending appointments exceeded"
        assert exc.value.context["current_pending"] == 3
        assert exc.value.context["max_allowed"] == 3

    def test_finished_bookings_do_not_count_as_active(
        self, db, users, clock, make_appointment
    ):
        make_appointment(users.stylist, at(10), client=users.client, status="Completed")
        make_appointment(users.stylist, at(12), client=users.client, status="Cancelled")
        make_appointment(users.stylist, at(14), client=users.client)

        SpamGuard(db.session, clock=clock).check(users.client.id)

    def test_cooldown_reports_retry_after(self, db, users, clock, make_appointment):
        """A booking made 2 seconds ago means waiting about 3 more"""
        make_appointment(
            users.stylist, at(10), client=users.client,
            created_at=FROZEN_NOW - timedelta(seconds=2),
        )

        with pytest.raises(RateLimitError) as exc:
            SpamGuard(db.session, clock=clock).check(users.client.id)

        assert exc.value.error == "Booking too quickly"
        assert exc.value.retry_after == 3
        assert exc.value.context["retry_after"] == 3

    def test_cooldown_expires(self, db, users, clock, make_appointment):
        make_appointment(
            users.stylist, at(10), client=users.client,
            created_at=FROZEN_NOW - timedelta(seconds=2),
        )
        clock.advance(seconds=3)

        SpamGuard(db.session, clock=clock).check(users.client.id)

    def test_sixth_booking_of_the_day_is_refused(self, db, users, clock, make_appointment):
        for i in range(5):
            make_appointment(
                users.stylist, at(9 + i), client=users.client, status="Cancelled",
                created_at=FROZEN_NOW - timedelta(minutes=30 + i),
            )

        with pytest.raises(RateLimitError) as exc:
            SpamGuard(db.session, clock=clock).check(users.client.id)

        assert exc.value.error == "Daily booking limit exceeded"
        assert exc.value.context["current_today"] == 5

    def test_yesterdays_bookings_do_not_count_today(self, db, users, clock, make_appointment):
        for i in range(5):
            make_appointment(
                users.stylist, at(9 + i), client=users.client, status="Cancelled",
            )

        SpamGuard(db.session, clock=clock).check(users.client.id)

    def test_duplicate_booking(self, db, users, clock, make_appointment):
        make_appointment(users.stylist, at(10), client=users.client)
        guard = SpamGuard(db.session, clock=clock)

        with pytest.raises(DuplicateBookingError):
            guard.check(users.client.id, users.stylist.id, at(10))

        guard.check(users.client.id, users.stylist_b.id, at(10))
