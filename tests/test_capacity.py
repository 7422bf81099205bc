"""
Tests for salon-wide capacity limits, slot suggestions and the dashboard.
"""

from datetime import date, datetime

import pytest

from conftest import TOMORROW, at
from salon_booking.models import SalonSetting
from salon_booking.services.scheduling.capacity import (
    CapacityGuard,
    capacity_status,
    percentage,
)
from salon_booking.services.scheduling.errors import (
    CapacityExceededError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.capacity
class TestSettings:
    def test_defaults_are_seeded(self, settings):
        assert settings.get("max_concurrent_appointments") == 5
        assert settings.get("max_daily_appointments") == 30
        assert settings.get("working_hours_start") == "09:00"
        assert settings.get("enable_capacity_check") is True

    def test_set_casts_by_type(self, db, settings):
        settings.set("max_daily_appointments", "12")
        settings.set("enable_capacity_check", False)
        db.session.commit()

        assert settings.get("max_daily_appointments") == 12
        assert settings.get("enable_capacity_check") is False

    def test_set_rejects_bad_integer(self, settings):
        with pytest.raises(ValidationError):
            settings.set("max_daily_appointments", "lots")

    def test_working_hours_must_be_clock_times(self, db, settings):
        with pytest.raises(ValidationError) as exc:
            settings.set("working_hours_start", "nine")

        assert exc.value.status_code == 400
        assert settings.get("working_hours_start") == "09:00"

    def test_working_hours_must_close_after_opening(self, settings):
        with pytest.raises(ValidationError):
            settings.set("working_hours_end", "08:30")
        with pytest.raises(ValidationError):
            settings.set("working_hours_start", "18:00")

    def test_working_hours_are_normalised(self, db, settings):
        settings.set("working_hours_start", "8:5")
        db.session.commit()

        assert settings.get("working_hours_start") == "08:05"

    def test_working_hours_move_together(self, db, settings):
        """Shifting both ends past the old closing time is one valid update"""
        settings.update_existing(
            [
                {"key": "working_hours_start", "value": "19:00"},
                {"key": "working_hours_end", "value": "23:00"},
            ]
        )
        db.session.commit()

        assert settings.get("working_hours_start") == "19:00"
        assert settings.get("working_hours_end") == "23:00"

    def test_malformed_value_falls_back_to_default(self, db, settings):
        row = db.session.query(SalonSetting).filter_by(key="max_daily_appointments").one()
        row.value = "not-a-number"
        db.session.commit()

        assert settings.get("max_daily_appointments") == 30

    def test_update_existing_rejects_unknown_keys(self, settings):
        with pytest.raises(NotFoundError):
            settings.update_existing([{"key": "max_chairs", "value": 3}])

    def test_update_existing(self, db, settings):
        values = settings.update_existing(
            [{"key": "max_concurrent_appointments", "value": 7}]
        )
        assert values["max_concurrent_appointments"] == 7


@pytest.mark.capacity
class TestPercentages:
    def test_percentage(self):
        assert percentage(4, 5) == 80.0
        assert percentage(1, 3) == 33.3
        assert percentage(1, 0) == 100.0

    def test_capacity_status(self):
        assert capacity_status(27, 30) == "critical"
        assert capacity_status(24, 30) == "high"
        assert capacity_status(18, 30) == "moderate"
        assert capacity_status(3, 30) == "low"


@pytest.mark.capacity
class TestCapacityGuard:
    def test_daily_limit(self, db, users, settings, clock, make_appointment):
        settings.set("max_daily_appointments", 2)
        db.session.commit()
        make_appointment(users.stylist, at(9))
        make_appointment(users.stylist_b, at(9))
        guard = CapacityGuard(db.session, clock=clock)

        with pytest.raises(CapacityExceededError) as exc:
            guard.check(at(15), at(16))

        error = exc.value
        assert error.error == "Daily capacity exceeded"
        assert error.context["capacity_info"] == {
            "current_bookings": 2,
            "max_allowed": 2,
            "available_slots": 0,
        }
        # The following day is empty, so its opening slot is suggested
        assert error.context["next_available_slot"]["date"] == "2026-11-04"
        assert error.context["next_available_slot"]["time"] == "09:00"

    def test_cancelled_appointments_free_daily_capacity(
        self, db, users, settings, clock, make_appointment
    ):
        settings.set("max_daily_appointments", 2)
        db.session.commit()
        make_appointment(users.stylist, at(9))
        second = make_appointment(users.stylist_b, at(9))
        second.status = "Cancelled"
        db.session.commit()
        guard = CapacityGuard(db.session, clock=clock)

        assert guard.check(at(15), at(16)) is None

    def test_concurrent_limit(self, db, users, settings, clock, make_appointment):
        settings.set("max_concurrent_appointments", 2)
        db.session.commit()
        make_appointment(users.stylist, at(10))
        make_appointment(users.stylist_b, at(10, 30))
        guard = CapacityGuard(db.session, clock=clock)

        with pytest.raises(CapacityExceededError) as exc:
            guard.check(at(10, 30), at(11))

        error = exc.value
        assert error.error == "Concurrent capacity exceeded"
        assert error.context["capacity_info"]["current_concurrent"] == 2
        assert error.context["capacity_info"]["max_capacity"] == 2
        assert error.context["next_available_slot"]["time"] == "09:00"

    def test_adjacent_appointments_do_not_count_as_concurrent(
        self, db, users, settings, clock, make_appointment
    ):
        settings.set("max_concurrent_appointments", 1)
        db.session.commit()
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        guard.check(at(11), at(12))

    def test_warning_near_capacity(self, db, users, settings, clock, make_appointment):
        settings.set("max_concurrent_appointments", 2)
        settings.set("capacity_warning_threshold", 50)
        db.session.commit()
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        warning = guard.check(at(10), at(11))

        assert warning["message"] == "Salon is near capacity"
        assert warning["capacity_percentage"] == 50.0
        assert warning["available_stations"] == 1

    def test_no_warning_below_threshold(self, db, users, clock, make_appointment):
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        assert guard.check(at(10), at(11)) is None

    def test_disabled_check_admits_everything(
        self, db, users, settings, clock, make_appointment
    ):
        settings.set("max_concurrent_appointments", 1)
        settings.set("enable_capacity_check", False)
        db.session.commit()
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        assert guard.check(at(10), at(11)) is None


@pytest.mark.capacity
class TestSlotsAndDashboard:
    def test_available_slots_skip_full_times(
        self, db, users, settings, clock, make_appointment
    ):
        settings.set("max_concurrent_appointments", 1)
        settings.set("working_hours_start", "09:00", "string")
        settings.set("working_hours_end", "12:00", "string")
        db.session.commit()
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        slots = guard.available_slots(TOMORROW.date(), 60)

        assert [slot["time"] for slot in slots] == ["09:00", "11:00"]
        assert slots[0]["end_time"] == "10:00"
        assert slots[0]["available_stations"] == 1

    def test_next_available_slot(self, db, users, settings, clock, make_appointment):
        settings.set("max_concurrent_appointments", 1)
        db.session.commit()
        make_appointment(users.stylist, at(9), minutes=90)
        guard = CapacityGuard(db.session, clock=clock)

        slot = guard.find_next_available_slot(TOMORROW.date())

        assert slot["time"] == "10:30"
        assert slot["available_stations"] == 1

    def test_snapshot(self, db, users, clock, make_appointment):
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        snapshot = guard.snapshot(at(10), at(11))

        assert snapshot["is_available"] is True
        assert snapshot["capacity_info"]["daily"]["current"] == 1
        assert snapshot["capacity_info"]["concurrent"]["available"] == 4

    def test_dashboard(self, db, users, settings, clock, make_appointment):
        settings.set("max_daily_appointments", 2)
        db.session.commit()
        make_appointment(users.stylist, at(10))
        make_appointment(users.stylist_b, at(10))
        make_appointment(users.admin, at(14), status="Cancelled")
        guard = CapacityGuard(db.session, clock=clock)

        report = guard.dashboard(TOMORROW.date())

        status = report["current_status"]
        assert status["total_appointments_today"] == 2
        assert status["daily_capacity_percentage"] == 100.0
        assert status["status"] == "critical"
        assert report["peak_hours"] == {"10:00": 2}
        assert len(report["hourly_capacity"]) == 9
        assert report["recommendations"][0]["action"] == "restrict_booking"
        # 10:00 holds 2 of 5 stations, still under half
        assert report["recommendations"][1]["best_hours"] == ["09:00", "10:00", "11:00"]

    def test_current_concurrent_only_for_today(self, db, users, clock, make_appointment):
        clock.now = datetime(2026, 11, 3, 10, 15)
        make_appointment(users.stylist, at(10))
        guard = CapacityGuard(db.session, clock=clock)

        assert guard.dashboard(date(2026, 11, 3))["current_status"]["current_concurrent"] == 1
        assert guard.dashboard(date(2026, 11, 4))["current_status"]["current_concurrent"] == 0
