"""
Tests for the appointment status lifecycle.
"""

import pytest

from salon_booking.services.scheduling.errors import InvalidStateError, ValidationError
from salon_booking.services.scheduling.statuses import (
    ACTIVE_STATUSES,
    AppointmentStateMachine,
    AppointmentStatus,
    is_active,
)


@pytest.mark.booking
class TestAppointmentStatus:
    def test_parse_is_case_insensitive(self):
        assert AppointmentStatus.parse("confirmed") is AppointmentStatus.CONFIRMED
        assert AppointmentStatus.parse(" Pending ") is AppointmentStatus.PENDING

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValidationError) as exc:
            AppointmentStatus.parse("Booked")
        assert "Pending" in exc.value.context["allowed"]

    def test_active_set(self):
        """Only Pending and Confirmed appointments hold a chair"""
        assert ACTIVE_STATUSES == {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}
        assert is_active("Pending")
        assert is_active("Confirmed")
        assert not is_active("Completed")
        assert not is_active("Cancelled")


@pytest.mark.booking
class TestStateMachine:
    @pytest.mark.parametrize(
        "current,new",
        [
            ("Pending", "Confirmed"),
            ("Pending", "Cancelled"),
            ("Confirmed", "Completed"),
            ("Confirmed", "Cancelled"),
        ],
    )
    def test_allowed_transitions(self, current, new):
        assert AppointmentStateMachine.ensure_transition(current, new).value == new

    @pytest.mark.parametrize(
        "current,new",
        [
            ("Pending", "Completed"),
            ("Confirmed", "Pending"),
            ("Completed", "Pending"),
            ("Completed", "Cancelled"),
            ("Cancelled", "Pending"),
            ("Cancelled", "Confirmed"),
        ],
    )
    def test_rejected_transitions(self, current, new):
        with pytest.raises(InvalidStateError) as exc:
            AppointmentStateMachine.ensure_transition(current, new)
        assert exc.value.status_code == 400
        assert exc.value.context["current_status"] == current
        assert exc.value.context["requested_status"] == new

    def test_terminal_states(self):
        assert AppointmentStateMachine.is_terminal("Completed")
        assert AppointmentStateMachine.is_terminal("Cancelled")
        assert not AppointmentStateMachine.is_terminal("Pending")
        assert not AppointmentStateMachine.is_terminal("Confirmed")
