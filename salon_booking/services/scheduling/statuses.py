"""Appointment status lifecycle and the shared "active" predicate.

Overlap, capacity and spam checks all filter on ``active_clause()`` so the
set of statuses that occupy a chair is defined in exactly one place.
"""

import enum
from typing import Dict, FrozenSet

from ...models import Appointment
from .errors import InvalidStateError, ValidationError


class AppointmentStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value) -> "AppointmentStatus":
        if isinstance(value, cls):
            return value
        for status in cls:
            if isinstance(value, str) and status.value.lower() == value.strip().lower():
                return status
        raise ValidationError(
            f"Invalid status '{value}'",
            allowed=[status.value for status in cls],
        )


ACTIVE_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}
)


def is_active(status) -> bool:
    return AppointmentStatus.parse(status) in ACTIVE_STATUSES


def active_clause():
    """SQL filter for appointments that hold a staff member and a station."""
    return Appointment.status.in_(sorted(s.value for s in ACTIVE_STATUSES))


class AppointmentStateMachine:
    """Pending -> Confirmed -> Completed; any non-terminal state -> Cancelled."""

    TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
        AppointmentStatus.PENDING: frozenset(
            {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
        ),
        AppointmentStatus.CONFIRMED: frozenset(
            {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
        ),
        AppointmentStatus.COMPLETED: frozenset(),
        AppointmentStatus.CANCELLED: frozenset(),
    }

    @classmethod
    def is_terminal(cls, status) -> bool:
        return not cls.TRANSITIONS[AppointmentStatus.parse(status)]

    @classmethod
    def can_transition(cls, current, new) -> bool:
        return AppointmentStatus.parse(new) in cls.TRANSITIONS[AppointmentStatus.parse(current)]

    @classmethod
    def ensure_transition(cls, current, new) -> AppointmentStatus:
        current = AppointmentStatus.parse(current)
        new = AppointmentStatus.parse(new)
        if not cls.can_transition(current, new):
            allowed = sorted(s.value for s in cls.TRANSITIONS[current])
            raise InvalidStateError(
                f"Cannot change appointment status from {current.value} to {new.value}",
                current_status=current.value,
                requested_status=new.value,
                allowed_transitions=allowed,
            )
        return new
