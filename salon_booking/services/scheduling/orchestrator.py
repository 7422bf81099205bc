"""Booking orchestration: create, reschedule, cancel and status updates.

Every mutating operation runs as one transaction. Create and reschedule take
the salon-wide booking lock before their first read, so the spam, overlap and
capacity checks see the same state the final write is applied to. Any
failure rolls the whole transaction back.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import Appointment
from .capacity import CapacityGuard
from .conflicts import ConflictDetector
from .coupons import CouponEngine, CouponRepository, CouponResult
from .errors import (
    AuthorizationError,
    BookingError,
    InvalidStateError,
    NotFoundError,
    TransientStorageError,
    ValidationError,
)
from .intervals import TimeRange
from .repository import AppointmentRepository, ServiceCatalog, StaffRepository
from .revenue import LoggingRevenueSink, RevenueEvent, RevenueSink
from .settings import SalonSettings
from .spam import SpamGuard
from .staff import StaffAssigner
from .statuses import AppointmentStateMachine, AppointmentStatus

logger = logging.getLogger(__name__)

ROLE_CLIENT = "Client"
ROLE_STYLIST = "Stylist"
ROLE_ADMIN = "Admin"
STAFF_ACTOR_ROLES = (ROLE_STYLIST, ROLE_ADMIN)
RESCHEDULE_FALLBACK_MINUTES = 60


@dataclass(frozen=True)
class Actor:
    id: int
    role: str

    @property
    def is_client(self) -> bool:
        return self.role == ROLE_CLIENT


@dataclass
class BookingRequest:
    start: datetime
    service_ids: Sequence[int]
    staff_id: Optional[int] = None
    coupon_code: Optional[str] = None
    client_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class BookingOutcome:
    appointment: Appointment
    capacity_warning: Optional[Dict] = None
    coupon: Optional[CouponResult] = None


@dataclass
class StatusOutcome:
    appointment: Appointment
    previous_status: str
    revenue: Optional[RevenueEvent] = None
    changed: bool = True


class BookingOrchestrator:
    def __init__(
        self,
        session: Session,
        clock: Callable[[], datetime] = datetime.now,
        revenue_sink: Optional[RevenueSink] = None,
        coupon_repository: Optional[CouponRepository] = None,
    ):
        self.session = session
        self.clock = clock
        self.appointments = AppointmentRepository(session)
        self.staff = StaffRepository(session)
        self.catalog = ServiceCatalog(session)
        self.settings = SalonSettings(session)
        self.conflicts = ConflictDetector(session, self.appointments)
        self.capacity = CapacityGuard(session, self.settings, self.appointments, clock)
        self.assigner = StaffAssigner(session, self.conflicts, self.staff)
        self.spam = SpamGuard(session, self.appointments, clock)
        self.coupons = CouponEngine(
            coupon_repository or CouponRepository(session), today=lambda: self.clock().date()
        )
        self.revenue_sink = revenue_sink or LoggingRevenueSink()

    # --- helpers -----------------------------------------------------------

    def _load(self, appointment_id: int, for_update: bool = False) -> Appointment:
        if for_update:
            appointment = self.appointments.get_for_update(appointment_id)
        else:
            appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        return appointment

    @staticmethod
    def _ensure_owner(actor: Actor, appointment: Appointment, action: str) -> None:
        if actor.is_client and appointment.client_id != actor.id:
            raise AuthorizationError(
                f"Unauthorized to {action} this appointment",
                appointment_id=appointment.id,
            )

    def _ensure_future(self, start: datetime) -> None:
        now = self.clock()
        if start <= now:
            raise ValidationError(
                "Appointment start time must be in the future",
                requested_start=start.isoformat(),
                now=now.isoformat(),
            )

    def _commit(self, operation: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Failed to persist %s", operation)
            raise TransientStorageError(
                "Could not save the appointment. Please try again.", operation=operation
            ) from e

    def _run(self, operation: str, work):
        """Run ``work`` inside the transaction; roll back on any failure."""
        try:
            result = work()
        except BookingError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Storage error during %s", operation)
            raise TransientStorageError(
                "Could not save the appointment. Please try again.", operation=operation
            ) from e
        except Exception:
            self.session.rollback()
            raise
        self._commit(operation)
        return result

    def resolve_client(self, actor: Actor, client_id: Optional[int]) -> int:
        if actor.is_client:
            return actor.id
        if actor.role not in STAFF_ACTOR_ROLES:
            raise AuthorizationError(f"Role '{actor.role}' cannot create bookings")
        if client_id is None:
            raise ValidationError(
                "client_id is required when booking on behalf of a customer",
                errors={"client_id": "required"},
            )
        client = self.staff.get_user(client_id)
        if client is None or client.role != ROLE_CLIENT:
            raise NotFoundError("Client not found", client_id=client_id)
        return client.id

    # --- create ------------------------------------------------------------

    def create(self, actor: Actor, request: BookingRequest) -> BookingOutcome:
        if not request.service_ids:
            raise ValidationError(
                "At least one service is required", errors={"service_ids": "required"}
            )
        client_id = self.resolve_client(actor, request.client_id)

        def work() -> BookingOutcome:
            self.appointments.acquire_booking_lock()
            self.spam.check(client_id, request.staff_id, request.start)

            services = self.catalog.get_many(request.service_ids)
            missing = sorted(set(request.service_ids) - {s.id for s in services})
            if missing:
                raise ValidationError(
                    "Some selected services do not exist or are inactive",
                    missing_service_ids=missing,
                )
            total_duration, total_amount = self.catalog.totals(services)

            self._ensure_future(request.start)
            slot = TimeRange.from_duration(request.start, total_duration)

            if request.staff_id is not None:
                if self.staff.get_bookable(request.staff_id) is None:
                    raise NotFoundError("Invalid staff member", staff_id=request.staff_id)
                staff_id = request.staff_id
            else:
                staff_id = self.assigner.assign(request.service_ids, slot.start, slot.end)

            self.conflicts.ensure_free(staff_id, slot.start, slot.end)
            warning = self.capacity.check(slot.start, slot.end)

            coupon = None
            discount = Decimal("0")
            if request.coupon_code and request.coupon_code.strip():
                coupon = self.coupons.validate(request.coupon_code, total_amount, client_id)
                discount = coupon.discount

            now = self.clock()
            appointment = Appointment(
                client_id=client_id,
                staff_id=staff_id,
                start_at=slot.start,
                end_at=slot.end,
                status=AppointmentStatus.PENDING.value,
                total_amount=total_amount,
                discount_amount=discount,
                final_amount=total_amount - discount,
                coupon_code=coupon.code if coupon else None,
                notes=request.notes,
                created_at=now,
                updated_at=now,
            )
            self.appointments.add(appointment, services)
            return BookingOutcome(appointment, warning, coupon)

        outcome = self._run("create", work)
        logger.info(
            "Booked appointment %s for client %s with staff %s at %s",
            outcome.appointment.id,
            client_id,
            outcome.appointment.staff_id,
            outcome.appointment.start_at,
        )
        return outcome

    # --- reschedule --------------------------------------------------------

    def reschedule(self, actor: Actor, appointment_id: int, new_start: datetime) -> Appointment:
        def work() -> Appointment:
            self.appointments.acquire_booking_lock()
            appointment = self._load(appointment_id, for_update=True)
            self._ensure_owner(actor, appointment, "update")

            if appointment.status != AppointmentStatus.PENDING.value:
                raise InvalidStateError(
                    f"Can only update pending appointments (current status: {appointment.status})",
                    current_status=appointment.status,
                )
            self._ensure_future(new_start)

            minutes = (
                self.appointments.detail_duration_minutes(appointment.id)
                or RESCHEDULE_FALLBACK_MINUTES
            )
            new_end = new_start + timedelta(minutes=minutes)
            self.conflicts.ensure_free(
                appointment.staff_id,
                new_start,
                new_end,
                exclude_appointment_id=appointment.id,
                message="The selected time conflicts with another appointment. Please choose a different time.",
            )

            appointment.start_at = new_start
            appointment.end_at = new_end
            appointment.updated_at = self.clock()
            return appointment

        appointment = self._run("reschedule", work)
        logger.info("Rescheduled appointment %s to %s", appointment.id, appointment.start_at)
        return appointment

    # --- cancel ------------------------------------------------------------

    def cancel(self, actor: Actor, appointment_id: int) -> Appointment:
        def work() -> Appointment:
            appointment = self._load(appointment_id, for_update=True)
            self._ensure_owner(actor, appointment, "cancel")
            if AppointmentStateMachine.is_terminal(appointment.status):
                raise InvalidStateError(
                    f"Cannot cancel this appointment (status: {appointment.status})",
                    current_status=appointment.status,
                )
            appointment.status = AppointmentStatus.CANCELLED.value
            appointment.updated_at = self.clock()
            return appointment

        appointment = self._run("cancel", work)
        logger.info("Cancelled appointment %s", appointment.id)
        return appointment

    # --- status ------------------------------------------------------------

    def update_status(self, actor: Actor, appointment_id: int, new_status) -> StatusOutcome:
        if actor.role not in STAFF_ACTOR_ROLES:
            raise AuthorizationError("Only staff can update appointment status")
        target = AppointmentStatus.parse(new_status)

        def work() -> StatusOutcome:
            appointment = self._load(appointment_id, for_update=True)
            previous = appointment.status
            if previous == target.value:
                return StatusOutcome(appointment, previous, changed=False)
            AppointmentStateMachine.ensure_transition(previous, target)
            appointment.status = target.value
            appointment.updated_at = self.clock()
            return StatusOutcome(appointment, previous)

        outcome = self._run("update_status", work)
        if outcome.changed and outcome.appointment.status == AppointmentStatus.COMPLETED.value:
            outcome.revenue = self._emit_revenue(outcome.appointment)
        return outcome

    def _emit_revenue(self, appointment: Appointment) -> RevenueEvent:
        event = RevenueEvent(
            appointment_id=appointment.id,
            amount=Decimal(appointment.final_amount),
            total_amount=Decimal(appointment.total_amount),
            discount_amount=Decimal(appointment.discount_amount),
            client_id=appointment.client_id,
            staff_id=appointment.staff_id,
            completed_at=self.clock(),
        )
        try:
            self.revenue_sink.record(event)
        except Exception:
            # The status change is already committed; reporting is best effort.
            logger.exception("Revenue sink failed for appointment %s", appointment.id)
        return event

    def complete_finished(self) -> List[StatusOutcome]:
        """Move Confirmed appointments whose end time has passed to Completed."""
        finished = self.appointments.ended_with_status(
            AppointmentStatus.CONFIRMED.value, self.clock()
        )
        ids = [apt.id for apt in finished]
        system = Actor(id=0, role=ROLE_ADMIN)
        return [self.update_status(system, apt_id, AppointmentStatus.COMPLETED) for apt_id in ids]

    # --- reads -------------------------------------------------------------

    def get(self, actor: Actor, appointment_id: int) -> Appointment:
        appointment = self._load(appointment_id)
        self._ensure_owner(actor, appointment, "view")
        return appointment

    def list_for(self, actor: Actor) -> List[Appointment]:
        if actor.is_client:
            return self.appointments.list_for_client(actor.id)
        if actor.role == ROLE_STYLIST:
            return self.appointments.list_for_staff(actor.id)
        return self.appointments.list_for_staff()

    def check_availability(self, day: date, staff_id: int) -> Tuple[Dict, List[Appointment]]:
        staff = self.staff.get_bookable(staff_id)
        if staff is None:
            raise NotFoundError("Invalid staff member", staff_id=staff_id)

        appointments = self.appointments.active_for_staff_on(staff.id, day)
        window = self.capacity.working_window(day)
        total_minutes = window.minutes
        busy_minutes = sum(
            TimeRange(apt.start_at, apt.end_at).minutes for apt in appointments
        )
        available_minutes = max(0, total_minutes - busy_minutes)

        report = {
            "date": day.isoformat(),
            "staff": {"id": staff.id, "name": staff.name, "role": staff.role},
            "working_hours": {
                "start": window.start.strftime("%H:%M"),
                "end": window.end.strftime("%H:%M"),
            },
            "busy_slots": [
                {
                    "start": apt.start_at.strftime("%H:%M"),
                    "end": apt.end_at.strftime("%H:%M"),
                    "appointment_id": apt.id,
                }
                for apt in appointments
            ],
            "statistics": {
                "total_appointments": len(appointments),
                "total_minutes": total_minutes,
                "busy_minutes": busy_minutes,
                "available_minutes": available_minutes,
                "availability_percentage": (
                    round(available_minutes / total_minutes * 100, 2)
                    if total_minutes > 0
                    else 100
                ),
            },
            "is_available": available_minutes > 0,
        }
        return report, appointments
