"""Query layer for appointments, staff, services and the booking lock."""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ...models import Appointment, AppointmentDetail, SchedulingLock, Service, User
from .intervals import day_bounds
from .statuses import active_clause

STAFF_ROLES = ("Stylist", "Admin")
BOOKING_LOCK = "bookings"


class AppointmentRepository:
    def __init__(self, session: Session):
        self.session = session

    # --- locking -----------------------------------------------------------

    def acquire_booking_lock(self) -> None:
        """Take the salon-wide booking lock for the rest of the transaction.

        On MySQL this is a row lock (SELECT ... FOR UPDATE); SQLite ignores
        FOR UPDATE and serializes writers on its own.
        """
        stmt = (
            select(SchedulingLock)
            .where(SchedulingLock.name == BOOKING_LOCK)
            .with_for_update()
        )
        if self.session.scalar(stmt) is not None:
            return
        # Must run before any other write in the transaction: a lost insert
        # race rolls the transaction back and retries the locking read.
        self.session.add(SchedulingLock(name=BOOKING_LOCK))
        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            self.session.scalar(stmt)

    def get_for_update(self, appointment_id: int) -> Optional[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .with_for_update()
        )
        return self.session.scalar(stmt)

    # --- lookups -----------------------------------------------------------

    def get(self, appointment_id: int) -> Optional[Appointment]:
        return self.session.get(Appointment, appointment_id)

    def list_for_client(self, client_id: int) -> List[Appointment]:
        stmt = (
            select(Appointment)
            .options(selectinload(Appointment.details))
            .where(Appointment.client_id == client_id)
            .order_by(Appointment.start_at.desc())
        )
        return list(self.session.scalars(stmt))

    def list_for_staff(self, staff_id: Optional[int] = None) -> List[Appointment]:
        stmt = select(Appointment).options(selectinload(Appointment.details))
        if staff_id is not None:
            stmt = stmt.where(Appointment.staff_id == staff_id)
        return list(self.session.scalars(stmt.order_by(Appointment.start_at.desc())))

    def ended_with_status(self, status: str, before: datetime) -> List[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.status == status, Appointment.end_at < before)
            .order_by(Appointment.end_at)
        )
        return list(self.session.scalars(stmt))

    # --- staff-level overlap ----------------------------------------------

    def overlapping_for_staff(
        self,
        staff_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Appointment]:
        stmt = select(Appointment).where(
            Appointment.staff_id == staff_id,
            active_clause(),
            Appointment.start_at < end,
            Appointment.end_at > start,
        )
        if exclude_appointment_id is not None:
            stmt = stmt.where(Appointment.id != exclude_appointment_id)
        return list(self.session.scalars(stmt.order_by(Appointment.start_at)))

    def active_for_staff_on(self, staff_id: int, day: date) -> List[Appointment]:
        day_start, day_end = day_bounds(day)
        stmt = (
            select(Appointment)
            .where(
                Appointment.staff_id == staff_id,
                active_clause(),
                Appointment.start_at >= day_start,
                Appointment.start_at < day_end,
            )
            .order_by(Appointment.start_at)
        )
        return list(self.session.scalars(stmt))

    # --- salon-wide capacity ----------------------------------------------

    def count_active_on(self, day: date) -> int:
        day_start, day_end = day_bounds(day)
        stmt = select(func.count(Appointment.id)).where(
            active_clause(),
            Appointment.start_at >= day_start,
            Appointment.start_at < day_end,
        )
        return self.session.scalar(stmt) or 0

    def count_overlapping(self, start: datetime, end: datetime) -> int:
        stmt = select(func.count(Appointment.id)).where(
            active_clause(),
            Appointment.start_at < end,
            Appointment.end_at > start,
        )
        return self.session.scalar(stmt) or 0

    def active_on(self, day: date) -> List[Appointment]:
        day_start, day_end = day_bounds(day)
        stmt = (
            select(Appointment)
            .options(selectinload(Appointment.details))
            .where(
                active_clause(),
                Appointment.start_at >= day_start,
                Appointment.start_at < day_end,
            )
            .order_by(Appointment.start_at)
        )
        return list(self.session.scalars(stmt))

    # --- per-client spam signals ------------------------------------------

    def count_active_for_client(self, client_id: int) -> int:
        stmt = select(func.count(Appointment.id)).where(
            Appointment.client_id == client_id, active_clause()
        )
        return self.session.scalar(stmt) or 0

    def latest_for_client(self, client_id: int) -> Optional[Appointment]:
        stmt = (
            select(Appointment)
            .where(Appointment.client_id == client_id)
            .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            .limit(1)
        )
        return self.session.scalar(stmt)

    def count_created_on(self, client_id: int, day: date) -> int:
        day_start, day_end = day_bounds(day)
        stmt = select(func.count(Appointment.id)).where(
            Appointment.client_id == client_id,
            Appointment.created_at >= day_start,
            Appointment.created_at < day_end,
        )
        return self.session.scalar(stmt) or 0

    def has_duplicate(self, client_id: int, staff_id: int, start: datetime) -> bool:
        stmt = select(Appointment.id).where(
            Appointment.client_id == client_id,
            Appointment.staff_id == staff_id,
            Appointment.start_at == start,
            active_clause(),
        )
        return self.session.scalar(stmt.limit(1)) is not None

    # --- details -----------------------------------------------------------

    def detail_duration_minutes(self, appointment_id: int) -> int:
        stmt = (
            select(func.coalesce(func.sum(Service.duration_minutes), 0))
            .select_from(AppointmentDetail)
            .join(Service, AppointmentDetail.service_id == Service.id)
            .where(AppointmentDetail.appointment_id == appointment_id)
        )
        return int(self.session.scalar(stmt) or 0)

    def add(self, appointment: Appointment, services: Sequence[Service]) -> Appointment:
        """Stage an appointment with one price-snapshot detail per service."""
        self.session.add(appointment)
        self.session.flush()
        for service in services:
            self.session.add(
                AppointmentDetail(
                    appointment_id=appointment.id,
                    service_id=service.id,
                    service_price=service.price,
                )
            )
        self.session.flush()
        return appointment


class StaffRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_bookable(self, staff_id: int) -> Optional[User]:
        user = self.session.get(User, staff_id)
        if user is None or not user.is_active or user.role not in STAFF_ROLES:
            return None
        return user

    def list_bookable(self) -> List[User]:
        stmt = (
            select(User)
            .where(User.role.in_(STAFF_ROLES), User.is_active.is_(True))
            .order_by(User.id)
        )
        return list(self.session.scalars(stmt))


class ServiceCatalog:
    def __init__(self, session: Session):
        self.session = session

    def get_many(self, service_ids: Iterable[int]) -> List[Service]:
        ids = list(service_ids)
        if not ids:
            return []
        stmt = select(Service).where(Service.id.in_(set(ids)), Service.is_active.is_(True))
        by_id = {service.id: service for service in self.session.scalars(stmt)}
        # Request order, each service once.
        return [by_id[i] for i in dict.fromkeys(ids) if i in by_id]

    @staticmethod
    def totals(services: Sequence[Service]):
        duration = sum(int(service.duration_minutes) for service in services)
        amount = sum((Decimal(service.price) for service in services), Decimal("0"))
        return duration, amount
