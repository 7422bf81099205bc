import logging
import math
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .errors import DuplicateBookingError, RateLimitError
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)

MAX_ACTIVE_APPOINTMENTS = 3
MIN_SECONDS_BETWEEN_BOOKINGS = 5
MAX_BOOKINGS_PER_DAY = 5


class SpamGuard:
    """Per-client booking limits, checked before any booking mutation."""

    def __init__(
        self,
        session: Session,
        repository: Optional[AppointmentRepository] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repository = repository or AppointmentRepository(session)
        self.clock = clock

    def check(
        self,
        client_id: int,
        staff_id: Optional[int] = None,
        start: Optional[datetime] = None,
    ) -> None:
        self.check_active_limit(client_id)
        self.check_cooldown(client_id)
        self.check_daily_limit(client_id)
        if staff_id is not None and start is not None:
            self.check_duplicate(client_id, staff_id, start)

    def check_active_limit(self, client_id: int) -> None:
        active = self.repository.count_active_for_client(client_id)
        if active >= MAX_ACTIVE_APPOINTMENTS:
            logger.info("Client %s blocked: %s active bookings", client_id, active)
            raise RateLimitError(
                f"Booking limit reached. You have {MAX_ACTIVE_APPOINTMENTS} active bookings.",
                error="Maximum pending appointments exceeded",
                current_pending=active,
                max_allowed=MAX_ACTIVE_APPOINTMENTS,
            )

    def check_cooldown(self, client_id: int) -> None:
        latest = self.repository.latest_for_client(client_id)
        if latest is None or latest.created_at is None:
            return
        elapsed = (self.clock() - latest.created_at).total_seconds()
        if elapsed < MIN_SECONDS_BETWEEN_BOOKINGS:
            wait = max(1, math.ceil(MIN_SECONDS_BETWEEN_BOOKINGS - elapsed))
            logger.info("Client %s booking too quickly, retry in %ss", client_id, wait)
            raise RateLimitError(
                f"Please wait {wait} seconds before making another booking.",
                retry_after=wait,
                error="Booking too quickly",
                wait_seconds=wait,
            )

    def check_daily_limit(self, client_id: int) -> None:
        today = self.clock().date()
        created = self.repository.count_created_on(client_id, today)
        if created >= MAX_BOOKINGS_PER_DAY:
            logger.info("Client %s reached %s bookings today", client_id, created)
            raise RateLimitError(
                f"You have reached the maximum bookings per day ({MAX_BOOKINGS_PER_DAY}).",
                error="Daily booking limit exceeded",
                current_today=created,
                max_allowed=MAX_BOOKINGS_PER_DAY,
            )

    def check_duplicate(self, client_id: int, staff_id: int, start: datetime) -> None:
        if self.repository.has_duplicate(client_id, staff_id, start):
            raise DuplicateBookingError(
                "You already have a booking at this time with this staff.",
                staff_id=staff_id,
                start=start.isoformat(),
            )
