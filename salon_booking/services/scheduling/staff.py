import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from .conflicts import ConflictDetector
from .errors import NoStaffAvailableError
from .repository import StaffRepository

logger = logging.getLogger(__name__)


class StaffAssigner:
    """Picks the first free Stylist/Admin in ascending id order."""

    def __init__(
        self,
        session: Session,
        conflicts: Optional[ConflictDetector] = None,
        staff: Optional[StaffRepository] = None,
    ):
        self.conflicts = conflicts or ConflictDetector(session)
        self.staff = staff or StaffRepository(session)

    def assign(self, service_ids: Sequence[int], start: datetime, end: datetime) -> int:
        """Return the lowest-id active staff member free over ``[start, end)``.

        ``service_ids`` is unused; every active stylist can perform every service.
        """
        for member in self.staff.list_bookable():
            if not self.conflicts.has_conflict(member.id, start, end):
                logger.debug("Auto-assigned staff %s for %s-%s", member.id, start, end)
                return member.id
        raise NoStaffAvailableError(
            "No staff available at this time. Please choose another time.",
            requested={"start": start.isoformat(), "end": end.isoformat()},
            service_ids=list(service_ids),
        )
