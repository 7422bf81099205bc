from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from .errors import ScheduleConflictError
from .repository import AppointmentRepository


class ConflictDetector:
    """Staff-level overlap check on half-open intervals."""

    def __init__(self, session: Session, repository: Optional[AppointmentRepository] = None):
        self.repository = repository or AppointmentRepository(session)

    def find_conflicts(
        self,
        staff_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> List[Appointment]:
        return self.repository.overlapping_for_staff(
            staff_id, start, end, exclude_appointment_id
        )

    def has_conflict(
        self,
        staff_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        return bool(self.find_conflicts(staff_id, start, end, exclude_appointment_id))

    def ensure_free(
        self,
        staff_id: int,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
        message: str = "The selected stylist is busy at this time.",
    ) -> None:
        conflicts = self.find_conflicts(staff_id, start, end, exclude_appointment_id)
        if conflicts:
            raise ScheduleConflictError(
                message,
                staff_id=staff_id,
                requested={"start": start.isoformat(), "end": end.isoformat()},
                conflicts=[
                    {
                        "appointment_id": apt.id,
                        "start": apt.start_at.isoformat(),
                        "end": apt.end_at.isoformat(),
                    }
                    for apt in conflicts
                ],
            )
