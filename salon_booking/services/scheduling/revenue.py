import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevenueEvent:
    appointment_id: int
    amount: Decimal
    total_amount: Decimal
    discount_amount: Decimal
    client_id: int
    staff_id: int
    completed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["amount"] = float(self.amount)
        data["revenue_added"] = float(self.amount)
        data["total_amount"] = float(self.total_amount)
        data["discount_amount"] = float(self.discount_amount)
        data["completed_at"] = self.completed_at.isoformat(sep=" ")
        return data


class RevenueSink:
    """Receives revenue-recognition events for completed appointments."""

    def record(self, event: RevenueEvent) -> None:
        raise NotImplementedError


class LoggingRevenueSink(RevenueSink):
    def record(self, event: RevenueEvent) -> None:
        logger.info(
            "Revenue recognized: appointment=%s amount=%s client=%s staff=%s at=%s",
            event.appointment_id,
            event.amount,
            event.client_id,
            event.staff_id,
            event.completed_at,
        )


class InMemoryRevenueSink(RevenueSink):
    def __init__(self):
        self.events: List[RevenueEvent] = []

    def record(self, event: RevenueEvent) -> None:
        self.events.append(event)
