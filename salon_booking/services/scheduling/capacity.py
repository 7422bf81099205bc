"""Salon-wide capacity limits: appointments per day and simultaneous stations."""

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .errors import CapacityExceededError
from .intervals import TimeRange, iter_slots, parse_clock
from .repository import AppointmentRepository
from .settings import SalonSettings

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
DAILY_LOOKAHEAD_DAYS = 7


def percentage(current: int, maximum: int) -> float:
    if maximum <= 0:
        return 100.0
    return round(current / maximum * 100, 1)


def capacity_status(current: int, maximum: int) -> str:
    pct = percentage(current, maximum)
    if pct >= 90:
        return "critical"
    if pct >= 80:
        return "high"
    if pct >= 60:
        return "moderate"
    return "low"


def slot_status(available: int, maximum: int) -> str:
    if available < maximum and percentage(maximum - available, maximum) >= 80:
        return "limited"
    return "available"


class CapacityGuard:
    def __init__(
        self,
        session: Session,
        settings: Optional[SalonSettings] = None,
        repository: Optional[AppointmentRepository] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or SalonSettings(session)
        self.repository = repository or AppointmentRepository(session)
        self.clock = clock

    # --- configuration -----------------------------------------------------

    @property
    def enabled(self) -> bool:
        return bool(self.settings.get("enable_capacity_check"))

    @property
    def max_daily(self) -> int:
        return int(self.settings.get("max_daily_appointments"))

    @property
    def max_concurrent(self) -> int:
        return int(self.settings.get("max_concurrent_appointments"))

    @property
    def warning_threshold(self) -> int:
        return int(self.settings.get("capacity_warning_threshold"))

    def working_window(self, day: date) -> TimeRange:
        start = parse_clock(self.settings.get("working_hours_start"))
        end = parse_clock(self.settings.get("working_hours_end"))
        return TimeRange(datetime.combine(day, start), datetime.combine(day, end))

    # --- checks ------------------------------------------------------------

    def check(self, start: datetime, end: datetime) -> Optional[Dict]:
        """Run the daily then the concurrent check.

        Returns a near-capacity warning (or None) when the booking may proceed.
        """
        if not self.enabled:
            return None
        self.check_daily(start.date())
        concurrent = self.check_concurrent(start, end)
        return self.warning_for(concurrent)

    def check_daily(self, day: date) -> int:
        maximum = self.max_daily
        count = self.repository.count_active_on(day)
        if count >= maximum:
            logger.info("Daily capacity reached for %s (%s/%s)", day, count, maximum)
            raise CapacityExceededError(
                f"The salon is fully booked for this day. Maximum daily appointments ({maximum}) reached.",
                error="Daily capacity exceeded",
                capacity_info={
                    "current_bookings": count,
                    "max_allowed": maximum,
                    "available_slots": 0,
                },
                date=day.isoformat(),
                next_available_slot=self.next_slot_after_full_day(day),
                suggestion="Please choose another date or contact us for waiting list.",
            )
        return count

    def check_concurrent(self, start: datetime, end: datetime) -> int:
        maximum = self.max_concurrent
        count = self.repository.count_overlapping(start, end)
        if count >= maximum:
            logger.info(
                "Concurrent capacity reached for %s-%s (%s/%s)", start, end, count, maximum
            )
            raise CapacityExceededError(
                f"The salon is at full capacity for this time slot. All {maximum} service stations are occupied.",
                error="Concurrent capacity exceeded",
                capacity_info={
                    "current_concurrent": count,
                    "max_capacity": maximum,
                    "available_stations": 0,
                },
                next_available_slot=self.find_next_available_slot(start.date()),
                suggestion="Please choose another time or we can add you to the waiting list.",
            )
        return count

    def warning_for(self, concurrent: int) -> Optional[Dict]:
        maximum = self.max_concurrent
        pct = percentage(concurrent, maximum)
        if pct < self.warning_threshold:
            return None
        return {
            "message": "Salon is near capacity",
            "current_capacity": f"{pct}%",
            "capacity_percentage": pct,
            "current_concurrent": concurrent,
            "max_capacity": maximum,
            "available_stations": max(0, maximum - concurrent),
        }

    # --- suggestions -------------------------------------------------------

    def find_next_available_slot(self, day: date) -> Optional[Dict]:
        maximum = self.max_concurrent
        window = self.working_window(day)
        for slot in iter_slots(window.start, window.end, SLOT_MINUTES, SLOT_MINUTES):
            count = self.repository.count_overlapping(slot.start, slot.end)
            if count < maximum:
                return {
                    "date": slot.start.date().isoformat(),
                    "time": slot.start.strftime("%H:%M"),
                    "datetime": slot.start.isoformat(sep=" "),
                    "available_stations": maximum - count,
                }
        return None

    def next_slot_after_full_day(self, day: date) -> Optional[Dict]:
        """First open slot on the next day that still has daily room."""
        maximum = self.max_daily
        for offset in range(1, DAILY_LOOKAHEAD_DAYS + 1):
            candidate = day + timedelta(days=offset)
            if self.repository.count_active_on(candidate) < maximum:
                slot = self.find_next_available_slot(candidate)
                if slot is not None:
                    return slot
        return None

    def available_slots(self, day: date, duration_minutes: int) -> List[Dict]:
        maximum = self.max_concurrent
        window = self.working_window(day)
        slots = []
        for slot in iter_slots(window.start, window.end, SLOT_MINUTES, duration_minutes):
            count = self.repository.count_overlapping(slot.start, slot.end)
            available = maximum - count
            if available <= 0:
                continue
            slots.append(
                {
                    "time": slot.start.strftime("%H:%M"),
                    "start_time": slot.start.strftime("%H:%M"),
                    "end_time": slot.end.strftime("%H:%M"),
                    "datetime": slot.start.isoformat(sep=" "),
                    "available_stations": available,
                    "max_capacity": maximum,
                    "capacity_percentage": percentage(count, maximum),
                    "status": slot_status(available, maximum),
                }
            )
        return slots

    # --- reporting ---------------------------------------------------------

    def snapshot(self, start: datetime, end: datetime) -> Dict:
        max_daily = self.max_daily
        max_concurrent = self.max_concurrent
        daily = self.repository.count_active_on(start.date())
        concurrent = self.repository.count_overlapping(start, end)
        return {
            "is_available": daily < max_daily and concurrent < max_concurrent,
            "capacity_info": {
                "daily": {
                    "current": daily,
                    "max": max_daily,
                    "available": max_daily - daily,
                    "percentage": percentage(daily, max_daily),
                },
                "concurrent": {
                    "current": concurrent,
                    "max": max_concurrent,
                    "available": max_concurrent - concurrent,
                    "percentage": percentage(concurrent, max_concurrent),
                },
            },
            "time_slot": {
                "start": start.isoformat(sep=" "),
                "end": end.isoformat(sep=" "),
            },
        }

    def hourly_capacity(self, day: date) -> List[Dict]:
        maximum = self.max_concurrent
        window = self.working_window(day)
        hours = []
        current = window.start
        while current < window.end:
            hour_end = current + timedelta(hours=1)
            count = self.repository.count_overlapping(current, hour_end)
            hours.append(
                {
                    "hour": current.strftime("%H:00"),
                    "appointments": count,
                    "capacity_percentage": percentage(count, maximum),
                    "available": max(0, maximum - count),
                }
            )
            current = hour_end
        return hours

    @staticmethod
    def peak_hours(appointments) -> Dict[str, int]:
        counts = Counter(apt.start_at.strftime("%H:00") for apt in appointments)
        return dict(counts.most_common(3))

    @staticmethod
    def recommendations(daily_count: int, max_daily: int, hourly: List[Dict]) -> List[Dict]:
        recommendations = []
        daily_pct = percentage(daily_count, max_daily)
        if daily_pct >= 90:
            recommendations.append(
                {
                    "type": "critical",
                    "message": "Daily capacity is almost full. Consider limiting new bookings.",
                    "action": "restrict_booking",
                }
            )
        elif daily_pct >= 80:
            recommendations.append(
                {
                    "type": "warning",
                    "message": "Daily capacity is high. Monitor closely.",
                    "action": "monitor",
                }
            )

        best = [slot["hour"] for slot in hourly if slot["capacity_percentage"] < 50]
        if best:
            recommendations.append(
                {
                    "type": "info",
                    "message": "Recommend these time slots with lower occupancy",
                    "best_hours": best[:3],
                }
            )
        return recommendations

    def dashboard(self, day: date) -> Dict:
        max_daily = self.max_daily
        max_concurrent = self.max_concurrent
        window = self.working_window(day)
        appointments = self.repository.active_on(day)
        daily_count = len(appointments)
        hourly = self.hourly_capacity(day)

        now = self.clock()
        current_concurrent = 0
        if now.date() == day:
            current_concurrent = self.repository.count_overlapping(
                now, now + timedelta(microseconds=1)
            )

        return {
            "date": day.isoformat(),
            "capacity_settings": {
                "max_concurrent_appointments": max_concurrent,
                "max_daily_appointments": max_daily,
                "capacity_warning_threshold": self.warning_threshold,
                "enable_capacity_check": self.enabled,
                "working_hours": {
                    "start": window.start.strftime("%H:%M"),
                    "end": window.end.strftime("%H:%M"),
                },
            },
            "current_status": {
                "total_appointments_today": daily_count,
                "current_concurrent": current_concurrent,
                "available_daily_slots": max(0, max_daily - daily_count),
                "daily_capacity_percentage": percentage(daily_count, max_daily),
                "status": capacity_status(daily_count, max_daily),
            },
            "appointments": appointments,
            "hourly_capacity": hourly,
            "peak_hours": self.peak_hours(appointments),
            "recommendations": self.recommendations(daily_count, max_daily, hourly),
        }
