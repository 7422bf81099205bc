"""Typed key/value salon configuration backed by the salon_settings table."""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...models import SalonSetting
from .errors import NotFoundError, ValidationError
from .intervals import parse_clock

logger = logging.getLogger(__name__)

# key: (default value, type, description)
DEFAULT_SETTINGS = {
    "max_concurrent_appointments": (
        5,
        "integer",
        "Maximum number of concurrent appointments (number of service stations/chairs)",
    ),
    "max_daily_appointments": (30, "integer", "Maximum number of appointments per day"),
    "working_hours_start": ("09:00", "string", "Salon opening time"),
    "working_hours_end": ("18:00", "string", "Salon closing time"),
    "capacity_warning_threshold": (
        80,
        "integer",
        "Show a warning when concurrent capacity reaches this percentage",
    ),
    "enable_capacity_check": (True, "boolean", "Enable salon capacity checks"),
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}
WORKING_HOURS_KEYS = ("working_hours_start", "working_hours_end")


def cast_value(raw: Any, type_: str) -> Any:
    if type_ == "integer":
        return int(raw)
    if type_ == "float":
        return float(raw)
    if type_ == "boolean":
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in _TRUE_STRINGS
    if type_ == "json":
        return raw if not isinstance(raw, str) else json.loads(raw)
    return raw


def serialize_value(value: Any, type_: str) -> str:
    if type_ == "json":
        return json.dumps(value)
    if type_ == "boolean":
        return "1" if cast_value(value, "boolean") else "0"
    return str(value)


def _parse_hours(key: str, value: Any):
    try:
        return parse_clock(str(value))
    except ValueError:
        raise ValidationError(
            f"Setting '{key}' must be a time in HH:MM format", errors={key: "invalid"}
        )


class SalonSettings:
    """Reads settings fresh from the database on every call."""

    def __init__(self, session: Session):
        self.session = session

    def _row(self, key: str) -> Optional[SalonSetting]:
        return self.session.scalar(select(SalonSetting).where(SalonSetting.key == key))

    def get(self, key: str, default: Any = None) -> Any:
        row = self._row(key)
        if row is None:
            if default is None and key in DEFAULT_SETTINGS:
                return DEFAULT_SETTINGS[key][0]
            return default
        try:
            return cast_value(row.value, row.type)
        except (TypeError, ValueError):
            logger.warning("Setting %s has malformed %s value %r", key, row.type, row.value)
            if key in DEFAULT_SETTINGS:
                return DEFAULT_SETTINGS[key][0]
            return default

    def set(
        self,
        key: str,
        value: Any,
        type_: Optional[str] = None,
        pending: Optional[Dict[str, Any]] = None,
    ) -> SalonSetting:
        row = self._row(key)
        if type_ is None:
            type_ = row.type if row is not None else DEFAULT_SETTINGS.get(key, (None, "string"))[1]
        try:
            cast_value(value, type_)
        except (TypeError, ValueError):
            raise ValidationError(
                f"Setting '{key}' expects a value of type {type_}", key=key, type=type_
            )
        if key in WORKING_HOURS_KEYS:
            value = self._check_working_hours(key, value, pending or {})
        if row is None:
            description = DEFAULT_SETTINGS.get(key, (None, None, None))[2]
            row = SalonSetting(key=key, type=type_, description=description)
            self.session.add(row)
        row.type = type_
        row.value = serialize_value(value, type_)
        row.updated_at = datetime.now()
        return row

    def _check_working_hours(self, key: str, value: Any, pending: Dict[str, Any]) -> str:
        """Validate an "HH:MM" opening or closing time against its counterpart."""
        parsed = _parse_hours(key, value)
        other_key = "working_hours_end" if key == "working_hours_start" else "working_hours_start"
        other = _parse_hours(other_key, pending.get(other_key, self.get(other_key)))
        start, end = (parsed, other) if key == "working_hours_start" else (other, parsed)
        if end <= start:
            raise ValidationError(
                "working_hours_end must be after working_hours_start",
                errors={key: "invalid_range"},
            )
        return parsed.strftime("%H:%M")

    def update_existing(self, updates: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Apply ``[{"key": ..., "value": ...}]``; every key must already exist."""
        pending = {
            item["key"]: item["value"]
            for item in updates
            if isinstance(item, dict) and item.get("key") in WORKING_HOURS_KEYS and "value" in item
        }
        for item in updates:
            if not isinstance(item, dict) or not item.get("key") or "value" not in item:
                raise ValidationError("Each setting needs a key and a value", setting=item)
            key = item["key"]
            row = self._row(key)
            if row is None:
                raise NotFoundError(f"Unknown setting '{key}'", key=key)
            self.set(key, item["value"], row.type, pending=pending)
        return self.all()

    def rows(self) -> List[SalonSetting]:
        return list(self.session.scalars(select(SalonSetting).order_by(SalonSetting.key)))

    def all(self) -> Dict[str, Any]:
        values = {key: default for key, (default, _, _) in DEFAULT_SETTINGS.items()}
        for row in self.rows():
            try:
                values[row.key] = cast_value(row.value, row.type)
            except (TypeError, ValueError):
                logger.warning("Skipping malformed setting %s", row.key)
        return values

    def seed_defaults(self) -> int:
        """Insert any missing default settings; returns how many were added."""
        added = 0
        for key, (default, type_, _) in DEFAULT_SETTINGS.items():
            if self._row(key) is None:
                self.set(key, default, type_)
                added += 1
        return added
