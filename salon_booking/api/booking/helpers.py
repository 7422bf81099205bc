# Shared request parsing, serialization and error responses for booking routes
import datetime

from flask import current_app, jsonify

from salon_booking.extensions import db
from salon_booking.services.scheduling.errors import (
    RateLimitError,
    ValidationError,
)
from salon_booking.services.scheduling.orchestrator import BookingOrchestrator


def get_orchestrator():
    """Build an orchestrator bound to the request session and the app's clock and revenue sink."""
    return BookingOrchestrator(
        db.session,
        clock=current_app.extensions.get("booking_clock", datetime.datetime.now),
        revenue_sink=current_app.extensions.get("revenue_sink"),
    )


def booking_error_response(e):
    response = jsonify(e.to_dict())
    response.status_code = e.status_code
    if isinstance(e, RateLimitError) and e.retry_after:
        response.headers["Retry-After"] = str(e.retry_after)
    return response


def server_error_response(e, message):
    db.session.rollback()
    current_app.logger.error(f"{message}: {e}")
    return jsonify({
        "status": "error",
        "message": message,
        "details": str(e)
    }), 500


def parse_datetime(value, field):
    """Parse an ISO-8601 timestamp; aware values are converted to local naive time."""
    if not value or not isinstance(value, str):
        raise ValidationError(
            f"{field} is required (ISO format: YYYY-MM-DDTHH:MM:SS)",
            errors={field: "required"},
        )
    try:
        parsed = datetime.datetime.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(
            f"{field} must be in ISO format (YYYY-MM-DDTHH:MM:SS)",
            errors={field: "invalid"},
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_date(value, field="date", default=None):
    if not value:
        if default is not None:
            return default
        raise ValidationError(f"{field} is required (YYYY-MM-DD)", errors={field: "required"})
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be in format YYYY-MM-DD", errors={field: "invalid"})


def parse_int(value, field, required=True, minimum=None):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", errors={field: "required"})
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", errors={field: "invalid"})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", errors={field: "invalid"})
    if minimum is not None and number < minimum:
        raise ValidationError(
            f"{field} must be at least {minimum}", errors={field: f"min:{minimum}"}
        )
    return number


def parse_optional_str(value, field, max_length=None):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", errors={field: "string"})
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters", errors={field: f"max:{max_length}"}
        )
    return value


def _format(value):
    return value.isoformat(sep=" ") if value else None


def serialize_appointment(apt):
    return {
        "id": apt.id,
        "client_id": apt.client_id,
        "client_name": apt.client.name if apt.client else None,
        "staff_id": apt.staff_id,
        "staff_name": apt.staff.name if apt.staff else None,
        "start_at": _format(apt.start_at),
        "end_at": _format(apt.end_at),
        "status": apt.status,
        "total_amount": float(apt.total_amount or 0),
        "discount_amount": float(apt.discount_amount or 0),
        "final_amount": float(apt.final_amount or 0),
        "coupon_code": apt.coupon_code,
        "notes": apt.notes,
        "services": [
            {
                "service_id": detail.service_id,
                "name": detail.service.name if detail.service else None,
                "duration_minutes": detail.service.duration_minutes if detail.service else None,
                "price": float(detail.service_price),
            }
            for detail in apt.details
        ],
        "created_at": _format(apt.created_at),
        "updated_at": _format(apt.updated_at),
    }
