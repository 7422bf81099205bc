# Salon-wide capacity: dashboard, open slots, ad-hoc checks and settings
import datetime

from flask import Blueprint, current_app, jsonify, request

from salon_booking.api.booking.helpers import (
    booking_error_response,
    parse_date,
    parse_datetime,
    parse_int,
    serialize_appointment,
    server_error_response,
)
from salon_booking.extensions import db
from salon_booking.services.scheduling.capacity import CapacityGuard
from salon_booking.services.scheduling.errors import BookingError, ValidationError
from salon_booking.services.scheduling.settings import SalonSettings
from salon_booking.utils.auth import role_required

capacity_bp = Blueprint("capacity", __name__, url_prefix="/api/capacity")


def _guard():
    clock = current_app.extensions.get("booking_clock", datetime.datetime.now)
    return CapacityGuard(db.session, clock=clock), clock


@capacity_bp.route("/dashboard", methods=["GET"])
@role_required("Stylist", "Admin")
def dashboard():
    """
    Capacity overview for one day
    ---
    tags:
      - Capacity
    parameters:
      - in: query
        name: date
        type: string
        required: false
        description: Day to report on (YYYY-MM-DD); defaults to today
    responses:
      200:
        description: Settings, current load, hourly breakdown, peak hours and recommendations
      400:
        description: Malformed date
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        guard, clock = _guard()
        day = parse_date(request.args.get("date"), default=clock().date())
        report = guard.dashboard(day)
        report["appointments"] = [serialize_appointment(apt) for apt in report["appointments"]]
        return jsonify({"status": "success", "data": report}), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to load capacity dashboard")


@capacity_bp.route("/available-slots", methods=["GET"])
@role_required()
def available_slots():
    """
    Open 30-minute slots for a service duration
    ---
    tags:
      - Capacity
    parameters:
      - in: query
        name: date
        type: string
        required: true
      - in: query
        name: duration
        type: integer
        required: false
        description: Service length in minutes (default 60, minimum 15)
    responses:
      200:
        description: Slots that still have at least one free station
      400:
        description: Missing or malformed parameters
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        guard, _ = _guard()
        day = parse_date(request.args.get("date"))
        duration = parse_int(request.args.get("duration", 60), "duration", minimum=15)
        slots = guard.available_slots(day, duration)
        return jsonify({
            "status": "success",
            "data": {
                "date": day.isoformat(),
                "duration": duration,
                "available_slots": slots,
                "total_slots": len(slots)
            }
        }), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to load available slots")


@capacity_bp.route("/check", methods=["POST"])
@role_required()
def check_capacity():
    """
    Check whether a time range still fits the salon's capacity
    ---
    tags:
      - Capacity
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - start_at
          properties:
            start_at:
              type: string
              example: "2026-11-02T10:00:00"
            duration:
              type: integer
              example: 60
    responses:
      200:
        description: Daily and concurrent load for the range
      400:
        description: Validation failed
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        start = parse_datetime(data.get("start_at"), "start_at")
        duration = parse_int(data.get("duration", 60), "duration", minimum=15)
        guard, _ = _guard()
        snapshot = guard.snapshot(start, start + datetime.timedelta(minutes=duration))
        return jsonify({"status": "success", "data": snapshot}), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to check capacity")


@capacity_bp.route("/settings", methods=["GET"])
@role_required("Admin")
def get_settings():
    """
    List salon settings
    ---
    tags:
      - Capacity
    responses:
      200:
        description: Stored settings with their types and descriptions
      403:
        description: Admin only
    """
    try:
        settings = SalonSettings(db.session)
        return jsonify({
            "status": "success",
            "data": [
                {
                    "key": row.key,
                    "value": row.value,
                    "type": row.type,
                    "description": row.description,
                }
                for row in settings.rows()
            ],
            "effective": settings.all()
        }), 200
    except Exception as e:
        return server_error_response(e, "Failed to load settings")


@capacity_bp.route("/settings", methods=["PUT"])
@role_required("Admin")
def update_settings():
    """
    Update existing salon settings
    ---
    tags:
      - Capacity
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - settings
          properties:
            settings:
              type: array
              items:
                type: object
                properties:
                  key:
                    type: string
                    example: max_concurrent_appointments
                  value:
                    example: 6
    responses:
      200:
        description: Settings updated
      400:
        description: Validation failed
        schema:
          $ref: '#/definitions/Error'
      404:
        description: Unknown setting key
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        updates = data.get("settings")
        if not isinstance(updates, list) or not updates:
            raise ValidationError(
                "settings must be a non-empty list", errors={"settings": "required"}
            )
        values = SalonSettings(db.session).update_existing(updates)
        db.session.commit()
        current_app.logger.info(f"Salon settings updated: {[u.get('key') for u in updates]}")
        return jsonify({
            "status": "success",
            "message": "Settings updated successfully",
            "data": values
        }), 200
    except BookingError as e:
        db.session.rollback()
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to update settings")
