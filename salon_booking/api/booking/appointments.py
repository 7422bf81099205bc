# Book, reschedule, cancel appointments and check staff availability
from flask import Blueprint, g, jsonify, request

from salon_booking.api.booking.helpers import (
    booking_error_response,
    get_orchestrator,
    parse_date,
    parse_datetime,
    parse_int,
    parse_optional_str,
    serialize_appointment,
    server_error_response,
)
from salon_booking.services.scheduling.errors import BookingError, ValidationError
from salon_booking.services.scheduling.orchestrator import BookingRequest
from salon_booking.utils.auth import role_required

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


@appointments_bp.route("/availability", methods=["GET"])
@role_required()
def check_availability():
    """
    Check a staff member's busy slots for one day
    ---
    tags:
      - Appointments
    parameters:
      - in: query
        name: date
        type: string
        required: true
        description: Day to check (YYYY-MM-DD)
      - in: query
        name: staff_id
        type: integer
        required: true
        description: Stylist or Admin to check
    responses:
      200:
        description: Busy slots and availability statistics for the day
        schema:
          type: object
          properties:
            status:
              type: string
              example: success
            data:
              type: object
              properties:
                date:
                  type: string
                busy_slots:
                  type: array
                  items:
                    type: object
                statistics:
                  type: object
                is_available:
                  type: boolean
      400:
        description: Missing or malformed query parameters
        schema:
          $ref: '#/definitions/Error'
      404:
        description: Invalid staff member
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        day = parse_date(request.args.get("date"))
        staff_id = parse_int(request.args.get("staff_id"), "staff_id")
        report, _ = get_orchestrator().check_availability(day, staff_id)
        return jsonify({"status": "success", "data": report}), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to check availability")


@appointments_bp.route("", methods=["POST"])
@role_required("Client", "Stylist", "Admin")
def create_appointment():
    """
    Book an appointment for one or more services
    ---
    tags:
      - Appointments
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - start_at
            - service_ids
          properties:
            start_at:
              type: string
              example: "2026-11-02T10:00:00"
            service_ids:
              type: array
              items:
                type: integer
              example: [1, 2]
            staff_id:
              type: integer
              description: Omit to auto-assign the first free staff member
            client_id:
              type: integer
              description: Required when a Stylist or Admin books for a customer
            coupon_code:
              type: string
              example: WELCOME10
            notes:
              type: string
    responses:
      201:
        description: Appointment booked; capacity_warning is present when the salon is near capacity
      400:
        description: Validation failed
        schema:
          $ref: '#/definitions/Error'
      404:
        description: Staff member or client not found
        schema:
          $ref: '#/definitions/Error'
      422:
        description: Schedule conflict, capacity exceeded, invalid coupon or no staff available
        schema:
          $ref: '#/definitions/Error'
      429:
        description: Booking rate limit reached
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}

        service_ids = data.get("service_ids")
        if not isinstance(service_ids, list) or not service_ids:
            raise ValidationError(
                "service_ids must be a non-empty list",
                errors={"service_ids": "required"},
            )
        booking = BookingRequest(
            start=parse_datetime(data.get("start_at"), "start_at"),
            service_ids=[parse_int(sid, "service_ids", minimum=1) for sid in service_ids],
            staff_id=parse_int(data.get("staff_id"), "staff_id", required=False),
            coupon_code=parse_optional_str(data.get("coupon_code"), "coupon_code", max_length=50),
            client_id=parse_int(data.get("client_id"), "client_id", required=False),
            notes=parse_optional_str(data.get("notes"), "notes"),
        )

        outcome = get_orchestrator().create(g.actor, booking)

        body = {
            "status": "success",
            "message": "Appointment booked successfully",
            "data": serialize_appointment(outcome.appointment),
        }
        if outcome.coupon is not None:
            body["coupon"] = {
                "code": outcome.coupon.code,
                "discount": float(outcome.coupon.discount),
                "final_amount": float(outcome.coupon.final_amount),
                "message": outcome.coupon.message,
            }
        if outcome.capacity_warning is not None:
            body["capacity_warning"] = outcome.capacity_warning
        return jsonify(body), 201

    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to create appointment")


@appointments_bp.route("/mine", methods=["GET"])
@role_required("Client")
def my_appointments():
    """
    List the signed-in customer's appointments, newest first
    ---
    tags:
      - Appointments
    responses:
      200:
        description: The customer's appointments
      401:
        description: Unauthenticated
    """
    try:
        appointments = get_orchestrator().list_for(g.actor)
        return jsonify({
            "status": "success",
            "data": [serialize_appointment(apt) for apt in appointments]
        }), 200
    except Exception as e:
        return server_error_response(e, "Failed to load appointments")


@appointments_bp.route("", methods=["GET"])
@role_required("Stylist", "Admin")
def list_appointments():
    """
    List appointments: a Stylist sees their own, an Admin sees all
    ---
    tags:
      - Appointments
    responses:
      200:
        description: Appointments visible to the caller
      403:
        description: Caller is not staff
    """
    try:
        appointments = get_orchestrator().list_for(g.actor)
        return jsonify({
            "status": "success",
            "data": [serialize_appointment(apt) for apt in appointments]
        }), 200
    except Exception as e:
        return server_error_response(e, "Failed to load appointments")


@appointments_bp.route("/<int:appointment_id>", methods=["GET"])
@role_required()
def get_appointment(appointment_id):
    """
    Get one appointment
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        type: integer
        required: true
    responses:
      200:
        description: The appointment
      403:
        description: A customer asked for someone else's appointment
      404:
        description: Appointment not found
    """
    try:
        appointment = get_orchestrator().get(g.actor, appointment_id)
        return jsonify({"status": "success", "data": serialize_appointment(appointment)}), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to load appointment")


@appointments_bp.route("/<int:appointment_id>", methods=["PUT"])
@role_required()
def reschedule_appointment(appointment_id):
    """
    Move a pending appointment to a new start time
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        type: integer
        required: true
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
              example: "2026-11-02T14:00:00"
    responses:
      200:
        description: Appointment rescheduled; duration is kept
      400:
        description: Not pending, or start time invalid
        schema:
          $ref: '#/definitions/Error'
      403:
        description: Not the owner
      404:
        description: Appointment not found
      422:
        description: The new time conflicts with another appointment
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        new_start = parse_datetime(data.get("start_at"), "start_at")
        appointment = get_orchestrator().reschedule(g.actor, appointment_id, new_start)
        return jsonify({
            "status": "success",
            "message": "Appointment updated successfully",
            "data": serialize_appointment(appointment)
        }), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to update appointment")


@appointments_bp.route("/<int:appointment_id>/cancel", methods=["POST"])
@role_required()
def cancel_appointment(appointment_id):
    """
    Cancel an appointment that is still Pending or Confirmed
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        type: integer
        required: true
    responses:
      200:
        description: Appointment cancelled
      400:
        description: Appointment is already Completed or Cancelled
        schema:
          $ref: '#/definitions/Error'
      403:
        description: Not the owner
      404:
        description: Appointment not found
    """
    try:
        appointment = get_orchestrator().cancel(g.actor, appointment_id)
        return jsonify({
            "status": "success",
            "message": "Appointment cancelled successfully",
            "data": serialize_appointment(appointment)
        }), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to cancel appointment")


@appointments_bp.route("/<int:appointment_id>/status", methods=["PATCH"])
@role_required("Stylist", "Admin")
def update_status(appointment_id):
    """
    Change an appointment's status
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status:
              type: string
              enum: [Pending, Confirmed, Completed, Cancelled]
    responses:
      200:
        description: Status updated; revenue_info is present when the appointment was completed
      400:
        description: Unknown status or illegal transition
        schema:
          $ref: '#/definitions/Error'
      403:
        description: Caller is not staff
      404:
        description: Appointment not found
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get("status"):
            raise ValidationError("status is required", errors={"status": "required"})

        outcome = get_orchestrator().update_status(g.actor, appointment_id, data["status"])

        body = {
            "status": "success",
            "message": (
                f"Appointment status updated from {outcome.previous_status} to {outcome.appointment.status}"
                if outcome.changed
                else f"Appointment is already {outcome.appointment.status}"
            ),
            "data": serialize_appointment(outcome.appointment),
        }
        if outcome.revenue is not None:
            body["revenue_info"] = outcome.revenue.to_dict()
        return jsonify(body), 200

    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to update appointment status")
