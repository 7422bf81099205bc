# Coupon catalog administration and discount preview
import datetime

from flask import Blueprint, current_app, g, jsonify, request

from salon_booking.api.booking.helpers import (
    booking_error_response,
    parse_int,
    server_error_response,
)
from salon_booking.extensions import db
from salon_booking.services.scheduling.coupons import CouponEngine, CouponRepository, to_money
from salon_booking.services.scheduling.errors import BookingError, ValidationError
from salon_booking.utils.auth import role_required

coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


def _engine():
    clock = current_app.extensions.get("booking_clock", datetime.datetime.now)
    return CouponEngine(CouponRepository(db.session), today=lambda: clock().date())


@coupons_bp.route("", methods=["GET"])
@role_required()
def list_available_coupons():
    """
    Coupons the caller can currently use
    ---
    tags:
      - Coupons
    responses:
      200:
        description: Unexpired coupons; customers only see public coupons and their own
    """
    try:
        engine = _engine()
        coupons = engine.list_available()
        if g.actor.is_client:
            coupons = [c for c in coupons if c.is_public or c.customer_id == g.actor.id]
        return jsonify({
            "status": "success",
            "data": [c.to_dict() for c in coupons]
        }), 200
    except Exception as e:
        return server_error_response(e, "Failed to load coupons")


@coupons_bp.route("/all", methods=["GET"])
@role_required("Admin")
def list_all_coupons():
    """
    Every coupon, including expired ones
    ---
    tags:
      - Coupons
    responses:
      200:
        description: All coupons with an is_expired flag
      403:
        description: Admin only
    """
    try:
        engine = _engine()
        today = engine.today()
        return jsonify({
            "status": "success",
            "data": [c.to_dict(today) for c in engine.list_all()]
        }), 200
    except Exception as e:
        return server_error_response(e, "Failed to load coupons")


@coupons_bp.route("", methods=["POST"])
@role_required("Admin")
def create_coupon():
    """
    Create a coupon
    ---
    tags:
      - Coupons
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - code
            - type
            - value
            - expiry_date
            - description
          properties:
            code:
              type: string
              example: SUMMER15
            type:
              type: string
              enum: [percentage, fixed]
            value:
              type: number
              example: 15
            min_amount:
              type: number
              example: 0
            expiry_date:
              type: string
              example: "2026-12-31"
            description:
              type: string
            customer_id:
              type: integer
              description: Restrict the coupon to one customer
    responses:
      201:
        description: Coupon created
      400:
        description: Validation failed
        schema:
          $ref: '#/definitions/Error'
      422:
        description: Coupon code already exists
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        coupon = _engine().create(data)
        db.session.commit()
        current_app.logger.info(f"Coupon {coupon.code} created")
        return jsonify({
            "status": "success",
            "message": "Coupon created successfully",
            "data": coupon.to_dict()
        }), 201
    except BookingError as e:
        db.session.rollback()
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to create coupon")


@coupons_bp.route("/<string:code>", methods=["PUT"])
@role_required("Admin")
def update_coupon(code):
    """
    Update a coupon; the code itself cannot change
    ---
    tags:
      - Coupons
    parameters:
      - in: path
        name: code
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
    responses:
      200:
        description: Coupon updated
      400:
        description: Validation failed
        schema:
          $ref: '#/definitions/Error'
      404:
        description: Coupon not found
    """
    try:
        data = request.get_json(silent=True) or {}
        coupon = _engine().update(code, data)
        db.session.commit()
        return jsonify({
            "status": "success",
            "message": "Coupon updated successfully",
            "data": coupon.to_dict()
        }), 200
    except BookingError as e:
        db.session.rollback()
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to update coupon")


@coupons_bp.route("/<string:code>", methods=["DELETE"])
@role_required("Admin")
def delete_coupon(code):
    """
    Delete a coupon
    ---
    tags:
      - Coupons
    parameters:
      - in: path
        name: code
        type: string
        required: true
    responses:
      200:
        description: Coupon deleted
      404:
        description: Coupon not found
    """
    try:
        _engine().delete(code)
        db.session.commit()
        current_app.logger.info(f"Coupon {code} deleted")
        return jsonify({
            "status": "success",
            "message": "Coupon deleted successfully"
        }), 200
    except BookingError as e:
        db.session.rollback()
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to delete coupon")


@coupons_bp.route("/validate", methods=["POST"])
@role_required()
def validate_coupon():
    """
    Preview the discount a coupon gives on an order total
    ---
    tags:
      - Coupons
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - code
            - total_amount
          properties:
            code:
              type: string
              example: WELCOME10
            total_amount:
              type: number
              example: 100000
            client_id:
              type: integer
              description: Customer to validate for when staff preview on their behalf
    responses:
      200:
        description: Coupon is valid; discount and final amount returned
      400:
        description: Missing fields
        schema:
          $ref: '#/definitions/Error'
      422:
        description: Coupon is unknown, expired, restricted or below its minimum
        schema:
          $ref: '#/definitions/Error'
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("total_amount") is None:
            raise ValidationError(
                "total_amount is required", errors={"total_amount": "required"}
            )
        total = to_money(data["total_amount"])
        if total < 0:
            raise ValidationError(
                "total_amount must be zero or more", errors={"total_amount": "min:0"}
            )
        if g.actor.is_client:
            client_id = g.actor.id
        else:
            client_id = parse_int(data.get("client_id"), "client_id", required=False)

        result = _engine().validate(data.get("code"), total, client_id)
        return jsonify({
            "status": "success",
            "message": result.message,
            "data": {
                "code": result.code,
                "description": result.description,
                "total_amount": float(total),
                "discount": float(result.discount),
                "final_amount": float(result.final_amount)
            }
        }), 200
    except BookingError as e:
        return booking_error_response(e)
    except Exception as e:
        return server_error_response(e, "Failed to validate coupon")
