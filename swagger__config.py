"""
Swagger/OpenAPI configuration for the Salon Booking API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Salon Booking API",
        "description": "Appointment scheduling and capacity engine: booking, conflict and capacity checks, coupons and status lifecycle",
        "contact": {"email": "support@salonapp.com"},
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/api",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Appointments", "description": "Appointment booking and management"},
        {"name": "Capacity", "description": "Salon-wide capacity and settings"},
        {"name": "Coupons", "description": "Coupon catalog and discount preview"},
        {"name": "Utility", "description": "Service health"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
                "error": {"type": "string", "example": "Schedule conflict"},
            },
        },
        "Success": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
            },
        },
        "Appointment": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "client_id": {"type": "integer"},
                "staff_id": {"type": "integer"},
                "start_at": {"type": "string", "example": "2026-11-02 10:00:00"},
                "end_at": {"type": "string", "example": "2026-11-02 11:30:00"},
                "status": {
                    "type": "string",
                    "enum": ["Pending", "Confirmed", "Completed", "Cancelled"],
                },
                "total_amount": {"type": "number", "format": "float"},
                "discount_amount": {"type": "number", "format": "float"},
                "final_amount": {"type": "number", "format": "float"},
                "coupon_code": {"type": "string"},
                "notes": {"type": "string"},
                "services": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "service_id": {"type": "integer"},
                            "name": {"type": "string"},
                            "duration_minutes": {"type": "integer"},
                            "price": {"type": "number", "format": "float"},
                        },
                    },
                },
            },
        },
        "Coupon": {
            "type": "object",
            "properties": {
                "code": {"type": "string", "example": "WELCOME10"},
                "type": {"type": "string", "enum": ["percentage", "fixed"]},
                "value": {"type": "number", "format": "float"},
                "min_amount": {"type": "number", "format": "float"},
                "expiry_date": {"type": "string", "example": "2026-12-31"},
                "description": {"type": "string"},
                "customer_id": {"type": "integer"},
            },
        },
    },
}
