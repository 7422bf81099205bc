"""
Bearer-token authentication and role checks for the booking API.

Tokens are HS256 JWTs signed with SECRET_KEY that carry ``user_id``. The
role is always re-read from the users table so a demoted or deactivated
account loses access immediately.
"""

import datetime
from functools import wraps

import jwt
from flask import current_app, g, jsonify, request

from salon_booking.extensions import db
from salon_booking.models import User
from salon_booking.services.scheduling.orchestrator import Actor


def issue_token(user, expires_in_hours=1):
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=expires_in_hours),
    }
    return jwt.encode(
        payload,
        current_app.config["SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def decode_token(token):
    return jwt.decode(
        token,
        current_app.config["SECRET_KEY"],
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
    )


def get_current_actor():
    """Return the Actor for the request's bearer token, or None."""
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    try:
        payload = decode_token(token)
    except jwt.InvalidTokenError as e:
        current_app.logger.info(f"Rejected bearer token: {e}")
        return None

    user = db.session.get(User, payload.get("user_id"))
    if user is None or not user.is_active:
        return None
    return Actor(id=user.id, role=user.role)


def role_required(*roles):
    """Require an authenticated user whose role is one of ``roles``.

    With no roles, any authenticated user passes. The actor is stored on
    ``g.actor`` for the view.
    """

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            actor = get_current_actor()
            if actor is None:
                return jsonify({
                    "status": "error",
                    "message": "Unauthenticated"
                }), 401
            if roles and actor.role not in roles:
                return jsonify({
                    "status": "error",
                    "message": "Forbidden. You do not have permission to access this resource.",
                    "your_role": actor.role,
                    "required_roles": list(roles)
                }), 403
            g.actor = actor
            return view(*args, **kwargs)

        return wrapped

    return decorator
