# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def require_auth(f):
    """
    Require a bearer token and establish the acting identity.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.store_id: The store the token was issued for
    - g.session_context: The full SessionContext object

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User or store deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.store_id = context.store_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function
