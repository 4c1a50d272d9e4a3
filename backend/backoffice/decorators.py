# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def require_auth(f):
    """
    Require a valid bearer token and establish the caller's Principal.

    Sets:
    - g.principal: immutable Principal (user, role, tenant, tenant features)
    - g.auth_token: the plaintext token of this request

    Returns 401 if the header is missing, or the token is invalid, expired,
    revoked, or belongs to a deactivated user or tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        principal = session_service.validate_session(token)

        if principal is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.principal = principal
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function
