# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .services.ledger_schemas import LedgerContext


USER_HEADER = "X-User-Id"


def require_user(f):
    """
    Establish the ledger context for a write route.

    Sets g.ledger_context (LedgerContext) from the X-User-Id header.
    Whether the user exists and is active is checked by the ledger operation
    itself, inside its transaction.

    Returns 401 if the header is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(USER_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": f"{USER_HEADER} header required", "code": "USER_REQUIRED"}), 401
        if not raw.isdigit():
            return jsonify({"error": f"{USER_HEADER} must be an integer", "code": "USER_REQUIRED"}), 401

        g.ledger_context = LedgerContext(user_id=int(raw))
        return f(*args, **kwargs)

    return decorated_function
