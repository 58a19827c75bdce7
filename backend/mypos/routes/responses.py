# Overview: Shared JSON error responses for ledger routes.

from flask import current_app, jsonify

from ..errors import LedgerError, ReferentialError, StorageFailure, ValidationError


def ledger_error_response(exc: LedgerError):
    """
    Map a ledger error onto an HTTP status:
    ValidationError -> 400, ReferentialError -> 404, StorageFailure -> 503.
    """
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, ReferentialError):
        status = 404
    elif isinstance(exc, StorageFailure):
        status = 503
    else:
        status = 500
    return jsonify(exc.to_dict()), status


def internal_error_response(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500


def not_found_response(message: str):
    return jsonify({"error": message, "code": "NOT_FOUND", "details": {}}), 404
