"""
Mapping from service/store errors to JSON responses.

Route handlers catch HANDLED_ERRORS and hand them to error_response();
anything else is logged and answered with a 500 by the handler itself.
"""

from flask import jsonify

from .api_client import BackendError, BackendUnavailable, SessionExpired
from .services.auth_service import AuthError
from .services.balance_service import CreditError
from .services.checkout_service import CheckoutError
from .services.ledger_service import LedgerIntegrityError
from .services.order_service import OrderError
from .services.reservation_service import ReservationError
from .stores.base import UnsupportedOperation
from .validation import ConflictError, NotFoundError, ValidationError

HANDLED_ERRORS = (
    ValidationError,
    ConflictError,
    NotFoundError,
    AuthError,
    CreditError,
    CheckoutError,
    OrderError,
    ReservationError,
    LedgerIntegrityError,
    UnsupportedOperation,
    SessionExpired,
    BackendError,
    BackendUnavailable,
)


def error_response(exc: Exception):
    if isinstance(exc, CheckoutError):
        body = {"error": str(exc)}
        if exc.details:
            body["details"] = exc.details
        return jsonify(body), 400
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc).strip("'\"")}), 404
    if isinstance(exc, (AuthError, SessionExpired)):
        return jsonify({"error": str(exc) or "Session expired"}), 401
    if isinstance(exc, BackendError):
        return jsonify({"error": exc.message, "backend_status": exc.status_code}), 502
    if isinstance(exc, BackendUnavailable):
        return jsonify({"error": str(exc)}), 503
    if isinstance(exc, UnsupportedOperation):
        return jsonify({"error": str(exc)}), 501
    if isinstance(exc, LedgerIntegrityError):
        return jsonify({"error": str(exc)}), 500
    return jsonify({"error": str(exc)}), 400
