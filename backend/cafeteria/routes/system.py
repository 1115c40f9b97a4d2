# backend/cafeteria/routes/system.py
"""
System health and the caller's dashboard.

/api/health reports whether the configured store (database or remote
backend) answers; /api/dashboard is where non-admin callers of admin
actions are sent.
"""

import time

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_auth
from ..money import to_str
from ..responses import HANDLED_ERRORS, error_response
from ..stores import get_store
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")

DASHBOARD_RECENT_ORDERS = 5


def check_store_health() -> dict:
    start_time = time.time()
    store = get_store()
    try:
        details = store.ping()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "store": store.kind,
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Store health check failed")
        return {
            "status": "unhealthy",
            "store": store.kind,
            "latency_ms": round(elapsed_ms, 2),
            "error": "Store unreachable",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: store healthy
    - 503: store unhealthy
    """
    store_health = check_store_health()
    http_status = 200 if store_health["status"] == "healthy" else 503
    return {
        "status": store_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"store": store_health},
    }, http_status


@system_bp.get("/dashboard")
@require_auth
def dashboard():
    """Account summary, latest orders and live reservations of the caller."""
    try:
        store = get_store()
        account = g.current_user
        orders = store.user_orders(account.user_id)
        reservations = [r for r in store.user_reservations(account.user_id) if not r.is_terminal]

        body = {
            "user": account.to_dict(),
            "recent_orders": [o.to_dict() for o in orders[:DASHBOARD_RECENT_ORDERS]],
            "active_reservations": [r.to_dict() for r in reservations],
        }
        if account.has_credit_account:
            pending = store.pending_credit_orders(account.user_id)
            body["credit"] = {
                "balance": to_str(account.credit.balance),
                "limit": to_str(account.credit.limit),
                "available": to_str(account.credit.available),
                "debt": to_str(account.credit.debt),
                "pending_orders": len(pending),
            }
        return jsonify(body), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500
