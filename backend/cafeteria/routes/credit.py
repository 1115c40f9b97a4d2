# Overview: Flask API routes for the credit ("fiado") console; parses input and returns JSON responses.

"""
Credit Console API Routes

Admins see every credit account (debtors list, history, statement) and can
register payments, adjust balances, and change or toggle credit limits.
Customers can read their own account and pay their own debt.

Every balance change goes through credit_service, which validates first and
lets the store apply balance + ledger entry together.
"""

from decimal import Decimal

from flask import Blueprint, Response, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, single_flight
from ..money import to_str
from ..responses import HANDLED_ERRORS, error_response
from ..services import credit_service, ledger_service
from ..stores import get_store
from ..validation import require_json


credit_bp = Blueprint("credit", __name__, url_prefix="/api/credit")


def _owner_or_admin(user_id) -> bool:
    return g.current_user.is_admin or str(user_id) == g.current_user.user_id


def _forbidden():
    return jsonify({"error": "Access denied"}), 403


def _entry_response(entry, account, status=201):
    return jsonify({
        "transaction": entry.to_dict(),
        "user": account.to_dict(),
        "new_balance": to_str(account.balance),
    }), status


# =============================================================================
# ACCOUNT QUERIES
# =============================================================================

@credit_bp.get("/debtors")
@require_auth
@require_admin
def list_debtors_route():
    """Accounts that owe money, largest debt first."""
    try:
        accounts = credit_service.debtors(get_store())
        total = sum((a.credit.debt for a in accounts), Decimal("0"))
        return jsonify({
            "users": [a.to_dict() for a in accounts],
            "count": len(accounts),
            "total_debt": to_str(total),
        }), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list debtors")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/users/<user_id>")
@require_auth
def get_account_route(user_id):
    if not _owner_or_admin(user_id):
        return _forbidden()
    try:
        return jsonify({"user": get_store().get_account(user_id).to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get credit account")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/users/<user_id>/history")
@require_auth
def history_route(user_id):
    """
    Ledger entries, newest first.

    Query params:
    - limit: max entries (default HISTORY_DEFAULT_LIMIT, capped at 500)
    """
    if not _owner_or_admin(user_id):
        return _forbidden()
    try:
        limit = credit_service.parse_history_limit(
            request.args.get("limit"), current_app.config["HISTORY_DEFAULT_LIMIT"]
        )
        entries = credit_service.history(get_store(), user_id, limit)
        return jsonify({"transactions": [e.to_dict() for e in entries], "count": len(entries)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get credit history")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/users/<user_id>/pending-orders")
@require_auth
def pending_orders_route(user_id):
    if not _owner_or_admin(user_id):
        return _forbidden()
    try:
        orders = get_store().pending_credit_orders(user_id)
        outstanding = sum((o.outstanding for o in orders), Decimal("0"))
        return jsonify({
            "orders": [o.to_dict() for o in orders],
            "count": len(orders),
            "outstanding": to_str(outstanding),
        }), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get pending credit orders")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/users/<user_id>/verify")
@require_auth
@require_admin
def verify_route(user_id):
    """Re-run the balance chain over the account's full history."""
    try:
        result = credit_service.verify_account(get_store(), user_id)
        return jsonify(result), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify credit account")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/users/<user_id>/report")
@require_auth
@require_admin
def statement_route(user_id):
    """
    PDF statement of the account.

    Query params:
    - period: daily | weekly | monthly | all (default all)
    """
    try:
        period = request.args.get("period") or ledger_service.PERIOD_ALL
        pdf = credit_service.statement(get_store(), user_id, period)
        filename = f"estado-cuenta-{user_id}-{period}.pdf"
        return Response(
            pdf,
            mimetype="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build credit statement")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# BALANCE CHANGES
# =============================================================================

@credit_bp.post("/payments")
@require_auth
@require_admin
@single_flight("payment")
def register_payment_route():
    """
    Register a repayment for any credit account.

    Request body:
    {
        "user_id": 2,
        "amount": "20.00",
        "payment_method": "cash",   (cash | card | transfer | yape | plin)
        "order_id": 7,              (optional; otherwise oldest orders first)
        "notes": "..."              (optional)
    }
    """
    try:
        data = require_json(request.get_json(silent=True))
        entry, account = credit_service.register_payment(get_store(), g.current_user, data)
        current_app.logger.info(
            "Payment %s for user %s registered by %s",
            to_str(entry.amount), account.user_id, g.current_user.user_id,
        )
        return _entry_response(entry, account)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register payment")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.post("/my-payments")
@require_auth
@single_flight("payment")
def pay_own_debt_route():
    """Customer pays (part of) their own debt; never more than owed."""
    try:
        data = require_json(request.get_json(silent=True))
        entry, account = credit_service.pay_own_debt(get_store(), g.current_user, data)
        return _entry_response(entry, account)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register own payment")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.post("/users/<user_id>/adjust")
@require_auth
@require_admin
@single_flight("adjustment")
def adjust_route(user_id):
    """
    Manual balance correction.

    Request body: {"amount": "-5.00", "reason": "Cobro duplicado"}
    Positive amounts reduce debt, negative amounts add to it.
    """
    try:
        data = require_json(request.get_json(silent=True))
        entry, account = credit_service.adjust_balance(get_store(), g.current_user, user_id, data)
        current_app.logger.info(
            "Adjustment %s on user %s by %s", to_str(entry.amount), user_id, g.current_user.user_id
        )
        return _entry_response(entry, account)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust balance")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CREDIT LINE SETTINGS
# =============================================================================

@credit_bp.put("/users/<user_id>/limit")
@require_auth
@require_admin
def update_limit_route(user_id):
    """Request body: {"credit_limit": "150.00"}"""
    try:
        data = require_json(request.get_json(silent=True))
        account = credit_service.update_limit(
            get_store(), g.current_user, user_id, data,
            enforce_limit=current_app.config["CREDIT_LIMIT_ENFORCED"],
        )
        return jsonify({"user": account.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update credit limit")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.post("/users/<user_id>/enable")
@require_auth
@require_admin
def enable_credit_route(user_id):
    """Request body (optional): {"credit_limit": "100.00"}"""
    try:
        data = require_json(request.get_json(silent=True))
        account = credit_service.enable_credit(
            get_store(), g.current_user, user_id, data,
            default_limit=Decimal(str(current_app.config["DEFAULT_CREDIT_LIMIT"])),
        )
        return jsonify({"user": account.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to enable credit")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.post("/users/<user_id>/disable")
@require_auth
@require_admin
def disable_credit_route(user_id):
    try:
        account = credit_service.disable_credit(get_store(), g.current_user, user_id)
        return jsonify({"user": account.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to disable credit")
        return jsonify({"error": "Internal server error"}), 500
