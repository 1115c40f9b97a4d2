# Overview: Flask API routes for checkout and orders; parses input and returns JSON responses.

"""
Order API Routes

Checkout turns a cart into an order:
- items in the request body, or the caller's server-side cart when absent
- credit orders charge the account's tab and append a credit_charge entry
- other payment methods leave the balance alone and append a purchase
  audit entry

Order status moves forward only (pending -> confirmed -> preparing ->
ready -> delivered), or to cancelled from any non-final status.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, single_flight
from ..money import to_str
from ..responses import HANDLED_ERRORS, error_response
from ..services import checkout_service, order_service
from ..services.checkout_service import Cart
from ..stores import get_carts, get_store
from ..validation import optional_text, require_json


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/checkout")
@require_auth
@single_flight("checkout")
def checkout_route():
    """
    Place an order.

    Request body:
    {
        "payment_method": "credit",     (cash | card | credit | yape_plin)
        "items": [{"product_id": 1, "quantity": 2}],   (optional)
        "notes": "Sin cebolla",         (optional)
        "receipt_reference": "OP-1234"  (optional, for yape/plin)
    }

    Returns:
        201: Order created; for credit orders includes the new balance
        400: Empty cart, stock problems (details), limit exceeded, ...
        409: Another checkout by the same user is still running
    """
    try:
        data = require_json(request.get_json(silent=True))
        store = get_store()
        account = g.current_user

        server_cart = None
        if data.get("items") is not None:
            cart = Cart.from_payload(data["items"])
        else:
            server_cart = get_carts().get(account.user_id)
            cart = server_cart

        order = checkout_service.checkout(
            store,
            account,
            cart,
            data.get("payment_method"),
            notes=data.get("notes"),
            receipt_reference=data.get("receipt_reference"),
            enforce_limit=current_app.config["CREDIT_LIMIT_ENFORCED"],
        )
        current_app.logger.info(
            "Checkout %s by user %s: %s %s",
            order.order_number, account.user_id, order.payment_method, to_str(order.total_amount),
        )

        body = {"order": order.to_dict()}
        if order.is_credit_order:
            body["user"] = store.get_account(account.user_id).to_dict()
        if server_cart is not None:
            body["cart"] = server_cart.to_dict()
        return jsonify(body), 201

    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to check out")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/")
@require_auth
@require_admin
def list_orders_route():
    """Query params: status (optional)"""
    try:
        status = request.args.get("status")
        if status:
            order_service.validate_status(status)
        orders = get_store().list_orders(status)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/mine")
@require_auth
def my_orders_route():
    try:
        orders = get_store().user_orders(g.current_user.user_id)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list own orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<order_id>")
@require_auth
def get_order_route(order_id):
    try:
        order = get_store().get_order(order_id)
        if not g.current_user.is_admin and order.user_id != g.current_user.user_id:
            return jsonify({"error": "Order not found"}), 404
        return jsonify({"order": order.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<order_id>/status")
@require_auth
@require_admin
def update_status_route(order_id):
    """
    Move an order along its flow.

    Request body: {"status": "confirmed", "cancellation_reason": "..."}
    Cancelling a credit order reverses its whole charge on the balance.
    """
    try:
        data = require_json(request.get_json(silent=True))
        status = order_service.validate_status(data.get("status"))
        reason = optional_text(data.get("cancellation_reason"), "cancellation_reason", max_length=500)
        order = get_store().update_order_status(
            order_id, status, reason=reason, actor_id=g.current_user.user_id,
        )
        current_app.logger.info("Order %s -> %s by %s", order.order_number, status, g.current_user.user_id)
        return jsonify({"order": order.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
