# Overview: Flask API routes for the server-side cart; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..responses import HANDLED_ERRORS, error_response
from ..stores import get_carts, get_store
from ..validation import NotFoundError, ValidationError, require_json


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _cart():
    return get_carts().get(g.current_user.user_id)


@cart_bp.get("/")
@require_auth
def get_cart_route():
    return jsonify({"cart": _cart().to_dict()}), 200


@cart_bp.post("/items")
@require_auth
def add_item_route():
    """
    Add a product to the cart (quantities accumulate).

    Request body: {"product_id": 3, "quantity": 2}
    """
    try:
        data = require_json(request.get_json(silent=True))
        product_id = data.get("product_id")
        if product_id in (None, ""):
            raise ValidationError("product_id is required")

        product = get_store().find_product(str(product_id))
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_available:
            raise ValidationError(f"{product.name} is not available")

        cart = _cart()
        cart.add(product.product_id, data.get("quantity", 1), name=product.name, unit_price=product.price)
        return jsonify({"cart": cart.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.patch("/items/<product_id>")
@require_auth
def update_item_route(product_id):
    """Request body: {"quantity": 3}; zero removes the item."""
    try:
        data = require_json(request.get_json(silent=True))
        if "quantity" not in data:
            raise ValidationError("quantity is required")
        cart = _cart()
        cart.update_quantity(str(product_id), data["quantity"])
        return jsonify({"cart": cart.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/items/<product_id>")
@require_auth
def remove_item_route(product_id):
    cart = _cart()
    cart.remove(str(product_id))
    return jsonify({"cart": cart.to_dict()}), 200


@cart_bp.delete("/")
@require_auth
def clear_cart_route():
    cart = _cart()
    cart.clear()
    return jsonify({"cart": cart.to_dict()}), 200
