# Overview: Flask API routes for categories and products; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth
from ..responses import HANDLED_ERRORS, error_response
from ..services import catalog_service
from ..stores import get_store
from ..validation import NotFoundError, require_json


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _include_hidden(param: str) -> bool:
    """Only admins can ask for inactive/unavailable rows."""
    return g.current_user.is_admin and request.args.get(param, "").lower() == "true"


# =============================================================================
# CATEGORIES
# =============================================================================

@catalog_bp.get("/categories")
@require_auth
def list_categories_route():
    try:
        categories = get_store().list_categories(include_inactive=_include_hidden("include_inactive"))
        return jsonify({"categories": [c.to_dict() for c in categories]}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.post("/categories")
@require_auth
@require_admin
def create_category_route():
    try:
        data = catalog_service.validate_category(require_json(request.get_json(silent=True)))
        category = get_store().create_category(data)
        return jsonify({"category": category.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/categories/<category_id>")
@require_auth
@require_admin
def update_category_route(category_id):
    try:
        data = catalog_service.validate_category(require_json(request.get_json(silent=True)), partial=True)
        category = get_store().update_category(category_id, data)
        return jsonify({"category": category.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/categories/<category_id>")
@require_auth
@require_admin
def delete_category_route(category_id):
    try:
        get_store().delete_category(category_id)
        return jsonify({"message": "Category deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRODUCTS
# =============================================================================

@catalog_bp.get("/products")
@require_auth
def list_products_route():
    """
    Query params:
    - category_id: only products in this category
    - include_unavailable: "true" (admins only)
    """
    try:
        products = get_store().list_products(include_unavailable=_include_hidden("include_unavailable"))
        category_id = request.args.get("category_id")
        if category_id:
            products = [p for p in products if p.category_id == category_id]
        return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products/<product_id>")
@require_auth
def get_product_route(product_id):
    try:
        product = get_store().find_product(product_id)
        if product is None or (not product.is_available and not g.current_user.is_admin):
            raise NotFoundError(f"Product {product_id} not found")
        return jsonify({"product": product.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.post("/products")
@require_auth
@require_admin
def create_product_route():
    """
    Request body:
    {
        "name": "Jugo Natural",
        "price": "3.00",
        "category_id": 2,          (optional)
        "stock_quantity": 100,     (optional)
        "min_stock_level": 10,     (optional)
        "allergens": ["gluten"]    (optional)
    }
    """
    try:
        data = catalog_service.validate_product(require_json(request.get_json(silent=True)))
        product = get_store().create_product(data)
        return jsonify({"product": product.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.put("/products/<product_id>")
@require_auth
@require_admin
def update_product_route(product_id):
    try:
        data = catalog_service.validate_product(require_json(request.get_json(silent=True)), partial=True)
        product = get_store().update_product(product_id, data)
        return jsonify({"product": product.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/products/<product_id>")
@require_auth
@require_admin
def delete_product_route(product_id):
    """Products referenced by past orders are hidden instead of deleted."""
    try:
        get_store().delete_product(product_id)
        return jsonify({"message": "Product deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
