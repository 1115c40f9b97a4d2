# Overview: Flask API routes for weekly menus and reservations; parses input and returns JSON responses.

"""
Weekly Menu API Routes

Menus carry their reservation capacity (max_reservations, NULL = unlimited)
and a deadline. Every menu in a response is annotated with can_reserve for
the caller: open, not already reserved by them, and not full.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth, single_flight
from ..responses import HANDLED_ERRORS, error_response
from ..services import catalog_service, reservation_service
from ..stores import get_store
from ..validation import optional_text, require_json


menus_bp = Blueprint("menus", __name__, url_prefix="/api/menus")


def _reserved_menu_ids(store) -> set:
    return {r.menu_id for r in store.user_reservations(g.current_user.user_id) if r.is_active}


def _menu_dict(menu, reserved_ids: set) -> dict:
    data = menu.to_dict()
    already = menu.menu_id in reserved_ids
    data["can_reserve"] = reservation_service.can_reserve(menu, already)
    data["already_reserved"] = already
    return data


@menus_bp.get("/")
@require_auth
def list_menus_route():
    try:
        store = get_store()
        reserved = _reserved_menu_ids(store)
        menus = store.list_menus()
        return jsonify({"menus": [_menu_dict(m, reserved) for m in menus], "count": len(menus)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list menus")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.get("/active")
@require_auth
def active_menus_route():
    """Menus from today on that are active, soonest first."""
    try:
        store = get_store()
        reserved = _reserved_menu_ids(store)
        menus = store.active_menus()
        return jsonify({"menus": [_menu_dict(m, reserved) for m in menus], "count": len(menus)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list active menus")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.get("/<menu_id>")
@require_auth
def get_menu_route(menu_id):
    try:
        store = get_store()
        menu = store.get_menu(menu_id)
        return jsonify({"menu": _menu_dict(menu, _reserved_menu_ids(store))}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get menu")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.post("/")
@require_auth
@require_admin
def create_menu_route():
    """
    Request body:
    {
        "menu_date": "2026-10-20",
        "entry_description": "...",
        "main_course_description": "...",
        "drink_description": "...",
        "dessert_description": "...",
        "price": "12.00",
        "max_reservations": 30,                         (optional, omit for unlimited)
        "reservation_deadline": "2026-10-20T10:00:00Z"  (optional)
    }
    """
    try:
        data = catalog_service.validate_menu(require_json(request.get_json(silent=True)))
        menu = get_store().create_menu(data)
        return jsonify({"menu": menu.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create menu")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.put("/<menu_id>")
@require_auth
@require_admin
def update_menu_route(menu_id):
    try:
        data = catalog_service.validate_menu(require_json(request.get_json(silent=True)), partial=True)
        menu = get_store().update_menu(menu_id, data)
        return jsonify({"menu": menu.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update menu")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.delete("/<menu_id>")
@require_auth
@require_admin
def delete_menu_route(menu_id):
    try:
        get_store().delete_menu(menu_id)
        return jsonify({"message": "Menu deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete menu")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# RESERVATIONS
# =============================================================================

@menus_bp.post("/<menu_id>/reservations")
@require_auth
@single_flight("reservation")
def reserve_route(menu_id):
    """
    Reserve a menu for the caller.

    Request body: {"quantity": 1, "notes": "..."}  (both optional)

    Returns:
        201: Reservation created
        400: Menu inactive or past its deadline, invalid quantity
        409: Already reserved, or no spots left
    """
    try:
        data = require_json(request.get_json(silent=True))
        store = get_store()
        menu = store.get_menu(menu_id)
        reservation_service.check_can_reserve(menu, menu.menu_id in _reserved_menu_ids(store))
        draft = reservation_service.build_draft(
            menu,
            g.current_user.user_id,
            data.get("quantity", 1),
            optional_text(data.get("notes"), "notes", max_length=500),
        )
        reservation = store.reserve(draft)
        current_app.logger.info("Menu %s reserved by user %s", menu_id, g.current_user.user_id)
        return jsonify({
            "reservation": reservation.to_dict(),
            "menu": store.get_menu(menu_id).to_dict(),
        }), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reserve menu")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.get("/<menu_id>/reservations")
@require_auth
@require_admin
def menu_reservations_route(menu_id):
    try:
        reservations = get_store().menu_reservations(menu_id)
        return jsonify({
            "reservations": [r.to_dict() for r in reservations],
            "count": len(reservations),
        }), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list menu reservations")
        return jsonify({"error": "Internal server error"}), 500


@menus_bp.get("/<menu_id>/stats")
@require_auth
@require_admin
def menu_stats_route(menu_id):
    try:
        store = get_store()
        menu = store.get_menu(menu_id)
        stats = reservation_service.menu_stats(menu, store.menu_reservations(menu_id))
        return jsonify({"stats": stats}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get menu stats")
        return jsonify({"error": "Internal server error"}), 500
