# Overview: Flask API routes for the caller's reservations and admin status changes.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth
from ..responses import HANDLED_ERRORS, error_response
from ..services import reservation_service
from ..stores import get_store
from ..validation import optional_text, require_json


reservations_bp = Blueprint("reservations", __name__, url_prefix="/api/reservations")


@reservations_bp.get("/mine")
@require_auth
def my_reservations_route():
    try:
        reservations = get_store().user_reservations(g.current_user.user_id)
        return jsonify({
            "reservations": [r.to_dict() for r in reservations],
            "count": len(reservations),
        }), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list own reservations")
        return jsonify({"error": "Internal server error"}), 500


@reservations_bp.post("/<reservation_id>/cancel")
@require_auth
def cancel_reservation_route(reservation_id):
    """
    Cancel a reservation and release its spot.

    Customers may cancel their own pending reservations; admins any live one.
    Request body (optional): {"reason": "..."}
    """
    try:
        data = require_json(request.get_json(silent=True))
        reservation = get_store().cancel_reservation(
            reservation_id,
            actor_id=g.current_user.user_id,
            is_admin=g.current_user.is_admin,
            reason=optional_text(data.get("reason"), "reason", max_length=500),
        )
        return jsonify({"reservation": reservation.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel reservation")
        return jsonify({"error": "Internal server error"}), 500


@reservations_bp.patch("/<reservation_id>/status")
@require_auth
@require_admin
def update_reservation_status_route(reservation_id):
    """Request body: {"status": "confirmed", "cancellation_reason": "..."}"""
    try:
        data = require_json(request.get_json(silent=True))
        status = reservation_service.validate_status(data.get("status"))
        reservation = get_store().update_reservation_status(
            reservation_id,
            status,
            reason=optional_text(data.get("cancellation_reason"), "cancellation_reason", max_length=500),
        )
        current_app.logger.info(
            "Reservation %s -> %s by %s", reservation_id, status, g.current_user.user_id
        )
        return jsonify({"reservation": reservation.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update reservation status")
        return jsonify({"error": "Internal server error"}), 500
