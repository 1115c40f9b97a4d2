# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login returns the account and a bearer token
- Token must be included in the Authorization header for protected routes
- Self-registration is disabled; admins create accounts (POST /api/users)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..responses import HANDLED_ERRORS, error_response
from ..services.auth_service import normalize_email
from ..stores import get_store
from ..validation import require_json


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Request body: {"email": "...", "password": "..."}
    """
    try:
        data = require_json(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        account, token = get_store().login(
            normalize_email(email),
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        current_app.logger.info("User %s logged in", account.user_id)
        return jsonify({"user": account.to_dict(), "token": token}), 200

    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to log in")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        get_store().logout()
        return jsonify({"message": "Logged out"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to log out")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.post("/forgot-password")
def forgot_password_route():
    """Always answers the same way whether or not the email exists."""
    try:
        data = require_json(request.get_json(silent=True))
        if not data.get("email"):
            return jsonify({"error": "email required"}), 400
        message = get_store().request_password_reset(normalize_email(data["email"]))
        return jsonify({"message": message}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to request password reset")
        return jsonify({"error": "Internal server error"}), 500
