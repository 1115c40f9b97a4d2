# Overview: Flask API routes for user administration; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth
from ..responses import HANDLED_ERRORS, error_response
from ..services import auth_service
from ..stores import get_store
from ..validation import require_json


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/")
@require_auth
@require_admin
def list_users_route():
    try:
        accounts = get_store().list_accounts()
        return jsonify({"users": [a.to_dict() for a in accounts], "count": len(accounts)}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list users")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("/")
@require_auth
@require_admin
def create_user_route():
    """
    Create an account.

    Request body:
    {
        "email": "maria@estudiante.com",
        "full_name": "María García",
        "password": "Cafeteria123",
        "role": "customer",            (optional, default customer)
        "phone": "999 999 999",        (optional)
        "credit_limit": "100.00"       (optional; enables the credit tab)
    }
    """
    try:
        data = auth_service.validate_new_user(require_json(request.get_json(silent=True)))
        account = get_store().create_account(data)
        current_app.logger.info("User %s created by %s", account.user_id, g.current_user.user_id)
        return jsonify({"user": account.to_dict()}), 201
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<user_id>")
@require_auth
@require_admin
def get_user_route(user_id):
    try:
        return jsonify({"user": get_store().get_account(user_id).to_dict()}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<user_id>")
@require_auth
@require_admin
def delete_user_route(user_id):
    try:
        if str(user_id) == g.current_user.user_id:
            return jsonify({"error": "You cannot delete your own account"}), 400
        get_store().delete_account(user_id)
        current_app.logger.info("User %s deleted by %s", user_id, g.current_user.user_id)
        return jsonify({"message": "User deleted"}), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.post("/bulk-upload")
@require_auth
@require_admin
def bulk_upload_route():
    """Multipart upload with a CSV under the "file" field."""
    try:
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return jsonify({"error": "file required"}), 400
        if not upload.filename.lower().endswith(".csv"):
            return jsonify({"error": "Only CSV files are accepted"}), 400
        result = get_store().bulk_upload_accounts(upload.filename, upload.read())
        return jsonify(result), 200
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to bulk upload users")
        return jsonify({"error": "Internal server error"}), 500
