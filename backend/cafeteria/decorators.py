# Overview: Request decorators for API routes (authentication, admin gate, single-flight).

from contextlib import ExitStack
from functools import wraps
from flask import current_app, g, jsonify, redirect

from .api_client import BackendUnavailable, SessionExpired
from .stores import bearer_token, get_guard, get_store
from .validation import ConflictError


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the caller's Account (a frozen record, not a row).

    Returns 401 if:
    - No Authorization header
    - Unknown, expired or revoked token
    - Account no longer active
    Returns 503 if the remote backend cannot be reached to check the token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not bearer_token():
            return jsonify({"error": "Authentication required"}), 401

        try:
            account = get_store().current_account()
        except SessionExpired:
            account = None
        except BackendUnavailable as e:
            return jsonify({"error": str(e)}), 503

        if account is None or not account.is_active:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = account
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Admin-only action. Must be applied after @require_auth.

    Non-admin callers are redirected (303) to SAFE_DEFAULT_PATH instead of
    being told the action exists.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            current_app.logger.info(
                "Non-admin user %s redirected away from admin action", g.current_user.user_id
            )
            return redirect(current_app.config["SAFE_DEFAULT_PATH"], code=303)
        return f(*args, **kwargs)

    return decorated_function


def single_flight(action: str):
    """
    Reject a second concurrent submission of the same action by the same
    user with 409. Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with ExitStack() as stack:
                try:
                    stack.enter_context(get_guard().hold(g.current_user.user_id, action))
                except ConflictError as e:
                    return jsonify({"error": str(e)}), 409
                return f(*args, **kwargs)

        return decorated_function

    return decorator
