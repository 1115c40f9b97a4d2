"""
Application-state handles.

The store (and the in-flight guard and server-side carts that go with it)
is built once per app from configuration and kept in ``app.extensions``.
Handlers call ``get_store()``, which binds it to the caller's bearer token
for the duration of the request.
"""

from flask import current_app, has_request_context, request

from ..api_client import ApiClient
from ..services.checkout_service import CartRegistry
from ..services.concurrency import InFlightGuard
from .base import CafeteriaStore, UnsupportedOperation
from .local import LocalStore
from .remote import RemoteStore

STORE_KEY = "cafeteria.store"
GUARD_KEY = "cafeteria.guard"
CARTS_KEY = "cafeteria.carts"

STORE_LOCAL = "local"
STORE_REMOTE = "remote"


def build_store(config) -> CafeteriaStore:
    kind = (config.get("CAFETERIA_STORE") or STORE_LOCAL).lower()
    if kind == STORE_LOCAL:
        return LocalStore(
            absolute_hours=config.get("SESSION_ABSOLUTE_HOURS", 24),
            idle_hours=config.get("SESSION_IDLE_HOURS", 2),
            currency_symbol=config.get("CURRENCY_SYMBOL", "S/"),
        )
    if kind == STORE_REMOTE:
        api = ApiClient(
            config["CAFETERIA_API_URL"],
            timeout=float(config.get("CAFETERIA_API_TIMEOUT", 30.0)),
            transport=config.get("CAFETERIA_API_TRANSPORT"),
        )
        return RemoteStore(api)
    raise ValueError(f"Unknown CAFETERIA_STORE: {kind}. Must be one of {[STORE_LOCAL, STORE_REMOTE]}")


def bearer_token() -> str | None:
    if not has_request_context():
        return None
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


def get_store() -> CafeteriaStore:
    """Store bound to the current request's bearer token."""
    base = current_app.extensions.get(STORE_KEY)
    if base is None:
        base = build_store(current_app.config)
        current_app.extensions[STORE_KEY] = base
    return base.bind(bearer_token())


def get_guard() -> InFlightGuard:
    return current_app.extensions.setdefault(GUARD_KEY, InFlightGuard())


def get_carts() -> CartRegistry:
    return current_app.extensions.setdefault(CARTS_KEY, CartRegistry())


__all__ = [
    "CafeteriaStore",
    "LocalStore",
    "RemoteStore",
    "UnsupportedOperation",
    "build_store",
    "bearer_token",
    "get_store",
    "get_guard",
    "get_carts",
]
