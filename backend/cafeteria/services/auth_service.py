# Overview: Password hashing and account input rules.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..domain.accounts import ROLE_CUSTOMER, VALID_ROLES
from ..money import ZERO, parse_amount
from ..validation import ValidationError, optional_text, require_choice, require_text

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthError(Exception):
    """Raised when credentials are rejected."""
    pass


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength checked first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(value) -> str:
    email = require_text(value, "email", max_length=255).lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("email is not a valid address")
    return email


def validate_new_user(payload: dict) -> dict:
    """
    Normalize a create-user request.

    credit_limit present (and > 0 or explicitly has_credit_account) enables the
    credit tab at creation time.
    """
    data = {
        "email": normalize_email(payload.get("email")),
        "full_name": require_text(payload.get("full_name"), "full_name", max_length=255),
        "phone": optional_text(payload.get("phone"), "phone", max_length=32),
        "password": payload.get("password"),
        "role": require_choice(payload.get("role") or ROLE_CUSTOMER, "role", VALID_ROLES),
    }
    validate_password_strength(data["password"])

    limit = parse_amount(payload.get("credit_limit"), "credit_limit", allow_none=True)
    if limit is not None and limit < ZERO:
        raise ValidationError("credit_limit cannot be negative")
    has_credit = payload.get("has_credit_account")
    if has_credit is None:
        has_credit = limit is not None and limit > ZERO
    data["has_credit_account"] = bool(has_credit)
    data["credit_limit"] = limit if limit is not None else ZERO
    return data
