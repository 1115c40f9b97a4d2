# Overview: Opaque bearer tokens for the local store.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout (SESSION_ABSOLUTE_HOURS) and idle timeout (SESSION_IDLE_HOURS)
- Revoked on logout, idle timeout or account deactivation
"""

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..domain.accounts import ACCOUNT_ACTIVE
from ..models import SessionToken, User
from ..time_utils import utcnow

DEFAULT_ABSOLUTE_HOURS = 24
DEFAULT_IDLE_HOURS = 2


def generate_token() -> str:
    return secrets.token_hex(32)  # 32 bytes = 64 hex characters


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user: User,
    *,
    absolute_hours: int = DEFAULT_ABSOLUTE_HOURS,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for user and commit it.

    Returns (session_record, plaintext_token); only the hash is stored.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(hours=absolute_hours),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    user.last_login_at = now

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str | None, *, idle_hours: int = DEFAULT_IDLE_HOURS) -> User | None:
    """
    Return the user behind a token, or None if the token is unknown,
    expired, idle for too long, revoked, or belongs to an inactive account.

    Updates last_used_at on success.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > timedelta(hours=idle_hours):
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or user.account_status != ACCOUNT_ACTIVE:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str | None, reason: str = "Logout") -> bool:
    if not token:
        return False
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False
    _revoke(session, reason)
    return True


def revoke_user_sessions(user_id: int, reason: str) -> int:
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    now = utcnow()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    return len(sessions)
