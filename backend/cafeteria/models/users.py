from __future__ import annotations

from ..extensions import db
from ..domain.accounts import ACCOUNT_ACTIVE, ROLE_CUSTOMER, Account, CreditLine
from ..money import from_cents
from ..time_utils import utcnow


class User(db.Model):
    """
    Cafeteria account: identity, role and (optionally) a credit tab.

    current_balance_cents is signed: negative means the customer owes money.
    The credit columns are only meaningful while has_credit_account is set;
    to_record() drops them otherwise.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.Index("ix_users_role_status", "role", "account_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_CUSTOMER)  # admin, customer
    account_status = db.Column(db.String(16), nullable=False, default=ACCOUNT_ACTIVE)
    suspension_reason = db.Column(db.String(255), nullable=True)

    has_credit_account = db.Column(db.Boolean, nullable=False, default=False)
    current_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    def to_record(self) -> Account:
        credit = None
        if self.has_credit_account:
            credit = CreditLine(
                balance=from_cents(self.current_balance_cents),
                limit=from_cents(self.credit_limit_cents),
            )
        return Account(
            user_id=str(self.id),
            full_name=self.full_name,
            email=self.email,
            role=self.role,
            account_status=self.account_status,
            credit=credit,
            phone=self.phone,
            suspension_reason=self.suspension_reason,
            created_at=self.created_at,
            last_login_at=self.last_login_at,
        )


class SessionToken(db.Model):
    """
    Opaque bearer tokens for the local store.

    Only the SHA-256 hash of the token is stored; the plaintext is returned
    once, at login.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
