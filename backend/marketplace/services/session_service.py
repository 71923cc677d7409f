# Overview: Service-layer operations for session tokens; issue, validate and revoke.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in database, and time-limited.
A session is bound to one principal: an admin or an approved channel partner.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout from SESSION_TTL_HOURS
- Revocable on logout
- Partner sessions are re-checked against the partner's registration state
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import AdminUser, SessionToken, PARTNER_MODELS
from ..models.auth import PRINCIPAL_ADMIN
from ..models.partners import REGISTRATION_APPROVED, PARTNER_STATUS_ACTIVE
from .concurrency import commit_or_fail
from marketplace.time_utils import utcnow


DEFAULT_SESSION_TTL = timedelta(days=7)


@dataclass
class SessionContext:
    """Resolved principal for an authenticated request."""
    principal_type: str
    principal: object
    session: SessionToken

    @property
    def is_admin(self) -> bool:
        return self.principal_type == PRINCIPAL_ADMIN


def generate_token() -> str:
    """64-character hex token (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _ttl() -> timedelta:
    if has_app_context() and current_app.config.get("SESSION_TTL_HOURS"):
        return timedelta(hours=int(current_app.config["SESSION_TTL_HOURS"]))
    return DEFAULT_SESSION_TTL


def create_session(
    principal_type: str,
    principal_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an already-authenticated principal.

    Returns (session_record, plaintext_token). Only the hash is stored.
    """
    if principal_type != PRINCIPAL_ADMIN and principal_type not in PARTNER_MODELS:
        raise ValueError(f"Unknown principal type: {principal_type}")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        token_hash=hash_token(token),
        principal_type=principal_type,
        principal_id=principal_id,
        created_at=now,
        expires_at=now + _ttl(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
    )
    db.session.add(session)
    commit_or_fail("Failed to create session")
    return session, token


def _load_principal(principal_type: str, principal_id: int):
    if principal_type == PRINCIPAL_ADMIN:
        admin = db.session.get(AdminUser, principal_id)
        if admin and admin.is_active:
            return admin
        return None

    model = PARTNER_MODELS.get(principal_type)
    if model is None:
        return None
    partner = db.session.get(model, principal_id)
    # Approval can be withdrawn only by deactivation; both must still hold
    if (
        partner
        and partner.registration_status == REGISTRATION_APPROVED
        and partner.status == PARTNER_STATUS_ACTIVE
    ):
        return partner
    return None


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its principal.

    Returns None for unknown, expired or revoked tokens, and for principals
    that are no longer allowed to hold a session.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.revoked_at is not None:
        return None
    if session.expires_at <= utcnow():
        return None

    principal = _load_principal(session.principal_type, session.principal_id)
    if principal is None:
        return None

    return SessionContext(principal_type=session.principal_type, principal=principal, session=session)


def revoke_session(token: str) -> bool:
    """Revoke a session. Returns False when the token is unknown or already revoked."""
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.revoked_at is not None:
        return False
    session.revoked_at = utcnow()
    commit_or_fail()
    return True
