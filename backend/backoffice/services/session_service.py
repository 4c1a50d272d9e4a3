# Overview: Service-layer operations for session tokens; builds the request Principal.

"""
Session Token Management

WHY: The order core only needs a trustworthy Principal for each request.
Tokens are random, stored hashed, time-limited and revocable.

MULTI-TENANT: The tenant is captured on the token at creation time. Tenant
features are read fresh on every validation so a plan change applies
immediately.
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Tenant
from ..principal import Principal
from backoffice.time_utils import utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy); sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient for high-entropy tokens (unlike passwords)."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create a new session token for a user.

    Returns (session_record, plaintext_token).

    Raises ValueError if the user is missing/inactive or the tenant is not active.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        raise ValueError("User not found")

    tenant = db.session.query(Tenant).filter_by(id=user.tenant_id).first()
    if not tenant or not tenant.is_active:
        raise ValueError("Tenant is not active")

    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    session = SessionToken(
        user_id=user.id,
        tenant_id=user.tenant_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> Principal | None:
    """
    Validate a bearer token and return the caller's Principal.

    Returns None if the token is unknown, expired or revoked, or if the
    user or tenant has been deactivated since it was issued.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    tenant = session.tenant
    if not tenant or not tenant.is_active:
        return None

    return Principal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        tenant_id=session.tenant_id,
        tenant_features=tenant.feature_set,
    )


def revoke_session(token: str) -> bool:
    """Revoke a token. Returns False if it was not found or already revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
