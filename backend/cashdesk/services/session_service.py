# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Service

WHY: Resolve the acting user and store for every API request.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute expiry (SESSION_TOKEN_TTL_HOURS)
- Revocable
- Store context is captured when the token is issued and never changes
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Store
from ..time_utils import utcnow


@dataclass
class SessionContext:
    """Identity resolved from a bearer token."""
    user: User
    session: SessionToken
    store_id: int


def generate_token() -> str:
    """Returns 64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int, ttl_hours: int | None = None) -> tuple[SessionToken, str]:
    """
    Issue a token for a user, scoped to the user's store.

    Returns:
        (SessionToken row, plaintext token). The plaintext is not stored.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise ValueError("User not found or inactive")

    if ttl_hours is None:
        ttl_hours = current_app.config.get("SESSION_TOKEN_TTL_HOURS", 24)

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        store_id=user.store_id,
        token_hash=hash_token(token),
        created_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a plaintext token to its session context.

    Returns None for unknown, expired or revoked tokens, and for tokens
    whose user or store has been deactivated.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session:
        return None

    if session.revoked_at is not None or session.expires_at <= utcnow():
        return None

    user = db.session.get(User, session.user_id)
    if not user or not user.is_active:
        return None

    store = db.session.get(Store, session.store_id)
    if not store or not store.is_active:
        return None

    return SessionContext(user=user, session=session, store_id=session.store_id)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.revoked_at is not None:
        return False
    session.revoked_at = utcnow()
    db.session.commit()
    return True
