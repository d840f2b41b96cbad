# Overview: Service-layer operations for session; bearer tokens for the JSON API.

"""
Session Token Management Service

WHY: The HTTP layer needs an actor for every call. Tokens are
cryptographically random, stored only as a SHA-256 hash, and expire after
SESSION_HOURS.

The SessionContext returned by validate_session is the "actor" that every
service in the billing core takes as its first argument.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow
from .concurrency import atomic


@dataclass
class SessionContext:
    """Authenticated operator plus the session row that proved it."""
    user: User
    session: SessionToken | None = None

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user: User) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    """
    if user is None or not user.is_active:
        raise ValueError("User is not active")

    plaintext_token = generate_token()
    now = utcnow()
    hours = int(current_app.config.get("SESSION_HOURS", 12))

    with atomic():
        session = SessionToken(
            user_id=user.id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            expires_at=now + timedelta(hours=hours),
            is_revoked=False,
        )
        db.session.add(session)

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is unknown, expired or revoked, or the user has
    been deactivated.
    """
    if not token:
        return None

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

    return SessionContext(user=user, session=session)


def revoke_session(token: str) -> bool:
    """Returns True if session was revoked, False if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    with atomic():
        session.is_revoked = True
    return True


def revoke_all_user_sessions(user_id: int) -> int:
    """Returns count of sessions revoked."""
    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    with atomic():
        for session in sessions:
            session.is_revoked = True
    return len(sessions)
