# Overview: Service-layer operations for operator accounts and password checks.

"""
Authentication Service

WHY: Every document, stock movement and audit row is attributed to an
operator. Passwords are hashed with bcrypt (cost from BCRYPT_ROUNDS, 12 by
default) and must pass a strength check.

SECURITY NOTES:
- Minimum 8 characters with upper case, lower case, a digit and a symbol
- Inactive users never authenticate
- Session tokens are managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..permissions import VALID_ROLES
from ..time_utils import utcnow
from ..validation import sanitize_input
from .concurrency import atomic


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt. Stored as text."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe comparison via bcrypt.checkpw. Malformed hashes never match."""
    if not isinstance(password, str) or not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    role: str,
    display_name: str | None = None,
) -> User:
    """
    Create an operator account.

    Raises:
        ValidationError / PasswordValidationError: bad username, role or password
        ConflictError: username already taken
    """
    username = username.strip() if isinstance(username, str) else ""
    if not username or len(username) > 64:
        raise ValidationError("username is required (max 64 characters)")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    if db.session.query(User.id).filter_by(username=username).first() is not None:
        raise ConflictError("Username already exists", details={"username": username})

    password_hash = hash_password(password)

    with atomic():
        user = User(
            username=username,
            display_name=sanitize_input(display_name, "display_name") or username,
            role=role,
            password_hash=password_hash,
            is_active=True,
        )
        db.session.add(user)

    current_app.logger.info("User created: %s (%s)", username, role)
    return user


def set_user_active(user_id: int, is_active: bool) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", details={"user_id": user_id})
    with atomic():
        user.is_active = is_active
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username and password.

    Returns the User if the credentials are valid and the account is active,
    None otherwise. Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.username == (username.strip() if isinstance(username, str) else ""),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        with atomic():
            user.last_login_at = utcnow()
        return user

    return None
