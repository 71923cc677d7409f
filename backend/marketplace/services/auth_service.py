# Overview: Service-layer operations for auth; password hashing and admin accounts.

"""
Authentication Service

Uses bcrypt for password hashing. Admin passwords must pass the strength
rules below; channel partners self-register with a shorter minimum (see
registration_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..errors import AuthenticationError, InvalidInputError
from ..models import AdminUser
from .concurrency import commit_or_fail
from marketplace.time_utils import utcnow


DEFAULT_BCRYPT_ROUNDS = 12


class PasswordValidationError(InvalidInputError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate admin password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    return DEFAULT_BCRYPT_ROUNDS


def hash_password(password: str) -> str:
    """Hash password with bcrypt. Strength rules are the caller's concern."""
    salt = bcrypt.gensalt(rounds=_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    if not isinstance(password, str) or not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_admin(username: str, email: str, password: str) -> AdminUser:
    """
    Create a back-office admin.

    Raises:
        InvalidInputError: Missing fields or username/email already taken
        PasswordValidationError: Weak password
    """
    username = (username or "").strip().lower()
    email = (email or "").strip().lower()
    if not username or not email:
        raise InvalidInputError("username and email are required")

    validate_password_strength(password or "")

    existing = db.session.query(AdminUser).filter(
        (AdminUser.username == username) | (AdminUser.email == email)
    ).first()
    if existing:
        raise InvalidInputError("Admin with this username or email already exists")

    admin = AdminUser(username=username, email=email, password_hash=hash_password(password))
    db.session.add(admin)
    commit_or_fail("Failed to create admin")
    return admin


def authenticate_admin(identifier: str, password: str) -> AdminUser:
    """
    Authenticate an admin by username or email.

    Raises AuthenticationError with a uniform message for unknown accounts,
    wrong passwords and deactivated accounts.
    """
    if not isinstance(identifier, str):
        raise AuthenticationError("Invalid credentials")
    identifier = identifier.strip().lower()
    admin = db.session.query(AdminUser).filter(
        (AdminUser.username == identifier) | (AdminUser.email == identifier)
    ).first()

    if not admin or not verify_password(password, admin.password_hash) or not admin.is_active:
        raise AuthenticationError("Invalid credentials")

    admin.last_login_at = utcnow()
    commit_or_fail()
    return admin
