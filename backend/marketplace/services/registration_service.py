# Overview: Service-layer operations for channel-partner onboarding; registration, approval and login gate.

"""
Channel Partner Registration Workflow

One state machine shared by wholesalers, resellers and retailers:

    pending --approve--> approved   (status -> active)
    pending --reject---> rejected   (status -> inactive)

approved and rejected are terminal. Any transition attempted from a
non-pending state raises InvalidStateError.

AUTHENTICATION GATE: pending and rejected partners are refused a session
before their password is even checked, with PendingApprovalError or
RejectedError so the caller can show the right message.
"""

import logging
import re

from sqlalchemy import or_

from ..extensions import db
from ..errors import (
    AuthenticationError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PendingApprovalError,
    RejectedError,
)
from ..models import PARTNER_MODELS
from ..models.partners import (
    PARTNER_STATUS_ACTIVE,
    PARTNER_STATUS_INACTIVE,
    REGISTRATION_APPROVED,
    REGISTRATION_PENDING,
    REGISTRATION_REJECTED,
)
from .auth_service import hash_password, verify_password
from .concurrency import commit_or_fail, lock_for_update, run_with_retry
from marketplace.time_utils import utcnow


logger = logging.getLogger(__name__)

MIN_PARTNER_PASSWORD_LENGTH = 6
MAX_USERNAME_LENGTH = 20

# Set by the workflow, never by the registrant
PROTECTED_PARTNER_COLUMNS = frozenset({
    "id", "username", "password_hash", "status", "registration_status",
    "auto_import_enabled", "auto_import_markup_type", "auto_import_markup_value",
    "created_at", "updated_at", "last_login_at", "reviewed_at", "reviewed_by",
})

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def partner_model(partner_type: str):
    model = PARTNER_MODELS.get(partner_type)
    if model is None:
        raise InvalidInputError(
            f"Invalid partner type. Must be one of: {', '.join(PARTNER_MODELS)}"
        )
    return model


def normalize_phone(number: str) -> str:
    """Strip spaces, dashes, parentheses and plus signs."""
    return re.sub(r"[\s\-\(\)\+]", "", number or "")


def _phone_variants(number: str) -> list[str]:
    clean = normalize_phone(number)
    return [number, clean, f"+91{clean}"]


def generate_username(model, name: str) -> str:
    """
    Storefront username from a display name: lowercase alphanumerics, at most
    20 characters, with a numeric suffix when taken (name, name1, name2, ...).
    """
    base = re.sub(r"[^a-z0-9]+", "", (name or "").lower())[:MAX_USERNAME_LENGTH]
    if not base:
        base = model.partner_type
    username = base
    counter = 1
    while db.session.query(model.id).filter_by(username=username).first():
        username = f"{base}{counter}"
        counter += 1
    return username


def register_partner(
    partner_type: str,
    *,
    name: str,
    email: str,
    contact_number: str,
    password: str,
    **extra,
):
    """
    Self-register a channel partner. The account starts pending/inactive.

    Args:
        partner_type: wholesaler, reseller or retailer
        name, email, contact_number, password: required
        extra: type-specific columns (company_name, shop_name, address, ...)

    Raises:
        InvalidInputError: Missing fields, short password, or duplicate email/phone
    """
    model = partner_model(partner_type)

    if not all([name, email, contact_number, password]):
        raise InvalidInputError("All fields are required")
    if not all(isinstance(value, str) for value in (name, email, contact_number, password)):
        raise InvalidInputError("name, email, contact_number and password must be strings")
    if len(password) < MIN_PARTNER_PASSWORD_LENGTH:
        raise InvalidInputError(f"Password must be at least {MIN_PARTNER_PASSWORD_LENGTH} characters")

    email = email.strip().lower()
    if not _EMAIL_RE.match(email):
        raise InvalidInputError("Invalid email address")

    if db.session.query(model.id).filter_by(email=email).first():
        raise InvalidInputError("Email is already registered")

    if db.session.query(model.id).filter(model.contact_number.in_(_phone_variants(contact_number))).first():
        raise InvalidInputError("Phone number is already registered")

    allowed_extra = {
        key: value for key, value in extra.items()
        if key in model.__table__.c and key not in PROTECTED_PARTNER_COLUMNS
    }
    for key, value in allowed_extra.items():
        if value is not None and not isinstance(value, str):
            raise InvalidInputError(f"{key} must be a string")

    partner = model(
        name=name.strip(),
        email=email,
        contact_number=contact_number,
        password_hash=hash_password(password),
        username=generate_username(model, name),
        status=PARTNER_STATUS_INACTIVE,
        registration_status=REGISTRATION_PENDING,
        **allowed_extra,
    )
    db.session.add(partner)
    commit_or_fail("Registration failed. Please try again.")

    logger.info("Registered %s %s (pending approval)", partner_type, partner.username)
    return partner


def check_availability(partner_type: str, *, username: str | None = None, email: str | None = None) -> dict:
    """Report whether a username and/or email is still free for this partner type."""
    model = partner_model(partner_type)
    result = {}
    if username is not None:
        result["username_available"] = not db.session.query(model.id).filter_by(
            username=username.strip().lower()
        ).first()
    if email is not None:
        result["email_available"] = not db.session.query(model.id).filter_by(
            email=email.strip().lower()
        ).first()
    if not result:
        raise InvalidInputError("username or email is required")
    return result


def _transition(partner_type: str, partner_id: int, *, to_state: str, to_status: str, reviewed_by: str | None):
    model = partner_model(partner_type)

    def _op():
        partner = lock_for_update(db.session.query(model).filter_by(id=partner_id)).first()
        if not partner:
            raise NotFoundError(f"{partner_type.capitalize()} not found")
        if partner.registration_status != REGISTRATION_PENDING:
            raise InvalidStateError(f"{partner_type.capitalize()} is not pending approval")

        partner.registration_status = to_state
        partner.status = to_status
        partner.reviewed_at = utcnow()
        partner.reviewed_by = reviewed_by
        commit_or_fail(f"Failed to update {partner_type}")
        return partner

    partner = run_with_retry(_op)
    logger.info("%s %s %s", partner_type.capitalize(), partner.id, to_state)
    return partner


def approve(partner_type: str, partner_id: int, reviewed_by: str | None = None):
    """pending -> approved, status -> active. Stamps reviewed_at and reviewed_by."""
    return _transition(
        partner_type, partner_id,
        to_state=REGISTRATION_APPROVED, to_status=PARTNER_STATUS_ACTIVE, reviewed_by=reviewed_by,
    )


def reject(partner_type: str, partner_id: int, reviewed_by: str | None = None):
    """pending -> rejected, status -> inactive. Stamps reviewed_at and reviewed_by."""
    return _transition(
        partner_type, partner_id,
        to_state=REGISTRATION_REJECTED, to_status=PARTNER_STATUS_INACTIVE, reviewed_by=reviewed_by,
    )


def find_partner(partner_type: str, identifier: str):
    """Look a partner up by username, email or phone number."""
    model = partner_model(partner_type)
    identifier = (identifier or "").strip()
    if not identifier:
        return None
    lowered = identifier.lower()
    return db.session.query(model).filter(
        or_(
            model.username == lowered,
            model.email == lowered,
            model.contact_number.in_(_phone_variants(identifier)),
            model.whatsapp_number == identifier,
        )
    ).first()


def authenticate_partner(partner_type: str, identifier: str, password: str):
    """
    Authenticate a channel partner for store operations.

    Raises:
        AuthenticationError: Unknown account, wrong password, or deactivated account
        PendingApprovalError: Registration still awaiting admin approval
        RejectedError: Registration was rejected
    """
    if not identifier or not isinstance(identifier, str):
        raise InvalidInputError("Username, email, or phone is required")

    partner = find_partner(partner_type, identifier)
    if not partner:
        raise AuthenticationError("Invalid credentials")

    # Lifecycle is checked before the password
    if partner.registration_status == REGISTRATION_PENDING:
        raise PendingApprovalError("Your account is pending admin approval. Please wait for approval.")
    if partner.registration_status == REGISTRATION_REJECTED:
        raise RejectedError("Your registration was rejected. Please contact support.")

    if not verify_password(password, partner.password_hash):
        raise AuthenticationError("Invalid credentials")
    if partner.status != PARTNER_STATUS_ACTIVE:
        raise AuthenticationError("Account is inactive")

    partner.last_login_at = utcnow()
    commit_or_fail()
    return partner


def list_partners(partner_type: str, *, registration_status: str | None = None, limit: int = 100, offset: int = 0):
    """List partners newest first. Returns (items, total)."""
    model = partner_model(partner_type)
    query = db.session.query(model)
    if registration_status:
        query = query.filter(model.registration_status == registration_status)
    total = query.count()
    items = query.order_by(model.created_at.desc(), model.id.desc()).offset(offset).limit(limit).all()
    return items, total


def get_partner(partner_type: str, partner_id: int):
    model = partner_model(partner_type)
    partner = db.session.get(model, partner_id)
    if not partner:
        raise NotFoundError(f"{partner_type.capitalize()} not found")
    return partner
