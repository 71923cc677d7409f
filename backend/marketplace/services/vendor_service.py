# Overview: Service-layer operations for vendors; encapsulates business logic and database work.

"""
Vendor Service

Vendors are required on every purchase bill. Deactivated vendors keep their
history but cannot receive new bills.
"""

from sqlalchemy import or_

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import Vendor
from .concurrency import commit_or_fail


def create_vendor(
    *,
    name: str,
    contact_name: str | None = None,
    contact_email: str | None = None,
    contact_phone: str | None = None,
    address: str | None = None,
    gst_number: str | None = None,
    notes: str | None = None,
) -> Vendor:
    """
    Create a new vendor.

    Raises:
        InvalidInputError: Missing name
    """
    if not name or not name.strip():
        raise InvalidInputError("Vendor name is required")

    vendor = Vendor(
        name=name.strip(),
        contact_name=contact_name,
        contact_email=contact_email,
        contact_phone=contact_phone,
        address=address,
        gst_number=gst_number,
        notes=notes,
        is_active=True,
    )
    db.session.add(vendor)
    commit_or_fail("Failed to create vendor")
    return vendor


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise NotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def validate_vendor(vendor_id: int) -> Vendor:
    """Vendor must exist and be active to be billed."""
    vendor = db.session.get(Vendor, vendor_id)
    if not vendor:
        raise InvalidInputError(f"Vendor {vendor_id} not found")
    if not vendor.is_active:
        raise InvalidInputError("Vendor is inactive")
    return vendor


def list_vendors(
    *,
    include_inactive: bool = False,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Vendor], int]:
    query = db.session.query(Vendor)

    if not include_inactive:
        query = query.filter(Vendor.is_active.is_(True))

    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(Vendor.name.ilike(term), Vendor.contact_name.ilike(term)))

    total = query.count()
    vendors = query.order_by(Vendor.name).offset(offset).limit(limit).all()
    return vendors, total
