from __future__ import annotations

from ..extensions import db
from ..money import format_money
from marketplace.time_utils import to_utc_z


PARTNER_STATUS_ACTIVE = "active"
PARTNER_STATUS_INACTIVE = "inactive"

REGISTRATION_PENDING = "pending"
REGISTRATION_APPROVED = "approved"
REGISTRATION_REJECTED = "rejected"

MARKUP_PERCENTAGE = "percentage"
MARKUP_FIXED = "fixed"


class ChannelPartnerMixin:
    """
    Columns shared by every approvable channel partner.

    LIFECYCLE: registration_status moves pending -> approved | rejected and
    never back. status mirrors it (approved -> active, rejected -> inactive).
    Only approved partners can be issued a session.
    """

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Storefront URL slug; generated from name at self-registration
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    contact_number = db.Column(db.String(32), nullable=True, index=True)
    whatsapp_number = db.Column(db.String(32), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PARTNER_STATUS_INACTIVE)
    registration_status = db.Column(db.String(16), nullable=False, default=REGISTRATION_PENDING, index=True)

    # Markup applied when catalogue products are imported into this partner's store
    auto_import_enabled = db.Column(db.Boolean, nullable=False, default=False)
    auto_import_markup_type = db.Column(db.String(16), nullable=False, default=MARKUP_PERCENTAGE)
    auto_import_markup_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Who moved the registration out of pending, and when
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.String(255), nullable=True)

    partner_type = ""

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id} username={self.username!r} "
            f"registration={self.registration_status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "partner_type": self.partner_type,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "contact_number": self.contact_number,
            "whatsapp_number": self.whatsapp_number,
            "status": self.status,
            "registration_status": self.registration_status,
            "auto_import_enabled": self.auto_import_enabled,
            "auto_import_markup_type": self.auto_import_markup_type,
            "auto_import_markup_value": format_money(self.auto_import_markup_value),
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "reviewed_by": self.reviewed_by,
        }


class Wholesaler(ChannelPartnerMixin, db.Model):
    __tablename__ = "wholesalers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    partner_type = "wholesaler"

    company_name = db.Column(db.String(255), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["company_name"] = self.company_name
        data["gst_number"] = self.gst_number
        return data


class Reseller(ChannelPartnerMixin, db.Model):
    __tablename__ = "resellers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    partner_type = "reseller"

    shop_name = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shop_name"] = self.shop_name
        return data


class Retailer(ChannelPartnerMixin, db.Model):
    __tablename__ = "retailers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    partner_type = "retailer"

    address = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["address"] = self.address
        return data


PARTNER_MODELS = {
    "wholesaler": Wholesaler,
    "reseller": Reseller,
    "retailer": Retailer,
}


class ResellerProduct(db.Model):
    """
    A catalogue product imported into a reseller's storefront.

    Unique per (reseller_id, product_id). selling_price overrides the
    catalogue price when set; display_order sorts the storefront.
    """
    __tablename__ = "reseller_products"
    __table_args__ = (
        db.UniqueConstraint("reseller_id", "product_id", name="uq_reseller_products_reseller_product"),
        db.Index("ix_reseller_products_reseller_order", "reseller_id", "display_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    reseller_id = db.Column(db.Integer, db.ForeignKey("resellers.id", ondelete="CASCADE"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)

    selling_price = db.Column(db.Numeric(12, 2), nullable=True)
    is_visible = db.Column(db.Boolean, nullable=False, default=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    markup_type = db.Column(db.String(16), nullable=True)
    markup_value = db.Column(db.Numeric(12, 2), nullable=True)
    is_auto_imported = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    reseller = db.relationship("Reseller", backref=db.backref("imported_products", lazy=True, cascade="all, delete-orphan"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "reseller_id": self.reseller_id,
            "product_id": self.product_id,
            "sku": product.sku if product else None,
            "name": (product.name or product.sku) if product else None,
            "brand_id": product.brand_id if product else None,
            "category_id": product.category_id if product else None,
            "status": product.status if product else None,
            "mrp": format_money(product.mrp) if product else None,
            "selling_price": format_money(self.selling_price),
            "is_visible": self.is_visible,
            "display_order": self.display_order,
            "markup_type": self.markup_type,
            "markup_value": format_money(self.markup_value),
            "is_auto_imported": self.is_auto_imported,
        }
