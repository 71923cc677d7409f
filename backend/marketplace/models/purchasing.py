from __future__ import annotations

from ..extensions import db
from ..money import format_money
from marketplace.time_utils import to_utc_z


BILL_STATUS_PENDING = "pending"
BILL_STATUS_PAID = "paid"
BILL_STATUS_CANCELLED = "cancelled"

PAYMENT_MODES = ("cash", "bank_transfer", "upi", "cheque", "credit")


class Vendor(db.Model):
    """
    Supplier of purchased inventory. Every purchase bill references one vendor.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index("ix_vendors_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    contact_name = db.Column(db.String(255), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "address": self.address,
            "gst_number": self.gst_number,
            "is_active": self.is_active,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseBill(db.Model):
    """
    Vendor invoice for purchased inventory.

    BALANCE INVARIANT:
    balance_amount = total_amount + shipping_charges + miscellaneous + original_box - paid_amount
    and never drops below zero. status is "paid" iff balance_amount <= 0,
    except once the bill is "cancelled" (terminal).

    paid_amount always equals the sum of the bill's PurchasePayment rows.
    version_id is an optimistic lock so concurrent payers cannot both spend
    the same balance.
    """
    __tablename__ = "purchase_bills"
    __table_args__ = (
        db.Index("ix_purchase_bills_vendor", "vendor_id"),
        db.Index("ix_purchase_bills_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_number = db.Column(db.String(64), nullable=False, unique=True)
    bill_date = db.Column(db.Date, nullable=False)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping_charges = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    miscellaneous = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    original_box = db.Column(db.Numeric(12, 2), nullable=True, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    balance_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=BILL_STATUS_PENDING)
    notes = db.Column(db.Text, nullable=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    vendor = db.relationship("Vendor", backref=db.backref("purchase_bills", lazy=True))
    items = db.relationship(
        "PurchaseItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )
    payments = db.relationship(
        "PurchasePayment",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="PurchasePayment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseBill id={self.id} number={self.bill_number!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "bill_number": self.bill_number,
            "bill_date": self.bill_date.isoformat() if self.bill_date else None,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "total_amount": format_money(self.total_amount),
            "shipping_charges": format_money(self.shipping_charges),
            "miscellaneous": format_money(self.miscellaneous),
            "original_box": format_money(self.original_box),
            "paid_amount": format_money(self.paid_amount),
            "balance_amount": format_money(self.balance_amount),
            "status": self.status,
            "notes": self.notes,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class PurchaseItem(db.Model):
    """
    One purchased product line. Immutable once the bill is created.

    final_cost_price is the unit cost after the bill's shared expenses are
    distributed across lines; when absent, cost_price is the cost basis.
    """
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_items_quantity_positive"),
        db.Index("ix_purchase_items_bill", "bill_id"),
        db.Index("ix_purchase_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("purchase_bills.id", ondelete="CASCADE"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Snapshot of product identity at purchase time
    product_sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Numeric(12, 2), nullable=False)
    distributed_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_cost_price = db.Column(db.Numeric(12, 2), nullable=True)
    line_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    bill = db.relationship("PurchaseBill", back_populates="items")
    product = db.relationship("Product", backref=db.backref("purchase_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "product_id": self.product_id,
            "product_sku": self.product_sku,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "cost_price": format_money(self.cost_price),
            "distributed_cost": format_money(self.distributed_cost),
            "final_cost_price": format_money(self.final_cost_price),
            "line_total": format_money(self.line_total),
        }


class PurchasePayment(db.Model):
    """
    Append-only payment against a purchase bill. Never updated or deleted
    outside of the parent bill's own deletion.
    """
    __tablename__ = "purchase_payments"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_purchase_payments_amount_positive"),
        db.Index("ix_purchase_payments_bill", "bill_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("purchase_bills.id", ondelete="CASCADE"), nullable=False)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_mode = db.Column(db.String(32), nullable=False)
    transaction_details = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    payment_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bill = db.relationship("PurchaseBill", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "amount": format_money(self.amount),
            "payment_mode": self.payment_mode,
            "transaction_details": self.transaction_details,
            "notes": self.notes,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "created_at": to_utc_z(self.created_at),
        }
