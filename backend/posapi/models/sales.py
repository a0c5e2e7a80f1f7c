from __future__ import annotations

from ..extensions import db
from posapi.money import cents_to_number
from posapi.time_utils import to_utc_z

PAYMENT_METHODS = ("cash", "card", "ewallet", "other")


class Sale(db.Model):
    """
    Sale record created once at checkout.

    WHY: The sale is the durable result of a checkout: the stock it reserved,
    the totals it charged, and the snapshot of what was sold. After creation
    only status/updated_at change (see services/sale_lifecycle.py).

    Totals are stored in cents; total_cents = subtotal + tax - discount.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("status IN ('pending', 'completed', 'cancelled', 'refunded')", name="ck_sales_status"),
        db.CheckConstraint("total_cents >= 0", name="ck_sales_total_non_negative"),
        db.Index("ix_sales_status_created", "status", "created_at"),
        db.Index("ix_sales_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "INV-20240115-9f86d081")
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    user = db.relationship("User")
    customer = db.relationship("Customer")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice={self.invoice_number} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "subtotal": cents_to_number(self.subtotal_cents),
            "tax_amount": cents_to_number(self.tax_cents),
            "discount_amount": cents_to_number(self.discount_cents),
            "total_amount": cents_to_number(self.total_cents),
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale with the product name/price captured at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot; later product edits never change a recorded sale
    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price": cents_to_number(self.unit_price_cents),
            "quantity": self.quantity,
            "subtotal": cents_to_number(self.subtotal_cents),
            "created_at": to_utc_z(self.created_at),
        }
