from __future__ import annotations

from ..extensions import db
from posapi.time_utils import to_utc_z

REWARD_EARN = "EARN"


class Customer(db.Model):
    """
    Customer master data with a loyalty points balance.

    loyalty_points is denormalized from CustomerRewardTransaction and is only
    changed by loyalty_service, never by the sale transaction itself.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("loyalty_points >= 0", name="ck_customers_points_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "loyalty_points": self.loyalty_points,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class CustomerRewardTransaction(db.Model):
    """
    Append-only ledger of reward point events.

    The unique constraint makes "one award per sale" a database fact, so a
    re-dispatched award for the same sale cannot double-credit.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "customer_reward_transactions"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "sale_id", "transaction_type", name="uq_reward_txns_customer_sale_type"),
        db.Index("ix_reward_txns_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)  # EARN
    points = db.Column(db.Integer, nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", backref=db.backref("reward_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "transaction_type": self.transaction_type,
            "points": self.points,
            "occurred_at": to_utc_z(self.occurred_at),
        }
