# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Invariants (authoritative)

- Product.quantity_on_hand is the available quantity and never goes negative.
- Every change to it is a single conditional SQL UPDATE; Python never
  reads a quantity and writes back a computed one.
- Every change appends an InventoryTransaction in the same DB transaction:
    RECEIVE  (+q)  goods in
    SALE     (-q)  reservation at checkout
    RESTORE  (+q)  compensating return on cancel/refund
- try_reserve/restore never commit; the caller owns the transaction.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Product, InventoryTransaction
from ..models.inventory import MOVEMENT_RECEIVE, MOVEMENT_SALE, MOVEMENT_RESTORE
from .concurrency import begin_write_transaction, run_with_retry
from .errors import ServiceError


class InventoryError(ServiceError):
    """Raised for invalid inventory operations."""
    code = "INVENTORY_ERROR"


class ProductNotFoundError(InventoryError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class ProductInactiveError(InventoryError):
    code = "PRODUCT_INACTIVE"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} is not active", details={"product_id": product_id})
        self.product_id = product_id


class InsufficientStockError(InventoryError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


# Largest quantity a single movement may carry (32-bit signed column range)
MAX_QUANTITY = 2**31 - 1


def _require_positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InventoryError("quantity must be a positive integer", details={"quantity": quantity})
    if quantity > MAX_QUANTITY:
        raise InventoryError(
            f"quantity cannot exceed {MAX_QUANTITY}",
            details={"quantity": quantity, "max_quantity": MAX_QUANTITY},
        )
    return quantity


def _expire_cached_product(product_id: int) -> None:
    # Core UPDATEs bypass the identity map; drop the stale copy if loaded.
    key = db.session.identity_key(Product, product_id)
    cached = db.session.identity_map.get(key)
    if cached is not None:
        db.session.expire(cached)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_available(product_id: int) -> int:
    """Current available quantity for a product."""
    quantity = db.session.execute(
        db.select(Product.quantity_on_hand).where(Product.id == product_id)
    ).scalar_one_or_none()
    if quantity is None:
        raise ProductNotFoundError(product_id)
    return quantity


def try_reserve(
    product_id: int,
    quantity: int,
    *,
    sale_id: int | None = None,
    note: str | None = None,
) -> InventoryTransaction:
    """
    Atomically decrement available stock by quantity.

    The UPDATE only matches when the product is active and has enough
    stock, so two concurrent reservations can never both succeed against
    stock that only covers one. On a miss the product is re-read to report
    why. Returns the SALE movement row (not yet committed).
    """
    quantity = _require_positive_quantity(quantity)

    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.is_active.is_(True),
            Product.quantity_on_hand >= quantity,
        )
        .values(
            quantity_on_hand=Product.quantity_on_hand - quantity,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    _expire_cached_product(product_id)

    if result.rowcount != 1:
        product = db.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_active:
            raise ProductInactiveError(product_id)
        current_app.logger.info(
            "Insufficient stock for product %s: requested=%s available=%s",
            product_id, quantity, product.quantity_on_hand,
        )
        raise InsufficientStockError(product_id, quantity, product.quantity_on_hand)

    movement = InventoryTransaction(
        product_id=product_id,
        type=MOVEMENT_SALE,
        quantity_delta=-quantity,
        sale_id=sale_id,
        note=note,
    )
    db.session.add(movement)
    return movement


def restore(
    product_id: int,
    quantity: int,
    *,
    sale_id: int | None = None,
    note: str | None = None,
) -> InventoryTransaction:
    """
    Atomically return quantity to stock (cancel/refund compensation).

    Applies exactly the quantity given; callers guarantee each sale is
    restored at most once. Does not commit.
    """
    quantity = _require_positive_quantity(quantity)

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(
            quantity_on_hand=Product.quantity_on_hand + quantity,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    _expire_cached_product(product_id)

    if result.rowcount != 1:
        raise ProductNotFoundError(product_id)

    movement = InventoryTransaction(
        product_id=product_id,
        type=MOVEMENT_RESTORE,
        quantity_delta=quantity,
        sale_id=sale_id,
        note=note,
    )
    db.session.add(movement)
    return movement


def receive(product_id: int, quantity: int, note: str | None = None) -> InventoryTransaction:
    """Goods in: increment stock, record a RECEIVE movement, and commit."""
    quantity = _require_positive_quantity(quantity)

    def _op():
        begin_write_transaction()
        result = db.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(
                quantity_on_hand=Product.quantity_on_hand + quantity,
                version_id=Product.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        _expire_cached_product(product_id)
        if result.rowcount != 1:
            raise ProductNotFoundError(product_id)

        movement = InventoryTransaction(
            product_id=product_id,
            type=MOVEMENT_RECEIVE,
            quantity_delta=quantity,
            note=note,
        )
        db.session.add(movement)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(product_id: int, limit: int = 100) -> list[InventoryTransaction]:
    """Most recent stock movements for a product, newest first."""
    return (
        db.session.query(InventoryTransaction)
        .filter_by(product_id=product_id)
        .order_by(InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )
