# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Products Service

Products are created here with their opening stock; every later stock
change goes through inventory_service.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, InventoryTransaction
from ..models.inventory import MOVEMENT_RECEIVE
from ..validation import ConflictError
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .inventory_service import ProductNotFoundError
from posapi.pagination import clamp_page, page_payload

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "price_cents", "is_active"}

# Fields an existing product may change; stock moves only through inventory_service
PRODUCT_UPDATABLE_FIELDS = {"name", "description", "price_cents", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    page: int | None = None,
    per_page: int | None = None,
    active_only: bool = False,
    search: str | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Args:
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)
        active_only: Hide inactive products
        search: Case-insensitive substring of name or SKU

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if active_only:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        base_query = base_query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    page, per_page = clamp_page(page, per_page, default_per_page=20)
    total = base_query.count()
    products = base_query.offset((page - 1) * per_page).limit(per_page).all()
    return page_payload([p.to_dict() for p in products], total, page, per_page)


def create_product(*, patch: dict, initial_stock: int = 0) -> Product:
    """
    Create product using a validated patch dict.

    Opening stock is recorded as a RECEIVE movement in the same commit.

    Raises:
        ConflictError: If SKU already exists
    """
    sku = patch.get("sku")
    if sku is None:
        raise ValueError("sku is required")

    existing = db.session.query(Product).filter(Product.sku == sku).first()
    if existing:
        raise ConflictError("SKU already exists.")

    p = Product(quantity_on_hand=initial_stock)
    apply_product_patch(p, patch)
    db.session.add(p)
    db.session.flush()

    if initial_stock > 0:
        db.session.add(InventoryTransaction(
            product_id=p.id,
            type=MOVEMENT_RECEIVE,
            quantity_delta=initial_stock,
            note="Opening stock",
        ))

    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update name, description, price or active flag of a product.

    Recorded sales keep the name/price snapshot taken at checkout. A
    deactivated product can no longer be sold (ProductInactiveError).

    Raises:
        ProductNotFoundError: unknown product
        ValueError: patch names a field outside PRODUCT_UPDATABLE_FIELDS
    """
    not_allowed = sorted(set(patch) - PRODUCT_UPDATABLE_FIELDS)
    if not_allowed:
        raise ValueError(f"Fields cannot be updated: {', '.join(not_allowed)}")

    def _op():
        begin_write_transaction()
        p = (
            lock_for_update(db.session.query(Product).filter(Product.id == product_id))
            .populate_existing()
            .first()
        )
        if p is None:
            raise ProductNotFoundError(product_id)

        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)
