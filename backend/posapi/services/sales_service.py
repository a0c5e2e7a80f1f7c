# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sale Transaction Engine

create_sale runs as ONE database transaction:
    validate -> lock products -> compute totals -> reserve stock per line
    -> insert Sale + SaleItems -> commit
Any failure before commit rolls everything back, including reservations
already made for earlier lines. Loyalty points are awarded only after the
commit (see loyalty_service) and can never fail a sale.

update_sale_status is a compare-and-swap on the stored status; the
compensating restores for cancel/refund run in the same transaction, so
racing duplicate requests return stock at most once.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, SaleItem, Product, Customer
from ..models.sales import PAYMENT_METHODS
from posapi.money import from_cents, quantize, to_decimal
from posapi.pagination import clamp_page
from posapi.time_utils import day_bounds, parse_iso_date, utcnow
from . import inventory_service, loyalty_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .errors import ServiceError
from .inventory_service import MAX_QUANTITY, ProductInactiveError, ProductNotFoundError
from .invoice_service import next_invoice_number
from .pricing_service import TAX_RATE, PricingError, compute_totals
from .sale_lifecycle import (
    COMPLETED,
    INITIAL_STATUSES,
    STATUSES,
    InvalidTransitionError,
    is_compensating,
    require_transition,
)

MAX_NOTES_LENGTH = 500
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100

SORT_COLUMNS = {
    "created_at": Sale.created_at,
    "total_amount": Sale.total_cents,
    "invoice_number": Sale.invoice_number,
}


class SaleError(ServiceError):
    """Raised for sale operation errors."""
    code = "SALE_ERROR"


class SaleValidationError(SaleError):
    """Request rejected before any inventory was touched."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: dict[str, str]):
        super().__init__(message, details={"fields": fields})
        self.fields = fields


class InvalidPaymentMethodError(SaleError):
    code = "INVALID_PAYMENT_METHOD"

    def __init__(self, payment_method):
        super().__init__(
            f"Invalid payment method: {payment_method!r}",
            details={"payment_method": payment_method, "allowed": list(PAYMENT_METHODS)},
        )


class SaleNotFoundError(SaleError):
    code = "SALE_NOT_FOUND"

    def __init__(self, sale_id: int):
        super().__init__(f"Sale {sale_id} not found", details={"sale_id": sale_id})
        self.sale_id = sale_id


class DuplicateInvoiceError(SaleError):
    """Generated invoice number already exists; nothing was persisted."""
    code = "DUPLICATE_INVOICE"
    retryable = True


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_QUANTITY


def _validate_sale_request(items, payment_method, discount_amount, notes, status):
    """
    Check the request shape and merge the cart by product.

    Returns (quantities by product id in first-seen order, discount Decimal).
    """
    fields: dict[str, str] = {}

    if not isinstance(items, list) or not items:
        fields["items"] = "At least one item is required"
        items = []

    quantities: dict[int, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            fields[f"items[{index}]"] = "Item must be an object"
            continue
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if not _is_positive_int(product_id):
            fields[f"items[{index}].product_id"] = "product_id is required"
            continue
        if not _is_positive_int(quantity):
            fields[f"items[{index}].quantity"] = f"quantity must be an integer from 1 to {MAX_QUANTITY}"
            continue
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    for product_id, quantity in quantities.items():
        if quantity > MAX_QUANTITY:
            fields["items"] = f"total quantity for product {product_id} cannot exceed {MAX_QUANTITY}"

    discount = None
    try:
        discount = to_decimal(0 if discount_amount is None else discount_amount)
    except ValueError:
        fields["discount_amount"] = "discount_amount must be a number"
    if discount is not None and discount < 0:
        fields["discount_amount"] = "discount_amount cannot be negative"
    elif discount is not None:
        try:
            quantize(discount)
        except ValueError:
            fields["discount_amount"] = "discount_amount is out of range"

    if notes is not None:
        if not isinstance(notes, str):
            fields["notes"] = "notes must be a string"
        elif len(notes) > MAX_NOTES_LENGTH:
            fields["notes"] = f"notes cannot exceed {MAX_NOTES_LENGTH} characters"

    if status not in INITIAL_STATUSES:
        fields["status"] = f"status must be one of: {', '.join(INITIAL_STATUSES)}"

    if fields:
        raise SaleValidationError("Invalid sale request", fields)

    if payment_method not in PAYMENT_METHODS:
        raise InvalidPaymentMethodError(payment_method)

    return quantities, discount


def create_sale(
    *,
    user_id: int,
    items: list[dict],
    payment_method: str,
    discount_amount=0,
    customer_id: int | None = None,
    notes: str | None = None,
    status: str = COMPLETED,
) -> Sale:
    """
    Create a sale: reserve stock for every line, persist the sale, award loyalty.

    Raises SaleValidationError / InvalidPaymentMethodError before touching
    stock; ProductNotFoundError, ProductInactiveError or InsufficientStockError
    when a line cannot be reserved (nothing is kept); DuplicateInvoiceError or
    StorageUnavailableError (retryable) when persistence fails.
    """
    quantities, discount = _validate_sale_request(items, payment_method, discount_amount, notes, status)
    tax_rate = current_app.config.get("TAX_RATE", TAX_RATE)

    def _op():
        begin_write_transaction()

        # Lock order is ascending product id for every sale
        product_ids = sorted(quantities)
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id.asc())
            ).all()
        }
        for product_id in product_ids:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if not product.is_active:
                raise ProductInactiveError(product_id)

        if customer_id is not None and db.session.get(Customer, customer_id) is None:
            raise SaleValidationError("Invalid sale request", {"customer_id": "Customer not found"})

        # Snapshot before reserving; the reservation expires the loaded rows
        snapshots = [
            (product_id, products[product_id].name, products[product_id].price_cents, quantity)
            for product_id, quantity in quantities.items()
        ]

        try:
            totals = compute_totals(
                ((from_cents(price_cents), quantity) for _, _, price_cents, quantity in snapshots),
                discount=discount,
                tax_rate=tax_rate,
            )
        except PricingError as exc:
            raise SaleValidationError("Invalid sale request", {"discount_amount": str(exc)})

        movements = [
            inventory_service.try_reserve(product_id, quantities[product_id])
            for product_id in product_ids
        ]

        now = utcnow()
        sale = Sale(
            invoice_number=next_invoice_number(now.date()),
            user_id=user_id,
            customer_id=customer_id,
            payment_method=payment_method,
            status=status,
            notes=notes,
            created_at=now,
            updated_at=now,
            **totals.to_cents(),
        )
        for product_id, name, price_cents, quantity in snapshots:
            sale.items.append(SaleItem(
                product_id=product_id,
                product_name=name,
                unit_price_cents=price_cents,
                quantity=quantity,
                subtotal_cents=price_cents * quantity,
                created_at=now,
            ))
        db.session.add(sale)
        for movement in movements:
            movement.sale = sale
            movement.note = f"Sale {sale.invoice_number}"

        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            if "invoice_number" in str(exc.orig):
                raise DuplicateInvoiceError(
                    "Invoice number already in use; retry the sale",
                    details={"invoice_number": sale.invoice_number},
                ) from exc
            raise

        db.session.commit()
        return sale

    sale = run_with_retry(_op)

    current_app.logger.info(
        "Sale %s created: invoice=%s user=%s total_cents=%s status=%s",
        sale.id, sale.invoice_number, user_id, sale.total_cents, sale.status,
    )

    if customer_id is not None:
        loyalty_service.dispatch_award(customer_id, sale.id)

    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return sale


def update_sale_status(sale_id: int, new_status: str, *, user_id: int | None = None) -> Sale:
    """
    Move a sale to new_status, restoring stock for cancel/refund.

    The status write is conditional on the status read; if another request
    changed it first, this one fails with InvalidTransitionError and
    restores nothing.
    """
    if new_status not in STATUSES:
        raise SaleValidationError(
            "Invalid status",
            {"status": f"status must be one of: {', '.join(STATUSES)}"},
        )

    def _op():
        begin_write_transaction()

        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise SaleNotFoundError(sale_id)

        current = sale.status
        require_transition(current, new_status, sale_id=sale_id)

        result = db.session.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.status == current)
            .values(status=new_status, updated_at=utcnow(), version_id=Sale.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransitionError(
                "Sale status changed concurrently",
                details={"sale_id": sale_id, "requested_status": new_status},
            )

        if is_compensating(current, new_status):
            for item in sale.items:
                inventory_service.restore(
                    item.product_id,
                    item.quantity,
                    sale_id=sale.id,
                    note=f"{new_status.capitalize()} {sale.invoice_number}",
                )

        db.session.commit()
        return sale, current

    sale, previous = run_with_retry(_op)

    current_app.logger.info(
        "Sale %s status %s -> %s by user %s", sale.id, previous, new_status, user_id
    )
    return sale


def _coerce_filter_id(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, str) and value.strip().isdecimal():
        value = int(value.strip())
    if not _is_positive_int(value):
        raise SaleValidationError("Invalid filter", {field: "must be a positive integer"})
    return value


def _coerce_filter_date(value, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise SaleValidationError("Invalid filter", {field: "must be an ISO date (YYYY-MM-DD)"})


def list_sales(
    filters: dict | None = None,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    sort: str = "created_at",
    order: str = "desc",
) -> tuple[list[Sale], int]:
    """
    Filtered, sorted, paginated sales.

    filters: user_id, customer_id, status, payment_method, date_from,
    date_to (inclusive UTC days). Unknown sort/order fall back to defaults.
    Returns (sales on the page, total matching).
    """
    filters = filters or {}
    query = db.session.query(Sale)

    for key in ("user_id", "customer_id"):
        value = _coerce_filter_id(filters.get(key), key)
        if value is not None:
            query = query.filter(getattr(Sale, key) == value)

    for key in ("status", "payment_method"):
        value = filters.get(key)
        if value is not None and value != "":
            query = query.filter(getattr(Sale, key) == value)

    date_from = _coerce_filter_date(filters.get("date_from"), "date_from")
    date_to = _coerce_filter_date(filters.get("date_to"), "date_to")
    if date_from is not None:
        query = query.filter(Sale.created_at >= day_bounds(date_from)[0])
    if date_to is not None:
        query = query.filter(Sale.created_at < day_bounds(date_to)[1])

    column = SORT_COLUMNS.get(sort, SORT_COLUMNS["created_at"])
    if order == "asc":
        query = query.order_by(column.asc(), Sale.id.asc())
    else:
        query = query.order_by(column.desc(), Sale.id.desc())

    page, per_page = clamp_page(page, per_page, default_per_page=DEFAULT_PER_PAGE, max_per_page=MAX_PER_PAGE)

    total = query.count()
    sales = query.offset((page - 1) * per_page).limit(per_page).all()
    return sales, total
