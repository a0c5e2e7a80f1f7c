# Overview: Service-layer operations for customers; encapsulates business logic and database work.

"""
Customers Service

Customers are the loyalty target of a sale. loyalty_points is never set
here; it only grows through loyalty_service.award_points.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Customer
from ..validation import ConflictError
from .errors import ServiceError
from posapi.pagination import clamp_page, page_payload

CUSTOMER_CREATE_FIELDS = {"name", "email", "phone"}


class CustomerNotFoundError(ServiceError):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: int):
        super().__init__(f"Customer {customer_id} not found", details={"customer_id": customer_id})
        self.customer_id = customer_id


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def list_customers(page: int | None = None, per_page: int | None = None, search: str | None = None) -> dict:
    """Customers by name; search matches name, email or phone."""
    query = db.session.query(Customer).filter(Customer.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.name.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())

    page, per_page = clamp_page(page, per_page, default_per_page=20)
    total = query.count()
    customers = query.offset((page - 1) * per_page).limit(per_page).all()
    return page_payload([c.to_dict() for c in customers], total, page, per_page)


def create_customer(*, patch: dict) -> Customer:
    """
    Create a customer from a validated patch.

    Raises:
        ConflictError: email already registered
    """
    email = patch.get("email")
    if email:
        email = email.lower()
        patch = {**patch, "email": email}
        if db.session.query(Customer).filter(Customer.email == email).first():
            raise ConflictError("Email already registered.")

    customer = Customer(loyalty_points=0)
    for key, value in patch.items():
        if key in CUSTOMER_CREATE_FIELDS:
            setattr(customer, key, value)
    db.session.add(customer)
    db.session.commit()
    return customer
