# Overview: Flask API routes for customers operations; parses input and returns JSON responses.

"""
Customer routes (any authenticated role).

- POST /api/customers        register a customer at the till
- GET  /api/customers        list/search (paginated)
- GET  /api/customers/<id>   customer with loyalty balance
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Customer
from ..services.customers_service import (
    CUSTOMER_CREATE_FIELDS,
    create_customer,
    get_customer,
    list_customers,
)
from ..services.errors import ServiceError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError
from ..decorators import require_auth
from ..http_errors import (
    service_error_response,
    validation_error_response,
    conflict_response,
    internal_error_response,
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=CUSTOMER_CREATE_FIELDS,
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    """Query params: page, per_page (default 20, max 100), q (name/email/phone search)."""
    return list_customers(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        search=request.args.get("q"),
    )


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = get_customer(customer_id)
    except ServiceError as e:
        return service_error_response(e)
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.post("")
@require_auth
def create_customer_route():
    """Body: name (required), email, phone."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        email = patch.get("email")
        if email is not None and "@" not in email:
            raise ValidationError("email must be a valid address", {"email": "invalid"})
    except ValidationError as e:
        return validation_error_response(e)

    try:
        customer = create_customer(patch=patch)
    except ConflictError as e:
        return conflict_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return internal_error_response()

    current_app.logger.info("Customer %s created", customer.id)
    return jsonify({"customer": customer.to_dict()}), 201
