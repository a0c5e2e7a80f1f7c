# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product routes.

SECURITY: All routes require authentication.
- Read operations: any role
- Create / update / receive stock: admin or manager
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Product
from ..services import inventory_service
from ..services.errors import ServiceError
from ..services.products_service import (
    list_products as list_products_service,
    create_product,
    update_product,
    PRODUCT_UPDATABLE_FIELDS,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    amount_to_cents,
    enforce_rules_product,
    parse_positive_int,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_role
from ..http_errors import (
    service_error_response,
    validation_error_response,
    conflict_response,
    internal_error_response,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "quantity_on_hand", "is_active"},
    required_on_create={"sku", "name", "price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_UPDATABLE_FIELDS)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with optional pagination.

    Query params:
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    - active: "true" to hide inactive products
    - q: name/SKU search
    """
    return list_products_service(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        active_only=request.args.get("active", "").lower() == "true",
        search=request.args.get("q"),
    )


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
    except ServiceError as e:
        return service_error_response(e)
    return jsonify({"product": product.to_dict()}), 200


@products_bp.get("/<int:product_id>/movements")
@require_auth
def list_movements_route(product_id: int):
    """Stock movement audit trail for a product, newest first."""
    try:
        inventory_service.get_product(product_id)
    except ServiceError as e:
        return service_error_response(e)
    limit = min(request.args.get("limit", 100, type=int), 500)
    movements = inventory_service.list_movements(product_id, limit=max(limit, 1))
    return jsonify({
        "items": [m.to_dict() for m in movements],
        "count": len(movements),
    }), 200


@products_bp.post("")
@require_auth
@require_role("admin", "manager")
def create_product_route():
    """
    Create a new product.

    Body: sku, name, price (decimal), optional description, stock, is_active.
    """
    payload = request.get_json(silent=True) or {}

    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        data = amount_to_cents(payload, "price", "price_cents")
        if "stock" in data:
            data["quantity_on_hand"] = data.pop("stock")
        patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return validation_error_response(e)

    initial_stock = patch.pop("quantity_on_hand", None) or 0

    try:
        product = create_product(patch=patch, initial_stock=initial_stock)
    except ConflictError as e:
        return conflict_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error_response()

    current_app.logger.info("Product %s created: sku=%s stock=%s", product.id, product.sku, initial_stock)
    return jsonify({"product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin", "manager")
def update_product_route(product_id: int):
    """
    Update a product.

    Body (all optional): name, description, price (decimal), is_active.
    Stock cannot be set here; use /receive. Deactivating a product stops
    new sales of it; recorded sales keep their snapshot.
    """
    payload = request.get_json(silent=True) or {}

    try:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        data = amount_to_cents(payload, "price", "price_cents")
        patch = validate_payload(model=Product, payload=data, policy=PRODUCT_UPDATE_POLICY, partial=True)
        if not patch:
            raise ValidationError("No fields to update", {"body": "is empty"})
        enforce_rules_product(patch)
    except ValidationError as e:
        return validation_error_response(e)

    try:
        product = update_product(product_id=product_id, patch=patch)
    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error_response()

    current_app.logger.info("Product %s updated: fields=%s", product.id, sorted(patch))
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/<int:product_id>/receive")
@require_auth
@require_role("admin", "manager")
def receive_route(product_id: int):
    """Receive stock for a product. Body: quantity (positive int), optional note."""
    data = request.get_json(silent=True) or {}

    try:
        quantity = parse_positive_int(data.get("quantity"), "quantity")
        note = data.get("note")
        if note is not None and (not isinstance(note, str) or len(note) > 255):
            raise ValidationError("note must be a string of at most 255 characters", {"note": "invalid"})
        movement = inventory_service.receive(product_id, quantity, note=note)
        product = inventory_service.get_product(product_id)
    except ValidationError as e:
        return validation_error_response(e)
    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return internal_error_response()

    return jsonify({"movement": movement.to_dict(), "product": product.to_dict()}), 201
