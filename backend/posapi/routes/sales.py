# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales API routes

- POST  /api/sales                 create a sale (any authenticated role)
- GET   /api/sales                 list with filters/sorting/pagination
- GET   /api/sales/<id>            sale with line items
- PATCH /api/sales/<id>/status     status change (admin/manager only)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.errors import ServiceError
from ..services.sales_service import DEFAULT_PER_PAGE, MAX_PER_PAGE
from ..decorators import require_auth, require_role
from ..http_errors import service_error_response, internal_error_response
from ..pagination import clamp_page, page_payload


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale.

    Body:
        items: [{"product_id": int, "quantity": int}, ...]
        payment_method: cash | card | ewallet | other
        discount_amount: number >= 0 (optional)
        customer_id: int (optional)
        notes: str <= 500 chars (optional)
        status: "completed" (default) or "pending"
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    try:
        sale = sales_service.create_sale(
            user_id=g.current_user.id,
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            discount_amount=data.get("discount_amount", 0),
            customer_id=data.get("customer_id"),
            notes=data.get("notes"),
            status=data.get("status") or "completed",
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return internal_error_response()


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params: user_id, customer_id, status, payment_method, date_from,
    date_to (YYYY-MM-DD), page (default 1), per_page (default 10, max 100),
    sort (created_at|total_amount|invoice_number), order (asc|desc).
    """
    filters = {
        "user_id": request.args.get("user_id"),
        "customer_id": request.args.get("customer_id"),
        "status": request.args.get("status"),
        "payment_method": request.args.get("payment_method"),
        "date_from": request.args.get("date_from"),
        "date_to": request.args.get("date_to"),
    }
    page, per_page = clamp_page(
        request.args.get("page", type=int),
        request.args.get("per_page", type=int),
        default_per_page=DEFAULT_PER_PAGE,
        max_per_page=MAX_PER_PAGE,
    )

    try:
        sales, total = sales_service.list_sales(
            filters,
            page=page,
            per_page=per_page,
            sort=request.args.get("sort", "created_at"),
            order=request.args.get("order", "desc"),
        )
    except ServiceError as e:
        return service_error_response(e)

    return jsonify(page_payload([s.to_dict() for s in sales], total, page, per_page)), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except ServiceError as e:
        return service_error_response(e)
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.patch("/<int:sale_id>/status")
@require_auth
@require_role("admin", "manager")
def update_status_route(sale_id: int):
    """
    Change sale status. Body: {"status": "completed" | "cancelled" | "refunded"}

    Cancelling a pending sale or refunding a completed one returns its
    items to stock.
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status") if isinstance(data, dict) else None
    if not status:
        return jsonify({
            "error": "status required",
            "code": "VALIDATION_ERROR",
            "details": {"fields": {"status": "is required"}},
        }), 400

    try:
        sale = sales_service.update_sale_status(sale_id, status, user_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 200

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return internal_error_response()
