# Overview: Maps service-layer errors to JSON error responses.

from flask import jsonify

from .services.errors import ServiceError
from .validation import ValidationError, ConflictError

STATUS_BY_CODE = {
    "VALIDATION_ERROR": 400,
    "INVALID_PAYMENT_METHOD": 400,
    "INVENTORY_ERROR": 400,
    "PRODUCT_NOT_FOUND": 404,
    "SALE_NOT_FOUND": 404,
    "CUSTOMER_NOT_FOUND": 404,
    "INSUFFICIENT_STOCK": 409,
    "PRODUCT_INACTIVE": 409,
    "INVALID_TRANSITION": 409,
    "DUPLICATE_INVOICE": 503,
    "STORAGE_UNAVAILABLE": 503,
}


def service_error_response(exc: ServiceError):
    status = STATUS_BY_CODE.get(exc.code, 400)
    body = exc.to_dict()
    if exc.retryable:
        body["retryable"] = True
    response = jsonify(body)
    if status == 503:
        response.headers["Retry-After"] = "1"
    return response, status


def validation_error_response(exc: ValidationError):
    return jsonify({
        "error": str(exc),
        "code": "VALIDATION_ERROR",
        "details": {"fields": exc.fields},
    }), 400


def conflict_response(exc: ConflictError):
    return jsonify({"error": str(exc), "code": "CONFLICT", "details": {}}), 409


def internal_error_response():
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500
