# Overview: Common base for service-layer errors raised to the API routes.

from __future__ import annotations


class ServiceError(Exception):
    """
    Base class for domain errors raised by services.

    code: stable machine-readable identifier returned to API clients
    details: structured context (product_id, sale_id, fields, ...)
    retryable: True when the same request may succeed if sent again
    """
    code = "SERVICE_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": self.details,
        }
