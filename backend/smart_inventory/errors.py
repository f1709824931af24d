# Overview: Error taxonomy shared by the stock ledger, order fulfillment and routes.

from __future__ import annotations


class InventoryError(Exception):
    """Base class for expected, recoverable core failures."""

    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(InventoryError, ValueError):
    """400-level input problem, raised before any lock is taken."""


class ConflictError(ValidationError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    http_status = 409


class NotFoundError(InventoryError):
    """A referenced branch, product or inventory record does not exist."""

    http_status = 404


class ProductInactive(ValidationError, NotFoundError):
    """Inactive products are not stockable or sellable."""

    http_status = 422


class InsufficientStock(InventoryError):
    """Requested deduction exceeds the quantity on hand."""

    http_status = 422


class InvariantViolation(InventoryError):
    """The operation would leave stock negative."""

    http_status = 422


class Contention(InventoryError):
    """Lock could not be acquired in time. Safe to retry."""

    http_status = 503
