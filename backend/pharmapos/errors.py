# Overview: Exception taxonomy for the sale path; each error carries its HTTP status.

from __future__ import annotations


class SaleError(Exception):
    """Base for sale operation errors. Routes map status_code onto the response."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleValidationError(SaleError):
    """Malformed or empty cart, bad payment method."""
    status_code = 400


class StoreAssignmentError(SaleError):
    """Caller has no store; a configuration problem, not a client mistake."""
    status_code = 400


class AuthenticationRequiredError(SaleError):
    status_code = 401


class TenantMismatchError(SaleError):
    """Referenced batch belongs to a different store."""
    status_code = 403


class AttributionConflictError(SaleError):
    """Caller tried to attribute the sale to someone else."""
    status_code = 403


class ProductNotFoundError(SaleError):
    status_code = 404


class SaleNotFoundError(SaleError):
    status_code = 404


class InsufficientStockError(SaleError):
    status_code = 400


class StructuralStorageMismatch(SaleError):
    """
    The sales relation lacks something the sale path cannot do without
    (a required column, or any way to record cashier attribution).
    Needs a schema migration.
    """
    status_code = 500
