"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Every pharmacy is a tenant (store). Requests are scoped to the
store the session was issued for, and cross-store access to batches or
sales must be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.store_id set (None only for admins)
2. Queries touching store-owned data filter by store_id
3. Cross-tenant access attempts are logged for the operator

USAGE:
    from pharmapos.services.tenant_service import scoped_query, require_store_context

    store_id = require_store_context()
    batches = scoped_query(Product, store_id).all()
"""

from flask import current_app, g, has_request_context, request

from ..extensions import db


class TenantAccessError(Exception):
    """Raised when no store context is available for a store-scoped operation."""
    pass


def get_current_store_id() -> int | None:
    """
    Get current session's store_id from Flask g context.

    Returns None for admins who aren't assigned to a specific store.
    """
    return getattr(g, 'store_id', None)


def require_store_context() -> int:
    """
    Get the current store_id, raising if the caller has none.

    Store-scoped writes (receiving stock, ringing up a sale) need a
    concrete tenant; admins without a store cannot perform them.
    """
    store_id = get_current_store_id()
    if store_id is None:
        raise TenantAccessError("User not assigned to a store")
    return store_id


def scoped_query(model, store_id: int | None):
    """
    Create a base query scoped to one store.

    store_id=None means "all stores" and is only reachable by admins
    without a store assignment.
    """
    query = db.session.query(model)
    if store_id is not None:
        query = query.filter(model.store_id == store_id)
    return query


def log_cross_tenant_attempt(
    reason: str,
    *,
    user_id: int | None = None,
    store_id: int | None = None,
    attempted_store_id: int | None = None,
) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    SECURITY: These lines should be monitored and alerted on.
    """
    path = request.path if has_request_context() else None
    current_app.logger.warning(
        "CROSS_TENANT_ACCESS_DENIED user_id=%s store_id=%s attempted_store_id=%s path=%s reason=%s",
        user_id, store_id, attempted_store_id, path, reason,
    )
