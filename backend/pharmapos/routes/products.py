# Overview: Flask API routes for product batches; parses input and returns JSON responses.

"""
Product batch routes with multi-tenant support.

MULTI-TENANT: Batches are created in and listed from the caller's store
(g.store_id, set by @require_auth).

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Replenishment requires RECEIVE_INVENTORY permission
"""
from flask import Blueprint, current_app, request, g
from ..services.inventory_service import get_distributor, list_batches, replenish_batch
from ..services.tenant_service import TenantAccessError, require_store_context
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth, require_permission
from ..permissions import role_has_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "batch_no",
        "expiry_date",
        "quantity",
        "cost_price_cents",
        "mrp_cents",
        "discount_percent",
        "manufacturer",
        "reorder_level",
    },
    required_on_create={"name", "batch_no", "expiry_date"},
    aliases={
        "batchNumber": "batch_no",
        "expiryDate": "expiry_date",
        "costPrice": "cost_price_cents",
        "mrp": "mrp_cents",
        "discount": "discount_percent",
        "supplier": "manufacturer",
        "reorderLevel": "reorder_level",
    },
    money_fields={"costPrice", "mrp"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List product batches of the caller's store, newest first.

    Query params:
    - lowStock: 1/true (optional) - only batches at or below reorder level
    """
    low_stock = _truthy(request.args.get("lowStock"))

    store_id = g.store_id
    if store_id is None and not role_has_permission(g.current_user.role, "SYSTEM_ADMIN"):
        return {"success": False, "message": "User not assigned to a store"}, 400

    products = list_batches(store_id, low_stock=low_stock)
    return {"success": True, "data": {"products": [p.to_dict() for p in products]}}


@products_bp.post("")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def create_product_route():
    """
    Receive a new product batch into the caller's store.

    When a supplier is given, its distributor ledger entry is credited
    with quantity x costPrice in the same transaction.
    """
    payload = request.get_json(silent=True) or {}

    try:
        store_id = require_store_context()
    except TenantAccessError as e:
        return {"success": False, "message": str(e)}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"success": False, "message": str(e)}, 400

    try:
        product = replenish_batch(store_id, patch)
    except Exception:
        current_app.logger.exception("Failed to receive product batch")
        return {"success": False, "message": "Failed to create product"}, 500

    distributor = get_distributor(store_id, product.manufacturer) if product.manufacturer else None

    return {
        "success": True,
        "message": "Product created",
        "data": {
            "product": product.to_dict(),
            "distributor": distributor.to_dict() if distributor else None,
        },
    }, 201
