# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g
from flask import current_app

from ..services import sales_service
from ..errors import SaleError
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _error(e: SaleError):
    body = {"success": False, "message": str(e)}
    if e.details:
        body["details"] = e.details
    return jsonify(body), e.status_code


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Ring up a sale: decrement stock and record the sale with its items.

    Requires: CREATE_SALE permission
    Available to: ADMIN, MEDICAL_OWNER, CASHIER (with a store)
    """
    try:
        payload = request.get_json(silent=True)
        if payload is None:
            payload = {}

        sale = sales_service.create_sale(user=g.current_user, payload=payload, store_id=g.store_id)

        return jsonify({"success": True, "message": "Sale created", "data": {"sale": sale}}), 201

    except SaleError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"success": False, "message": "Failed to create sale"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Sales history.

    Cashiers see their own sales; owners see their store's sales;
    admins without a store see all sales. Newest first.
    """
    try:
        sales = sales_service.list_sales_for_user(g.current_user, store_id=g.store_id)
        return jsonify({"success": True, "data": {"sales": sales}})
    except SaleError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"success": False, "message": "Failed to list sales"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    """Get one sale with items, scoped like the listing."""
    try:
        sale = sales_service.get_sale_for_user(g.current_user, sale_id, store_id=g.store_id)
        return jsonify({"success": True, "data": {"sale": sale}})
    except SaleError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"success": False, "message": "Failed to get sale"}), 500
