"""
Sales Service - atomic point-of-sale transaction

WHY: A sale is the only thing that takes stock out of a store. The
check-then-decrement of every batch, the sale header and its line items
must commit together or not at all, and the header must be writable even
against a database whose sales table lags the model (see schema_service).
"""

from __future__ import annotations

from dataclasses import dataclass

import sqlalchemy as sa
from flask import current_app

from ..errors import (
    AttributionConflictError,
    AuthenticationRequiredError,
    InsufficientStockError,
    ProductNotFoundError,
    SaleNotFoundError,
    SaleValidationError,
    StoreAssignmentError,
    TenantMismatchError,
)
from ..extensions import db
from ..models import PAYMENT_METHODS, ROLE_ADMIN, ROLE_CASHIER, Product, Sale, SaleItem, User
from pharmapos.money import MAX_AMOUNT_CENTS, MAX_STORED_CENTS, from_cents, to_cents
from pharmapos.time_utils import to_utc_z
from . import schema_service
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .document_service import generate_invoice_number
from .schema_service import ATTRIBUTION_MODE_LEGACY_UPDATE, SchemaCapabilities
from .tenant_service import log_cross_tenant_attempt

# Largest quantity accepted on one cart line
MAX_QUANTITY = 1_000_000

# Wire name -> sales column
CUSTOMER_FIELDS = {
    "name": "customer_name",
    "mobile": "customer_mobile",
    "address": "customer_address",
    "doctorName": "doctor_name",
    "doctorMobile": "doctor_mobile",
}


@dataclass(frozen=True)
class CartLine:
    """One normalized cart entry; product_id is None for manual items."""
    product_id: int | None
    name: str | None
    quantity: int
    price_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.price_cents


@dataclass(frozen=True)
class Cart:
    lines: tuple[CartLine, ...]
    payment_method: str
    customer: dict

    @property
    def total_cents(self) -> int:
        return sum(line.subtotal_cents for line in self.lines)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _coerce_int(value) -> int | None:
    """Integer from a JSON number or digit string; None if not an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
    return None


def _clean_str(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_line(index: int, raw, errors: list[str]) -> CartLine | None:
    prefix = f"items[{index}]"
    if not isinstance(raw, dict):
        errors.append(f"{prefix} must be an object")
        return None

    line_errors = len(errors)

    product_id = None
    raw_product_id = raw.get("productId")
    if raw_product_id not in (None, ""):
        product_id = _coerce_int(raw_product_id)
        if product_id is None or product_id <= 0:
            errors.append(f"{prefix}.productId must be a positive integer")

    name = _clean_str(raw.get("name"))
    if raw_product_id in (None, "") and name is None:
        errors.append(f"{prefix} must have a productId or a name")

    quantity = _coerce_int(raw.get("quantity"))
    if quantity is None or quantity < 0:
        errors.append(f"{prefix}.quantity must be a non-negative integer")
    elif quantity > MAX_QUANTITY:
        errors.append(f"{prefix}.quantity cannot exceed {MAX_QUANTITY:,}")

    price_cents = None
    try:
        price_cents = to_cents(raw.get("price"))
    except ValueError:
        errors.append(f"{prefix}.price must be a number")
    else:
        if price_cents < 0 or price_cents > MAX_AMOUNT_CENTS:
            errors.append(f"{prefix}.price must be between 0 and {MAX_AMOUNT_CENTS / 100:,.2f}")

    if len(errors) == line_errors and quantity * price_cents > MAX_STORED_CENTS:
        errors.append(f"{prefix} subtotal cannot exceed {MAX_STORED_CENTS / 100:,.2f}")

    if len(errors) > line_errors:
        return None
    return CartLine(product_id=product_id, name=name, quantity=quantity, price_cents=price_cents)


def _normalize_customer(raw) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise SaleValidationError("customer must be an object")

    customer = {}
    for wire_name, column_name in CUSTOMER_FIELDS.items():
        value = _clean_str(raw.get(wire_name))
        if value is None:
            continue
        limit = Sale.__table__.c[column_name].type.length
        if limit and len(value) > limit:
            raise SaleValidationError(f"customer.{wire_name} exceeds max length {limit}")
        customer[column_name] = value
    return customer


def normalize_cart(payload: dict) -> Cart:
    """
    Validate and normalize a sale request body.

    Raises SaleValidationError naming every invalid item field.
    """
    if not isinstance(payload, dict):
        raise SaleValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise SaleValidationError("No items provided")

    errors: list[str] = []
    lines = [_normalize_line(i, raw, errors) for i, raw in enumerate(items)]
    if errors:
        raise SaleValidationError("Invalid sale items", details={"errors": errors})

    total_cents = sum(line.subtotal_cents for line in lines)
    if total_cents > MAX_STORED_CENTS:
        raise SaleValidationError(
            f"Sale total cannot exceed {MAX_STORED_CENTS / 100:,.2f}",
            details={"total": from_cents(total_cents)},
        )

    payment_method = payload.get("paymentMethod") or "CASH"
    if payment_method not in PAYMENT_METHODS:
        raise SaleValidationError(
            f"paymentMethod must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"paymentMethod": payment_method},
        )

    return Cart(
        lines=tuple(lines),
        payment_method=payment_method,
        customer=_normalize_customer(payload.get("customer")),
    )


def _claimed_cashier_id(payload: dict, caller_id: int) -> int | None:
    """Legacy clients send the cashierId they cached; it must be the caller."""
    raw = payload.get("cashierId") if isinstance(payload, dict) else None
    if raw in (None, ""):
        return None
    claimed = _coerce_int(raw)
    if claimed != caller_id:
        raise AttributionConflictError(
            "Provided cashierId does not match authenticated user",
            details={"cashierId": raw},
        )
    return claimed


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _item_to_dict(item: SaleItem) -> dict:
    data = item.to_dict()
    product = item.product
    data["product"] = {
        "id": product.id,
        "name": product.name,
        "batchNo": product.batch_no,
        "expiryDate": product.expiry_date.isoformat() if product.expiry_date else None,
    } if product else None
    return data


def _sale_row_to_dict(row, items: list[SaleItem], cashier: User | None) -> dict:
    return {
        "id": row["id"],
        "invoiceNo": row["invoice_no"],
        "storeId": row["store_id"],
        "cashierId": row["cashier_id"],
        "totalAmount": from_cents(row["total_amount_cents"]),
        "netAmount": from_cents(row["net_amount_cents"]),
        "paymentMethod": row["payment_method"],
        "customerName": row["customer_name"],
        "customerMobile": row["customer_mobile"],
        "customerAddress": row["customer_address"],
        "doctorName": row["doctor_name"],
        "doctorMobile": row["doctor_mobile"],
        "createdAt": to_utc_z(row["created_at"]),
        "items": [_item_to_dict(item) for item in items],
        "cashier": cashier.to_summary() if cashier else None,
    }


def _serialize_rows(rows) -> list[dict]:
    if not rows:
        return []

    sale_ids = [row["id"] for row in rows]
    items_by_sale: dict[int, list[SaleItem]] = {sale_id: [] for sale_id in sale_ids}
    items = (
        db.session.query(SaleItem)
        .filter(SaleItem.sale_id.in_(sale_ids))
        .order_by(SaleItem.id)
        .all()
    )
    for item in items:
        items_by_sale[item.sale_id].append(item)

    cashier_ids = {row["cashier_id"] for row in rows if row["cashier_id"] is not None}
    cashiers = {}
    if cashier_ids:
        cashiers = {u.id: u for u in db.session.query(User).filter(User.id.in_(cashier_ids)).all()}

    return [
        _sale_row_to_dict(row, items_by_sale[row["id"]], cashiers.get(row["cashier_id"]))
        for row in rows
    ]


def _fetch_sale(capabilities: SchemaCapabilities, sale_id: int):
    rows = schema_service.execute_sale_read(
        lambda caps: schema_service.sale_select(caps).where(caps.table.c.id == sale_id),
        capabilities,
    )
    return rows[0]


# ---------------------------------------------------------------------------
# Sale transaction
# ---------------------------------------------------------------------------

def _decrement_stock(store_id: int, user_id: int, lines: tuple[CartLine, ...]) -> list[str | None]:
    """
    Lock, check and decrement every catalog-backed batch in cart order.

    Returns the stored line names (catalog lines fall back to the
    product name). Repeated batches see the earlier decrement.
    """
    names = []
    for line in lines:
        if line.product_id is None:
            names.append(line.name)
            continue

        product = lock_for_update(
            db.session.query(Product).filter_by(id=line.product_id)
        ).first()
        if not product:
            raise ProductNotFoundError("Product not found", details={"productId": line.product_id})

        if product.store_id != store_id:
            log_cross_tenant_attempt(
                f"Sale referenced product {product.id} of store {product.store_id}",
                user_id=user_id,
                store_id=store_id,
                attempted_store_id=product.store_id,
            )
            raise TenantMismatchError(
                "Product does not belong to your store",
                details={"productId": line.product_id},
            )

        if product.quantity < line.quantity:
            raise InsufficientStockError(
                f"Insufficient stock for product {product.name}",
                details={
                    "productId": product.id,
                    "requested": line.quantity,
                    "available": product.quantity,
                },
            )

        product.quantity = product.quantity - line.quantity
        db.session.flush()
        names.append(line.name or product.name)
    return names


def create_sale(
    *,
    user: User | None,
    payload: dict,
    store_id: int | None = None,
    capabilities: SchemaCapabilities | None = None,
) -> dict:
    """
    Validate stock, decrement inventory and persist a sale with its items.

    Everything happens in one transaction; any failure leaves no trace.
    Lock contention is retried with a fresh invoice number per attempt.

    store_id is the session's tenant; it defaults to the user's store.

    Returns the created sale (read back through the drift layer) as a dict.
    """
    if user is None or user.id is None:
        raise AuthenticationRequiredError("Authenticated user required to create a sale")

    caller_id = user.id
    if store_id is None:
        store_id = user.store_id
    if not store_id:
        raise StoreAssignmentError("User not assigned to a store")

    claimed_cashier_id = _claimed_cashier_id(payload, caller_id)
    cart = normalize_cart(payload)

    def _op() -> dict:
        begin_write_transaction()
        caps = capabilities or schema_service.get_capabilities()

        names = _decrement_stock(store_id, caller_id, cart.lines)

        total_cents = cart.total_cents
        values = {
            "invoice_no": generate_invoice_number(),
            "store_id": store_id,
            "cashier_id": caller_id,
            "total_amount_cents": total_cents,
            "net_amount_cents": total_cents,
            "payment_method": cart.payment_method,
            **cart.customer,
        }
        sale_id, caps, invoice_no = schema_service.insert_sale_header(
            caps, values, new_invoice_no=generate_invoice_number,
        )

        if caps.attribution_mode == ATTRIBUTION_MODE_LEGACY_UPDATE:
            schema_service.attribute_sale_to_cashier(
                sale_id, caller_id, claimed_cashier_id, capabilities=caps,
            )

        for line, name in zip(cart.lines, names):
            db.session.add(SaleItem(
                sale_id=sale_id,
                product_id=line.product_id,
                name=name,
                quantity=line.quantity,
                price_cents=line.price_cents,
                subtotal_cents=line.subtotal_cents,
            ))
        db.session.flush()

        row = _fetch_sale(caps, sale_id)
        sale = _serialize_rows([row])[0]

        db.session.commit()
        current_app.logger.info(
            "Sale %s created: store_id=%s cashier_id=%s lines=%d total_cents=%d",
            invoice_no, store_id, caller_id, len(cart.lines), total_cents,
        )
        return sale

    try:
        return run_with_retry(
            _op,
            attempts=current_app.config.get("SALE_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("SALE_RETRY_BACKOFF", 0.1),
        )
    except Exception:
        db.session.rollback()
        raise


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _visibility_filter(user: User, store_id: int | None, capabilities: SchemaCapabilities):
    """
    Cashiers see their own sales; owners and admins see their store's.
    Only an admin without a store sees everything (no filter).
    """
    table = capabilities.table
    if user.role == ROLE_CASHIER:
        column = capabilities.attribution_column
        if column is None:
            current_app.logger.warning(
                "Cannot list sales for cashier %s: sales table has no attribution column", user.id,
            )
            return sa.false()
        return table.c[column] == user.id
    if store_id:
        return table.c.store_id == store_id
    if user.role == ROLE_ADMIN:
        return None
    return sa.false()


def _visible_sales(user: User, store_id: int | None, where=None):
    def build(caps: SchemaCapabilities):
        stmt = schema_service.sale_select(caps)
        condition = _visibility_filter(user, store_id, caps)
        if condition is not None:
            stmt = stmt.where(condition)
        if where is not None:
            stmt = stmt.where(where(caps.table))
        return stmt.order_by(caps.table.c.created_at.desc(), caps.table.c.id.desc())
    return build


def list_sales_for_user(
    user: User,
    store_id: int | None = None,
    capabilities: SchemaCapabilities | None = None,
) -> list[dict]:
    """
    Sales visible to the caller, newest first, with items and cashier.

    store_id is the session's tenant; it defaults to the user's store.
    """
    if store_id is None:
        store_id = user.store_id
    rows = schema_service.execute_sale_read(_visible_sales(user, store_id), capabilities)
    return _serialize_rows(rows)


def get_sale_for_user(
    user: User,
    sale_id: int,
    store_id: int | None = None,
    capabilities: SchemaCapabilities | None = None,
) -> dict:
    """One sale, if visible to the caller. Raises SaleNotFoundError otherwise."""
    if store_id is None:
        store_id = user.store_id
    build = _visible_sales(user, store_id, where=lambda table: table.c.id == sale_id)
    rows = schema_service.execute_sale_read(build, capabilities)
    if not rows:
        raise SaleNotFoundError("Sale not found", details={"saleId": sale_id})
    return _serialize_rows(rows[:1])[0]
