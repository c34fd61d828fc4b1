# Overview: Service-layer operations for sales schema drift; capability detection and column-aware reads/writes.

"""
Schema-Drift Compatibility Layer

WHY: Deployed databases lag the Sale model. Customer/doctor fields were
added after the first releases, and cashier attribution lived in a
camelCase "cashierId" column before cashier_id existed. A sale must
still be recorded against such a database, and reads must not fail
because a column is missing.

HOW:
- get_capabilities() introspects the physical `sales` relation once and
  caches the result (refresh=True or invalidate() re-derives it)
- writes keep only the columns that physically exist; optional
  customer/doctor fields are dropped with a warning
- reads select NULL AS <column> for every expected-but-absent column, and
  are refreshed and retried once if a column vanished since introspection
- attribution goes through the canonical column when present, otherwise
  through attribute_sale_to_cashier() against the legacy column

A missing required column, or no attribution column at all, is a
StructuralStorageMismatch: the sale is refused and the operator must
migrate.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import DBAPIError, NoSuchTableError

from ..errors import AttributionConflictError, StructuralStorageMismatch
from ..extensions import db
from ..models import Sale

SALES_TABLE = "sales"

REQUIRED_SALE_COLUMNS = (
    "id",
    "invoice_no",
    "store_id",
    "total_amount_cents",
    "net_amount_cents",
    "payment_method",
    "created_at",
)

OPTIONAL_SALE_COLUMNS = (
    "customer_name",
    "customer_mobile",
    "customer_address",
    "doctor_name",
    "doctor_mobile",
)

ATTRIBUTION_COLUMN = "cashier_id"
LEGACY_ATTRIBUTION_COLUMN = "cashierId"

ATTRIBUTION_MODE_COLUMN = "column"
ATTRIBUTION_MODE_LEGACY_UPDATE = "legacy_update"

_CACHE_KEY = "pharmapos.sales_capabilities"

# SQLite / PostgreSQL / MySQL "unknown column" signatures
_MISSING_COLUMN_MARKERS = ("no such column", "has no column named")
_MISSING_COLUMN_SQLSTATE = "42703"
_MYSQL_BAD_FIELD_ERROR = 1054


@dataclass(frozen=True)
class SchemaCapabilities:
    """Physically present columns of the sales relation."""
    columns: frozenset

    def has(self, name: str) -> bool:
        return name in self.columns

    @property
    def missing_required(self) -> tuple[str, ...]:
        return tuple(c for c in REQUIRED_SALE_COLUMNS if c not in self.columns)

    @property
    def missing_optional(self) -> tuple[str, ...]:
        return tuple(c for c in OPTIONAL_SALE_COLUMNS if c not in self.columns)

    @property
    def attribution_column(self) -> str | None:
        if ATTRIBUTION_COLUMN in self.columns:
            return ATTRIBUTION_COLUMN
        if LEGACY_ATTRIBUTION_COLUMN in self.columns:
            return LEGACY_ATTRIBUTION_COLUMN
        return None

    @property
    def attribution_mode(self) -> str | None:
        """
        "column": cashier_id is written with the header insert.
        "legacy_update": a targeted UPDATE sets "cashierId" after the insert.
        None: attribution cannot be recorded.
        """
        column = self.attribution_column
        if column == ATTRIBUTION_COLUMN:
            return ATTRIBUTION_MODE_COLUMN
        if column == LEGACY_ATTRIBUTION_COLUMN:
            return ATTRIBUTION_MODE_LEGACY_UPDATE
        return None

    @cached_property
    def table(self) -> sa.TableClause:
        """
        Lightweight table over the physical columns, for reads and the
        attribution update. Types come from the Sale model so result
        processing (datetimes) matches the ORM.
        """
        model_columns = Sale.__table__.c
        columns = []
        for name in sorted(self.columns):
            if name in model_columns:
                type_ = model_columns[name].type
            elif name == LEGACY_ATTRIBUTION_COLUMN:
                type_ = sa.Integer()
            else:
                type_ = sa.types.NullType()
            columns.append(sa.column(name, type_))
        return sa.table(SALES_TABLE, *columns)

    def to_dict(self) -> dict:
        return {
            "columns": sorted(self.columns),
            "missingRequired": list(self.missing_required),
            "missingOptional": list(self.missing_optional),
            "attributionColumn": self.attribution_column,
            "attributionMode": self.attribution_mode,
        }

    @classmethod
    def full(cls) -> "SchemaCapabilities":
        """Capabilities of a database fully migrated to the current model."""
        return cls(columns=frozenset(c.name for c in Sale.__table__.columns))


def _introspect() -> SchemaCapabilities:
    # Use the session's connection so introspection joins the current
    # transaction instead of checking out (and resetting) another one.
    inspector = sa.inspect(db.session.connection())
    try:
        columns = inspector.get_columns(SALES_TABLE)
    except NoSuchTableError as exc:
        current_app.logger.error("Schema check failed: table %r does not exist", SALES_TABLE)
        raise StructuralStorageMismatch(
            "Sales table is missing; run database migrations",
            details={"table": SALES_TABLE},
        ) from exc
    return SchemaCapabilities(columns=frozenset(c["name"] for c in columns))


def get_capabilities(refresh: bool = False) -> SchemaCapabilities:
    """
    Return the (cached) capabilities of the sales relation.

    Warnings for absent optional columns and the legacy attribution
    column are logged once per snapshot.
    """
    cached = current_app.extensions.get(_CACHE_KEY)
    if cached is not None and not refresh:
        return cached

    caps = _introspect()

    if caps.missing_optional:
        current_app.logger.warning(
            "Sales table lacks optional columns %s; these fields will not be stored",
            ", ".join(caps.missing_optional),
        )
    if caps.attribution_mode == ATTRIBUTION_MODE_LEGACY_UPDATE:
        current_app.logger.warning(
            "Sales table has no %s column; attributing sales through legacy %r",
            ATTRIBUTION_COLUMN, LEGACY_ATTRIBUTION_COLUMN,
        )
    elif caps.attribution_mode is None:
        current_app.logger.error("Sales table has no cashier attribution column; sales will be refused")

    current_app.extensions[_CACHE_KEY] = caps
    return caps


def invalidate() -> None:
    """Drop the cached capabilities (after migrations, or in tests)."""
    current_app.extensions.pop(_CACHE_KEY, None)


def build_sale_payload(capabilities: SchemaCapabilities, values: dict) -> dict:
    """
    Keep only the values whose columns physically exist.

    Raises StructuralStorageMismatch when a required column is missing or
    when the relation cannot record cashier attribution at all.
    """
    missing = capabilities.missing_required
    if missing:
        current_app.logger.error("Sales table is missing required columns: %s", ", ".join(missing))
        raise StructuralStorageMismatch(
            "Sales table is missing required columns; run database migrations",
            details={"missing": list(missing)},
        )
    if capabilities.attribution_mode is None:
        raise StructuralStorageMismatch(
            "Database schema does not support cashier association; run database migrations",
            details={"missing": [ATTRIBUTION_COLUMN]},
        )

    payload = {}
    for name, value in values.items():
        if name == ATTRIBUTION_COLUMN:
            if capabilities.attribution_mode == ATTRIBUTION_MODE_COLUMN:
                payload[name] = value
            continue
        if capabilities.has(name):
            payload[name] = value
    return payload


def sale_select(capabilities: SchemaCapabilities) -> sa.Select:
    """
    SELECT every Sale model column, substituting NULL for absent ones.

    The legacy attribution column is read back under the canonical
    cashier_id label. Filter with capabilities.table.c.<column>.
    """
    table = capabilities.table
    selected = []
    for column in Sale.__table__.columns:
        name = column.name
        if name == ATTRIBUTION_COLUMN and capabilities.attribution_column:
            selected.append(table.c[capabilities.attribution_column].label(ATTRIBUTION_COLUMN))
        elif capabilities.has(name):
            selected.append(table.c[name])
        else:
            selected.append(sa.null().label(name))
    return sa.select(*selected).select_from(table)


def _read_rows(stmt) -> list:
    # A failed statement aborts the enclosing transaction on PostgreSQL;
    # SQLite only fails the statement.
    if db.engine.dialect.name == "sqlite":
        return db.session.execute(stmt).mappings().all()
    with db.session.begin_nested():
        return db.session.execute(stmt).mappings().all()


def execute_sale_read(build_stmt, capabilities: SchemaCapabilities | None = None) -> list:
    """
    Run the SELECT returned by build_stmt(capabilities) and return its rows.

    Stale capabilities (a column dropped since introspection) surface as a
    missing-column error; the capabilities are then refreshed and the
    statement rebuilt and run once more. A second failure is a
    StructuralStorageMismatch.
    """
    caps = capabilities or get_capabilities()
    try:
        return _read_rows(build_stmt(caps))
    except DBAPIError as exc:
        if not is_missing_column_error(exc):
            raise
        current_app.logger.warning("Sale read hit a missing column, refreshing schema capabilities: %s", exc.orig)

    caps = get_capabilities(refresh=True)
    try:
        return _read_rows(build_stmt(caps))
    except DBAPIError as exc:
        if not is_missing_column_error(exc):
            raise
        current_app.logger.error("Sale read failed again after schema refresh: %s", exc.orig)
        raise StructuralStorageMismatch(
            "Sales table does not match the expected schema; run database migrations",
            details={"columns": sorted(caps.columns)},
        ) from exc


def is_missing_column_error(exc: Exception) -> bool:
    """
    True when a driver error means "this column does not exist".

    Constraint violations, type errors and connectivity failures are not
    structural drift and return False.
    """
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return False
    orig = getattr(exc, "orig", None) or exc

    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate == _MISSING_COLUMN_SQLSTATE:
        return True

    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_BAD_FIELD_ERROR:
        return True

    message = str(orig).lower()
    return any(marker in message for marker in _MISSING_COLUMN_MARKERS)


def _insert_header(capabilities: SchemaCapabilities, values: dict) -> int:
    payload = build_sale_payload(capabilities, values)
    result = db.session.execute(sa.insert(Sale.__table__).values(**payload))
    return result.inserted_primary_key[0]


def insert_sale_header(
    capabilities: SchemaCapabilities,
    values: dict,
    *,
    new_invoice_no,
) -> tuple[int, SchemaCapabilities, str]:
    """
    Insert the sale header under a SAVEPOINT.

    On an unknown-column failure (capabilities were stale) the
    capabilities are refreshed and the insert is retried once with a
    pruned payload and a fresh invoice number from new_invoice_no().

    Returns (sale_id, capabilities_used, invoice_no).
    """
    try:
        with db.session.begin_nested():
            sale_id = _insert_header(capabilities, values)
        return sale_id, capabilities, values["invoice_no"]
    except DBAPIError as exc:
        if not is_missing_column_error(exc):
            raise
        current_app.logger.warning("Sale insert hit a missing column, refreshing schema capabilities: %s", exc.orig)

    capabilities = get_capabilities(refresh=True)
    values = dict(values, invoice_no=new_invoice_no())
    try:
        with db.session.begin_nested():
            sale_id = _insert_header(capabilities, values)
    except DBAPIError as exc:
        if not is_missing_column_error(exc):
            raise
        current_app.logger.error("Sale insert failed again after schema refresh: %s", exc.orig)
        raise StructuralStorageMismatch(
            "Sales table does not match the expected schema; run database migrations",
            details={"columns": sorted(capabilities.columns)},
        ) from exc
    return sale_id, capabilities, values["invoice_no"]


def attribute_sale_to_cashier(
    sale_id: int,
    caller_id: int,
    claimed_cashier_id: int | None = None,
    capabilities: SchemaCapabilities | None = None,
) -> None:
    """
    Record the cashier on a sale through a targeted UPDATE.

    Used when the header insert could not carry attribution (the relation
    only has the legacy "cashierId" column). The value written is always
    the authenticated caller; a client-claimed id must match it.
    """
    if claimed_cashier_id is not None and claimed_cashier_id != caller_id:
        raise AttributionConflictError(
            "Cashier ID mismatch",
            details={"cashierId": claimed_cashier_id},
        )

    caps = capabilities or get_capabilities()
    column = caps.attribution_column
    if column is None:
        current_app.logger.error("Cannot attribute sale %s: no cashier attribution column", sale_id)
        raise StructuralStorageMismatch(
            "Database schema does not support cashier association; run database migrations",
            details={"missing": [ATTRIBUTION_COLUMN]},
        )

    table = caps.table
    result = db.session.execute(
        sa.update(table).where(table.c.id == sale_id).values({column: caller_id})
    )
    if result.rowcount != 1:
        raise StructuralStorageMismatch(
            "Failed to attribute sale to cashier",
            details={"saleId": sale_id},
        )
    current_app.logger.info("Attributed sale %s to cashier %s via %r", sale_id, caller_id, column)
