# Overview: Service-layer operations for document numbers; invoice identifiers for sales.

from __future__ import annotations

import secrets

from pharmapos.time_utils import epoch_millis

INVOICE_PREFIX = "INV"

# 8 random bytes -> 16 hex chars (64 bits)
_INVOICE_RANDOM_BYTES = 8


def generate_invoice_number(now_millis: int | None = None) -> str:
    """
    Allocate a globally unique invoice number: INV-<epoch ms>-<random>.

    No sequence table is involved: the millisecond timestamp keeps numbers
    roughly time ordered and the 64-bit random suffix makes collisions
    between concurrent allocators negligible. The unique constraint on
    sales.invoice_no remains the backstop.
    """
    if now_millis is None:
        now_millis = epoch_millis()
    suffix = secrets.token_hex(_INVOICE_RANDOM_BYTES).upper()
    return f"{INVOICE_PREFIX}-{now_millis}-{suffix}"
