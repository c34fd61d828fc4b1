# Overview: Pytest coverage for invoice number generation.

import re

from pharmapos.services.document_service import generate_invoice_number

INVOICE_RE = re.compile(r"^INV-\d{13}-[0-9A-F]{16}$")


def test_format():
    assert INVOICE_RE.match(generate_invoice_number())


def test_uses_given_timestamp():
    assert generate_invoice_number(now_millis=1700000000000).startswith("INV-1700000000000-")


def test_ten_thousand_unique_in_same_millisecond():
    numbers = {generate_invoice_number(now_millis=1700000000000) for _ in range(10_000)}
    assert len(numbers) == 10_000
