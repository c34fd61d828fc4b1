# Overview: Pytest coverage for payload validation and money conversion.

import pytest
from datetime import date
from decimal import Decimal

from pharmapos.models import Product
from pharmapos.money import from_cents, to_cents
from pharmapos.validation import ModelValidationPolicy, ValidationError, validate_payload

POLICY = ModelValidationPolicy(
    writable_fields={"name", "quantity", "expiry_date", "cost_price_cents", "discount_percent"},
    required_on_create={"name"},
    aliases={"expiryDate": "expiry_date", "costPrice": "cost_price_cents", "discount": "discount_percent"},
    money_fields={"costPrice"},
)


class TestMoney:

    @pytest.mark.parametrize("value, cents", [
        (10, 1000),
        (10.5, 1050),
        ("0.07", 7),
        (1.005, 101),
        ("2.345", 235),
        (0, 0),
    ])
    def test_to_cents(self, value, cents):
        assert to_cents(value) == cents

    @pytest.mark.parametrize("value", [None, "", "abc", True, float("nan"), "Infinity"])
    def test_to_cents_rejects(self, value):
        with pytest.raises(ValueError):
            to_cents(value)

    def test_from_cents(self):
        assert from_cents(8975) == 89.75
        assert from_cents(None) is None


class TestValidatePayload:

    def test_aliases_and_coercion(self):
        patch = validate_payload(
            model=Product,
            payload={"name": " Dolo 650 ", "quantity": "12", "expiryDate": "2027-01-31T00:00:00Z",
                     "costPrice": "1.25", "discount": "2.5"},
            policy=POLICY,
            partial=False,
        )
        assert patch == {
            "name": "Dolo 650",
            "quantity": 12,
            "expiry_date": date(2027, 1, 31),
            "cost_price_cents": 125,
            "discount_percent": Decimal("2.5"),
        }

    @pytest.mark.parametrize("payload, message", [
        ({}, "Missing required fields: name"),
        ({"name": "x", "quantity": 1.5}, "quantity must be an integer, not a decimal"),
        ({"name": "x", "quantity": "1e3"}, "quantity must be a plain integer (scientific notation not allowed)"),
        ({"name": "x", "mrp_cents": 1}, "Field not allowed: mrp_cents"),
        ({"name": "x" * 300}, "name exceeds max length 255"),
    ])
    def test_rejections(self, payload, message):
        with pytest.raises(ValidationError) as exc:
            validate_payload(model=Product, payload=payload, policy=POLICY, partial=False)
        assert str(exc.value) == message

    def test_partial_skips_required(self):
        assert validate_payload(model=Product, payload={"quantity": 3}, policy=POLICY, partial=True) == {"quantity": 3}
