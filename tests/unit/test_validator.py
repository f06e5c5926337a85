"""
Unit tests for staging row validation
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from reconciliation.validator import (
    RejectReason,
    ReferenceSnapshot,
    ValidationVerdict,
    validate_row,
)


@pytest.fixture
def reference():
    return ReferenceSnapshot(customer_ids=frozenset({1, 2, 3}), product_ids=frozenset({1, 2, 3, 4, 5}))


def make_row(**overrides):
    fields = dict(
        customer_ref=3,
        product_ref=5,
        quantity=2,
        unit_price=Decimal("10.00"),
        order_date=date(2023, 3, 1),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestValidateRow:
    """Business predicates over a single staging row"""

    def test_valid_row(self, reference):
        verdict = validate_row(make_row(), reference)

        assert verdict.valid is True
        assert verdict.reason is None
        assert verdict.message == "ok"

    def test_unknown_product(self, reference):
        verdict = validate_row(make_row(product_ref=99), reference)

        assert verdict.valid is False
        assert verdict.reason == RejectReason.UNKNOWN_PRODUCT
        assert verdict.message == "unknown product"

    def test_unknown_customer(self, reference):
        verdict = validate_row(make_row(customer_ref=42), reference)

        assert verdict.reason == RejectReason.UNKNOWN_CUSTOMER

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity(self, reference, quantity):
        verdict = validate_row(make_row(quantity=quantity), reference)

        assert verdict.valid is False
        assert verdict.reasons == (RejectReason.NON_POSITIVE_QUANTITY,)

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-0.01")])
    def test_non_positive_price(self, reference, price):
        verdict = validate_row(make_row(unit_price=price), reference)

        assert verdict.reasons == (RejectReason.NON_POSITIVE_PRICE,)

    def test_missing_fields_are_named(self, reference):
        verdict = validate_row(make_row(product_ref=None, order_date=None), reference)

        assert verdict.reason == RejectReason.MISSING_FIELD
        assert verdict.missing_fields == ("product_ref", "order_date")
        assert verdict.message == "missing required field: product_ref, order_date"

    def test_all_failures_reported_in_check_order(self, reference):
        verdict = validate_row(
            make_row(customer_ref=42, product_ref=99, quantity=0, unit_price=Decimal("0")),
            reference
        )

        assert verdict.reasons == (
            RejectReason.UNKNOWN_CUSTOMER,
            RejectReason.UNKNOWN_PRODUCT,
            RejectReason.NON_POSITIVE_QUANTITY,
            RejectReason.NON_POSITIVE_PRICE,
        )
        assert verdict.message.startswith("unknown customer; unknown product")

    def test_verdict_is_deterministic(self, reference):
        row = make_row(product_ref=99)

        assert validate_row(row, reference) == validate_row(row, reference)

    def test_verdict_depends_on_reference(self, reference):
        row = make_row(product_ref=99)
        extended = ReferenceSnapshot(
            customer_ids=reference.customer_ids,
            product_ids=reference.product_ids | {99}
        )

        assert validate_row(row, reference).valid is False
        assert validate_row(row, extended).valid is True


def test_verdict_is_immutable():
    verdict = ValidationVerdict(valid=True)

    with pytest.raises(Exception):
        verdict.valid = False
