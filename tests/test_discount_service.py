# Overview: Pytest coverage for the discount and VAT calculator.

from decimal import Decimal

import pytest

from posledger.services.discount_service import (
    PricedLine,
    VATConfig,
    calculate_discount_percentage,
    calculate_item_discount,
    calculate_total_discounts,
    calculate_transaction_discount,
    calculate_vat,
    validate_discount,
)
from posledger.services.errors import ValidationError


class TestItemAndTransactionDiscount:

    def test_percentage_discount(self):
        assert calculate_item_discount(Decimal("200"), "percentage", Decimal("10")) == Decimal("20")

    def test_fixed_discount_caps_at_price(self):
        assert calculate_item_discount(Decimal("100"), "fixed", Decimal("1000")) == Decimal("100")

    def test_fixed_discount_below_price(self):
        assert calculate_item_discount(Decimal("100"), "fixed", Decimal("15.50")) == Decimal("15.50")

    @pytest.mark.parametrize("discount_type,value", [
        (None, Decimal("10")),
        ("percentage", None),
        ("percentage", Decimal("0")),
        ("fixed", Decimal("-5")),
    ])
    def test_missing_or_non_positive_is_noop(self, discount_type, value):
        assert calculate_item_discount(Decimal("100"), discount_type, value) == Decimal("0")

    def test_percentage_above_hundred_not_blocked(self):
        assert calculate_transaction_discount(Decimal("50"), "percentage", Decimal("150")) == Decimal("75")

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            calculate_transaction_discount(Decimal("50"), "bogus", Decimal("5"))


class TestTotalDiscounts:

    def test_combines_item_and_transaction_discounts(self):
        lines = [
            # 2 x 100 with 10 off each -> 180
            PricedLine(quantity=Decimal("2"), unit_price=Decimal("100"), discount=Decimal("10"), subtotal=Decimal("180")),
            PricedLine(quantity=Decimal("1"), unit_price=Decimal("20"), discount=Decimal("0"), subtotal=Decimal("20")),
        ]
        result = calculate_total_discounts(lines, "percentage", Decimal("10"))

        assert result.item_discounts_total == Decimal("20")
        assert result.transaction_discount == Decimal("20")
        assert result.total_discount == Decimal("40")
        assert result.subtotal_after_discount == Decimal("180")

    def test_subtotal_after_discount_never_negative(self):
        lines = [PricedLine(Decimal("1"), Decimal("10"), Decimal("0"), Decimal("10"))]
        result = calculate_total_discounts(lines, "percentage", Decimal("200"))
        assert result.subtotal_after_discount == Decimal("0")


class TestVAT:

    def test_tax_inclusive(self):
        result = calculate_vat(Decimal("112.00"), VATConfig(True, Decimal("12"), True))
        assert result.vat_amount == Decimal("12.00")
        assert result.final_total == Decimal("112.00")

    def test_tax_exclusive(self):
        result = calculate_vat(Decimal("100.00"), VATConfig(True, Decimal("12"), False))
        assert result.vat_amount == Decimal("12.00")
        assert result.final_total == Decimal("112.00")

    def test_disabled(self):
        result = calculate_vat(Decimal("99.99"), VATConfig(False, Decimal("12"), False))
        assert result.vat_amount == Decimal("0.00")
        assert result.final_total == Decimal("99.99")

    def test_rounds_only_at_output(self):
        # 3 x 33.333... keeps precision until the final rounding
        subtotal = Decimal("100") / 3 * 3
        result = calculate_vat(subtotal, VATConfig(True, Decimal("12"), False))
        assert result.final_total == Decimal("112.00")


class TestValidateDiscount:

    def test_negative_rejected(self):
        result = validate_discount(Decimal("-1"), Decimal("50"), False, Decimal("20"))
        assert not result.is_valid
        assert result.error == "Discount cannot be negative"

    def test_above_maximum_rejected(self):
        result = validate_discount(Decimal("60"), Decimal("50"), False, Decimal("20"))
        assert not result.is_valid
        assert "cannot exceed" in result.error

    def test_approval_flag_only_when_required(self):
        assert validate_discount(Decimal("30"), Decimal("50"), True, Decimal("20")).requires_approval
        assert not validate_discount(Decimal("30"), Decimal("50"), False, Decimal("20")).requires_approval
        assert not validate_discount(Decimal("20"), Decimal("50"), True, Decimal("20")).requires_approval


def test_discount_percentage():
    assert calculate_discount_percentage(Decimal("200"), Decimal("50")) == Decimal("25")
    assert calculate_discount_percentage(Decimal("0"), Decimal("50")) == Decimal("0")
