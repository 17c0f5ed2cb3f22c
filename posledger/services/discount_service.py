# Overview: Pure discount and VAT arithmetic used by the POS orchestrator.

"""
Discount/VAT calculator.

Every function here is side-effect free and works on Decimal. Intermediate
values keep full precision; only calculate_vat rounds, because its results
are the figures printed on the receipt.

Edge cases kept on purpose:
- a fixed discount larger than the amount it discounts caps at that amount
- a missing type, missing value, or value <= 0 is a no-op (returns zero)
- percentages above 100 are not blocked here; validate_discount is the gate
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..money import ZERO, HUNDRED, to_decimal, quantize_money
from .errors import ValidationError


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_TYPES = {DISCOUNT_PERCENTAGE, DISCOUNT_FIXED}


@dataclass(frozen=True)
class VATConfig:
    vat_enabled: bool
    vat_rate: Decimal  # percent, 12 means 12%
    tax_inclusive: bool


@dataclass(frozen=True)
class DiscountCalculation:
    item_discounts_total: Decimal
    transaction_discount: Decimal
    total_discount: Decimal
    subtotal_after_discount: Decimal


@dataclass(frozen=True)
class VATCalculation:
    vat_amount: Decimal
    final_total: Decimal


@dataclass(frozen=True)
class DiscountValidation:
    is_valid: bool
    requires_approval: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class PricedLine:
    """A cart line after item pricing: discount is per unit, subtotal is net."""
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    subtotal: Decimal


def _apply_discount(amount: Decimal, discount_type: Optional[str], discount_value) -> Decimal:
    if not discount_type or discount_value is None:
        return ZERO
    value = to_decimal(discount_value, field="discount_value")
    if value <= ZERO:
        return ZERO
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(
            f"Unknown discount type: {discount_type}",
            details={"discount_type": discount_type},
        )

    amount = to_decimal(amount, field="amount")
    if discount_type == DISCOUNT_PERCENTAGE:
        return amount * value / HUNDRED
    return min(value, amount)


def calculate_item_discount(original_price, discount_type: Optional[str] = None, discount_value=None) -> Decimal:
    """Discount on a single unit price."""
    return _apply_discount(to_decimal(original_price, field="original_price"), discount_type, discount_value)


def calculate_transaction_discount(subtotal, discount_type: Optional[str] = None, discount_value=None) -> Decimal:
    """Discount on the whole cart subtotal."""
    return _apply_discount(to_decimal(subtotal, field="subtotal"), discount_type, discount_value)


def calculate_total_discounts(
    items: Iterable[PricedLine],
    transaction_discount_type: Optional[str] = None,
    transaction_discount_value=None,
) -> DiscountCalculation:
    """
    Combine item and transaction discounts.

    The transaction discount is computed on the sum of line subtotals, which
    are already net of item discounts.
    """
    item_discounts_total = ZERO
    subtotal_after_items = ZERO
    for item in items:
        item_discounts_total += to_decimal(item.discount) * to_decimal(item.quantity)
        subtotal_after_items += to_decimal(item.subtotal)

    transaction_discount = calculate_transaction_discount(
        subtotal_after_items,
        transaction_discount_type,
        transaction_discount_value,
    )

    return DiscountCalculation(
        item_discounts_total=item_discounts_total,
        transaction_discount=transaction_discount,
        total_discount=item_discounts_total + transaction_discount,
        subtotal_after_discount=max(ZERO, subtotal_after_items - transaction_discount),
    )


def calculate_vat(subtotal_after_discount, config: VATConfig) -> VATCalculation:
    subtotal = to_decimal(subtotal_after_discount, field="subtotal_after_discount")
    if not config.vat_enabled:
        return VATCalculation(vat_amount=quantize_money(ZERO), final_total=quantize_money(subtotal))

    rate = to_decimal(config.vat_rate, field="vat_rate") / HUNDRED
    if config.tax_inclusive:
        # price already contains VAT
        vat_amount = subtotal / (1 + rate) * rate
        final_total = subtotal
    else:
        vat_amount = subtotal * rate
        final_total = subtotal + vat_amount

    return VATCalculation(vat_amount=quantize_money(vat_amount), final_total=quantize_money(final_total))


def validate_discount(
    discount_percentage,
    max_discount_percentage,
    require_approval: bool,
    approval_threshold,
) -> DiscountValidation:
    pct = to_decimal(discount_percentage, field="discount_percentage")
    max_pct = to_decimal(max_discount_percentage, field="max_discount_percentage")

    if pct < ZERO:
        return DiscountValidation(False, False, "Discount cannot be negative")
    if pct > max_pct:
        return DiscountValidation(False, False, f"Discount cannot exceed {max_pct}%")

    needs_approval = bool(require_approval) and pct > to_decimal(approval_threshold, field="approval_threshold")
    return DiscountValidation(True, needs_approval)


def calculate_discount_percentage(original_amount, discount_amount) -> Decimal:
    original = to_decimal(original_amount, field="original_amount")
    if original == ZERO:
        return ZERO
    return to_decimal(discount_amount, field="discount_amount") / original * HUNDRED
