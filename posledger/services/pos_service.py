# Overview: POS sale orchestration: pricing, discounts, VAT, FEFO deduction, COGS and credit receivables in one transaction.

"""
Sale Transaction Orchestrator.

process_sale runs validation first, then performs every write inside one
transaction_scope:
- stock deductions for each line, in the order supplied
- the POSSale header and its POSSaleItem rows (with COGS)
- the sales-order conversion link, when converting an order
- the receivable, for credit sales
Any error rolls back all of it; there is no partially persisted sale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, POSSale, POSSaleItem, Warehouse
from ..money import ZERO, to_decimal, optional_decimal, quantize_money
from ..time_utils import local_today
from . import settings_service
from .concurrency import transaction_scope
from .discount_service import (
    DISCOUNT_PERCENTAGE,
    PricedLine,
    calculate_discount_percentage,
    calculate_item_discount,
    calculate_total_discounts,
    calculate_vat,
    validate_discount,
)
from .document_service import RECEIPT_PREFIX, next_daily_number
from .errors import DuplicateReceiptNumberError, LedgerError, NotFoundError, ValidationError
from .inventory_service import _deduct_stock_locked, to_base_quantity, weighted_average_cost
from .product_service import get_product, unit_price_for
from .receivables_service import OBLIGATION_BINDINGS, ObligationKind, _create_ar_locked, due_date_for_terms
from .sales_order_service import _mark_as_converted_locked


PAYMENT_CASH = "cash"
PAYMENT_CREDIT = "credit"
PAYMENT_METHODS = ("cash", "card", "check", "gcash", "online_transfer", "credit")

POS_REFERENCE_TYPE = "POS"


@dataclass
class SaleItemInput:
    product_id: int
    quantity: Decimal
    uom: str
    # defaults to the product's price for `uom`
    unit_price: Optional[Decimal] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None


@dataclass
class SaleInput:
    branch_id: int
    warehouse_id: int
    payment_method: str
    items: list[SaleItemInput] = field(default_factory=list)
    amount_received: Optional[Decimal] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    discount_type: Optional[str] = None
    discount_value: Optional[Decimal] = None
    discount_reason: Optional[str] = None
    partial_payment: Optional[Decimal] = None
    receipt_number: Optional[str] = None
    converted_from_order_id: Optional[int] = None
    sale_date: Optional[date] = None


@dataclass
class _PricedItem:
    item: SaleItemInput
    product: object
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    subtotal: Decimal


@dataclass
class SaleTotals:
    subtotal: Decimal
    discount: Decimal
    subtotal_after_discount: Decimal
    tax: Decimal
    total_amount: Decimal
    discount_requires_approval: bool = False


def generate_receipt_number(today: Optional[date] = None) -> str:
    """RCP-YYYYMMDD-NNNN, max + 1 over the day's existing receipts."""
    return next_daily_number(RECEIPT_PREFIX, POSSale.receipt_number, today or local_today())


def find_by_receipt_number(receipt_number: str) -> Optional[POSSale]:
    return db.session.query(POSSale).filter_by(receipt_number=receipt_number).first()


def _decimal_input(value, field_name: str) -> Optional[Decimal]:
    try:
        return optional_decimal(value, field=field_name)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": field_name}) from exc


def _price_items(items: list[SaleItemInput]) -> list[_PricedItem]:
    priced = []
    for index, item in enumerate(items):
        qty = _decimal_input(item.quantity, "quantity")
        if qty is None or qty <= ZERO:
            raise ValidationError(
                "Item quantity must be greater than zero",
                details={"line": index + 1, "product_id": item.product_id},
            )
        product = get_product(item.product_id)
        unit_price = _decimal_input(item.unit_price, "unit_price")
        if unit_price is None:
            unit_price = unit_price_for(product, item.uom)
        if unit_price < ZERO:
            raise ValidationError("Unit price cannot be negative", details={"line": index + 1})

        per_unit_discount = calculate_item_discount(unit_price, item.discount_type, item.discount_value)
        priced.append(_PricedItem(
            item=item,
            product=product,
            quantity=qty,
            unit_price=unit_price,
            discount=per_unit_discount,
            subtotal=(unit_price - per_unit_discount) * qty,
        ))
    return priced


def compute_totals(priced: list[_PricedItem], sale: SaleInput) -> SaleTotals:
    lines = [PricedLine(p.quantity, p.unit_price, p.discount, p.subtotal) for p in priced]
    discounts = calculate_total_discounts(lines, sale.discount_type, sale.discount_value)

    requires_approval = False
    if sale.discount_type and discounts.transaction_discount > ZERO:
        if sale.discount_type == DISCOUNT_PERCENTAGE:
            pct = to_decimal(sale.discount_value)
        else:
            pct = calculate_discount_percentage(
                discounts.subtotal_after_discount + discounts.transaction_discount,
                discounts.transaction_discount,
            )
        settings = settings_service.get_settings()
        check = validate_discount(
            pct,
            settings.max_discount_percentage,
            settings.require_discount_approval,
            settings.discount_approval_threshold,
        )
        if not check.is_valid:
            raise ValidationError(check.error, details={"discount_percentage": str(quantize_money(pct))})
        requires_approval = check.requires_approval

    vat = calculate_vat(discounts.subtotal_after_discount, settings_service.get_vat_config())
    gross = sum((p.unit_price * p.quantity for p in priced), ZERO)

    return SaleTotals(
        subtotal=quantize_money(gross),
        discount=quantize_money(discounts.total_discount),
        subtotal_after_discount=discounts.subtotal_after_discount,
        tax=vat.vat_amount,
        total_amount=vat.final_total,
        discount_requires_approval=requires_approval,
    )


def _validate_payment(sale: SaleInput, total_amount: Decimal) -> dict:
    method = sale.payment_method
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {method}",
            details={"payment_method": method, "allowed": list(PAYMENT_METHODS)},
        )

    amount_received = _decimal_input(sale.amount_received, "amount_received")
    partial = _decimal_input(sale.partial_payment, "partial_payment")
    change = None

    if method == PAYMENT_CREDIT:
        if not sale.customer_id or not sale.customer_name:
            raise ValidationError(
                "Customer information is required for credit sales",
                details={"customer_id": sale.customer_id, "customer_name": sale.customer_name},
            )
        if partial is not None:
            if partial < ZERO:
                raise ValidationError("Partial payment cannot be negative", details={"partial_payment": str(partial)})
            if partial >= total_amount:
                raise ValidationError(
                    "Partial payment must be less than total amount",
                    details={"partial_payment": str(partial), "total_amount": str(total_amount)},
                )
    else:
        partial = None

    if method == PAYMENT_CASH:
        if amount_received is None:
            raise ValidationError(
                "Amount received is required for cash payment",
                details={"field": "amount_received"},
            )
        if amount_received < total_amount:
            raise ValidationError(
                "Amount received is less than total amount",
                details={"amount_received": str(amount_received), "total_amount": str(total_amount)},
            )
        change = quantize_money(amount_received - total_amount)

    return {
        "amount_received": quantize_money(amount_received) if amount_received is not None else None,
        "change": change,
        "partial_payment": quantize_money(partial) if partial is not None else None,
    }


def _post_sale_locked(sale: SaleInput, priced: list[_PricedItem], totals: SaleTotals,
                      payment: dict, receipt_number: str, sale_date: date) -> POSSale:
    record = POSSale(
        receipt_number=receipt_number,
        branch_id=sale.branch_id,
        warehouse_id=sale.warehouse_id,
        customer_id=sale.customer_id,
        customer_name=sale.customer_name,
        subtotal=totals.subtotal,
        discount=totals.discount,
        discount_type=sale.discount_type,
        discount_value=_decimal_input(sale.discount_value, "discount_value") if sale.discount_type else None,
        discount_reason=sale.discount_reason,
        discount_requires_approval=totals.discount_requires_approval,
        tax=totals.tax,
        total_amount=totals.total_amount,
        payment_method=sale.payment_method,
        amount_received=payment["amount_received"],
        change=payment["change"],
        partial_payment=payment["partial_payment"],
        converted_from_order_id=sale.converted_from_order_id,
        sale_date=sale_date,
    )

    for p in priced:
        avg_cost = weighted_average_cost(p.product.id, sale.warehouse_id)
        base_qty = to_base_quantity(p.product, p.quantity, p.item.uom)
        _deduct_stock_locked(
            product=p.product,
            warehouse_id=sale.warehouse_id,
            base_quantity=base_qty,
            reason=f"POS Sale {receipt_number}",
            reference_id=receipt_number,
            reference_type=POS_REFERENCE_TYPE,
        )
        record.items.append(POSSaleItem(
            product_id=p.product.id,
            quantity=p.quantity,
            uom=p.item.uom,
            unit_price=p.unit_price,
            discount=p.discount,
            subtotal=quantize_money(p.subtotal),
            cost_of_goods_sold=avg_cost * base_qty,
        ))

    db.session.add(record)
    db.session.flush()

    if sale.converted_from_order_id:
        _mark_as_converted_locked(sale.converted_from_order_id, record.id)

    if sale.payment_method == PAYMENT_CREDIT:
        customer = db.session.get(Customer, sale.customer_id)
        if customer is None:
            raise NotFoundError("Customer", sale.customer_id)
        outstanding = totals.total_amount - (payment["partial_payment"] or ZERO)
        _create_ar_locked(
            branch_id=sale.branch_id,
            customer_id=customer.id,
            customer_name=sale.customer_name,
            pos_sale_id=record.id,
            total_amount=outstanding,
            due_date=due_date_for_terms(
                customer.payment_terms,
                sale_date,
                cod_days=OBLIGATION_BINDINGS[ObligationKind.AR].cod_days,
            ),
        )

    return record


def process_sale(sale: SaleInput) -> POSSale:
    """
    Validate, price and commit one POS sale.

    Raises ValidationError (bad input, cash short, discount over the
    maximum), NotFoundError, UnknownUOMError, InsufficientStockError or
    DuplicateReceiptNumberError. Nothing is persisted on failure.
    """
    sale_date = sale.sale_date or local_today()
    receipt_number = sale.receipt_number

    try:
        if not sale.items:
            raise ValidationError("Sale must contain at least one item", details={"field": "items"})
        if db.session.get(Warehouse, sale.warehouse_id) is None:
            raise NotFoundError("Warehouse", sale.warehouse_id)

        priced = _price_items(sale.items)
        totals = compute_totals(priced, sale)
        payment = _validate_payment(sale, totals.total_amount)

        if receipt_number:
            if find_by_receipt_number(receipt_number) is not None:
                raise DuplicateReceiptNumberError(receipt_number)
        else:
            receipt_number = generate_receipt_number(sale_date)

        try:
            with transaction_scope():
                record = _post_sale_locked(sale, priced, totals, payment, receipt_number, sale_date)
        except IntegrityError as exc:
            if find_by_receipt_number(receipt_number) is not None:
                raise DuplicateReceiptNumberError(receipt_number) from exc
            raise
    except LedgerError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Sale rejected: receipt=%s code=%s message=%s",
            receipt_number, exc.code, exc.message,
        )
        raise

    if record.discount_requires_approval:
        current_app.logger.warning(
            "Sale %s carries a discount above the approval threshold (%s %s)",
            record.receipt_number, record.discount_type, record.discount_value,
        )
    current_app.logger.info(
        "Sale committed: receipt=%s items=%s total=%s method=%s",
        record.receipt_number, len(record.items), record.total_amount, record.payment_method,
    )
    return record


def get_sale(sale_id: int) -> POSSale:
    sale = db.session.get(POSSale, sale_id)
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    return sale


def get_today_summary(branch_id: Optional[int] = None, today: Optional[date] = None) -> dict:
    today = today or local_today()
    query = db.session.query(POSSale).filter(POSSale.sale_date == today)
    if branch_id is not None:
        query = query.filter(POSSale.branch_id == branch_id)
    sales = query.all()

    revenue = sum((to_decimal(s.total_amount) for s in sales), ZERO)
    count = len(sales)
    average = revenue / count if count else ZERO
    return {
        "date": today.isoformat(),
        "count": count,
        "revenue": quantize_money(revenue),
        "average_sale": quantize_money(average),
    }
