# Overview: Receiving vouchers: variance tracking, batch creation and payables for delivered purchase orders.

from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from flask import current_app

from ..extensions import db
from ..models import Product, PurchaseOrder, ReceivingVoucher, ReceivingVoucherItem
from ..money import ZERO, HUNDRED, TWOPLACES, to_decimal, quantize_money
from ..time_utils import local_today
from .concurrency import lock_for_update, transaction_scope
from .document_service import RECEIVING_VOUCHER_PREFIX, next_daily_number
from .errors import NotFoundError, ValidationError
from .inventory_service import _add_stock_locked, _conversion_factor
from .purchase_order_service import (
    PO_ORDERED,
    PO_RECEIVED,
    RECEIVING_FULL,
    RECEIVING_PARTIAL,
    RECEIVING_PENDING,
)
from .receivables_service import OBLIGATION_BINDINGS, ObligationKind, _create_ap_locked, due_date_for_terms


def _variance_percentage(variance: Decimal, ordered: Decimal) -> Decimal:
    if ordered <= ZERO:
        return ZERO
    return (variance / ordered * HUNDRED).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _receiving_status(po: PurchaseOrder) -> str:
    items = po.items
    if all(to_decimal(i.received_quantity) >= to_decimal(i.quantity) for i in items):
        return RECEIVING_FULL
    if any(to_decimal(i.received_quantity) > ZERO for i in items):
        return RECEIVING_PARTIAL
    return RECEIVING_PENDING


def receive_purchase_order(
    po_id: int,
    receiver_name: str,
    items: Iterable[dict],
    delivery_notes: Optional[str] = None,
    today: Optional[date] = None,
) -> ReceivingVoucher:
    """
    Record a delivery against an ordered purchase order.

    items: dicts with po_item_id, received_quantity and optional
    variance_reason. Ordered quantity per line is what was still
    outstanding on the PO before this delivery.

    In one transaction: voucher and lines, a batch per received line (cost
    converted to base units, capacity-checked), PO received quantities and
    receiving status, and once everything is in, the PO closes and a
    payable for the received value is opened.
    """
    if not receiver_name or not receiver_name.strip():
        raise ValidationError("Receiver name is required", details={"field": "receiver_name"})
    items = list(items)
    today = today or local_today()

    received_by_line: dict[int, tuple[Decimal, Optional[str]]] = {}
    for entry in items:
        try:
            qty = to_decimal(entry.get("received_quantity"), field="received_quantity")
        except ValueError as exc:
            raise ValidationError(str(exc), details={"po_item_id": entry.get("po_item_id")}) from exc
        if qty < ZERO:
            raise ValidationError(
                "Received quantity cannot be negative",
                details={"po_item_id": entry.get("po_item_id")},
            )
        if entry.get("po_item_id") in received_by_line:
            raise ValidationError(
                "Purchase order item listed more than once",
                details={"po_item_id": entry.get("po_item_id")},
            )
        received_by_line[entry.get("po_item_id")] = (qty, entry.get("variance_reason"))

    if not any(qty > ZERO for qty, _ in received_by_line.values()):
        raise ValidationError(
            "No items received",
            details={"items": "At least one item must have received quantity greater than zero"},
        )

    with transaction_scope():
        po = lock_for_update(db.session.query(PurchaseOrder).filter(PurchaseOrder.id == po_id)).first()
        if po is None:
            raise NotFoundError("Purchase order", po_id)
        if po.status != PO_ORDERED:
            raise ValidationError(
                "Purchase order must be in ordered status",
                details={"po_number": po.po_number, "status": po.status},
            )

        po_items = {i.id: i for i in po.items}
        unknown = [line_id for line_id in received_by_line if line_id not in po_items]
        if unknown:
            raise NotFoundError("Purchase order item", unknown[0])

        rv_number = next_daily_number(RECEIVING_VOUCHER_PREFIX, ReceivingVoucher.rv_number, today)
        voucher = ReceivingVoucher(
            rv_number=rv_number,
            purchase_order_id=po.id,
            warehouse_id=po.warehouse_id,
            branch_id=po.branch_id,
            receiver_name=receiver_name.strip(),
            delivery_notes=delivery_notes,
            status="complete",
        )

        total_ordered = ZERO
        total_received = ZERO
        for line_id, (received, reason) in received_by_line.items():
            po_item = po_items[line_id]
            ordered = max(ZERO, to_decimal(po_item.quantity) - to_decimal(po_item.received_quantity))
            unit_price = to_decimal(po_item.unit_price)
            variance = received - ordered
            line_total = received * unit_price

            total_ordered += ordered * unit_price
            total_received += line_total

            voucher.items.append(ReceivingVoucherItem(
                product_id=po_item.product_id,
                uom=po_item.uom,
                ordered_quantity=ordered,
                received_quantity=received,
                variance_quantity=variance,
                variance_percentage=_variance_percentage(variance, ordered),
                variance_reason=reason,
                unit_price=unit_price,
                line_total=quantize_money(line_total),
            ))

            if received > ZERO:
                product = db.session.get(Product, po_item.product_id)
                factor = _conversion_factor(product, po_item.uom)
                _add_stock_locked(
                    product=product,
                    warehouse=po.warehouse,
                    base_quantity=received * factor,
                    unit_cost=unit_price / factor,
                    received_date=today,
                    reason=f"Received from RV {rv_number} (PO {po.po_number})",
                    reference_id=rv_number,
                    reference_type="RV",
                )
                po_item.received_quantity = to_decimal(po_item.received_quantity) + received

        voucher.total_ordered_amount = quantize_money(total_ordered)
        voucher.total_received_amount = quantize_money(total_received)
        voucher.variance_amount = quantize_money(total_received - total_ordered)
        db.session.add(voucher)

        po.receiving_status = _receiving_status(po)
        if po.receiving_status == RECEIVING_FULL:
            po.status = PO_RECEIVED
            po.actual_delivery_date = today
            po_value = sum(
                (to_decimal(i.received_quantity) * to_decimal(i.unit_price) for i in po.items),
                ZERO,
            )
            if po_value > ZERO:
                _create_ap_locked(
                    branch_id=po.branch_id,
                    supplier=po.supplier,
                    purchase_order_id=po.id,
                    total_amount=quantize_money(po_value),
                    due_date=due_date_for_terms(
                        po.supplier.payment_terms,
                        today,
                        cod_days=OBLIGATION_BINDINGS[ObligationKind.AP].cod_days,
                    ),
                )
        db.session.flush()

    current_app.logger.info(
        "Receiving voucher %s recorded for PO %s: received=%s variance=%s status=%s",
        voucher.rv_number, po.po_number, voucher.total_received_amount,
        voucher.variance_amount, po.receiving_status,
    )
    return voucher


def get_receiving_voucher(rv_id: int) -> ReceivingVoucher:
    voucher = db.session.get(ReceivingVoucher, rv_id)
    if voucher is None:
        raise NotFoundError("Receiving voucher", rv_id)
    return voucher


def get_variance_report(po_id: int) -> dict:
    """Ordered vs received per product across all vouchers of one PO."""
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("Purchase order", po_id)

    lines = []
    for item in po.items:
        ordered = to_decimal(item.quantity)
        received = to_decimal(item.received_quantity)
        variance = received - ordered
        lines.append({
            "po_item_id": item.id,
            "product_id": item.product_id,
            "product_name": item.product.name,
            "uom": item.uom,
            "ordered_quantity": ordered,
            "received_quantity": received,
            "variance_quantity": variance,
            "variance_percentage": _variance_percentage(variance, ordered),
        })
    return {
        "po_number": po.po_number,
        "receiving_status": po.receiving_status,
        "lines": lines,
    }
