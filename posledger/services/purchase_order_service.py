# Overview: Purchase order entry and lookup feeding the receiving workflow.

from __future__ import annotations

from typing import Iterable, Optional

from flask import current_app

from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, Supplier, Warehouse
from ..money import ZERO, to_decimal
from .concurrency import transaction_scope
from .document_service import PURCHASE_ORDER_PREFIX, next_daily_number
from .errors import ConflictError, NotFoundError, UnknownUOMError, ValidationError
from .product_service import find_alternate_uom, get_product, is_base_uom


PO_ORDERED = "ordered"
PO_RECEIVED = "received"
PO_CANCELLED = "cancelled"

RECEIVING_PENDING = "pending"
RECEIVING_PARTIAL = "partially_received"
RECEIVING_FULL = "fully_received"


def _line_decimal(entry: dict, key: str, line: int):
    try:
        value = to_decimal(entry.get(key), field=key)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"line": line, "field": key}) from exc
    if value <= ZERO:
        raise ValidationError(f"{key} must be greater than zero", details={"line": line, "field": key})
    return value


def create_purchase_order(
    *,
    supplier_id: int,
    branch_id: int,
    warehouse_id: int,
    items: Iterable[dict],
    po_number: Optional[str] = None,
) -> PurchaseOrder:
    """
    Create an 'ordered' purchase order.

    items: dicts with product_id, quantity, uom and unit_price (per uom).
    """
    items = list(items)
    if not items:
        raise ValidationError("Purchase order must contain at least one item", details={"field": "items"})

    with transaction_scope() as session:
        if session.get(Supplier, supplier_id) is None:
            raise NotFoundError("Supplier", supplier_id)
        warehouse = session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise NotFoundError("Warehouse", warehouse_id)

        if po_number:
            if session.query(PurchaseOrder).filter_by(po_number=po_number).first():
                raise ConflictError("PO number already exists", details={"po_number": po_number})
        else:
            po_number = next_daily_number(PURCHASE_ORDER_PREFIX, PurchaseOrder.po_number)

        po = PurchaseOrder(
            po_number=po_number,
            supplier_id=supplier_id,
            branch_id=branch_id,
            warehouse_id=warehouse.id,
            status=PO_ORDERED,
            receiving_status=RECEIVING_PENDING,
        )
        for line, entry in enumerate(items, start=1):
            product = get_product(entry.get("product_id"))
            uom = (entry.get("uom") or product.base_uom).strip()
            if not is_base_uom(product, uom) and find_alternate_uom(product, uom) is None:
                raise UnknownUOMError(uom, product.name)
            po.items.append(PurchaseOrderItem(
                product_id=product.id,
                quantity=_line_decimal(entry, "quantity", line),
                uom=uom,
                unit_price=_line_decimal(entry, "unit_price", line),
                received_quantity=ZERO,
            ))
        session.add(po)

    current_app.logger.info("Purchase order created: %s lines=%s", po.po_number, len(po.items))
    return po


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("Purchase order", po_id)
    return po


def cancel_purchase_order(po_id: int) -> PurchaseOrder:
    with transaction_scope():
        po = get_purchase_order(po_id)
        if po.status == PO_RECEIVED or po.receiving_status != RECEIVING_PENDING:
            raise ConflictError(
                "Purchase order with received items cannot be cancelled",
                details={"po_number": po.po_number, "receiving_status": po.receiving_status},
            )
        po.status = PO_CANCELLED
    current_app.logger.info("Purchase order cancelled: %s", po.po_number)
    return po
