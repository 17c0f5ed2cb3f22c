# Overview: Sales order conversion bookkeeping for the POS orchestrator.

from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import SalesOrder
from ..time_utils import utcnow
from .concurrency import lock_for_update, transaction_scope
from .errors import ConflictError, NotFoundError, ValidationError


ORDER_PENDING = "pending"
ORDER_CONVERTED = "converted"
ORDER_CANCELLED = "cancelled"


def create_sales_order(*, branch_id: int, order_number: str, customer_name: Optional[str] = None) -> SalesOrder:
    order_number = (order_number or "").strip()
    if not order_number:
        raise ValidationError("Order number is required", details={"field": "order_number"})

    with transaction_scope() as session:
        if session.query(SalesOrder).filter_by(order_number=order_number).first():
            raise ConflictError("Order number already exists", details={"order_number": order_number})
        order = SalesOrder(
            branch_id=branch_id,
            order_number=order_number,
            customer_name=customer_name,
            status=ORDER_PENDING,
        )
        session.add(order)
    return order


def get_sales_order(order_id: int) -> SalesOrder:
    order = db.session.get(SalesOrder, order_id)
    if order is None:
        raise NotFoundError("Sales order", order_id)
    return order


def _mark_as_converted_locked(order_id: int, sale_id: int) -> SalesOrder:
    order = lock_for_update(db.session.query(SalesOrder).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Sales order", order_id)
    if order.status == ORDER_CONVERTED:
        raise ConflictError(
            "Sales order has already been converted",
            details={"order_id": order_id, "converted_to_sale_id": order.converted_to_sale_id},
        )
    if order.status == ORDER_CANCELLED:
        raise ConflictError("Cancelled sales order cannot be converted", details={"order_id": order_id})

    order.status = ORDER_CONVERTED
    order.converted_to_sale_id = sale_id
    order.converted_at = utcnow()
    db.session.flush()
    return order


def mark_as_converted(order_id: int, sale_id: int) -> SalesOrder:
    with transaction_scope():
        order = _mark_as_converted_locked(order_id, sale_id)
    current_app.logger.info("Sales order %s converted to sale %s", order.order_number, sale_id)
    return order
