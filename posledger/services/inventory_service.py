# Overview: Batch-based inventory ledger: costing, UOM conversion, FEFO deduction, receipts and adjustments.

# posledger/services/inventory_service.py

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from flask import current_app

from ..extensions import db
from ..models import InventoryBatch, Product, StockMovement, Warehouse
from ..models.inventory import (
    BATCH_ACTIVE,
    BATCH_DEPLETED,
    BATCH_EXPIRED,
    MOVEMENT_IN,
    MOVEMENT_OUT,
    MOVEMENT_TRANSFER,
)
from ..money import ZERO, HUNDRED, to_decimal, quantize_money
from ..time_utils import local_today
from .concurrency import lock_for_update, transaction_scope
from .document_service import BATCH_PREFIX, next_daily_number
from .errors import (
    CapacityExceededError,
    InsufficientStockError,
    NotFoundError,
    UnknownUOMError,
    ValidationError,
)
from .product_service import find_alternate_uom, get_product, is_base_uom

"""
Inventory Ledger Invariants (authoritative)

Storage model:
- Stock is a set of InventoryBatch rows per (product, warehouse).
- Batch quantity and unit_cost are always in the product's base UOM.
- A batch quantity never goes negative.
- Only batches with status 'active' and quantity > 0 are eligible stock.

Costing:
- Weighted average cost = sum(qty * unit_cost) / sum(qty) over eligible batches.
- Derived on demand, never stored.

Consumption (FEFO):
- Every deduction path orders eligible batches by expiry_date, then
  received_date, then id, and consumes greedily.
- Sufficiency is verified across all eligible batches before any batch is
  mutated. A batch reaching exactly zero becomes 'depleted'.

Audit:
- Every quantity change appends a StockMovement in the same transaction.

Concurrency:
- Batches are read through lock_for_update and carry an optimistic
  version column, so two deductions against the same stock cannot both
  commit from the same snapshot.
"""

UTILIZATION_WARNING = Decimal("60")
UTILIZATION_CRITICAL = Decimal("80")


def _require_quantity(quantity, *, field: str = "quantity", allow_zero: bool = False) -> Decimal:
    try:
        qty = to_decimal(quantity, field=field)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": field}) from exc
    if qty < ZERO or (qty == ZERO and not allow_zero):
        raise ValidationError(
            f"{field} must be greater than zero",
            details={"field": field, "value": str(qty)},
        )
    return qty


def _get_warehouse(warehouse_id: int, label: str = "Warehouse") -> Warehouse:
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise NotFoundError(label, warehouse_id)
    return warehouse


def _eligible_batches_query(product_id: int, warehouse_id: int):
    return (
        db.session.query(InventoryBatch)
        .filter(
            InventoryBatch.product_id == product_id,
            InventoryBatch.warehouse_id == warehouse_id,
            InventoryBatch.status == BATCH_ACTIVE,
            InventoryBatch.quantity > 0,
        )
    )


def fefo_order(batches: Iterable[InventoryBatch]) -> list[InventoryBatch]:
    """Soonest-to-expire first; older receipts then lower ids break ties."""
    return sorted(batches, key=lambda b: (b.expiry_date, b.received_date, b.id or 0))


def fefo_allocation(batches: Sequence[InventoryBatch], quantity: Decimal) -> list[tuple[InventoryBatch, Decimal]]:
    """
    Plan a greedy FEFO consumption of `quantity` over `batches`.

    Pure: nothing is mutated. The plan covers at most the available stock;
    callers compare the total against the request before applying it.
    """
    plan = []
    remaining = quantity
    for batch in fefo_order(batches):
        if remaining <= ZERO:
            break
        available = to_decimal(batch.quantity)
        if available <= ZERO:
            continue
        take = min(available, remaining)
        plan.append((batch, take))
        remaining -= take
    return plan


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_total_stock(product_id: int, warehouse_id: int) -> Decimal:
    batches = _eligible_batches_query(product_id, warehouse_id).all()
    return sum((to_decimal(b.quantity) for b in batches), ZERO)


def weighted_average_cost(product_id: int, warehouse_id: int) -> Decimal:
    """
    Quantity-weighted mean unit cost of eligible stock, full precision.

    Returns 0 when nothing is in stock; selling against zero stock fails in
    deduct_stock, so callers never rely on that zero as a real cost.
    """
    batches = _eligible_batches_query(product_id, warehouse_id).all()
    total_qty = ZERO
    total_value = ZERO
    for batch in batches:
        qty = to_decimal(batch.quantity)
        total_qty += qty
        total_value += qty * to_decimal(batch.unit_cost)
    if total_qty == ZERO:
        return ZERO
    return total_value / total_qty


def _conversion_factor(product: Product, uom: str) -> Decimal:
    if is_base_uom(product, uom):
        return Decimal("1")
    alt = find_alternate_uom(product, uom)
    if alt is None:
        raise UnknownUOMError(uom, product.name)
    return to_decimal(alt.conversion_factor)


def to_base_quantity(product: Product, quantity, uom: str) -> Decimal:
    return to_decimal(quantity, field="quantity") * _conversion_factor(product, uom)


def convert_to_base_uom(product_id: int, quantity, uom: str) -> Decimal:
    """Quantity in `uom` expressed in the product's base UOM."""
    return to_base_quantity(get_product(product_id), quantity, uom)


def convert_from_base_uom(product_id: int, base_quantity, uom: str) -> Decimal:
    """Inverse of convert_to_base_uom."""
    product = get_product(product_id)
    return to_decimal(base_quantity, field="base_quantity") / _conversion_factor(product, uom)


def has_sufficient_stock(product_id: int, warehouse_id: int, quantity, uom: str) -> bool:
    base_qty = convert_to_base_uom(product_id, quantity, uom)
    return get_total_stock(product_id, warehouse_id) >= base_qty


def get_warehouse_stock(warehouse_id: int) -> Decimal:
    """All eligible stock in the warehouse, summed in base units across products."""
    rows = (
        db.session.query(InventoryBatch.quantity)
        .filter(
            InventoryBatch.warehouse_id == warehouse_id,
            InventoryBatch.status == BATCH_ACTIVE,
        )
        .all()
    )
    return sum((to_decimal(q) for (q,) in rows), ZERO)


def get_stock_levels(warehouse_id: Optional[int] = None) -> list[dict]:
    """
    Per (product, warehouse) totals of eligible stock with their
    weighted average cost.
    """
    query = db.session.query(InventoryBatch).filter(
        InventoryBatch.status == BATCH_ACTIVE,
        InventoryBatch.quantity > 0,
    )
    if warehouse_id is not None:
        query = query.filter(InventoryBatch.warehouse_id == warehouse_id)

    levels: dict[tuple[int, int], dict] = {}
    for batch in query.order_by(InventoryBatch.product_id, InventoryBatch.warehouse_id).all():
        key = (batch.product_id, batch.warehouse_id)
        entry = levels.setdefault(key, {
            "product_id": batch.product_id,
            "product_name": batch.product.name,
            "warehouse_id": batch.warehouse_id,
            "warehouse_name": batch.warehouse.name,
            "base_uom": batch.product.base_uom,
            "total_quantity": ZERO,
            "_value": ZERO,
            "batch_count": 0,
        })
        qty = to_decimal(batch.quantity)
        entry["total_quantity"] += qty
        entry["_value"] += qty * to_decimal(batch.unit_cost)
        entry["batch_count"] += 1

    result = []
    for entry in levels.values():
        value = entry.pop("_value")
        entry["weighted_average_cost"] = value / entry["total_quantity"]
        result.append(entry)
    return result


def get_low_stock_products() -> list[dict]:
    """Active products whose eligible stock across all warehouses is below min_stock_level."""
    products = db.session.query(Product).filter(Product.status == "active").order_by(Product.name.asc()).all()
    low = []
    for product in products:
        total = sum(
            (to_decimal(b.quantity) for b in product.batches if b.status == BATCH_ACTIVE),
            ZERO,
        )
        if total < Decimal(product.min_stock_level or 0):
            low.append({
                "product_id": product.id,
                "product_name": product.name,
                "base_uom": product.base_uom,
                "current_stock": total,
                "min_stock_level": product.min_stock_level,
            })
    return low


def get_expiring_batches(days: Optional[int] = None, today: Optional[date] = None) -> list[InventoryBatch]:
    """Active batches expiring within `days` (inclusive), soonest first."""
    if days is None:
        days = current_app.config.get("EXPIRY_WARNING_DAYS", 30)
    today = today or local_today()
    horizon = today + timedelta(days=days)
    return fefo_order(
        db.session.query(InventoryBatch)
        .filter(
            InventoryBatch.status == BATCH_ACTIVE,
            InventoryBatch.quantity > 0,
            InventoryBatch.expiry_date <= horizon,
        )
        .all()
    )


def get_warehouse_utilization(warehouse_id: int) -> dict:
    warehouse = _get_warehouse(warehouse_id)
    current = get_warehouse_stock(warehouse.id)

    if warehouse.max_capacity is None or to_decimal(warehouse.max_capacity) == ZERO:
        return {
            "warehouse_id": warehouse.id,
            "warehouse_name": warehouse.name,
            "current_stock": current,
            "max_capacity": None,
            "utilization_percentage": None,
            "alert_level": "normal",
        }

    max_capacity = to_decimal(warehouse.max_capacity)
    pct = current / max_capacity * HUNDRED
    if pct >= UTILIZATION_CRITICAL:
        alert = "critical"
    elif pct >= UTILIZATION_WARNING:
        alert = "warning"
    else:
        alert = "normal"

    return {
        "warehouse_id": warehouse.id,
        "warehouse_name": warehouse.name,
        "current_stock": current,
        "max_capacity": max_capacity,
        "utilization_percentage": quantize_money(pct),
        "alert_level": alert,
    }


# ---------------------------------------------------------------------------
# Mutations (inner helpers never commit)
# ---------------------------------------------------------------------------

def _check_capacity(warehouse: Warehouse, incoming: Decimal) -> None:
    if warehouse.max_capacity is None:
        return
    max_capacity = to_decimal(warehouse.max_capacity)
    current = get_warehouse_stock(warehouse.id)
    if current + incoming > max_capacity:
        raise CapacityExceededError(warehouse.name, current, incoming, max_capacity)


def _record_movement(batch: InventoryBatch, movement_type: str, quantity: Decimal,
                     reason: Optional[str], reference_id, reference_type: Optional[str]) -> StockMovement:
    movement = StockMovement(
        batch=batch,
        type=movement_type,
        quantity=quantity,
        reason=reason,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_type=reference_type,
    )
    db.session.add(movement)
    return movement


def _deduct_stock_locked(
    *,
    product: Product,
    warehouse_id: int,
    base_quantity: Decimal,
    reason: Optional[str],
    reference_id=None,
    reference_type: Optional[str] = None,
    movement_type: str = MOVEMENT_OUT,
) -> list[StockMovement]:
    """
    FEFO deduction of `base_quantity` inside the caller's transaction.

    Raises InsufficientStockError before touching any batch when eligible
    stock cannot cover the request.
    """
    if base_quantity == ZERO:
        return []

    batches = lock_for_update(_eligible_batches_query(product.id, warehouse_id)).all()
    available = sum((to_decimal(b.quantity) for b in batches), ZERO)
    if available < base_quantity:
        raise InsufficientStockError(product.name, available, base_quantity)

    movements = []
    for batch, take in fefo_allocation(batches, base_quantity):
        new_qty = to_decimal(batch.quantity) - take
        batch.quantity = new_qty
        if new_qty == ZERO:
            batch.status = BATCH_DEPLETED
        movements.append(_record_movement(batch, movement_type, take, reason, reference_id, reference_type))

    db.session.flush()
    return movements


def deduct_stock(
    *,
    product_id: int,
    warehouse_id: int,
    quantity,
    uom: str,
    reason: Optional[str] = None,
    reference_id=None,
    reference_type: Optional[str] = None,
) -> list[StockMovement]:
    qty = _require_quantity(quantity, allow_zero=True)
    with transaction_scope():
        product = get_product(product_id)
        _get_warehouse(warehouse_id)
        base_qty = to_base_quantity(product, qty, uom)
        movements = _deduct_stock_locked(
            product=product,
            warehouse_id=warehouse_id,
            base_quantity=base_qty,
            reason=reason,
            reference_id=reference_id,
            reference_type=reference_type,
        )

    if movements:
        current_app.logger.info(
            "Stock deducted: product=%s warehouse=%s quantity=%s batches=%s",
            product_id, warehouse_id, base_qty, len(movements),
        )
    return movements


def _add_stock_locked(
    *,
    product: Product,
    warehouse: Warehouse,
    base_quantity: Decimal,
    unit_cost: Decimal,
    received_date: date,
    expiry_date: Optional[date] = None,
    reason: Optional[str] = None,
    reference_id=None,
    reference_type: Optional[str] = None,
    movement_type: str = MOVEMENT_IN,
) -> InventoryBatch:
    """Create one batch (base units, base-unit cost) after a capacity check."""
    _check_capacity(warehouse, base_quantity)

    if expiry_date is None:
        expiry_date = received_date + timedelta(days=product.shelf_life_days)

    batch = InventoryBatch(
        batch_number=next_daily_number(BATCH_PREFIX, InventoryBatch.batch_number, received_date),
        product_id=product.id,
        warehouse_id=warehouse.id,
        quantity=base_quantity,
        unit_cost=unit_cost,
        received_date=received_date,
        expiry_date=expiry_date,
        status=BATCH_ACTIVE,
    )
    db.session.add(batch)
    _record_movement(batch, movement_type, base_quantity, reason, reference_id, reference_type)
    db.session.flush()
    return batch


def add_stock(
    *,
    product_id: int,
    warehouse_id: int,
    quantity,
    uom: str,
    unit_cost,
    received_date: Optional[date] = None,
    expiry_date: Optional[date] = None,
    reason: Optional[str] = "Stock received",
    reference_id=None,
    reference_type: Optional[str] = "MANUAL",
) -> InventoryBatch:
    """
    Receive stock into a new batch.

    unit_cost is per `uom`; the batch stores it per base unit.
    expiry_date defaults to received_date + product shelf life.
    """
    qty = _require_quantity(quantity)
    try:
        cost = to_decimal(unit_cost, field="unit_cost")
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": "unit_cost"}) from exc
    if cost < ZERO:
        raise ValidationError("unit_cost cannot be negative", details={"field": "unit_cost"})

    received_date = received_date or local_today()
    if expiry_date is not None and expiry_date < received_date:
        raise ValidationError("expiry_date cannot be before received_date", details={"field": "expiry_date"})

    with transaction_scope():
        product = get_product(product_id)
        warehouse = _get_warehouse(warehouse_id)
        factor = _conversion_factor(product, uom)
        batch = _add_stock_locked(
            product=product,
            warehouse=warehouse,
            base_quantity=qty * factor,
            unit_cost=cost / factor,
            received_date=received_date,
            expiry_date=expiry_date,
            reason=reason,
            reference_id=reference_id,
            reference_type=reference_type,
        )

    current_app.logger.info(
        "Stock added: batch=%s product=%s warehouse=%s quantity=%s",
        batch.batch_number, product_id, warehouse_id, batch.quantity,
    )
    return batch


def adjust_stock(batch_id: int, new_quantity, reason: str) -> InventoryBatch:
    """
    Set one batch's quantity directly (count corrections, damage, write-offs).

    Bypasses FEFO because it targets a specific batch. The difference is
    recorded as an IN or OUT movement tagged ADJUSTMENT.
    """
    if not reason or not reason.strip():
        raise ValidationError("Adjustment reason is required", details={"field": "reason"})
    target = _require_quantity(new_quantity, field="new_quantity", allow_zero=True)

    with transaction_scope():
        batch = lock_for_update(
            db.session.query(InventoryBatch).filter(InventoryBatch.id == batch_id)
        ).first()
        if batch is None:
            raise NotFoundError("Inventory batch", batch_id)

        current = to_decimal(batch.quantity)
        delta = target - current
        batch.quantity = target
        if target == ZERO:
            batch.status = BATCH_DEPLETED
        elif batch.status == BATCH_DEPLETED:
            batch.status = BATCH_ACTIVE

        if delta != ZERO:
            _record_movement(
                batch,
                MOVEMENT_IN if delta > ZERO else MOVEMENT_OUT,
                abs(delta),
                reason.strip(),
                batch.id,
                "ADJUSTMENT",
            )

    current_app.logger.info(
        "Batch adjusted: batch=%s from=%s to=%s reason=%s",
        batch.batch_number, current, target, reason.strip(),
    )
    return batch


def transfer_stock(
    *,
    product_id: int,
    source_warehouse_id: int,
    destination_warehouse_id: int,
    quantity,
    uom: str,
    reason: Optional[str] = None,
    today: Optional[date] = None,
) -> InventoryBatch:
    """
    Move stock between warehouses in one transaction.

    The source is consumed FEFO; the destination receives a single batch
    costed at the source's weighted average cost and expiring with the
    earliest consumed batch.
    """
    if source_warehouse_id == destination_warehouse_id:
        raise ValidationError(
            "Source and destination warehouses must be different",
            details={"warehouse_id": source_warehouse_id},
        )
    qty = _require_quantity(quantity)
    today = today or local_today()

    with transaction_scope():
        product = get_product(product_id)
        source = _get_warehouse(source_warehouse_id, "Source warehouse")
        destination = _get_warehouse(destination_warehouse_id, "Destination warehouse")
        base_qty = to_base_quantity(product, qty, uom)

        avg_cost = weighted_average_cost(product.id, source.id)
        movements = _deduct_stock_locked(
            product=product,
            warehouse_id=source.id,
            base_quantity=base_qty,
            reason=reason or f"Transfer to {destination.name}",
            reference_type="TRANSFER",
            movement_type=MOVEMENT_TRANSFER,
        )
        expiry = min(m.batch.expiry_date for m in movements)

        batch = _add_stock_locked(
            product=product,
            warehouse=destination,
            base_quantity=base_qty,
            unit_cost=avg_cost,
            received_date=today,
            expiry_date=expiry,
            reason=reason or f"Transfer from {source.name}",
            reference_type="TRANSFER",
            movement_type=MOVEMENT_TRANSFER,
        )
        for movement in movements:
            movement.reference_id = batch.batch_number

    current_app.logger.info(
        "Stock transferred: product=%s from=%s to=%s quantity=%s",
        product_id, source_warehouse_id, destination_warehouse_id, base_qty,
    )
    return batch


def mark_expired_batches(today: Optional[date] = None) -> int:
    """Flag active batches whose expiry date has passed. Returns the count."""
    today = today or local_today()
    with transaction_scope():
        batches = lock_for_update(
            db.session.query(InventoryBatch).filter(
                InventoryBatch.status == BATCH_ACTIVE,
                InventoryBatch.expiry_date < today,
            )
        ).all()
        for batch in batches:
            batch.status = BATCH_EXPIRED

    if batches:
        current_app.logger.info("Expired %s batches as of %s", len(batches), today.isoformat())
    return len(batches)
