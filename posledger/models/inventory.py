from __future__ import annotations

from ..extensions import db
from posledger.money import decimal_to_str
from posledger.time_utils import to_utc_z, to_iso_date


BATCH_ACTIVE = "active"
BATCH_EXPIRED = "expired"
BATCH_DEPLETED = "depleted"

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_TRANSFER = "TRANSFER"


class Warehouse(db.Model):
    """
    Physical stock location owned by a branch.

    max_capacity is measured in base units summed across all products.
    NULL means the warehouse has no configured limit.
    """
    __tablename__ = "warehouses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    max_capacity = db.Column(db.Numeric(14, 4), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("warehouses", lazy=True))

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} branch_id={self.branch_id}>"


class InventoryBatch(db.Model):
    """
    A received lot of one product in one warehouse.

    INVARIANTS:
    - quantity is in the product's base UOM and never negative
    - unit_cost is the cost per base unit at receipt
    - status moves to 'depleted' when quantity reaches zero and to 'expired'
      via the expiry sweep; only 'active' batches are sellable

    CONCURRENCY: version_id is an optimistic lock. Two transactions that both
    read the same batch and write it back cannot both commit.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.Index("ix_batches_product_warehouse_status", "product_id", "warehouse_id", "status"),
        db.Index("ix_batches_expiry", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_number = db.Column(db.String(64), nullable=False, unique=True, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    unit_cost = db.Column(db.Numeric(14, 4), nullable=False)

    received_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=BATCH_ACTIVE)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("batches", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("batches", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch id={self.id} batch_number={self.batch_number!r} "
            f"quantity={self.quantity} status={self.status!r}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "quantity": decimal_to_str(self.quantity),
            "unit_cost": decimal_to_str(self.unit_cost),
            "received_date": to_iso_date(self.received_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every batch quantity change.

    quantity is always positive; type gives the direction.
    reference_type/reference_id tie the movement to its source document
    (POS receipt, receiving voucher, transfer, adjustment).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Numeric(14, 4), nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    reference_type = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    batch = db.relationship("InventoryBatch", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "type": self.type,
            "quantity": decimal_to_str(self.quantity),
            "reason": self.reason,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "created_at": to_utc_z(self.created_at),
        }
