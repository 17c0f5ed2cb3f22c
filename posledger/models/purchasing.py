from __future__ import annotations

from ..extensions import db
from posledger.money import decimal_to_str
from posledger.time_utils import to_utc_z


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    # Net 15, Net 30, Net 60, COD
    payment_terms = db.Column(db.String(16), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class PurchaseOrder(db.Model):
    """
    Purchase order header.

    status: draft, ordered, received, cancelled
    receiving_status: pending, partially_received, fully_received
    """
    __tablename__ = "purchase_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(64), nullable=False, unique=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="ordered", index=True)
    receiving_status = db.Column(db.String(24), nullable=False, default="pending")
    actual_delivery_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier")
    warehouse = db.relationship("Warehouse")
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    uom = db.Column(db.String(50), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    received_quantity = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    product = db.relationship("Product")


class ReceivingVoucher(db.Model):
    """Record of one delivery received against a purchase order."""
    __tablename__ = "receiving_vouchers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    rv_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    receiver_name = db.Column(db.String(255), nullable=False)
    delivery_notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="complete")

    total_ordered_amount = db.Column(db.Numeric(14, 2), nullable=False)
    total_received_amount = db.Column(db.Numeric(14, 2), nullable=False)
    variance_amount = db.Column(db.Numeric(14, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("receiving_vouchers", lazy=True))
    items = db.relationship(
        "ReceivingVoucherItem",
        backref="voucher",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ReceivingVoucherItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rv_number": self.rv_number,
            "purchase_order_id": self.purchase_order_id,
            "warehouse_id": self.warehouse_id,
            "branch_id": self.branch_id,
            "receiver_name": self.receiver_name,
            "delivery_notes": self.delivery_notes,
            "status": self.status,
            "total_ordered_amount": decimal_to_str(self.total_ordered_amount),
            "total_received_amount": decimal_to_str(self.total_received_amount),
            "variance_amount": decimal_to_str(self.variance_amount),
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class ReceivingVoucherItem(db.Model):
    __tablename__ = "receiving_voucher_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    rv_id = db.Column(db.Integer, db.ForeignKey("receiving_vouchers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    uom = db.Column(db.String(50), nullable=False)
    ordered_quantity = db.Column(db.Numeric(14, 4), nullable=False)
    received_quantity = db.Column(db.Numeric(14, 4), nullable=False)
    variance_quantity = db.Column(db.Numeric(14, 4), nullable=False)
    variance_percentage = db.Column(db.Numeric(8, 2), nullable=False)
    variance_reason = db.Column(db.String(255), nullable=True)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "uom": self.uom,
            "ordered_quantity": decimal_to_str(self.ordered_quantity),
            "received_quantity": decimal_to_str(self.received_quantity),
            "variance_quantity": decimal_to_str(self.variance_quantity),
            "variance_percentage": decimal_to_str(self.variance_percentage),
            "variance_reason": self.variance_reason,
            "unit_price": decimal_to_str(self.unit_price),
            "line_total": decimal_to_str(self.line_total),
        }
