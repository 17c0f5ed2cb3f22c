from __future__ import annotations

from ..extensions import db
from posledger.money import decimal_to_str
from posledger.time_utils import to_utc_z, to_iso_date


class SalesOrder(db.Model):
    """
    Customer order that may later be converted into a POS sale.

    Orders are created with a unique number and converted at most once.
    """
    __tablename__ = "sales_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    # pending, converted, cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # plain id: pos_sales already references sales_orders
    converted_to_sale_id = db.Column(db.Integer, nullable=True)
    converted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class POSSale(db.Model):
    """
    Completed point-of-sale transaction.

    Created atomically with its items, the matching inventory deductions and
    (for credit sales) the receivable. Immutable afterwards.

    Money columns:
    - subtotal: gross of all lines (unit_price x quantity)
    - discount: item discounts + transaction discount
    - tax: VAT portion (included or added, per company settings)
    - total_amount: amount the customer owes
    """
    __tablename__ = "pos_sales"
    __table_args__ = (
        db.Index("ix_pos_sales_branch_date", "branch_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=True)  # percentage, fixed
    discount_value = db.Column(db.Numeric(14, 2), nullable=True)
    discount_reason = db.Column(db.String(255), nullable=True)
    discount_requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False)

    payment_method = db.Column(db.String(32), nullable=False, index=True)
    amount_received = db.Column(db.Numeric(14, 2), nullable=True)
    change = db.Column(db.Numeric(14, 2), nullable=True)
    partial_payment = db.Column(db.Numeric(14, 2), nullable=True)

    converted_from_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True)

    sale_date = db.Column(db.Date, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "POSSaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="POSSaleItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "branch_id": self.branch_id,
            "warehouse_id": self.warehouse_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "subtotal": decimal_to_str(self.subtotal),
            "discount": decimal_to_str(self.discount),
            "discount_type": self.discount_type,
            "discount_value": decimal_to_str(self.discount_value),
            "discount_reason": self.discount_reason,
            "discount_requires_approval": self.discount_requires_approval,
            "tax": decimal_to_str(self.tax),
            "total_amount": decimal_to_str(self.total_amount),
            "payment_method": self.payment_method,
            "amount_received": decimal_to_str(self.amount_received),
            "change": decimal_to_str(self.change),
            "partial_payment": decimal_to_str(self.partial_payment),
            "converted_from_order_id": self.converted_from_order_id,
            "sale_date": to_iso_date(self.sale_date),
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class POSSaleItem(db.Model):
    """Line item of a POS sale, with cost of goods sold frozen at sale time."""
    __tablename__ = "pos_sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("pos_sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    uom = db.Column(db.String(50), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    # per-unit discount
    discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    cost_of_goods_sold = db.Column(db.Numeric(14, 4), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": decimal_to_str(self.quantity),
            "uom": self.uom,
            "unit_price": decimal_to_str(self.unit_price),
            "discount": decimal_to_str(self.discount),
            "subtotal": decimal_to_str(self.subtotal),
            "cost_of_goods_sold": decimal_to_str(self.cost_of_goods_sold),
        }
