from __future__ import annotations

from ..extensions import db
from posledger.money import decimal_to_str
from posledger.time_utils import to_utc_z, to_iso_date


OBLIGATION_PENDING = "pending"
OBLIGATION_PARTIAL = "partial"
OBLIGATION_PAID = "paid"
OBLIGATION_OVERDUE = "overdue"

OPEN_OBLIGATION_STATUSES = (OBLIGATION_PENDING, OBLIGATION_PARTIAL, OBLIGATION_OVERDUE)


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    # Net 15, Net 30, Net 60, COD
    payment_terms = db.Column(db.String(16), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())


class AccountsReceivable(db.Model):
    """
    Money owed to the business by a customer.

    BALANCE INVARIANT: balance == total_amount - paid_amount and balance >= 0.
    Both fields only change together, inside the payment transaction that
    appends the matching ARPayment row.
    """
    __tablename__ = "accounts_receivable"
    __table_args__ = (
        db.Index("ix_ar_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True)
    pos_sale_id = db.Column(db.Integer, db.ForeignKey("pos_sales.id"), nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    balance = db.Column(db.Numeric(14, 2), nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=OBLIGATION_PENDING, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch")
    payments = db.relationship("ARPayment", backref="receivable", lazy=True, order_by="ARPayment.id")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def counterparty_name(self) -> str:
        return self.customer_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "sales_order_id": self.sales_order_id,
            "pos_sale_id": self.pos_sale_id,
            "total_amount": decimal_to_str(self.total_amount),
            "paid_amount": decimal_to_str(self.paid_amount),
            "balance": decimal_to_str(self.balance),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "payments": [p.to_dict() for p in self.payments],
        }


class ARPayment(db.Model):
    __tablename__ = "ar_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ar_id = db.Column(db.Integer, db.ForeignKey("accounts_receivable.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference_number = db.Column(db.String(128), nullable=True)
    payment_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ar_id": self.ar_id,
            "amount": decimal_to_str(self.amount),
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "payment_date": to_iso_date(self.payment_date),
        }


class AccountsPayable(db.Model):
    """
    Money the business owes a supplier.

    Same balance invariant as AccountsReceivable.
    """
    __tablename__ = "accounts_payable"
    __table_args__ = (
        db.Index("ix_ap_branch_status", "branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    balance = db.Column(db.Numeric(14, 2), nullable=False)
    due_date = db.Column(db.Date, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=OBLIGATION_PENDING, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch")
    supplier = db.relationship("Supplier")
    payments = db.relationship("APPayment", backref="payable", lazy=True, order_by="APPayment.id")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def counterparty_name(self) -> str:
        return self.supplier.company_name

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "supplier_id": self.supplier_id,
            "purchase_order_id": self.purchase_order_id,
            "total_amount": decimal_to_str(self.total_amount),
            "paid_amount": decimal_to_str(self.paid_amount),
            "balance": decimal_to_str(self.balance),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "payments": [p.to_dict() for p in self.payments],
        }


class APPayment(db.Model):
    __tablename__ = "ap_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    ap_id = db.Column(db.Integer, db.ForeignKey("accounts_payable.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    reference_number = db.Column(db.String(128), nullable=True)
    payment_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ap_id": self.ap_id,
            "amount": decimal_to_str(self.amount),
            "payment_method": self.payment_method,
            "reference_number": self.reference_number,
            "payment_date": to_iso_date(self.payment_date),
        }
