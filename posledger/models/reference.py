from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z


class ReferenceDataMixin:
    """
    Columns shared by the coded lookup tables maintained by operators.

    is_system_defined rows are seeded by the application and cannot be
    deleted (they may still be deactivated).
    """
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    code = db.Column(db.String(20), nullable=False, unique=True)
    description = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_system_defined = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "status": self.status,
            "display_order": self.display_order,
            "is_system_defined": self.is_system_defined,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductCategory(ReferenceDataMixin, db.Model):
    __tablename__ = "product_categories"


class ExpenseCategory(ReferenceDataMixin, db.Model):
    __tablename__ = "expense_categories"


class UnitOfMeasure(ReferenceDataMixin, db.Model):
    __tablename__ = "units_of_measure"


class PaymentMethod(ReferenceDataMixin, db.Model):
    __tablename__ = "payment_methods"

    # subset of expense, pos, ar, ap
    applicable_to = db.Column(db.JSON, nullable=False, default=lambda: ["expense", "pos", "ar", "ap"])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["applicable_to"] = list(self.applicable_to or [])
        return data


class ExpenseVendor(db.Model):
    """Frequently used payee for expense entry. No code column."""
    __tablename__ = "expense_vendors"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    contact_person = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    display_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "status": self.status,
            "display_order": self.display_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
