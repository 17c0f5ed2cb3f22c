from __future__ import annotations

from ..extensions import db
from posledger.money import decimal_to_str
from posledger.time_utils import to_utc_z


class CompanySettings(db.Model):
    """
    Single-row company configuration consumed by the POS core.

    vat_rate and the discount thresholds are percentages (12.00 means 12%).
    """
    __tablename__ = "company_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False, default="My Company")
    address = db.Column(db.String(500), nullable=False, default="")

    vat_enabled = db.Column(db.Boolean, nullable=False, default=False)
    vat_rate = db.Column(db.Numeric(6, 2), nullable=False, default=12)
    tax_inclusive = db.Column(db.Boolean, nullable=False, default=True)

    max_discount_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=50)
    require_discount_approval = db.Column(db.Boolean, nullable=False, default=False)
    discount_approval_threshold = db.Column(db.Numeric(6, 2), nullable=False, default=20)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "address": self.address,
            "vat_enabled": self.vat_enabled,
            "vat_rate": decimal_to_str(self.vat_rate),
            "tax_inclusive": self.tax_inclusive,
            "max_discount_percentage": decimal_to_str(self.max_discount_percentage),
            "require_discount_approval": self.require_discount_approval,
            "discount_approval_threshold": decimal_to_str(self.discount_approval_threshold),
            "updated_at": to_utc_z(self.updated_at),
        }
