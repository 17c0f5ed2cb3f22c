from __future__ import annotations

from ..extensions import db
from posledger.money import decimal_to_str
from posledger.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    UOM DESIGN:
    - base_uom is the unit every batch quantity and unit cost is stored in.
    - alternate_uoms carry a conversion factor to the base unit
      (e.g. 1 case = 24 bottles) and their own selling price.
    - Alternate UOM names are unique per product and never equal base_uom
      (enforced by product_service.create_product).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_status_name", "status", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)

    base_price = db.Column(db.Numeric(14, 2), nullable=False)
    base_uom = db.Column(db.String(50), nullable=False)

    min_stock_level = db.Column(db.Integer, nullable=False, default=0)
    shelf_life_days = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="active")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    alternate_uoms = db.relationship(
        "ProductUOM",
        backref="product",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProductUOM.id",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} base_uom={self.base_uom!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "base_price": decimal_to_str(self.base_price),
            "base_uom": self.base_uom,
            "min_stock_level": self.min_stock_level,
            "shelf_life_days": self.shelf_life_days,
            "status": self.status,
            "alternate_uoms": [uom.to_dict() for uom in self.alternate_uoms],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductUOM(db.Model):
    """Alternate unit of measure for a product."""
    __tablename__ = "product_uoms"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_product_uoms_product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(50), nullable=False)
    # base units per one of this unit
    conversion_factor = db.Column(db.Numeric(14, 4), nullable=False)
    selling_price = db.Column(db.Numeric(14, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "conversion_factor": decimal_to_str(self.conversion_factor),
            "selling_price": decimal_to_str(self.selling_price),
        }
