# posledger/services/product_service.py
"""
Product catalog service.

UOM RULES:
- base_uom is required; every batch is stored in it.
- Alternate UOM names are unique per product (case-insensitive) and never
  equal the base UOM.
- UOM lookups are case-insensitive.
"""
from __future__ import annotations

from typing import Iterable, Optional

from flask import current_app

from ..extensions import db
from ..models import Product, ProductUOM
from ..money import ZERO, to_decimal
from .concurrency import transaction_scope
from .errors import NotFoundError, UnknownUOMError, ValidationError


def _positive_decimal(value, field: str):
    try:
        amount = to_decimal(value, field=field)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": field}) from exc
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than 0", details={"field": field, "value": str(amount)})
    return amount


def _validate_alternate_uoms(base_uom: str, alternate_uoms: Iterable[dict]) -> list[dict]:
    seen: set[str] = set()
    cleaned = []
    for entry in alternate_uoms:
        name = (entry.get("name") or "").strip()
        if not name:
            raise ValidationError("Alternate UOM name is required", details={"field": "alternate_uoms"})
        key = name.lower()
        if key == base_uom.lower():
            raise ValidationError(
                "Alternate UOM cannot be the same as base UOM",
                details={"field": "alternate_uoms", "uom": name},
            )
        if key in seen:
            raise ValidationError(
                "Alternate UOM names must be unique",
                details={"field": "alternate_uoms", "uom": name},
            )
        seen.add(key)
        cleaned.append({
            "name": name,
            "conversion_factor": _positive_decimal(entry.get("conversion_factor"), "conversion_factor"),
            "selling_price": _positive_decimal(entry.get("selling_price"), "selling_price"),
        })
    return cleaned


def create_product(
    *,
    name: str,
    base_uom: str,
    base_price,
    shelf_life_days: int,
    min_stock_level: int = 0,
    description: Optional[str] = None,
    category: Optional[str] = None,
    alternate_uoms: Optional[Iterable[dict]] = None,
) -> Product:
    name = (name or "").strip()
    base_uom = (base_uom or "").strip()
    if not name:
        raise ValidationError("Product name is required", details={"field": "name"})
    if not base_uom:
        raise ValidationError("Base UOM is required", details={"field": "base_uom"})

    price = _positive_decimal(base_price, "base_price")
    if not isinstance(shelf_life_days, int) or isinstance(shelf_life_days, bool) or shelf_life_days <= 0:
        raise ValidationError("shelf_life_days must be a positive integer", details={"field": "shelf_life_days"})
    if not isinstance(min_stock_level, int) or min_stock_level < 0:
        raise ValidationError("min_stock_level must be a non-negative integer", details={"field": "min_stock_level"})

    uoms = _validate_alternate_uoms(base_uom, alternate_uoms or [])

    with transaction_scope() as session:
        product = Product(
            name=name,
            description=description,
            category=category,
            base_price=price,
            base_uom=base_uom,
            min_stock_level=min_stock_level,
            shelf_life_days=shelf_life_days,
            status="active",
        )
        for entry in uoms:
            product.alternate_uoms.append(ProductUOM(**entry))
        session.add(product)

    current_app.logger.info("Product created: id=%s name=%s", product.id, product.name)
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def list_products(status: Optional[str] = None) -> list[Product]:
    query = db.session.query(Product)
    if status:
        query = query.filter(Product.status == status)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def find_alternate_uom(product: Product, uom: str) -> Optional[ProductUOM]:
    key = (uom or "").strip().lower()
    for alt in product.alternate_uoms:
        if alt.name.lower() == key:
            return alt
    return None


def is_base_uom(product: Product, uom: str) -> bool:
    return (uom or "").strip().lower() == product.base_uom.lower()


def unit_price_for(product: Product, uom: str):
    """Selling price for one unit of `uom`."""
    if is_base_uom(product, uom):
        return to_decimal(product.base_price)
    alt = find_alternate_uom(product, uom)
    if alt is None:
        raise UnknownUOMError(uom, product.name)
    return to_decimal(alt.selling_price)
