# Overview: Maintenance of the five operator-managed reference data tables.

"""
Reference data service.

The five kinds form a closed set. Each ReferenceKind maps to its model,
a display label and a validator through REFERENCE_BINDINGS; nothing is
resolved by name at runtime.

Rules shared by every kind:
- names are unique per kind, codes too (vendors have no code)
- system-defined rows cannot be deleted
- status is 'active' or 'inactive'; display_order >= 0
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import ExpenseCategory, ExpenseVendor, PaymentMethod, ProductCategory, UnitOfMeasure
from .concurrency import transaction_scope
from .errors import ConflictError, NotFoundError, ValidationError


class ReferenceKind(str, enum.Enum):
    PRODUCT_CATEGORIES = "product-categories"
    EXPENSE_CATEGORIES = "expense-categories"
    PAYMENT_METHODS = "payment-methods"
    UNITS_OF_MEASURE = "units-of-measure"
    EXPENSE_VENDORS = "expense-vendors"


STATUSES = ("active", "inactive")
APPLICABLE_CONTEXTS = ("expense", "pos", "ar", "ap")

CODE_RE = re.compile(r"^[A-Z0-9_-]+$")
PHONE_RE = re.compile(r"^[\d\s\-\(\)\+]*$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _fail(field: str, message: str):
    raise ValidationError("Invalid data", details={field: [message]})


def _check_text(data: dict, field: str, *, max_len: int, required: bool, partial: bool, label: str = "Name"):
    if field not in data:
        if required and not partial:
            _fail(field, f"{label} is required")
        return
    value = data[field]
    if value is None or value == "":
        if required:
            _fail(field, f"{label} is required")
        data[field] = None
        return
    if not isinstance(value, str):
        _fail(field, f"{label} must be text")
    value = value.strip()
    if required and not value:
        _fail(field, f"{label} is required")
    if len(value) > max_len:
        _fail(field, f"{label} must be {max_len} characters or less")
    data[field] = value


def _check_common(data: dict, partial: bool) -> None:
    if "status" in data:
        if data["status"] not in STATUSES:
            _fail("status", "Status must be active or inactive")
    elif not partial:
        data["status"] = "active"

    if "display_order" in data:
        order = data["display_order"]
        if not isinstance(order, int) or isinstance(order, bool) or order < 0:
            _fail("display_order", "Display order must be a non-negative integer")
    elif not partial:
        data["display_order"] = 0


def _validate_coded(data: dict, partial: bool) -> dict:
    data = dict(data)
    _check_text(data, "name", max_len=100, required=True, partial=partial)
    _check_text(data, "code", max_len=20, required=True, partial=partial, label="Code")
    if data.get("code") is not None and not CODE_RE.match(data["code"]):
        _fail("code", "Code must contain only uppercase letters, numbers, underscores, and hyphens")
    _check_text(data, "description", max_len=500, required=False, partial=True, label="Description")
    _check_common(data, partial)
    if "is_system_defined" in data:
        if not isinstance(data["is_system_defined"], bool):
            _fail("is_system_defined", "is_system_defined must be true or false")
    elif not partial:
        data["is_system_defined"] = False
    return data


def _validate_payment_method(data: dict, partial: bool) -> dict:
    data = _validate_coded(data, partial)
    if "applicable_to" in data:
        contexts = data["applicable_to"]
        if not isinstance(contexts, (list, tuple)) or not contexts:
            _fail("applicable_to", "Select at least one applicable context")
        invalid = [c for c in contexts if c not in APPLICABLE_CONTEXTS]
        if invalid:
            _fail("applicable_to", f"Invalid context: {', '.join(map(str, invalid))}")
        data["applicable_to"] = list(dict.fromkeys(contexts))
    elif not partial:
        data["applicable_to"] = list(APPLICABLE_CONTEXTS)
    return data


def _validate_vendor(data: dict, partial: bool) -> dict:
    data = dict(data)
    _check_text(data, "name", max_len=200, required=True, partial=partial, label="Vendor name")
    _check_text(data, "contact_person", max_len=100, required=False, partial=True, label="Contact person")
    _check_text(data, "phone", max_len=20, required=False, partial=True, label="Phone")
    _check_text(data, "email", max_len=100, required=False, partial=True, label="Email")
    if data.get("phone") and not PHONE_RE.match(data["phone"]):
        _fail("phone", "Invalid phone format")
    if data.get("email") and not EMAIL_RE.match(data["email"]):
        _fail("email", "Invalid email format")
    _check_common(data, partial)
    return data


@dataclass(frozen=True)
class ReferenceBinding:
    model: type
    label: str
    validate: Callable[[dict, bool], dict]
    fields: frozenset
    has_code: bool = True


_CODED_FIELDS = frozenset({"name", "code", "description", "status", "display_order", "is_system_defined"})

REFERENCE_BINDINGS: dict[ReferenceKind, ReferenceBinding] = {
    ReferenceKind.PRODUCT_CATEGORIES: ReferenceBinding(ProductCategory, "Product Category", _validate_coded, _CODED_FIELDS),
    ReferenceKind.EXPENSE_CATEGORIES: ReferenceBinding(ExpenseCategory, "Expense Category", _validate_coded, _CODED_FIELDS),
    ReferenceKind.PAYMENT_METHODS: ReferenceBinding(
        PaymentMethod, "Payment Method", _validate_payment_method, _CODED_FIELDS | {"applicable_to"},
    ),
    ReferenceKind.UNITS_OF_MEASURE: ReferenceBinding(UnitOfMeasure, "Unit of Measure", _validate_coded, _CODED_FIELDS),
    ReferenceKind.EXPENSE_VENDORS: ReferenceBinding(
        ExpenseVendor,
        "Expense Vendor",
        _validate_vendor,
        frozenset({"name", "contact_person", "phone", "email", "status", "display_order"}),
        has_code=False,
    ),
}


def _binding(kind) -> ReferenceBinding:
    try:
        return REFERENCE_BINDINGS[ReferenceKind(kind)]
    except ValueError as exc:
        raise ValidationError(f"Unknown reference data type: {kind}", details={"kind": kind}) from exc


def _clean(binding: ReferenceBinding, data: dict, partial: bool) -> dict:
    unknown = set(data) - binding.fields
    if unknown:
        raise ValidationError(
            "Invalid data",
            details={name: ["Unknown field"] for name in sorted(unknown)},
        )
    return binding.validate(data, partial)


def _ensure_unique(binding: ReferenceBinding, data: dict, exclude_id: Optional[int] = None) -> None:
    model = binding.model
    checks = [("name", "A record with this name already exists", "Name must be unique")]
    if binding.has_code:
        checks.append(("code", "A record with this code already exists", "Code must be unique"))

    for field, message, detail in checks:
        value = data.get(field)
        if value is None:
            continue
        query = db.session.query(model).filter(getattr(model, field) == value)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(message, details={field: [detail]})


def list_items(kind, status: Optional[str] = None, search: Optional[str] = None) -> list:
    binding = _binding(kind)
    model = binding.model
    query = db.session.query(model)
    if status:
        query = query.filter(model.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        if binding.has_code:
            query = query.filter(or_(model.name.ilike(pattern), model.code.ilike(pattern)))
        else:
            query = query.filter(model.name.ilike(pattern))
    return query.order_by(model.display_order.asc(), model.name.asc()).all()


def get_item(kind, item_id: int):
    binding = _binding(kind)
    item = db.session.get(binding.model, item_id)
    if item is None:
        raise NotFoundError(binding.label, item_id)
    return item


def create_item(kind, data: dict):
    binding = _binding(kind)
    cleaned = _clean(binding, data, partial=False)

    with transaction_scope() as session:
        _ensure_unique(binding, cleaned)
        item = binding.model(**cleaned)
        session.add(item)

    current_app.logger.info("%s created: id=%s name=%s", binding.label, item.id, item.name)
    return item


def update_item(kind, item_id: int, data: dict):
    binding = _binding(kind)
    cleaned = _clean(binding, data, partial=True)

    with transaction_scope():
        item = get_item(kind, item_id)
        changed = {k: v for k, v in cleaned.items() if getattr(item, k) != v}
        _ensure_unique(binding, changed, exclude_id=item.id)
        for name, value in cleaned.items():
            setattr(item, name, value)

    current_app.logger.info("%s updated: id=%s fields=%s", binding.label, item.id, ",".join(sorted(cleaned)))
    return item


def delete_item(kind, item_id: int) -> None:
    binding = _binding(kind)
    with transaction_scope() as session:
        item = get_item(kind, item_id)
        if getattr(item, "is_system_defined", False):
            raise ValidationError(
                "Cannot delete system-defined records",
                details={"_general": ["This is a system-defined record and cannot be deleted"]},
            )
        session.delete(item)

    current_app.logger.info("%s deleted: id=%s", binding.label, item_id)


def toggle_status(kind, item_id: int):
    binding = _binding(kind)
    with transaction_scope():
        item = get_item(kind, item_id)
        item.status = "inactive" if item.status == "active" else "active"

    current_app.logger.info("%s status toggled: id=%s status=%s", binding.label, item.id, item.status)
    return item


def update_display_order(kind, orders: dict[int, int]) -> list:
    """Apply {item_id: display_order} in one transaction."""
    binding = _binding(kind)
    for item_id, order in orders.items():
        if not isinstance(order, int) or isinstance(order, bool) or order < 0:
            raise ValidationError(
                "Invalid data",
                details={"display_order": [f"Display order for {item_id} must be a non-negative integer"]},
            )

    with transaction_scope():
        items = [get_item(kind, item_id) for item_id in orders]
        for item in items:
            item.display_order = orders[item.id]

    current_app.logger.info("%s display order updated for %s items", binding.label, len(items))
    return items
