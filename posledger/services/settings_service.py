# Overview: Company settings (VAT and discount policy) read by the POS core.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import CompanySettings
from ..money import ZERO, HUNDRED, to_decimal
from .concurrency import transaction_scope
from .discount_service import VATConfig
from .errors import ValidationError


PERCENT_FIELDS = {"vat_rate", "max_discount_percentage", "discount_approval_threshold"}
BOOL_FIELDS = {"vat_enabled", "tax_inclusive", "require_discount_approval"}
TEXT_FIELDS = {"company_name", "address"}
UPDATABLE_FIELDS = PERCENT_FIELDS | BOOL_FIELDS | TEXT_FIELDS


def get_settings() -> CompanySettings:
    """
    Return the company settings row, creating it with defaults on first use.

    The new row is flushed, not committed; it becomes durable with the
    caller's transaction.
    """
    settings = db.session.query(CompanySettings).order_by(CompanySettings.id.asc()).first()
    if settings is None:
        settings = CompanySettings(
            vat_enabled=False,
            vat_rate=Decimal("12.00"),
            tax_inclusive=True,
            max_discount_percentage=Decimal("50.00"),
            require_discount_approval=False,
            discount_approval_threshold=Decimal("20.00"),
        )
        db.session.add(settings)
        db.session.flush()
    return settings


def get_vat_config() -> VATConfig:
    settings = get_settings()
    return VATConfig(
        vat_enabled=bool(settings.vat_enabled),
        vat_rate=to_decimal(settings.vat_rate),
        tax_inclusive=bool(settings.tax_inclusive),
    )


def _validate_field(name: str, value):
    if name in BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ValidationError(f"{name} must be true or false", details={"field": name})
        return value
    if name in PERCENT_FIELDS:
        try:
            pct = to_decimal(value, field=name)
        except ValueError as exc:
            raise ValidationError(str(exc), details={"field": name}) from exc
        if pct < ZERO or pct > HUNDRED:
            raise ValidationError(f"{name} must be between 0 and 100", details={"field": name, "value": str(pct)})
        return pct
    text = (value or "").strip() if isinstance(value, str) else value
    if name == "company_name" and not text:
        raise ValidationError("company_name is required", details={"field": name})
    return text


def update_settings(**fields) -> CompanySettings:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Unknown settings: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    cleaned = {name: _validate_field(name, value) for name, value in fields.items()}

    with transaction_scope():
        settings = get_settings()
        for name, value in cleaned.items():
            setattr(settings, name, value)

    current_app.logger.info("Company settings updated: %s", ", ".join(sorted(cleaned)))
    return settings
