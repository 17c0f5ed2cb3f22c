# Overview: Error taxonomy shared by the inventory, POS and receivables services.

"""
Every service error carries:
- an operator-facing message (displayed verbatim by callers)
- a machine-readable `code`
- a `details` dict with the structured values behind the message

None of these are recovered inside the services: they abort the enclosing
transaction scope and propagate to the caller.
"""

from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    """Base class for all posledger service errors."""
    code = "LEDGER_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(LedgerError):
    """Caller supplied malformed or insufficient input."""
    code = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    code = "INVALID_AMOUNT"


class UnknownUOMError(ValidationError):
    code = "UNKNOWN_UOM"

    def __init__(self, uom: str, product_name: str | None = None):
        message = f"UOM '{uom}' not found for product"
        if product_name:
            message = f"UOM '{uom}' not found for product {product_name}"
        super().__init__(message, details={"uom": uom, "product_name": product_name})


class NotFoundError(LedgerError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier=None):
        if identifier is not None:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, details={"resource": resource, "identifier": identifier})


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_name: str, available: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            details={"product_name": product_name, "available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class OverpaymentError(LedgerError):
    code = "OVERPAYMENT"

    def __init__(self, amount: Decimal, balance: Decimal):
        super().__init__(
            "Payment amount exceeds outstanding balance",
            details={"amount": amount, "balance": balance},
        )
        self.amount = amount
        self.balance = balance


class CapacityExceededError(LedgerError):
    code = "CAPACITY_EXCEEDED"

    def __init__(self, warehouse_name: str, current: Decimal, incoming: Decimal, max_capacity: Decimal):
        excess = current + incoming - max_capacity
        super().__init__(
            f"Warehouse {warehouse_name} capacity exceeded by {excess}",
            details={
                "warehouse_name": warehouse_name,
                "current_stock": current,
                "incoming": incoming,
                "max_capacity": max_capacity,
                "excess": excess,
            },
        )
        self.excess = excess


class DuplicateReceiptNumberError(LedgerError):
    code = "DUPLICATE_RECEIPT_NUMBER"

    def __init__(self, receipt_number: str):
        super().__init__(
            "Receipt number already exists",
            details={"receipt_number": receipt_number},
        )


class ConflictError(LedgerError):
    """Business-rule conflict such as a duplicate reference-data code."""
    code = "CONFLICT"


class ConcurrencyConflictError(LedgerError):
    """Another transaction changed a row we read; the caller may retry."""
    code = "CONCURRENCY_CONFLICT"
