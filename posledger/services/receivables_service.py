# Overview: Accounts receivable/payable ledger: obligations, payments, status and aging.

"""
Receivable/Payable ledger.

AR and AP share one implementation. Each kind is bound to its models
through OBLIGATION_BINDINGS instead of being looked up by name.

BALANCE INVARIANT:
- balance == total_amount - paid_amount and balance >= 0 after every payment
- a payment row and the balance/status update commit together or not at all

STATUS RULES (applied in this order on every payment):
1. balance == 0                -> paid
2. 0 < balance < total_amount  -> partial
3. due_date < today and balance > 0 -> overdue (overrides partial/pending)
A fully paid obligation is never relabeled overdue.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Optional

from flask import current_app

from ..extensions import db
from ..models import (
    AccountsPayable,
    AccountsReceivable,
    APPayment,
    ARPayment,
    Customer,
    Supplier,
)
from ..models.accounts import (
    OBLIGATION_OVERDUE,
    OBLIGATION_PAID,
    OBLIGATION_PARTIAL,
    OBLIGATION_PENDING,
    OPEN_OBLIGATION_STATUSES,
)
from ..money import ZERO, to_decimal, quantize_money
from ..time_utils import days_between, local_today
from .concurrency import lock_for_update, transaction_scope
from .errors import (
    InvalidAmountError,
    LedgerError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)


class ObligationKind(str, enum.Enum):
    AR = "ar"
    AP = "ap"


@dataclass(frozen=True)
class ObligationBinding:
    model: type
    payment_model: type
    payment_fk: str
    label: str
    counterparty_name: Callable[[object], str]
    cod_days: int


OBLIGATION_BINDINGS: dict[ObligationKind, ObligationBinding] = {
    ObligationKind.AR: ObligationBinding(
        model=AccountsReceivable,
        payment_model=ARPayment,
        payment_fk="ar_id",
        label="Accounts receivable",
        counterparty_name=lambda ar: ar.customer_name,
        # COD customers settle the next day
        cod_days=1,
    ),
    ObligationKind.AP: ObligationBinding(
        model=AccountsPayable,
        payment_model=APPayment,
        payment_fk="ap_id",
        label="Accounts payable",
        counterparty_name=lambda ap: ap.supplier.company_name,
        cod_days=0,
    ),
}

AGING_BUCKETS = ("0-30", "31-60", "61-90", "90+")

NET_TERMS_RE = re.compile(r"^\s*net\s*(\d+)\s*$", re.IGNORECASE)


def _binding(kind) -> ObligationBinding:
    try:
        return OBLIGATION_BINDINGS[ObligationKind(kind)]
    except ValueError as exc:
        raise ValidationError(f"Unknown obligation kind: {kind}", details={"kind": kind}) from exc


# ---------------------------------------------------------------------------
# Terms and due dates
# ---------------------------------------------------------------------------

def due_date_for_terms(terms: Optional[str], start: Optional[date] = None, *, cod_days: int = 1) -> date:
    """
    Due date for payment terms counted from `start`.

    'Net N' adds N days, 'COD' adds cod_days. Missing or unrecognized terms
    fall back to the configured DEFAULT_PAYMENT_TERMS.
    """
    start = start or local_today()
    days = _term_days(terms, cod_days)
    if days is None:
        default_terms = current_app.config.get("DEFAULT_PAYMENT_TERMS", "Net 30")
        if terms:
            current_app.logger.warning("Unrecognized payment terms %r; using %s", terms, default_terms)
        days = _term_days(default_terms, cod_days)
        if days is None:
            days = 30
    return start + timedelta(days=days)


def _term_days(terms: Optional[str], cod_days: int) -> Optional[int]:
    if not terms:
        return None
    if terms.strip().upper() == "COD":
        return cod_days
    match = NET_TERMS_RE.match(terms)
    if match:
        return int(match.group(1))
    return None


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def compute_status(obligation, today: date) -> str:
    balance = to_decimal(obligation.balance)
    total = to_decimal(obligation.total_amount)

    status = obligation.status
    if balance == ZERO:
        status = OBLIGATION_PAID
    elif balance < total:
        status = OBLIGATION_PARTIAL

    if obligation.due_date < today and balance > ZERO:
        status = OBLIGATION_OVERDUE
    return status


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def _validate_total(total_amount) -> Decimal:
    try:
        total = quantize_money(total_amount)
    except ValueError as exc:
        raise InvalidAmountError(str(exc), details={"field": "total_amount"}) from exc
    if total <= ZERO:
        raise InvalidAmountError(
            "Total amount must be greater than zero",
            details={"total_amount": total},
        )
    return total


def _create_ar_locked(
    *,
    branch_id: int,
    customer_name: str,
    total_amount: Decimal,
    due_date: date,
    customer_id: Optional[int] = None,
    sales_order_id: Optional[int] = None,
    pos_sale_id: Optional[int] = None,
) -> AccountsReceivable:
    ar = AccountsReceivable(
        branch_id=branch_id,
        customer_id=customer_id,
        customer_name=customer_name,
        sales_order_id=sales_order_id,
        pos_sale_id=pos_sale_id,
        total_amount=total_amount,
        paid_amount=ZERO,
        balance=total_amount,
        due_date=due_date,
        status=OBLIGATION_PENDING,
    )
    db.session.add(ar)
    db.session.flush()
    return ar


def create_ar(
    *,
    branch_id: int,
    customer_name: str,
    total_amount,
    due_date: Optional[date] = None,
    customer_id: Optional[int] = None,
    sales_order_id: Optional[int] = None,
    pos_sale_id: Optional[int] = None,
    today: Optional[date] = None,
) -> AccountsReceivable:
    """
    Record money owed by a customer.

    Without an explicit due_date the customer's payment terms apply.
    """
    if not customer_name or not customer_name.strip():
        raise ValidationError("Customer name is required", details={"field": "customer_name"})
    total = _validate_total(total_amount)

    with transaction_scope():
        terms = None
        if customer_id is not None:
            customer = db.session.get(Customer, customer_id)
            if customer is None:
                raise NotFoundError("Customer", customer_id)
            terms = customer.payment_terms
        if due_date is None:
            due_date = due_date_for_terms(terms, today, cod_days=OBLIGATION_BINDINGS[ObligationKind.AR].cod_days)

        ar = _create_ar_locked(
            branch_id=branch_id,
            customer_name=customer_name.strip(),
            total_amount=total,
            due_date=due_date,
            customer_id=customer_id,
            sales_order_id=sales_order_id,
            pos_sale_id=pos_sale_id,
        )

    current_app.logger.info("AR created: id=%s customer=%s total=%s due=%s", ar.id, ar.customer_name, total, due_date)
    return ar


def _create_ap_locked(
    *,
    branch_id: int,
    supplier: Supplier,
    total_amount: Decimal,
    due_date: date,
    purchase_order_id: Optional[int] = None,
) -> AccountsPayable:
    ap = AccountsPayable(
        branch_id=branch_id,
        supplier=supplier,
        purchase_order_id=purchase_order_id,
        total_amount=total_amount,
        paid_amount=ZERO,
        balance=total_amount,
        due_date=due_date,
        status=OBLIGATION_PENDING,
    )
    db.session.add(ap)
    db.session.flush()
    return ap


def create_ap(
    *,
    branch_id: int,
    supplier_id: int,
    total_amount,
    due_date: Optional[date] = None,
    purchase_order_id: Optional[int] = None,
    today: Optional[date] = None,
) -> AccountsPayable:
    """Record money owed to a supplier; COD suppliers are due the same day."""
    total = _validate_total(total_amount)

    with transaction_scope():
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        if due_date is None:
            due_date = due_date_for_terms(supplier.payment_terms, today, cod_days=OBLIGATION_BINDINGS[ObligationKind.AP].cod_days)

        ap = _create_ap_locked(
            branch_id=branch_id,
            supplier=supplier,
            total_amount=total,
            due_date=due_date,
            purchase_order_id=purchase_order_id,
        )

    current_app.logger.info("AP created: id=%s supplier=%s total=%s due=%s", ap.id, supplier.company_name, total, due_date)
    return ap


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def _apply_payment_locked(
    binding: ObligationBinding,
    obligation,
    *,
    amount: Decimal,
    payment_method: str,
    reference_number: Optional[str],
    payment_date: date,
    today: date,
):
    balance = to_decimal(obligation.balance)
    if amount > balance:
        raise OverpaymentError(amount, balance)

    payment = binding.payment_model(
        amount=amount,
        payment_method=payment_method,
        reference_number=reference_number,
        payment_date=payment_date,
    )
    setattr(payment, binding.payment_fk, obligation.id)
    db.session.add(payment)

    obligation.paid_amount = to_decimal(obligation.paid_amount) + amount
    obligation.balance = to_decimal(obligation.total_amount) - obligation.paid_amount
    obligation.status = compute_status(obligation, today)
    db.session.flush()
    return payment


def record_payment(
    kind,
    obligation_id: int,
    amount,
    payment_method: str,
    reference_number: Optional[str] = None,
    payment_date: Optional[date] = None,
    today: Optional[date] = None,
):
    """
    Apply a payment against an AR or AP obligation.

    Raises NotFoundError, ValidationError (blank method), InvalidAmountError
    (amount <= 0 or finer than cents) or OverpaymentError (amount > balance).
    On any error nothing changes.
    """
    binding = _binding(kind)
    today = today or local_today()
    payment_date = payment_date or today

    try:
        with transaction_scope():
            obligation = lock_for_update(
                db.session.query(binding.model).filter(binding.model.id == obligation_id)
            ).first()
            if obligation is None:
                raise NotFoundError(binding.label, obligation_id)

            if not payment_method or not str(payment_method).strip():
                raise ValidationError("Payment method is required", details={"field": "payment_method"})

            try:
                pay_amount = to_decimal(amount, field="amount")
            except ValueError as exc:
                raise InvalidAmountError(str(exc), details={"field": "amount"}) from exc
            if pay_amount <= ZERO:
                raise InvalidAmountError(
                    "Payment amount must be greater than zero",
                    details={"amount": pay_amount},
                )
            if pay_amount != quantize_money(pay_amount):
                raise InvalidAmountError(
                    "Payment amount cannot have more than two decimal places",
                    details={"amount": str(pay_amount)},
                )

            _apply_payment_locked(
                binding,
                obligation,
                amount=pay_amount,
                payment_method=str(payment_method).strip(),
                reference_number=reference_number,
                payment_date=payment_date,
                today=today,
            )
    except LedgerError as exc:
        current_app.logger.warning(
            "%s payment rejected: id=%s code=%s message=%s",
            binding.label, obligation_id, exc.code, exc.message,
        )
        raise

    current_app.logger.info(
        "%s payment recorded: id=%s amount=%s balance=%s status=%s",
        binding.label, obligation.id, pay_amount, obligation.balance, obligation.status,
    )
    return obligation


def record_ar_payment(ar_id: int, amount, payment_method: str, reference_number: Optional[str] = None,
                      payment_date: Optional[date] = None, today: Optional[date] = None) -> AccountsReceivable:
    return record_payment(ObligationKind.AR, ar_id, amount, payment_method, reference_number, payment_date, today)


def record_ap_payment(ap_id: int, amount, payment_method: str, reference_number: Optional[str] = None,
                      payment_date: Optional[date] = None, today: Optional[date] = None) -> AccountsPayable:
    return record_payment(ObligationKind.AP, ap_id, amount, payment_method, reference_number, payment_date, today)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_obligation(kind, obligation_id: int):
    binding = _binding(kind)
    obligation = db.session.get(binding.model, obligation_id)
    if obligation is None:
        raise NotFoundError(binding.label, obligation_id)
    return obligation


def list_obligations(kind, branch_id: Optional[int] = None, status: Optional[str] = None) -> list:
    binding = _binding(kind)
    query = db.session.query(binding.model)
    if branch_id is not None:
        query = query.filter(binding.model.branch_id == branch_id)
    if status:
        query = query.filter(binding.model.status == status)
    return query.order_by(binding.model.due_date.asc(), binding.model.id.asc()).all()


def _open_obligations(binding: ObligationBinding, branch_id: Optional[int]):
    query = db.session.query(binding.model).filter(
        binding.model.status.in_(OPEN_OBLIGATION_STATUSES),
        binding.model.balance > 0,
    )
    if branch_id is not None:
        query = query.filter(binding.model.branch_id == branch_id)
    return query.order_by(binding.model.id.asc()).all()


@dataclass
class AgingBucket:
    count: int = 0
    total: Decimal = ZERO

    def add(self, balance: Decimal) -> None:
        self.count += 1
        self.total += balance


def _empty_buckets() -> dict[str, AgingBucket]:
    return {label: AgingBucket() for label in AGING_BUCKETS}


@dataclass
class CounterpartyAging:
    name: str
    total_balance: Decimal = ZERO
    buckets: dict[str, AgingBucket] = field(default_factory=_empty_buckets)


@dataclass
class AgingReport:
    buckets: dict[str, AgingBucket]
    total_outstanding: Decimal
    by_counterparty: list[CounterpartyAging]

    def to_dict(self) -> dict:
        def _buckets(b):
            return {k: {"count": v.count, "total": str(quantize_money(v.total))} for k, v in b.items()}
        return {
            "buckets": _buckets(self.buckets),
            "total_outstanding": str(quantize_money(self.total_outstanding)),
            "by_counterparty": [
                {"name": c.name, "total_balance": str(quantize_money(c.total_balance)), "buckets": _buckets(c.buckets)}
                for c in self.by_counterparty
            ],
        }


def aging_bucket(days_overdue: int) -> str:
    """Not-yet-due obligations (negative days) land in 0-30."""
    if days_overdue > 90:
        return "90+"
    if days_overdue > 60:
        return "61-90"
    if days_overdue > 30:
        return "31-60"
    return "0-30"


def get_aging_report(kind, branch_id: Optional[int] = None, today: Optional[date] = None) -> AgingReport:
    binding = _binding(kind)
    today = today or local_today()

    buckets = _empty_buckets()
    by_counterparty: dict[str, CounterpartyAging] = {}
    total_outstanding = ZERO

    for obligation in _open_obligations(binding, branch_id):
        balance = to_decimal(obligation.balance)
        label = aging_bucket(days_between(obligation.due_date, today))

        buckets[label].add(balance)
        total_outstanding += balance

        name = binding.counterparty_name(obligation)
        entry = by_counterparty.setdefault(name, CounterpartyAging(name=name))
        entry.total_balance += balance
        entry.buckets[label].add(balance)

    return AgingReport(
        buckets=buckets,
        total_outstanding=total_outstanding,
        by_counterparty=list(by_counterparty.values()),
    )


def get_summary(kind, branch_id: Optional[int] = None) -> dict:
    binding = _binding(kind)
    obligations = list_obligations(kind, branch_id=branch_id)

    by_status = {status: 0 for status in (OBLIGATION_PENDING, OBLIGATION_PARTIAL, OBLIGATION_PAID, OBLIGATION_OVERDUE)}
    total_amount = paid_amount = balance = ZERO
    for obligation in obligations:
        total_amount += to_decimal(obligation.total_amount)
        paid_amount += to_decimal(obligation.paid_amount)
        balance += to_decimal(obligation.balance)
        by_status[obligation.status] = by_status.get(obligation.status, 0) + 1

    return {
        "kind": ObligationKind(kind).value,
        "label": binding.label,
        "count": len(obligations),
        "total_amount": total_amount,
        "paid_amount": paid_amount,
        "balance": balance,
        "by_status": by_status,
    }


def get_ar_summary(branch_id: Optional[int] = None) -> dict:
    return get_summary(ObligationKind.AR, branch_id)


def get_ap_summary(branch_id: Optional[int] = None) -> dict:
    return get_summary(ObligationKind.AP, branch_id)


def refresh_overdue_statuses(today: Optional[date] = None, kind=None) -> int:
    """Mark pending/partial obligations with a balance past their due date overdue."""
    today = today or local_today()
    if kind is None:
        bindings = list(OBLIGATION_BINDINGS.values())
    else:
        bindings = [_binding(kind)]

    updated = 0
    with transaction_scope():
        for binding in bindings:
            model = binding.model
            rows = lock_for_update(
                db.session.query(model).filter(
                    model.status.in_((OBLIGATION_PENDING, OBLIGATION_PARTIAL)),
                    model.balance > 0,
                    model.due_date < today,
                )
            ).all()
            for row in rows:
                row.status = OBLIGATION_OVERDUE
            updated += len(rows)

    if updated:
        current_app.logger.info("Marked %s obligations overdue as of %s", updated, today.isoformat())
    return updated
