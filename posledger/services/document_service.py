# Overview: Daily document numbering shared by receipts, batches and receiving vouchers.

from __future__ import annotations

from datetime import date
from typing import Optional

from ..extensions import db
from ..time_utils import local_today


RECEIPT_PREFIX = "RCP"
BATCH_PREFIX = "BATCH"
RECEIVING_VOUCHER_PREFIX = "RV"
PURCHASE_ORDER_PREFIX = "PO"

SEQUENCE_PAD = 4


def daily_prefix(prefix: str, on_date: date) -> str:
    return f"{prefix}-{on_date.strftime('%Y%m%d')}-"


def next_daily_number(prefix: str, column, on_date: Optional[date] = None, *, pad: int = SEQUENCE_PAD) -> str:
    """
    Next number in the PREFIX-YYYYMMDD-NNNN sequence for one calendar day.

    Scans the values already stored in `column` for that day and returns
    max(sequence) + 1, starting at 1. Gaps are never refilled.

    Uniqueness is ultimately enforced by the unique constraint on `column`;
    two concurrent callers can compute the same number, and the loser's
    commit fails.
    """
    on_date = on_date or local_today()
    day_prefix = daily_prefix(prefix, on_date)

    rows = (
        db.session.query(column)
        .filter(column.like(f"{day_prefix}%"))
        .all()
    )

    highest = 0
    for (value,) in rows:
        suffix = value[len(day_prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))

    return f"{day_prefix}{highest + 1:0{pad}d}"
