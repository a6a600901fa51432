from __future__ import annotations

from typing import Any, Dict, Optional

from models import LedgerView, Payment, Student
from utils.timezone_helpers import parse_iso


def _latest_payment(student: Student) -> Optional[Payment]:
    # First maximum wins; unparseable dates never beat a parseable one
    latest: Optional[Payment] = None
    latest_ts = None
    for payment in student.payments:
        ts = parse_iso(payment.date)
        if latest is None:
            latest, latest_ts = payment, ts
            continue
        if ts is not None and (latest_ts is None or ts > latest_ts):
            latest, latest_ts = payment, ts
    return latest


def compute_ledger(student: Student) -> LedgerView:
    """Derive paid/discounted/balance figures for one student.

    ``remaining_balance`` is not clamped: a negative value means the student
    has overpaid.
    """
    total_paid = sum(p.amount for p in student.payments)
    total_discount = sum(d.amount for d in student.discounts)
    latest = _latest_payment(student)
    return LedgerView(
        total_paid=total_paid,
        total_discount=total_discount,
        remaining_balance=student.total_fees - total_paid - total_discount,
        last_payment_date=latest.date if latest else None,
    )


def with_fee_details(student: Student) -> Dict[str, Any]:
    data = student.to_dict()
    data.update(compute_ledger(student).to_dict())
    return data
