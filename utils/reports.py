from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from models import Student
from utils.ledger import compute_ledger, with_fee_details
from utils.timezone_helpers import to_local

SORT_KEYS = (
    "name",
    "rollNumber",
    "class",
    "grade",
    "totalFees",
    "totalPaid",
    "totalDiscount",
    "remainingBalance",
    "lastPaymentDate",
)


def filter_students(
    students: List[Student],
    search: str = "",
    class_name: str = "",
    grade: str = "",
    sort_key: str = "name",
    descending: bool = False,
) -> List[Dict[str, Any]]:
    """Dashboard listing: students with fee details, filtered and sorted.

    ``search`` matches name or roll number, case-insensitively. Rows whose
    sort value is missing (e.g. no last payment) always sort last.
    """
    term = (search or "").strip().lower()
    rows = []
    for student in students:
        if term and term not in student.name.lower() and term not in student.roll_number.lower():
            continue
        if class_name and student.class_name != class_name:
            continue
        if grade and student.grade != grade:
            continue
        rows.append(with_fee_details(student))

    key = sort_key if sort_key in SORT_KEYS else "name"
    present = [r for r in rows if r.get(key) is not None]
    missing = [r for r in rows if r.get(key) is None]
    present.sort(key=lambda r: r[key], reverse=descending)
    return present + missing


def unique_values(students: List[Student], attr: str) -> List[str]:
    return sorted({getattr(s, attr) for s in students})


def financial_overview(students: List[Student]) -> Dict[str, Any]:
    total_fees = total_paid = total_discount = total_pending = 0.0
    for student in students:
        ledger = compute_ledger(student)
        total_fees += student.total_fees
        total_paid += ledger.total_paid
        total_discount += ledger.total_discount
        total_pending += ledger.remaining_balance
    return {
        "studentCount": len(students),
        "totalFees": total_fees,
        "totalPaid": total_paid,
        "totalDiscount": total_discount,
        "totalPending": total_pending,
        "chart": [
            {"name": "Collected", "value": total_paid},
            {"name": "Pending", "value": total_pending},
            {"name": "Discounted", "value": total_discount},
        ],
    }


def class_wise_pending(students: List[Student]) -> List[Dict[str, Any]]:
    buckets: Dict[str, Dict[str, Any]] = {}
    for student in students:
        bucket = buckets.setdefault(student.class_name, {"name": f"Class {student.class_name}", "pending": 0.0})
        bucket["pending"] += compute_ledger(student).remaining_balance
    return list(buckets.values())


def _transactions(students: List[Student]):
    for student in students:
        for p in student.payments:
            yield student, "Payment", p.id, p.amount, p.date, p.remarks
        for d in student.discounts:
            yield student, "Discount", d.id, d.amount, d.date, d.reason


def monthly_report(students: List[Student], year: int, month: int, tz: Optional[ZoneInfo] = None) -> Dict[str, Any]:
    """Collections for one calendar month (``month`` is 1-12).

    Discounts count toward ``total_discounted`` and the transaction count but
    not toward the daily collections.
    """
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    days = calendar.monthrange(year, month)[1]
    daily = [{"day": d, "collected": 0.0} for d in range(1, days + 1)]
    collected = discounted = 0.0
    count = 0
    for _student, kind, _tid, amount, when, _details in _transactions(students):
        local = to_local(when, tz)
        if local is None or local.year != year or local.month != month:
            continue
        count += 1
        if kind == "Payment":
            collected += amount
            daily[local.day - 1]["collected"] += amount
        else:
            discounted += amount
    return {
        "year": year,
        "month": month,
        "totalCollected": collected,
        "totalDiscounted": discounted,
        "transactionCount": count,
        "dailyCollections": daily,
    }


def transactions_between(
    students: List[Student], start: date, end: date, tz: Optional[ZoneInfo] = None
) -> List[Dict[str, Any]]:
    """Payments and discounts dated within [start, end] (local dates), oldest first."""
    rows = []
    for student, kind, tid, amount, when, details in _transactions(students):
        local = to_local(when, tz)
        if local is None or not start <= local.date() <= end:
            continue
        rows.append(
            {
                "studentId": student.id,
                "name": student.name,
                "rollNumber": student.roll_number,
                "class": student.class_name,
                "type": kind,
                "id": tid,
                "amount": amount,
                "date": when,
                "details": details,
                "_sort": local,
            }
        )
    rows.sort(key=lambda r: r["_sort"])
    for r in rows:
        del r["_sort"]
    return rows


def daily_report(students: List[Student], day: date, tz: Optional[ZoneInfo] = None) -> Dict[str, Any]:
    rows = transactions_between(students, day, day, tz)
    return {
        "date": day.isoformat(),
        "totalCollected": sum(r["amount"] for r in rows if r["type"] == "Payment"),
        "totalDiscounted": sum(r["amount"] for r in rows if r["type"] == "Discount"),
        "transactionCount": len(rows),
        "transactions": rows,
    }


def parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None
