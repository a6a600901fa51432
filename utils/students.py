from __future__ import annotations

import logging
import math
import uuid
from typing import Any, List, Optional, Tuple

from models import Discount, Payment, Student
from utils import results
from utils.kv import KeyValueStore
from utils.results import OpResult, failure, success
from utils.timezone_helpers import normalize_iso, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_STUDENTS_KEY = "feeManager_studentsData"


def new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def positive_amount(value: Any) -> Optional[float]:
    """Return ``value`` as a positive finite float, or None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = float(str(value).replace(",", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def _resolve_date(value: Optional[str]) -> Tuple[Optional[str], Optional[OpResult]]:
    if not value:
        return utc_now_iso(), None
    normalized = normalize_iso(value)
    if normalized is None:
        return None, failure(results.VALIDATION, "Date must be an ISO-8601 timestamp.")
    return normalized, None


def _validate_profile(name: str, roll_number: str, class_name: str, grade: str, total_fees: Any):
    fields = {
        "name": str(name or "").strip(),
        "roll_number": str(roll_number or "").strip(),
        "class_name": str(class_name or "").strip(),
        "grade": str(grade or "").strip(),
    }
    if not all(fields.values()):
        return None, failure(results.VALIDATION, "All fields are required.")
    fees = positive_amount(total_fees)
    if fees is None:
        return None, failure(results.VALIDATION, "Please enter a valid total fee amount.")
    fields["total_fees"] = fees
    return fields, None


class StudentRoster:
    """Student records with their owned payments and discounts.

    Payments and discounts live inside their student; deleting the student
    removes them. Roll numbers are unique, compared case-insensitively.
    """

    def __init__(self, kv: KeyValueStore, key: str = DEFAULT_STUDENTS_KEY):
        self.kv = kv
        self.key = key

    # ---------- persistence ----------
    def _load(self) -> List[Student]:
        return [Student.from_dict(s) for s in self.kv.get(self.key, []) or []]

    def _save(self, students: List[Student]) -> None:
        self.kv.set(self.key, [s.to_dict() for s in students])

    def is_initialized(self) -> bool:
        return self.kv.get(self.key) is not None

    @staticmethod
    def _find(students: List[Student], student_id: str) -> Optional[Student]:
        return next((s for s in students if s.id == student_id), None)

    @staticmethod
    def _roll_taken(students: List[Student], roll_number: str, exclude_id: Optional[str] = None) -> bool:
        roll = roll_number.strip().lower()
        return any(s.roll_number.strip().lower() == roll and s.id != exclude_id for s in students)

    # ---------- reads ----------
    def list_students(self) -> List[Student]:
        return self._load()

    def get_student(self, student_id: str) -> Optional[Student]:
        return self._find(self._load(), student_id)

    def replace_all(self, students: List[Student]) -> None:
        self._save(students)

    # ---------- students ----------
    def add_student(self, name: str, roll_number: str, class_name: str, grade: str, total_fees: Any) -> OpResult:
        fields, error = _validate_profile(name, roll_number, class_name, grade, total_fees)
        if error:
            return error
        students = self._load()
        if self._roll_taken(students, fields["roll_number"]):
            return failure(results.DUPLICATE_ROLL, "A student with this roll number already exists.")
        student = Student(id=new_id("S"), **fields)
        students.append(student)
        self._save(students)
        logger.info("Added student %s (%s)", student.name, student.roll_number)
        return success("Student added successfully!", data=student)

    def update_student(self, student: Student) -> OpResult:
        """Replace the stored record with the same id; last write wins."""
        fields, error = _validate_profile(
            student.name, student.roll_number, student.class_name, student.grade, student.total_fees
        )
        if error:
            return error
        students = self._load()
        index = next((i for i, s in enumerate(students) if s.id == student.id), None)
        if index is None:
            return failure(results.NOT_FOUND, "Student not found.")
        if self._roll_taken(students, fields["roll_number"], exclude_id=student.id):
            return failure(results.DUPLICATE_ROLL, "A student with this roll number already exists.")
        updated = Student(
            id=student.id,
            payments=list(student.payments),
            discounts=list(student.discounts),
            **fields,
        )
        students[index] = updated
        self._save(students)
        return success("Student updated successfully!", data=updated)

    def delete_student(self, student_id: str) -> OpResult:
        students = self._load()
        remaining = [s for s in students if s.id != student_id]
        if len(remaining) == len(students):
            return failure(results.NOT_FOUND, "Student not found.")
        self._save(remaining)
        logger.info("Deleted student %s", student_id)
        return success("Student deleted successfully.")

    # ---------- payments ----------
    def add_payment(self, student_id: str, amount: Any, remarks: str = "", date: Optional[str] = None) -> OpResult:
        value = positive_amount(amount)
        if value is None:
            return failure(results.VALIDATION, "Payment amount must be a positive number.")
        when, error = _resolve_date(date)
        if error:
            return error
        students = self._load()
        student = self._find(students, student_id)
        if student is None:
            return failure(results.NOT_FOUND, "Student not found.")
        payment = Payment(id=new_id("P"), amount=value, date=when, remarks=str(remarks or "").strip())
        student.payments.append(payment)
        self._save(students)
        logger.info("Payment of %s recorded for %s", value, student.roll_number)
        return success("Payment added successfully!", data=payment)

    def update_payment(self, student_id: str, payment: Payment) -> OpResult:
        value = positive_amount(payment.amount)
        if value is None:
            return failure(results.VALIDATION, "Payment amount must be a positive number.")
        students = self._load()
        student = self._find(students, student_id)
        if student is None:
            return failure(results.NOT_FOUND, "Student not found.")
        index = next((i for i, p in enumerate(student.payments) if p.id == payment.id), None)
        if index is None:
            return failure(results.NOT_FOUND, "Payment not found.")
        when, error = _resolve_date(payment.date or student.payments[index].date)
        if error:
            return error
        updated = Payment(id=payment.id, amount=value, date=when, remarks=str(payment.remarks or "").strip())
        student.payments[index] = updated
        self._save(students)
        return success("Payment updated.", data=updated)

    def delete_payment(self, student_id: str, payment_id: str) -> OpResult:
        students = self._load()
        student = self._find(students, student_id)
        if student is None:
            return failure(results.NOT_FOUND, "Student not found.")
        kept = [p for p in student.payments if p.id != payment_id]
        if len(kept) == len(student.payments):
            return failure(results.NOT_FOUND, "Payment not found.")
        student.payments = kept
        self._save(students)
        logger.info("Payment %s removed from %s", payment_id, student.roll_number)
        return success("Payment deleted.")

    # ---------- discounts ----------
    def add_discount(self, student_id: str, amount: Any, reason: str, date: Optional[str] = None) -> OpResult:
        value = positive_amount(amount)
        if value is None:
            return failure(results.VALIDATION, "Discount amount must be a positive number.")
        reason = str(reason or "").strip()
        if not reason:
            return failure(results.VALIDATION, "A reason for the discount is required.")
        when, error = _resolve_date(date)
        if error:
            return error
        students = self._load()
        student = self._find(students, student_id)
        if student is None:
            return failure(results.NOT_FOUND, "Student not found.")
        discount = Discount(id=new_id("D"), amount=value, date=when, reason=reason)
        student.discounts.append(discount)
        self._save(students)
        logger.info("Discount of %s applied to %s", value, student.roll_number)
        return success("Discount added successfully!", data=discount)

    def update_discount(self, student_id: str, discount: Discount) -> OpResult:
        value = positive_amount(discount.amount)
        if value is None:
            return failure(results.VALIDATION, "Discount amount must be a positive number.")
        reason = str(discount.reason or "").strip()
        if not reason:
            return failure(results.VALIDATION, "A reason for the discount is required.")
        students = self._load()
        student = self._find(students, student_id)
        if student is None:
            return failure(results.NOT_FOUND, "Student not found.")
        index = next((i for i, d in enumerate(student.discounts) if d.id == discount.id), None)
        if index is None:
            return failure(results.NOT_FOUND, "Discount not found.")
        when, error = _resolve_date(discount.date or student.discounts[index].date)
        if error:
            return error
        updated = Discount(id=discount.id, amount=value, date=when, reason=reason)
        student.discounts[index] = updated
        self._save(students)
        return success("Discount updated.", data=updated)

    def delete_discount(self, student_id: str, discount_id: str) -> OpResult:
        students = self._load()
        student = self._find(students, student_id)
        if student is None:
            return failure(results.NOT_FOUND, "Student not found.")
        kept = [d for d in student.discounts if d.id != discount_id]
        if len(kept) == len(student.discounts):
            return failure(results.NOT_FOUND, "Discount not found.")
        student.discounts = kept
        self._save(students)
        return success("Discount deleted.")
