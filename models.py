from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from extensions import db


class AppState(db.Model):
    """One persisted key-value entry; the value column holds JSON text."""

    __tablename__ = 'app_state'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<AppState {self.key}>'


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class Permissions:
    can_view_students: bool = False
    can_add_students: bool = False
    can_edit_students: bool = False
    can_delete_students: bool = False
    can_manage_payments: bool = False
    can_manage_discounts: bool = False
    can_view_reports: bool = False
    can_import_export: bool = False
    can_manage_users: bool = False
    can_view_dashboard_summary: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {_camel(f.name): bool(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Permissions":
        """Build a flag set from camelCase or snake_case keys.

        Unknown keys are dropped so the flag set stays closed. Only a real
        boolean True grants a flag; anything else, including "false" or 1, is False.
        """
        data = data or {}
        values = {}
        for f in fields(cls):
            raw = data.get(_camel(f.name), data.get(f.name, False))
            values[f.name] = raw is True
        return cls(**values)

    def copy(self) -> "Permissions":
        return replace(self)


@dataclass
class User:
    email: str
    password_hash: str
    role: str = "user"
    permissions: Permissions = field(default_factory=Permissions)

    def to_dict(self, include_secret: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "email": self.email,
            "role": self.role,
            "permissions": self.permissions.to_dict(),
        }
        if include_secret:
            data["passwordHash"] = self.password_hash
        return data

    def public_dict(self) -> Dict[str, Any]:
        return self.to_dict(include_secret=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            email=str(data.get("email") or ""),
            password_hash=str(data.get("passwordHash") or ""),
            role=str(data.get("role") or "user"),
            permissions=Permissions.from_dict(data.get("permissions")),
        )


@dataclass
class Payment:
    id: str
    amount: float
    date: str
    remarks: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "amount": self.amount, "date": self.date, "remarks": self.remarks}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payment":
        return cls(
            id=str(data["id"]),
            amount=float(data.get("amount") or 0),
            date=str(data.get("date") or ""),
            remarks=str(data.get("remarks") or ""),
        )


@dataclass
class Discount:
    id: str
    amount: float
    date: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "amount": self.amount, "date": self.date, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Discount":
        return cls(
            id=str(data["id"]),
            amount=float(data.get("amount") or 0),
            date=str(data.get("date") or ""),
            reason=str(data.get("reason") or ""),
        )


@dataclass
class Student:
    id: str
    name: str
    roll_number: str
    class_name: str
    grade: str
    total_fees: float
    payments: List[Payment] = field(default_factory=list)
    discounts: List[Discount] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rollNumber": self.roll_number,
            "class": self.class_name,
            "grade": self.grade,
            "totalFees": self.total_fees,
            "payments": [p.to_dict() for p in self.payments],
            "discounts": [d.to_dict() for d in self.discounts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Student":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            roll_number=str(data.get("rollNumber") or ""),
            class_name=str(data.get("class") or ""),
            grade=str(data.get("grade") or ""),
            total_fees=float(data.get("totalFees") or 0),
            payments=[Payment.from_dict(p) for p in data.get("payments") or []],
            discounts=[Discount.from_dict(d) for d in data.get("discounts") or []],
        )


@dataclass(frozen=True)
class LedgerView:
    total_paid: float
    total_discount: float
    remaining_balance: float
    last_payment_date: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPaid": self.total_paid,
            "totalDiscount": self.total_discount,
            "remainingBalance": self.remaining_balance,
            "lastPaymentDate": self.last_payment_date,
        }
