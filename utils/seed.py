from __future__ import annotations

import logging
from typing import Any, Mapping

from models import Student
from utils.permissions import ADMIN
from utils.students import StudentRoster
from utils.users import IdentityStore

logger = logging.getLogger(__name__)

DEMO_STUDENTS = [
    {
        "id": "S1001", "name": "Amit Kumar", "rollNumber": "R001", "class": "10", "grade": "A", "totalFees": 50000,
        "payments": [
            {"id": "P1", "amount": 20000, "date": "2024-07-15T10:30:00Z", "remarks": "First Installment"},
            {"id": "P2", "amount": 15000, "date": "2024-08-20T14:00:00Z", "remarks": "Second Installment"},
        ],
        "discounts": [{"id": "D1", "amount": 2000, "reason": "Sibling Discount", "date": "2024-07-10T09:00:00Z"}],
    },
    {
        "id": "S1002", "name": "Priya Sharma", "rollNumber": "R002", "class": "12", "grade": "B", "totalFees": 60000,
        "payments": [{"id": "P3", "amount": 30000, "date": "2024-07-20T11:00:00Z", "remarks": "Full Payment Attempt 1"}],
        "discounts": [],
    },
    {
        "id": "S1003", "name": "Rahul Singh", "rollNumber": "R003", "class": "10", "grade": "A", "totalFees": 50000,
        "payments": [{"id": "P4", "amount": 10000, "date": "2024-08-01T12:15:00Z", "remarks": "Partial Payment"}],
        "discounts": [{"id": "D2", "amount": 1000, "reason": "Early Bird", "date": "2024-07-05T10:00:00Z"}],
    },
]


def seed_defaults(identity: IdentityStore, roster: StudentRoster, config: Mapping[str, Any]) -> None:
    """First-run data: the bootstrap admin, plus demo students when enabled.

    Existing collections are never touched, even when empty.
    """
    if not identity.is_initialized():
        email = config.get("SEED_ADMIN_EMAIL")
        password = config.get("SEED_ADMIN_PASSWORD")
        result = identity.register(email, password, role=ADMIN)
        if not result.ok:
            raise RuntimeError(f"Could not seed admin account: {result.message}")
        logger.info("Seeded admin account %s", email)

    if config.get("SEED_DEMO_DATA") and not roster.is_initialized():
        roster.replace_all([Student.from_dict(s) for s in DEMO_STUDENTS])
        logger.info("Seeded %s demo students", len(DEMO_STUDENTS))
