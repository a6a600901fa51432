import argparse
import random
import os
import sys

# Ensure project root is importable when running from scripts/
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app
from utils.students import StudentRoster


FIRST_NAMES = [
    "Amit", "Priya", "Rahul", "Sneha", "Arjun", "Kavya", "Rohan", "Ananya",
    "Vikram", "Isha", "Karan", "Meera", "Aditya", "Pooja", "Siddharth", "Neha",
]

LAST_NAMES = [
    "Kumar", "Sharma", "Singh", "Patel", "Gupta", "Reddy", "Iyer", "Nair",
    "Das", "Mehta", "Joshi", "Rao", "Verma", "Chopra", "Bose", "Menon",
]

CLASSES = [str(i) for i in range(1, 13)]
GRADES = ["A", "B", "C", "D"]
FEE_LEVELS = [30000, 40000, 50000, 60000, 75000]


def random_name() -> str:
    return f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"


def next_roll_numbers(roster: StudentRoster, count: int) -> list[str]:
    taken = {s.roll_number.lower() for s in roster.list_students()}
    out: list[str] = []
    n = 1
    while len(out) < count:
        roll = f"R{n:04d}"
        if roll.lower() not in taken:
            out.append(roll)
        n += 1
    return out


def seed(roster: StudentRoster, count: int, with_payments: bool) -> int:
    added = 0
    for roll in next_roll_numbers(roster, count):
        fees = random.choice(FEE_LEVELS)
        result = roster.add_student(random_name(), roll, random.choice(CLASSES), random.choice(GRADES), fees)
        if not result.ok:
            print(f"Skipped {roll}: {result.message}")
            continue
        added += 1
        if with_payments:
            # Zero to three installments, never more than the fee
            remaining = fees
            for i in range(random.randint(0, 3)):
                amount = round(random.uniform(0.1, 0.4) * fees, -2)
                if amount <= 0 or amount > remaining:
                    break
                roster.add_payment(result.data.id, amount, remarks=f"Installment {i + 1}")
                remaining -= amount
    return added


def main() -> int:
    parser = argparse.ArgumentParser(description="Add random students to the roster.")
    parser.add_argument("--count", type=int, default=25, help="How many students to add")
    parser.add_argument("--with-payments", action="store_true", help="Also record random installments")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data")
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)

    app = create_app()
    with app.app_context():
        roster = app.extensions["feedesk"]["roster"]
        added = seed(roster, args.count, args.with_payments)
    print(f"Added {added} students.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
