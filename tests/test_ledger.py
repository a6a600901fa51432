from models import Discount, Payment, Student
from utils.ledger import compute_ledger, with_fee_details


def _student(total_fees=50000, payments=(), discounts=()):
    return Student(
        id="S1",
        name="Amit Kumar",
        roll_number="R001",
        class_name="10",
        grade="A",
        total_fees=total_fees,
        payments=list(payments),
        discounts=list(discounts),
    )


def test_installments_and_discount_reduce_balance():
    student = _student(
        payments=[
            Payment("P1", 20000, "2024-07-15T10:30:00Z", "First Installment"),
            Payment("P2", 15000, "2024-08-20T14:00:00Z", "Second Installment"),
        ],
        discounts=[Discount("D1", 2000, "2024-07-10T09:00:00Z", "Sibling Discount")],
    )
    ledger = compute_ledger(student)
    assert ledger.total_paid == 35000
    assert ledger.total_discount == 2000
    assert ledger.remaining_balance == 13000
    assert ledger.last_payment_date == "2024-08-20T14:00:00Z"


def test_no_transactions_leaves_full_balance():
    ledger = compute_ledger(_student(total_fees=1))
    assert ledger.total_paid == 0
    assert ledger.total_discount == 0
    assert ledger.remaining_balance == 1
    assert ledger.last_payment_date is None


def test_overpayment_gives_negative_balance():
    ledger = compute_ledger(_student(total_fees=1000, payments=[Payment("P1", 1500, "2024-01-01T00:00:00Z")]))
    assert ledger.remaining_balance == -500


def test_last_payment_is_latest_by_date_not_position():
    student = _student(payments=[
        Payment("P2", 100, "2024-09-01T00:00:00Z"),
        Payment("P1", 100, "2024-03-01T00:00:00Z"),
    ])
    assert compute_ledger(student).last_payment_date == "2024-09-01T00:00:00Z"


def test_equal_dates_keep_first_payment():
    student = _student(payments=[
        Payment("P1", 100, "2024-05-01T10:00:00.000Z"),
        Payment("P2", 200, "2024-05-01T10:00:00Z"),
    ])
    assert compute_ledger(student).last_payment_date == "2024-05-01T10:00:00.000Z"


def test_unparseable_date_never_beats_valid_one():
    student = _student(payments=[
        Payment("P1", 100, "not-a-date"),
        Payment("P2", 100, "2024-05-01T10:00:00Z"),
    ])
    assert compute_ledger(student).last_payment_date == "2024-05-01T10:00:00Z"


def test_discounts_do_not_set_last_payment_date():
    student = _student(discounts=[Discount("D1", 500, "2024-05-01T10:00:00Z", "Early Bird")])
    assert compute_ledger(student).last_payment_date is None


def test_fee_details_merges_record_and_ledger():
    details = with_fee_details(_student(payments=[Payment("P1", 5000, "2024-05-01T10:00:00Z")]))
    assert details["rollNumber"] == "R001"
    assert details["class"] == "10"
    assert details["totalPaid"] == 5000
    assert details["remainingBalance"] == 45000
    assert details["lastPaymentDate"] == "2024-05-01T10:00:00Z"
