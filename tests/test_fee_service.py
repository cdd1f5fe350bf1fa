from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from library_app.models.transaction import BorrowingTransaction, TransactionStatus
from library_app.services import fee_service
from library_app.services.policy import GracePeriodPolicy

DUE = datetime(2024, 5, 1, 17, 30)
POLICY = GracePeriodPolicy(grace_period_days=3, base_late_fee=1.0, daily_late_fee=0.5, max_late_fee=25.0)


def _loan(returned=None):
    return BorrowingTransaction(
        copy_id=1,
        member_id=1,
        borrow_date=DUE - timedelta(days=14),
        due_date=DUE,
        return_date=returned,
        status=TransactionStatus.RETURNED if returned else TransactionStatus.ACTIVE,
    )


def test_ten_days_late_charges_base_plus_daily():
    fee = fee_service.compute_fee(_loan(), DUE + timedelta(days=10), POLICY)
    assert fee.days_overdue == 10
    assert fee.fee_amount == Decimal("4.00")
    assert fee.within_grace is False
    assert fee.grace_remaining == 0


def test_inside_grace_is_free():
    fee = fee_service.compute_fee(_loan(), DUE + timedelta(days=2), POLICY)
    assert fee.days_overdue == 2
    assert fee.fee_amount == Decimal("0.00")
    assert fee.within_grace is True
    assert fee.grace_remaining == 1


def test_not_yet_due():
    fee = fee_service.compute_fee(_loan(), DUE - timedelta(days=3), POLICY)
    assert fee.days_overdue == 0
    assert fee.fee_amount == 0
    assert fee.within_grace is True
    assert fee.grace_remaining == 3


def test_first_day_after_grace_is_base_fee_only():
    fee = fee_service.compute_fee(_loan(), DUE + timedelta(days=4), POLICY)
    assert fee.fee_amount == Decimal("1.00")


def test_days_are_counted_by_calendar_date():
    # due 17:30, checked 09:00 the next morning: one day late
    assert fee_service.days_overdue(DUE, datetime(2024, 5, 2, 9, 0)) == 1
    # later the same day: not late
    assert fee_service.days_overdue(DUE, datetime(2024, 5, 1, 23, 59)) == 0


def test_fee_is_capped():
    fee = fee_service.compute_fee(_loan(), DUE + timedelta(days=100), POLICY)
    assert fee.fee_amount == POLICY.max_late_fee


def test_fee_never_decreases_and_is_zero_through_grace():
    previous = Decimal("0")
    for day in range(-5, 90):
        fee = fee_service.compute_fee(_loan(), DUE + timedelta(days=day), POLICY).fee_amount
        assert fee >= previous
        assert fee <= POLICY.max_late_fee
        if day <= POLICY.grace_period_days:
            assert fee == 0
        previous = fee


def test_returned_loan_is_charged_as_of_its_return_date():
    returned = _loan(returned=DUE + timedelta(days=10))
    # as_of far in the future must not matter once returned
    fee = fee_service.compute_fee(returned, DUE + timedelta(days=60), POLICY)
    assert fee.days_overdue == 10
    assert fee.fee_amount == Decimal("4.00")
    assert fee_service.is_overdue(returned, DUE + timedelta(days=60)) is False


def test_overdue_classification_for_open_loan():
    assert fee_service.is_overdue(_loan(), DUE) is False
    assert fee_service.is_overdue(_loan(), DUE + timedelta(days=1)) is True


def test_policy_override_does_not_touch_default():
    strict = POLICY.override(grace_period_days=0, max_late_fee="2.00")
    fee = fee_service.compute_fee(_loan(), DUE + timedelta(days=10), strict)
    assert fee.fee_amount == Decimal("2.00")
    assert POLICY.grace_period_days == 3


@pytest.mark.parametrize("days,expected", [(1, 1), (7, 7), (2, None), (30, 30), (31, None)])
def test_notice_due_on_offsets(days, expected):
    assert fee_service.notice_due(days, POLICY) == expected


def test_suspension_threshold():
    assert fee_service.suspension_due(59, POLICY) is False
    assert fee_service.suspension_due(60, POLICY) is True
