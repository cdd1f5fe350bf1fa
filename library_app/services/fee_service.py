"""
Grace & late fee calculation.

Pure functions of (due date, reference instant, policy). The reference is the
return date for a closed loan and as_of (default: now) for an open one, so a
late return is charged exactly what it had accrued on the day it came back.
Days are counted by calendar date, not by elapsed hours.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from library_app.models.transaction import BorrowingTransaction
from library_app.services.policy import GracePeriodPolicy
from library_app.utils.clock import utcnow

DEFAULT_POLICY = GracePeriodPolicy()


@dataclass(frozen=True)
class FeeAssessment:
    fee_amount: Decimal
    days_overdue: int
    within_grace: bool
    grace_remaining: int

    def to_dict(self) -> dict:
        return {
            "fee_amount": float(self.fee_amount),
            "days_overdue": self.days_overdue,
            "within_grace": self.within_grace,
            "grace_remaining": self.grace_remaining,
        }


def days_overdue(due_date: datetime, reference: datetime) -> int:
    return max(0, (reference.date() - due_date.date()).days)


def reference_instant(txn: BorrowingTransaction, as_of: Optional[datetime] = None) -> datetime:
    if txn.return_date is not None:
        return txn.return_date
    return as_of or utcnow()


def transaction_days_overdue(txn: BorrowingTransaction, as_of: Optional[datetime] = None) -> int:
    return days_overdue(txn.due_date, reference_instant(txn, as_of))


def assess(days: int, policy: GracePeriodPolicy = DEFAULT_POLICY) -> FeeAssessment:
    grace = policy.grace_period_days

    if days <= 0:
        return FeeAssessment(Decimal("0.00"), 0, True, grace)
    if days <= grace:
        return FeeAssessment(Decimal("0.00"), days, True, grace - days)

    if days == grace + 1:
        fee = policy.base_late_fee
    else:
        fee = policy.base_late_fee + (days - grace - 1) * policy.daily_late_fee

    fee = min(fee, policy.max_late_fee).quantize(Decimal("0.01"))
    return FeeAssessment(fee, days, False, 0)


def compute_fee(txn: BorrowingTransaction, as_of: Optional[datetime] = None,
                policy: Optional[GracePeriodPolicy] = None) -> FeeAssessment:
    return assess(transaction_days_overdue(txn, as_of), policy or DEFAULT_POLICY)


def is_overdue(txn: BorrowingTransaction, as_of: Optional[datetime] = None) -> bool:
    return txn.is_open and transaction_days_overdue(txn, as_of) > 0


def notice_due(days: int, policy: GracePeriodPolicy = DEFAULT_POLICY) -> Optional[int]:
    """The notification offset that falls on this day overdue, if any."""
    return days if days in policy.notification_offsets else None


def suspension_due(days: int, policy: GracePeriodPolicy = DEFAULT_POLICY) -> bool:
    return policy.auto_suspend_days > 0 and days >= policy.auto_suspend_days
