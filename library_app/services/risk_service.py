"""
Member risk & reliability scoring.

Aggregates a member's whole loan history (returned and open) using the same
calendar-day overdue count as the fee calculator:

* overdue_rate          share of loans that ran past due, in percent
* average_days_overdue  mean lateness over the late loans only
* grace_violations      loans that ran past the grace period
* current_overdue_count open loans already past due

The repeat-offender score blends those four at 40/30/20/10, each of the last
three capped (30 days, 5 violations, 3 concurrent) so the score stays on a
0-100 scale. Risk level is read off the score alone.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional

from library_app.errors import MemberNotFound
from library_app.models.transaction import BorrowingTransaction
from library_app.services import fee_service
from library_app.services.policy import GracePeriodPolicy
from library_app.utils.clock import utcnow
from library_app.utils.decorators import store_read

AVG_DAYS_CAP = 30
GRACE_VIOLATIONS_CAP = 5
CURRENT_OVERDUE_CAP = 3

RISK_THRESHOLDS = (
    (75, "Critical"),
    (50, "High"),
    (25, "Medium"),
)


def round_half_up(value: float, places: int = 0) -> float:
    q = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def risk_level_for(score: float) -> str:
    for threshold, level in RISK_THRESHOLDS:
        if score >= threshold:
            return level
    return "Low"


@dataclass
class RiskProfile:
    member_id: int
    total_transactions: int
    overdue_transactions: int
    overdue_rate: float
    average_days_overdue: float
    longest_days_overdue: int
    grace_violations: int
    current_overdue_count: int
    total_fees_accrued: Decimal
    reliability_score: int
    repeat_offender_score: int
    risk_level: str

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "total_transactions": self.total_transactions,
            "overdue_transactions": self.overdue_transactions,
            "overdue_rate": round_half_up(self.overdue_rate, 2),
            "average_days_overdue": round_half_up(self.average_days_overdue, 2),
            "longest_days_overdue": self.longest_days_overdue,
            "grace_violations": self.grace_violations,
            "current_overdue_count": self.current_overdue_count,
            "total_fees_accrued": float(self.total_fees_accrued),
            "reliability_score": self.reliability_score,
            "repeat_offender_score": self.repeat_offender_score,
            "risk_level": self.risk_level,
        }


def build_profile(member_id: int, transactions: Iterable[BorrowingTransaction], as_of: datetime,
                  policy: GracePeriodPolicy) -> RiskProfile:
    total = 0
    late_days: List[int] = []
    grace_violations = 0
    current_overdue = 0
    fees = Decimal("0.00")

    for txn in transactions:
        total += 1
        days = fee_service.transaction_days_overdue(txn, as_of)
        if days <= 0:
            continue
        late_days.append(days)
        if days > policy.grace_period_days:
            grace_violations += 1
        if txn.is_open:
            current_overdue += 1
        fees += fee_service.assess(days, policy).fee_amount

    if total == 0:
        return RiskProfile(member_id, 0, 0, 0.0, 0.0, 0, 0, 0, fees, 100, 0, "Low")

    overdue_rate = 100.0 * len(late_days) / total
    avg_days = sum(late_days) / len(late_days) if late_days else 0.0

    reliability = int(min(100, max(0, round_half_up(100 - overdue_rate))))

    blended = (
        0.4 * overdue_rate
        + 0.3 * min(avg_days / AVG_DAYS_CAP, 1) * 100
        + 0.2 * min(grace_violations / GRACE_VIOLATIONS_CAP, 1) * 100
        + 0.1 * min(current_overdue / CURRENT_OVERDUE_CAP, 1) * 100
    )
    repeat_offender = int(round_half_up(min(100, blended)))

    return RiskProfile(
        member_id=member_id,
        total_transactions=total,
        overdue_transactions=len(late_days),
        overdue_rate=overdue_rate,
        average_days_overdue=avg_days,
        longest_days_overdue=max(late_days, default=0),
        grace_violations=grace_violations,
        current_overdue_count=current_overdue,
        total_fees_accrued=fees,
        reliability_score=reliability,
        repeat_offender_score=repeat_offender,
        risk_level=risk_level_for(repeat_offender),
    )


class RiskScorer:
    def __init__(self, store, members, policy: GracePeriodPolicy, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.members = members
        self.policy = policy
        self.clock = clock

    @store_read
    def profile_for(self, member_id: int, as_of: Optional[datetime] = None,
                    policy: Optional[GracePeriodPolicy] = None) -> RiskProfile:
        if not self.members.member_exists(member_id):
            raise MemberNotFound(member_id)
        return build_profile(
            member_id,
            self.store.list_for_member(member_id),
            as_of or self.clock(),
            policy or self.policy,
        )

    @store_read
    def profiles_for_all(self, as_of: Optional[datetime] = None,
                         policy: Optional[GracePeriodPolicy] = None) -> List[RiskProfile]:
        """One pass over the whole history; members with no loans are left out."""
        as_of = as_of or self.clock()
        policy = policy or self.policy

        by_member: Dict[int, List[BorrowingTransaction]] = defaultdict(list)
        for txn in self.store.list_all():
            by_member[txn.member_id].append(txn)

        profiles = [build_profile(mid, txns, as_of, policy) for mid, txns in by_member.items()]
        profiles.sort(key=lambda p: (-p.repeat_offender_score, -p.overdue_rate, p.member_id))
        return profiles

    def repeat_offenders(self, min_score: int = 50, limit: int = 20, as_of: Optional[datetime] = None,
                         policy: Optional[GracePeriodPolicy] = None) -> List[RiskProfile]:
        return [
            p for p in self.profiles_for_all(as_of, policy)
            if p.repeat_offender_score >= min_score
        ][:limit]
