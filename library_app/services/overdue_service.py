from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from library_app.errors import InvalidInput
from library_app.models.member import MemberStatus
from library_app.models.transaction import BorrowingTransaction
from library_app.services import fee_service
from library_app.services.policy import GracePeriodPolicy
from library_app.services.risk_service import round_half_up
from library_app.utils.clock import utcnow
from library_app.utils.decorators import store_read

WITHIN_GRACE = "within_grace"
EXCEEDED_GRACE = "exceeded_grace"
GRACE_STATUSES = (WITHIN_GRACE, EXCEEDED_GRACE)


@dataclass(frozen=True)
class OverdueFilters:
    member_id: Optional[int] = None
    member_status: Optional[str] = None
    min_days_overdue: Optional[int] = None
    max_days_overdue: Optional[int] = None
    grace_status: Optional[str] = None

    def __post_init__(self):
        if self.member_status is not None and self.member_status not in MemberStatus.ALL:
            raise InvalidInput(f"member_status must be one of {', '.join(MemberStatus.ALL)}",
                               entity="member_status", entity_id=self.member_status)
        if self.grace_status is not None and self.grace_status not in GRACE_STATUSES:
            raise InvalidInput(f"grace_status must be one of {', '.join(GRACE_STATUSES)}",
                               entity="grace_status", entity_id=self.grace_status)
        for name in ("min_days_overdue", "max_days_overdue"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidInput(f"{name} must be >= 0", entity=name, entity_id=value)

    def matches(self, txn: BorrowingTransaction, fee: fee_service.FeeAssessment, member_status: str) -> bool:
        if self.member_id is not None and txn.member_id != self.member_id:
            return False
        if self.member_status is not None and member_status != self.member_status:
            return False
        if self.min_days_overdue is not None and fee.days_overdue < self.min_days_overdue:
            return False
        if self.max_days_overdue is not None and fee.days_overdue > self.max_days_overdue:
            return False
        if self.grace_status == WITHIN_GRACE and not fee.within_grace:
            return False
        if self.grace_status == EXCEEDED_GRACE and fee.within_grace:
            return False
        return True

    def to_dict(self) -> dict:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class OverdueItem:
    transaction: BorrowingTransaction
    fee: fee_service.FeeAssessment
    member_status: str
    notice_offset: Optional[int]
    suspension_due: bool

    def to_dict(self) -> dict:
        t = self.transaction
        return {
            "transaction_id": t.id,
            "copy_id": t.copy_id,
            "member_id": t.member_id,
            "member_status": self.member_status,
            "borrow_date": t.borrow_date.isoformat(),
            "due_date": t.due_date.isoformat(),
            **self.fee.to_dict(),
            "notice_offset": self.notice_offset,
            "suspension_due": self.suspension_due,
        }


@dataclass
class OverdueReport:
    as_of: datetime
    grace_period_days: int
    total_active_loans: int
    filters: OverdueFilters = field(default_factory=OverdueFilters)
    items: List[OverdueItem] = field(default_factory=list)

    @property
    def overdue_count(self) -> int:
        return len(self.items)

    @property
    def beyond_grace_count(self) -> int:
        return sum(1 for i in self.items if not i.fee.within_grace)

    @property
    def notices_due(self) -> List[OverdueItem]:
        return [i for i in self.items if i.notice_offset is not None]

    @property
    def suspension_candidates(self) -> List[OverdueItem]:
        return [i for i in self.items if i.suspension_due]

    def summary(self) -> dict:
        days = [i.fee.days_overdue for i in self.items]
        total_fees = sum((i.fee.fee_amount for i in self.items), Decimal("0.00"))
        return {
            "as_of": self.as_of.isoformat(),
            "filters": self.filters.to_dict(),
            "current_overdue_count": self.overdue_count,
            "beyond_grace_count": self.beyond_grace_count,
            "overdue_members": len({i.transaction.member_id for i in self.items}),
            "total_active_loans": self.total_active_loans,
            "overdue_rate": round_half_up(self.overdue_count * 100.0 / self.total_active_loans, 2)
            if self.total_active_loans else 0.0,
            "avg_days_overdue": round_half_up(sum(days) / len(days), 2) if days else 0.0,
            "max_days_overdue": max(days, default=0),
            "total_late_fees": float(total_fees),
            "notices_due": len(self.notices_due),
            "suspension_candidates": len(self.suspension_candidates),
            "grace_period_days": self.grace_period_days,
        }


class OverdueService:
    """
    Read-only overdue sweep: which open loans are late, what they have
    accrued, whether a notice falls due today and whether the member has
    crossed the auto-suspend line. Only members still active are suspension
    candidates. Nothing is written and nothing is sent.
    """

    def __init__(self, store, members, policy: GracePeriodPolicy, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.members = members
        self.policy = policy
        self.clock = clock

    @store_read
    def scan(self, as_of: Optional[datetime] = None, policy: Optional[GracePeriodPolicy] = None,
             filters: Optional[OverdueFilters] = None) -> OverdueReport:
        as_of = as_of or self.clock()
        policy = policy or self.policy
        filters = filters or OverdueFilters()

        open_loans = self.store.list_open()
        report = OverdueReport(as_of=as_of, grace_period_days=policy.grace_period_days,
                               total_active_loans=len(open_loans), filters=filters)

        late = []
        for t in open_loans:
            fee = fee_service.compute_fee(t, as_of, policy)
            if fee.days_overdue > 0:
                late.append((t, fee))

        statuses: Dict[int, str] = self.members.statuses(t.member_id for t, _fee in late)
        for t, fee in late:
            member_status = statuses.get(t.member_id)
            if not filters.matches(t, fee, member_status):
                continue
            report.items.append(OverdueItem(
                transaction=t,
                fee=fee,
                member_status=member_status,
                notice_offset=fee_service.notice_due(fee.days_overdue, policy),
                suspension_due=member_status == MemberStatus.ACTIVE
                and fee_service.suspension_due(fee.days_overdue, policy),
            ))

        report.items.sort(key=lambda i: (-i.fee.days_overdue, i.transaction.id))
        return report
