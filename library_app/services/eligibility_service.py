from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from library_app.errors import (
    CopyNotFound,
    CopyUnavailable,
    LibraryError,
    MemberBlocked,
    MemberLoanLimitExceeded,
)
from library_app.models.book_copy import CopyStatus
from library_app.services.policy import LoanPolicy


@dataclass(frozen=True)
class Reason:
    code: str
    message: str
    entity: str
    entity_id: int
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "entity": self.entity,
            "entity_id": self.entity_id,
            **self.details,
        }


_ERRORS = {
    "CopyNotFound": CopyNotFound,
    "CopyUnavailable": CopyUnavailable,
    "MemberLoanLimitExceeded": MemberLoanLimitExceeded,
    "MemberBlocked": MemberBlocked,
}


@dataclass
class EligibilityResult:
    reasons: List[Reason] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.reasons

    def to_error(self) -> LibraryError:
        first = self.reasons[0]
        return _ERRORS[first.code](
            first.entity_id,
            first.message,
            reasons=[r.to_dict() for r in self.reasons],
            **first.details,
        )

    def raise_for_reasons(self) -> None:
        # any reason at all is a rejection
        if self.reasons:
            raise self.to_error()

    def to_dict(self) -> dict:
        return {"ok": self.ok, "reasons": [r.to_dict() for r in self.reasons]}


class EligibilityEngine:
    """Decides whether a borrow may go ahead. Read-only; the LendingService re-runs it under its locks."""

    def __init__(self, ledger, store, catalog, loan_policy: LoanPolicy):
        self.ledger = ledger
        self.store = store
        self.catalog = catalog
        self.loan_policy = loan_policy

    def check(self, copy_id: int, member_id: int, member_blocked: bool = False) -> EligibilityResult:
        result = EligibilityResult()

        if not self.catalog.copy_exists(copy_id):
            result.reasons.append(Reason("CopyNotFound", "Copy not found", "copy", copy_id))
            return result

        status = self.ledger.get_status(copy_id)
        if status != CopyStatus.AVAILABLE:
            result.reasons.append(Reason(
                "CopyUnavailable", "Copy is not available for borrowing", "copy", copy_id,
                {"copy_status": status},
            ))

        open_loan = self.store.get_open_for_copy(copy_id)
        if open_loan is not None:
            result.reasons.append(Reason(
                "CopyUnavailable", "Copy is already borrowed by another member", "copy", copy_id,
                {"transaction_id": open_loan.id},
            ))

        limit = self.loan_policy.max_active_loans
        active = self.store.count_open_for_member(member_id)
        if active >= limit:
            result.reasons.append(Reason(
                "MemberLoanLimitExceeded",
                f"Member has reached the maximum borrowing limit of {limit} books",
                "member", member_id,
                {"active_loans": active, "max_active_loans": limit},
            ))

        if member_blocked:
            result.reasons.append(Reason("MemberBlocked", "Member is blocked from borrowing", "member", member_id))

        return result
