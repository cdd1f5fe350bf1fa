"""
Borrow/return lifecycle.

Borrow and return are each one unit of work: the eligibility re-check, the
transaction write and the copy ledger transition all happen under the
per-copy/per-member locks and inside a single database transaction, which is
committed or rolled back as a whole before the locks are released.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from library_app.errors import (
    AlreadyReturned,
    CopyNotFound,
    CopyUnavailable,
    InvalidInput,
    LibraryError,
    MemberNotFound,
    ServiceUnavailable,
    TransactionNotFound,
)
from library_app.models.transaction import BorrowingTransaction, TransactionStatus
from library_app.repositories.copy_repo import LedgerOutcome
from library_app.services import fee_service
from library_app.services.eligibility_service import EligibilityResult
from library_app.services.policy import GracePeriodPolicy, LoanPolicy
from library_app.utils.clock import utcnow
from library_app.utils.decorators import store_read
from library_app.utils.locks import KeyedLocks, LockTimeout


def _require_id(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInput(f"{name} must be a positive integer", entity=name, entity_id=value)
    return value


class LendingService:
    def __init__(
        self,
        session,
        ledger,
        store,
        eligibility,
        members,
        catalog,
        loan_policy: LoanPolicy,
        grace_policy: GracePeriodPolicy,
        locks: Optional[KeyedLocks] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.ledger = ledger
        self.store = store
        self.eligibility = eligibility
        self.members = members
        self.catalog = catalog
        self.loan_policy = loan_policy
        self.grace_policy = grace_policy
        self.locks = locks if locks is not None else KeyedLocks()
        self.clock = clock

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    def _atomic(self, keys, work, copy_id=None):
        try:
            with self.locks.hold(*keys):
                try:
                    result = work()
                    self.session.commit()
                    return result
                except LibraryError:
                    self.session.rollback()
                    raise
                except IntegrityError as e:
                    self.session.rollback()
                    # the open-loan unique index lost a race we didn't see
                    if copy_id is not None:
                        raise CopyUnavailable(copy_id, "Copy is already borrowed by another member") from e
                    raise ServiceUnavailable(str(e.orig)) from e
                except SQLAlchemyError as e:
                    self.session.rollback()
                    current_app.logger.error(f"[lending] store failure: {e}")
                    raise ServiceUnavailable(str(e)) from e
        except LockTimeout as e:
            current_app.logger.warning(f"[lending] lock wait timed out on {e.key!r}")
            raise ServiceUnavailable("Timed out waiting for a concurrent operation", key=repr(e.key)) from e

    # ------------------------------------------------------------------
    # Borrow
    # ------------------------------------------------------------------
    def _loan_days(self, loan_period_days) -> int:
        if loan_period_days is None:
            return self.loan_policy.loan_period_days
        if isinstance(loan_period_days, bool) or not isinstance(loan_period_days, int):
            raise InvalidInput("loan_period_days must be an integer", entity="loan_period_days",
                               entity_id=loan_period_days)
        if not 0 < loan_period_days <= self.loan_policy.max_loan_period_days:
            raise InvalidInput(
                f"loan_period_days must be between 1 and {self.loan_policy.max_loan_period_days}",
                entity="loan_period_days", entity_id=loan_period_days,
            )
        return loan_period_days

    @store_read
    def check_eligibility(self, copy_id: int, member_id: int) -> EligibilityResult:
        _require_id(copy_id, "copy_id")
        _require_id(member_id, "member_id")
        if not self.members.member_exists(member_id):
            raise MemberNotFound(member_id)
        return self.eligibility.check(
            copy_id, member_id, member_blocked=self.members.is_member_blocked(member_id)
        )

    def borrow(self, copy_id: int, member_id: int, loan_period_days: Optional[int] = None,
               notes: Optional[str] = None) -> BorrowingTransaction:
        _require_id(copy_id, "copy_id")
        _require_id(member_id, "member_id")
        days = self._loan_days(loan_period_days)

        def work():
            if self.members.lock_member(member_id) is None:
                raise MemberNotFound(member_id)

            self.eligibility.check(
                copy_id, member_id, member_blocked=self.members.is_member_blocked(member_id)
            ).raise_for_reasons()

            now = self.clock()
            txn = self.store.create(copy_id, member_id, borrow_date=now,
                                    due_date=now + timedelta(days=days), notes=notes)

            if self.ledger.reserve(copy_id) != LedgerOutcome.OK:
                raise CopyUnavailable(copy_id)
            return txn

        txn = self._atomic([("copy", copy_id), ("member", member_id)], work, copy_id=copy_id)
        current_app.logger.info(f"[lending] borrow ok: txn={txn.id} copy={copy_id} member={member_id} due={txn.due_date}")
        return txn

    # ------------------------------------------------------------------
    # Return
    # ------------------------------------------------------------------
    def return_book(self, transaction_id: int, notes: Optional[str] = None) -> BorrowingTransaction:
        # copy_id never changes, so it is safe to read before locking; the row is re-read under the lock
        copy_id = self.get_transaction(transaction_id).copy_id

        def work():
            current = self.store.get_for_update(transaction_id)
            if current is None:
                raise TransactionNotFound(transaction_id)
            if current.status == TransactionStatus.RETURNED:
                raise AlreadyReturned(transaction_id, return_date=current.return_date.isoformat())

            self.store.mark_returned(current, self.clock(), notes)

            outcome = self.ledger.release(copy_id)
            if outcome != LedgerOutcome.OK:
                current_app.logger.warning(f"[lending] ledger divergence on return: txn={transaction_id} "
                                           f"copy={copy_id} outcome={outcome}")
                if outcome == LedgerOutcome.NOT_BORROWED:
                    self.ledger.force_available(copy_id)
            return current

        txn = self._atomic([("copy", copy_id)], work)
        fee = fee_service.compute_fee(txn, policy=self.grace_policy)
        current_app.logger.info(f"[lending] return ok: txn={txn.id} copy={copy_id} days_overdue={fee.days_overdue} "
                                f"fee={fee.fee_amount}")
        return txn

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @store_read
    def get_transaction(self, transaction_id: int) -> BorrowingTransaction:
        _require_id(transaction_id, "transaction_id")
        txn = self.store.get(transaction_id)
        if txn is None:
            raise TransactionNotFound(transaction_id)
        return txn

    @store_read
    def get_active_loans_for_member(self, member_id: int) -> List[BorrowingTransaction]:
        _require_id(member_id, "member_id")
        return self.store.list_open_for_member(member_id)

    @store_read
    def describe_copy(self, copy_id: int) -> dict:
        _require_id(copy_id, "copy_id")
        copy = self.catalog.get_copy(copy_id)
        if copy is None:
            raise CopyNotFound(copy_id)
        return {"copy_id": copy_id, **copy, "status": self.ledger.get_status(copy_id)}

    @store_read
    def get_active_loan_for_copy(self, copy_id: int) -> Optional[BorrowingTransaction]:
        _require_id(copy_id, "copy_id")
        return self.store.get_open_for_copy(copy_id)

    def compute_fee(self, txn: BorrowingTransaction, as_of: Optional[datetime] = None,
                    policy: Optional[GracePeriodPolicy] = None) -> fee_service.FeeAssessment:
        return fee_service.compute_fee(txn, as_of or self.clock(), policy or self.grace_policy)

    @store_read
    def list_overdue(self, policy: Optional[GracePeriodPolicy] = None,
                     as_of: Optional[datetime] = None) -> List[BorrowingTransaction]:
        # policy doesn't change *whether* a loan is overdue, only what it costs
        as_of = as_of or self.clock()
        start_of_day = datetime.combine(as_of.date(), datetime.min.time())
        return [
            t for t in self.store.list_open_due_before(start_of_day)
            if fee_service.is_overdue(t, as_of)
        ]

    @store_read
    def member_summary(self, member_id: int, as_of: Optional[datetime] = None) -> dict:
        _require_id(member_id, "member_id")
        if not self.members.member_exists(member_id):
            raise MemberNotFound(member_id)
        as_of = as_of or self.clock()
        history = self.store.list_for_member(member_id)
        active = [t for t in history if t.is_open]
        return {
            "member_id": member_id,
            "active_borrows_count": len(active),
            "total_borrows_count": len(history),
            "overdue_count": sum(1 for t in active if fee_service.is_overdue(t, as_of)),
            "max_active_loans": self.loan_policy.max_active_loans,
            "can_borrow": len(active) < self.loan_policy.max_active_loans
            and not self.members.is_member_blocked(member_id),
        }

    @store_read
    def borrowing_stats(self, as_of: Optional[datetime] = None) -> dict:
        as_of = as_of or self.clock()
        active = self.store.list_open()
        return {
            "total_active_borrows": len(active),
            "overdue_count": sum(1 for t in active if fee_service.is_overdue(t, as_of)),
            "members_with_active_borrows": len({t.member_id for t in active}),
        }
