from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from library_app.errors import (
    AlreadyReturned,
    CopyNotFound,
    CopyUnavailable,
    InvalidInput,
    MemberBlocked,
    MemberLoanLimitExceeded,
    MemberNotFound,
    ServiceUnavailable,
    TransactionNotFound,
)
from library_app.extensions import db
from library_app.models.book_copy import CopyStatus
from library_app.models.transaction import BorrowingTransaction, TransactionStatus
from library_app.repositories.copy_repo import LedgerOutcome
from library_app.utils.locks import KeyedLocks


def _open_loans(copy_id):
    return db.session.execute(
        db.select(db.func.count(BorrowingTransaction.id)).where(
            BorrowingTransaction.copy_id == copy_id,
            BorrowingTransaction.status != TransactionStatus.RETURNED,
        )
    ).scalar_one()


def test_borrow_creates_active_loan_and_reserves_copy(lending, components, make_copies, make_member, clock):
    (copy_id,) = make_copies()
    member = make_member()

    t = lending.borrow(copy_id, member)

    assert t.status == TransactionStatus.ACTIVE
    assert t.borrow_date == clock.now
    assert t.due_date == clock.now + timedelta(days=14)
    assert t.return_date is None
    assert components.ledger.get_status(copy_id) == CopyStatus.BORROWED
    assert lending.get_active_loan_for_copy(copy_id).id == t.id


def test_custom_loan_period(lending, make_copies, make_member, clock):
    (copy_id,) = make_copies()
    t = lending.borrow(copy_id, make_member(), loan_period_days=7)
    assert t.due_date == clock.now + timedelta(days=7)


@pytest.mark.parametrize("days", [0, -3, 61, "7", 2.5, True])
def test_bad_loan_period_is_invalid_input(lending, make_copies, make_member, days):
    (copy_id,) = make_copies()
    with pytest.raises(InvalidInput):
        lending.borrow(copy_id, make_member(), loan_period_days=days)


def test_bad_identifiers_are_invalid_input(lending):
    with pytest.raises(InvalidInput):
        lending.borrow("abc", 1)
    with pytest.raises(InvalidInput):
        lending.borrow(1, 0)
    with pytest.raises(InvalidInput):
        lending.return_book(-1)


def test_copy_handoff_between_members(lending, components, make_copies, make_member):
    (copy_id,) = make_copies()
    m, n = make_member(), make_member()

    first = lending.borrow(copy_id, m)
    assert lending.get_active_loans_for_member(m)[0].id == first.id

    with pytest.raises(CopyUnavailable) as exc:
        lending.borrow(copy_id, n)
    assert exc.value.entity == "copy"
    assert exc.value.entity_id == copy_id
    assert exc.value.details["reasons"]

    lending.return_book(first.id)
    assert components.ledger.get_status(copy_id) == CopyStatus.AVAILABLE

    second = lending.borrow(copy_id, n)
    assert second.member_id == n
    assert _open_loans(copy_id) == 1


def test_fourth_loan_exceeds_limit(lending, make_copies, make_member):
    copies = make_copies(4)
    member = make_member()
    for copy_id in copies[:3]:
        lending.borrow(copy_id, member)

    with pytest.raises(MemberLoanLimitExceeded) as exc:
        lending.borrow(copies[3], member)
    assert exc.value.kind == "LimitExceeded"
    assert exc.value.details["active_loans"] == 3
    assert exc.value.details["max_active_loans"] == 3
    assert len(lending.get_active_loans_for_member(member)) == 3


def test_blocked_member_is_rejected(lending, make_copies, make_member):
    (copy_id,) = make_copies()
    member = make_member(status="suspended")
    with pytest.raises(MemberBlocked) as exc:
        lending.borrow(copy_id, member)
    assert exc.value.kind == "PolicyViolation"


def test_unknown_copy_and_member(lending, make_copies, make_member):
    (copy_id,) = make_copies()
    with pytest.raises(CopyNotFound):
        lending.borrow(9999, make_member())
    with pytest.raises(MemberNotFound):
        lending.borrow(copy_id, 9999)


def test_eligibility_lists_every_failed_check(lending, make_copies, make_member):
    copies = make_copies(4)
    member = make_member()
    other = make_member()
    lending.borrow(copies[0], other)
    for copy_id in copies[1:4]:
        lending.borrow(copy_id, member)

    result = lending.check_eligibility(copies[0], member)
    codes = [r.code for r in result.reasons]
    assert result.ok is False
    assert codes == ["CopyUnavailable", "CopyUnavailable", "MemberLoanLimitExceeded"]

    fresh = make_member()
    assert lending.check_eligibility(make_copies(1, title="Emma")[0], fresh).ok is True


def test_return_is_not_repeatable(lending, make_copies, make_member, clock):
    (copy_id,) = make_copies()
    t = lending.borrow(copy_id, make_member(), notes="spine cracked")

    clock.advance(days=3)
    returned = lending.return_book(t.id, notes="returned at front desk")
    assert returned.status == TransactionStatus.RETURNED
    assert returned.return_date == clock.now
    assert returned.notes == "spine cracked\nreturned at front desk"

    clock.advance(days=1)
    with pytest.raises(AlreadyReturned):
        lending.return_book(t.id, notes="again")

    again = lending.get_transaction(t.id)
    assert again.return_date == returned.return_date
    assert again.notes == "spine cracked\nreturned at front desk"


def test_return_unknown_transaction(lending):
    with pytest.raises(TransactionNotFound):
        lending.return_book(12345)


def test_late_return_is_allowed_and_charged(lending, make_copies, make_member, clock):
    (copy_id,) = make_copies()
    t = lending.borrow(copy_id, make_member())
    clock.advance(days=14 + 10)
    returned = lending.return_book(t.id)

    clock.advance(days=30)
    fee = lending.compute_fee(returned)
    assert fee.days_overdue == 10
    assert str(fee.fee_amount) == "4.00"


def test_overdue_is_derived_not_stored(lending, make_copies, make_member, clock):
    copies = make_copies(2)
    member = make_member()
    late = lending.borrow(copies[0], member, loan_period_days=3)
    on_time = lending.borrow(copies[1], member, loan_period_days=30)

    clock.advance(days=5)
    overdue = lending.list_overdue()
    assert [t.id for t in overdue] == [late.id]
    assert late.effective_status(clock.now) == TransactionStatus.OVERDUE
    assert on_time.effective_status(clock.now) == TransactionStatus.ACTIVE

    db.session.expire_all()
    stored = db.session.get(BorrowingTransaction, late.id)
    assert stored.status == TransactionStatus.ACTIVE


def test_failed_reservation_leaves_no_transaction(lending, components, make_copies, make_member, monkeypatch):
    (copy_id,) = make_copies()
    monkeypatch.setattr(components.ledger, "reserve", lambda _cid: LedgerOutcome.ALREADY_BORROWED)

    with pytest.raises(CopyUnavailable):
        lending.borrow(copy_id, make_member())
    assert _open_loans(copy_id) == 0


def test_store_failure_is_unavailable_and_rolled_back(lending, components, make_copies, make_member, monkeypatch):
    (copy_id,) = make_copies()
    member = make_member()

    def boom(*args, **kwargs):
        raise OperationalError("INSERT INTO borrowing_transactions", {}, Exception("database is locked"))

    monkeypatch.setattr(components.store, "create", boom)
    with pytest.raises(ServiceUnavailable) as exc:
        lending.borrow(copy_id, member)
    assert exc.value.kind == "Unavailable"
    assert components.ledger.get_status(copy_id) == CopyStatus.AVAILABLE


def test_lock_timeout_is_clean_failure(lending, components, make_copies, make_member):
    (copy_id,) = make_copies()
    member = make_member()
    lending.locks = KeyedLocks(timeout=0.05)

    # the lock is not re-entrant, so a second acquire from this thread times out
    with lending.locks.hold(("copy", copy_id)):
        with pytest.raises(ServiceUnavailable):
            lending.borrow(copy_id, member)

    assert _open_loans(copy_id) == 0
    assert components.ledger.get_status(copy_id) == CopyStatus.AVAILABLE
    assert lending.borrow(copy_id, member).copy_id == copy_id


def test_member_summary_and_stats(lending, make_copies, make_member, clock):
    copies = make_copies(3)
    m, n = make_member(), make_member()
    lending.borrow(copies[0], m, loan_period_days=2)
    t = lending.borrow(copies[1], m)
    lending.borrow(copies[2], n)
    lending.return_book(t.id)

    clock.advance(days=4)
    summary = lending.member_summary(m)
    assert summary["active_borrows_count"] == 1
    assert summary["total_borrows_count"] == 2
    assert summary["overdue_count"] == 1
    assert summary["can_borrow"] is True

    stats = lending.borrowing_stats()
    assert stats == {"total_active_borrows": 2, "overdue_count": 1, "members_with_active_borrows": 2}


def test_ledger_release_of_available_copy_reports_not_borrowed(components, make_copies):
    (copy_id,) = make_copies()
    assert components.ledger.release(copy_id) == LedgerOutcome.NOT_BORROWED
    assert components.ledger.reserve(copy_id) == LedgerOutcome.OK
    assert components.ledger.reserve(copy_id) == LedgerOutcome.ALREADY_BORROWED
    assert components.ledger.reserve(424242) == LedgerOutcome.NOT_FOUND
    db.session.rollback()


def _locked(*args, **kwargs):
    raise OperationalError("SELECT borrowing_transactions", {}, Exception("database is locked"))


def test_return_lookup_failure_is_unavailable(lending, components, make_copies, make_member, monkeypatch):
    (copy_id,) = make_copies()
    t = lending.borrow(copy_id, make_member())

    monkeypatch.setattr(components.store, "get", _locked)
    with pytest.raises(ServiceUnavailable):
        lending.return_book(t.id)
    monkeypatch.undo()

    monkeypatch.setattr(components.store, "get_for_update", _locked)
    with pytest.raises(ServiceUnavailable):
        lending.return_book(t.id)
    monkeypatch.undo()

    assert components.ledger.get_status(copy_id) == CopyStatus.BORROWED
    assert lending.return_book(t.id).status == TransactionStatus.RETURNED


@pytest.mark.parametrize("method,call", [
    ("get", lambda lending, ids: lending.get_transaction(1)),
    ("list_open_for_member", lambda lending, ids: lending.get_active_loans_for_member(ids["member"])),
    ("get_open_for_copy", lambda lending, ids: lending.get_active_loan_for_copy(ids["copy"])),
    ("list_open_due_before", lambda lending, ids: lending.list_overdue()),
    ("list_for_member", lambda lending, ids: lending.member_summary(ids["member"])),
    ("list_open", lambda lending, ids: lending.borrowing_stats()),
    ("count_open_for_member", lambda lending, ids: lending.check_eligibility(ids["copy"], ids["member"])),
])
def test_read_paths_report_store_failure_as_unavailable(lending, components, make_copies, make_member,
                                                        monkeypatch, method, call):
    (copy_id,) = make_copies()
    ids = {"copy": copy_id, "member": make_member()}
    monkeypatch.setattr(components.store, method, _locked)

    with pytest.raises(ServiceUnavailable) as exc:
        call(lending, ids)
    assert exc.value.kind == "Unavailable"


def test_describe_copy(lending, make_copies):
    (copy_id,) = make_copies()
    assert lending.describe_copy(copy_id)["status"] == CopyStatus.AVAILABLE
    with pytest.raises(CopyNotFound):
        lending.describe_copy(999)


def test_locks_are_released_and_forgotten(lending, make_copies, make_member):
    copies = make_copies(2)
    member = make_member()
    t = lending.borrow(copies[0], member)
    lending.return_book(t.id)
    lending.borrow(copies[1], member)
    with pytest.raises(CopyUnavailable):
        lending.borrow(copies[1], make_member())
    assert lending.locks.in_use() == 0


def test_components_share_policy_and_clock(app, components, clock):
    assert components.lending.clock is clock
    assert components.risk.clock is clock
    assert components.overdue.members is components.members
    assert components.lending.locks.timeout == app.config["LOCK_TIMEOUT_SECONDS"]
    assert components.eligibility.loan_policy is components.loan_policy
