from datetime import datetime
from typing import List, Optional

from sqlalchemy import func

from library_app.extensions import db
from library_app.models.transaction import BorrowingTransaction, TransactionStatus


class TransactionStore:
    """Append-only loan history. Like CopyLedger it never commits on its own."""

    def __init__(self, session=None):
        self.session = session or db.session

    def _open(self):
        return BorrowingTransaction.status != TransactionStatus.RETURNED

    def get(self, transaction_id: int) -> Optional[BorrowingTransaction]:
        return self.session.get(BorrowingTransaction, transaction_id)

    def get_for_update(self, transaction_id: int) -> Optional[BorrowingTransaction]:
        return self.session.execute(
            db.select(BorrowingTransaction)
            .where(BorrowingTransaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def create(self, copy_id: int, member_id: int, borrow_date: datetime, due_date: datetime,
               notes: Optional[str] = None) -> BorrowingTransaction:
        txn = BorrowingTransaction(
            copy_id=copy_id,
            member_id=member_id,
            borrow_date=borrow_date,
            due_date=due_date,
            status=TransactionStatus.ACTIVE,
            notes=notes,
            created_at=borrow_date,
            updated_at=borrow_date,
        )
        self.session.add(txn)
        self.session.flush()
        return txn

    def mark_returned(self, txn: BorrowingTransaction, return_date: datetime, notes: Optional[str] = None):
        txn.return_date = return_date
        txn.status = TransactionStatus.RETURNED
        if notes:
            txn.notes = f"{txn.notes}\n{notes}" if txn.notes else notes
        txn.updated_at = return_date
        self.session.flush()
        return txn

    # --- queries ---
    def get_open_for_copy(self, copy_id: int) -> Optional[BorrowingTransaction]:
        return self.session.execute(
            db.select(BorrowingTransaction)
            .where(BorrowingTransaction.copy_id == copy_id, self._open())
        ).scalars().first()

    def count_open_for_member(self, member_id: int) -> int:
        return self.session.execute(
            db.select(func.count(BorrowingTransaction.id))
            .where(BorrowingTransaction.member_id == member_id, self._open())
        ).scalar_one()

    def list_open_for_member(self, member_id: int) -> List[BorrowingTransaction]:
        return list(self.session.execute(
            db.select(BorrowingTransaction)
            .where(BorrowingTransaction.member_id == member_id, self._open())
            .order_by(BorrowingTransaction.due_date.asc())
        ).scalars())

    def list_for_member(self, member_id: int) -> List[BorrowingTransaction]:
        return list(self.session.execute(
            db.select(BorrowingTransaction)
            .where(BorrowingTransaction.member_id == member_id)
            .order_by(BorrowingTransaction.id.desc())
        ).scalars())

    def list_all(self) -> List[BorrowingTransaction]:
        return list(self.session.execute(
            db.select(BorrowingTransaction).order_by(BorrowingTransaction.id.desc())
        ).scalars())

    def list_open(self) -> List[BorrowingTransaction]:
        return list(self.session.execute(
            db.select(BorrowingTransaction)
            .where(self._open())
            .order_by(BorrowingTransaction.due_date.asc())
        ).scalars())

    def list_open_due_before(self, cutoff: datetime) -> List[BorrowingTransaction]:
        return list(self.session.execute(
            db.select(BorrowingTransaction)
            .where(self._open(), BorrowingTransaction.due_date < cutoff)
            .order_by(BorrowingTransaction.due_date.asc())
        ).scalars())

