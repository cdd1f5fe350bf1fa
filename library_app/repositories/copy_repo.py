from sqlalchemy import update

from library_app.extensions import db
from library_app.models.book_copy import Copy, CopyStatus
from library_app.utils.clock import utcnow


class LedgerOutcome:
    OK = "ok"
    ALREADY_BORROWED = "already_borrowed"
    NOT_BORROWED = "not_borrowed"
    NOT_FOUND = "not_found"


class CopyLedger:
    """
    Authoritative lending state of each copy.
    reserve/release are compare-and-set UPDATEs; nothing else writes Copy.status.
    They don't commit: the caller's unit of work does.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def get_status(self, copy_id: int):
        return self.session.execute(
            db.select(Copy.status).where(Copy.id == copy_id)
        ).scalar_one_or_none()

    def reserve(self, copy_id: int) -> str:
        return self._transition(copy_id, CopyStatus.AVAILABLE, CopyStatus.BORROWED, LedgerOutcome.ALREADY_BORROWED)

    def release(self, copy_id: int) -> str:
        return self._transition(copy_id, CopyStatus.BORROWED, CopyStatus.AVAILABLE, LedgerOutcome.NOT_BORROWED)

    def force_available(self, copy_id: int) -> None:
        # ledger/store divergence repair; only used by a return
        self.session.execute(
            update(Copy).where(Copy.id == copy_id).values(status=CopyStatus.AVAILABLE, updated_at=utcnow())
        )

    def _transition(self, copy_id: int, expected: str, new: str, conflict: str) -> str:
        result = self.session.execute(
            update(Copy)
            .where(Copy.id == copy_id, Copy.status == expected)
            .values(status=new, updated_at=utcnow())
        )
        if result.rowcount == 1:
            return LedgerOutcome.OK
        if self.get_status(copy_id) is None:
            return LedgerOutcome.NOT_FOUND
        return conflict
