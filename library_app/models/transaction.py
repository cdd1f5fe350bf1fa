from datetime import datetime
from library_app.extensions import db


class TransactionStatus:
    ACTIVE = "Active"
    OVERDUE = "Overdue"    # derived, never written
    RETURNED = "Returned"


class BorrowingTransaction(db.Model):
    __tablename__ = "borrowing_transactions"
    __table_args__ = (
        # at most one open loan per copy
        db.Index(
            "uq_borrowing_transactions_open_copy",
            "copy_id",
            unique=True,
            sqlite_where=db.text("status != 'Returned'"),
            postgresql_where=db.text("status != 'Returned'"),
        ),
        db.Index("ix_borrowing_transactions_member_status", "member_id", "status"),
        db.CheckConstraint("status IN ('Active', 'Returned')", name="ck_borrowing_transactions_status"),
        db.CheckConstraint(
            "(status = 'Returned' AND return_date IS NOT NULL) OR (status != 'Returned' AND return_date IS NULL)",
            name="ck_borrowing_transactions_return_date",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)

    copy_id = db.Column(db.Integer, db.ForeignKey("copies.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)

    borrow_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    due_date = db.Column(db.DateTime, nullable=False, index=True)
    return_date = db.Column(db.DateTime, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.ACTIVE, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    copy = db.relationship("Copy", backref="transactions")
    member = db.relationship("Member", backref="transactions")

    @property
    def is_open(self) -> bool:
        return self.status != TransactionStatus.RETURNED

    def effective_status(self, as_of: datetime) -> str:
        """Active/Returned as stored, or Overdue when the open loan is past due on as_of's calendar day."""
        if not self.is_open:
            return TransactionStatus.RETURNED
        if as_of.date() > self.due_date.date():
            return TransactionStatus.OVERDUE
        return TransactionStatus.ACTIVE
