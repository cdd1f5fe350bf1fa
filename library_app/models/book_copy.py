from datetime import datetime
from library_app.extensions import db


class CopyStatus:
    AVAILABLE = "Available"
    BORROWED = "Borrowed"

    ALL = (AVAILABLE, BORROWED)


class Copy(db.Model):
    """One lendable physical copy of a catalog book.

    status is only ever changed through CopyLedger.reserve/release.
    """
    __tablename__ = "copies"
    __table_args__ = (
        db.UniqueConstraint("book_id", "copy_number", name="uq_copies_book_copy_number"),
        db.CheckConstraint("status IN ('Available', 'Borrowed')", name="ck_copies_status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False, index=True)
    copy_number = db.Column(db.String(50), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=CopyStatus.AVAILABLE, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    book = db.relationship("Book", backref="copies")
