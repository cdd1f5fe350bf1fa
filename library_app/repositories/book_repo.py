from library_app.models.book_copy import Copy
from library_app.extensions import db


class CatalogGateway:
    """Read side of the catalog collaborator: copy lookups only."""

    def __init__(self, session=None):
        self.session = session or db.session

    def copy_exists(self, copy_id: int) -> bool:
        return self.session.execute(
            db.select(Copy.id).where(Copy.id == copy_id)
        ).scalar_one_or_none() is not None

    def get_copy(self, copy_id: int):
        row = self.session.execute(
            db.select(Copy.book_id, Copy.copy_number).where(Copy.id == copy_id)
        ).first()
        if row is None:
            return None
        return {"book_id": row.book_id, "copy_number": row.copy_number}
