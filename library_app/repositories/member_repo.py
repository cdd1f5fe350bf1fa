from library_app.extensions import db
from library_app.models.member import Member


class MemberGateway:
    """Read side of the member collaborator, as the lending core needs it."""

    def __init__(self, session=None):
        self.session = session or db.session

    def get(self, member_id: int):
        return self.session.get(Member, member_id)

    def member_exists(self, member_id: int) -> bool:
        return self.get(member_id) is not None

    def is_member_blocked(self, member_id: int) -> bool:
        member = self.get(member_id)
        return bool(member and member.is_blocked)

    def lock_member(self, member_id: int):
        """Row lock on the member so concurrent borrows for one member serialize in the database too."""
        return self.session.execute(
            db.select(Member).where(Member.id == member_id).with_for_update()
        ).scalar_one_or_none()


    def statuses(self, member_ids) -> dict:
        ids = set(member_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            db.select(Member.id, Member.status).where(Member.id.in_(ids))
        ).all()
        return {row.id: row.status for row in rows}
