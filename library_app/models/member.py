from datetime import datetime
from library_app.extensions import db


class MemberStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    BLOCKED = (INACTIVE, SUSPENDED)
    ALL = (ACTIVE, INACTIVE, SUSPENDED)


class Member(db.Model):
    __tablename__ = "members"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)

    status = db.Column(db.String(20), nullable=False, default=MemberStatus.ACTIVE)  # active/inactive/suspended

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def is_blocked(self) -> bool:
        return self.status in MemberStatus.BLOCKED
