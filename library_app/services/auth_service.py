from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token
from library_app.extensions import db
from library_app.models.member import Member
from library_app.models.user import User

ROLES = ("admin", "librarian", "member")
STAFF_ROLES = ("admin", "librarian")


class AuthService:
    @staticmethod
    def get_user(user_id: int):
        return db.session.get(User, user_id)

    @staticmethod
    def _find_user(username: str):
        return db.session.execute(db.select(User).where(User.username == username)).scalar_one_or_none()

    @staticmethod
    def _credentials_taken(username: str, email: str) -> bool:
        return db.session.execute(
            db.select(User.id).where((User.username == username) | (User.email == email))
        ).first() is not None

    @staticmethod
    def register(username: str, email: str, password: str, role: str = "member", member_id=None):
        if role not in ROLES:
            raise ValueError("Unknown role")
        if AuthService._credentials_taken(username, email):
            raise ValueError("Username or email already registered")
        if member_id is not None and db.session.get(Member, member_id) is None:
            raise ValueError(f"Member {member_id} does not exist")

        user = User(
            username=username,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
            member_id=member_id,
        )
        db.session.add(user)
        db.session.commit()
        return user

    @staticmethod
    def login(username: str, password: str):
        user = AuthService._find_user(username)
        if not user or not check_password_hash(user.password_hash, password):
            raise ValueError("Invalid username or password")

        # member_id rides in the token so loan endpoints can tell "own" from "someone else's"
        token = create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role, "username": user.username, "member_id": user.member_id}
        )
        return token, user

    @staticmethod
    def register_member(username: str, email: str, password: str, name: str):
        """Self-service signup: a Member record plus its login."""
        if AuthService._credentials_taken(username, email):
            raise ValueError("Username or email already registered")
        member_email_taken = db.session.execute(
            db.select(Member.id).where(Member.email == email)
        ).first() is not None
        if member_email_taken:
            raise ValueError("Username or email already registered")

        member = Member(name=name, email=email)
        db.session.add(member)
        db.session.flush()
        return AuthService.register(username, email, password, role="member", member_id=member.id)
