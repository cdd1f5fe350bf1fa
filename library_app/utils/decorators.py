from functools import wraps
from flask_jwt_extended import verify_jwt_in_request, get_jwt
from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from library_app.errors import ServiceUnavailable


def role_required(*roles):
    """jwt_required plus a role claim check; 403 envelope when the role doesn't match."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            role = (get_jwt() or {}).get("role")
            if role not in roles:
                return jsonify({
                    "success": False,
                    "message": "Forbidden",
                    "error": {"kind": "PolicyViolation", "code": "Forbidden", "required_roles": list(roles)},
                }), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


staff_required = role_required("admin", "librarian")


def store_read(fn):
    """
    For service read paths: a store failure rolls back the session and
    surfaces as ServiceUnavailable instead of a raw SQLAlchemy error.
    Expects the service to hold its TransactionStore as self.store.
    """
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.store.session.rollback()
            current_app.logger.error(f"[{type(self).__name__}] store failure in {fn.__name__}: {e}")
            raise ServiceUnavailable(str(e)) from e
    return wrapper
