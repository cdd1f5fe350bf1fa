"""
Lending error taxonomy.

Every business-rule rejection carries a kind (NotFound, Conflict,
LimitExceeded, PolicyViolation, InvalidInput) plus the entity it concerns, so
callers can render an actionable message. Unavailable is kept apart: it is the
only kind a caller may reasonably retry.
"""


class LibraryError(Exception):
    kind = "Error"
    code = "LibraryError"
    http_status = 400
    default_message = "Lending operation failed"

    def __init__(self, message=None, entity=None, entity_id=None, **details):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.entity = entity
        self.entity_id = entity_id
        self.details = details

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "details": self.details,
        }


# --- NotFound ---
class NotFound(LibraryError):
    kind = "NotFound"
    code = "NotFound"
    http_status = 404
    default_message = "Record not found"


class CopyNotFound(NotFound):
    code = "CopyNotFound"
    default_message = "Copy not found"

    def __init__(self, copy_id, message=None, **details):
        super().__init__(message, entity="copy", entity_id=copy_id, **details)


class TransactionNotFound(NotFound):
    code = "TransactionNotFound"
    default_message = "Borrowing transaction not found"

    def __init__(self, transaction_id, message=None, **details):
        super().__init__(message, entity="transaction", entity_id=transaction_id, **details)


class MemberNotFound(NotFound):
    code = "MemberNotFound"
    default_message = "Member not found"

    def __init__(self, member_id, message=None, **details):
        super().__init__(message, entity="member", entity_id=member_id, **details)


# --- Conflict ---
class Conflict(LibraryError):
    kind = "Conflict"
    code = "Conflict"
    http_status = 409


class CopyUnavailable(Conflict):
    code = "CopyUnavailable"
    default_message = "Copy is not available for borrowing"

    def __init__(self, copy_id, message=None, **details):
        super().__init__(message, entity="copy", entity_id=copy_id, **details)


class AlreadyReturned(Conflict):
    code = "AlreadyReturned"
    default_message = "Transaction has already been returned"

    def __init__(self, transaction_id, message=None, **details):
        super().__init__(message, entity="transaction", entity_id=transaction_id, **details)


# --- LimitExceeded ---
class LimitExceeded(LibraryError):
    kind = "LimitExceeded"
    code = "LimitExceeded"
    http_status = 422


class MemberLoanLimitExceeded(LimitExceeded):
    code = "MemberLoanLimitExceeded"
    default_message = "Member has reached the maximum number of active loans"

    def __init__(self, member_id, message=None, **details):
        super().__init__(message, entity="member", entity_id=member_id, **details)


# --- PolicyViolation ---
class PolicyViolation(LibraryError):
    kind = "PolicyViolation"
    code = "PolicyViolation"
    http_status = 403


class MemberBlocked(PolicyViolation):
    code = "MemberBlocked"
    default_message = "Member is blocked from borrowing"

    def __init__(self, member_id, message=None, **details):
        super().__init__(message, entity="member", entity_id=member_id, **details)


# --- InvalidInput ---
class InvalidInput(LibraryError):
    kind = "InvalidInput"
    code = "InvalidInput"
    http_status = 400
    default_message = "Invalid input"


# --- Unavailable (transient, retry is the caller's call) ---
class ServiceUnavailable(LibraryError):
    kind = "Unavailable"
    code = "ServiceUnavailable"
    http_status = 503
    default_message = "Lending store is unavailable"
