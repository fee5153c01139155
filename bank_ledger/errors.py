"""
Error Taxonomy Module

Every failure a ledger operation can report is a LedgerError subclass carrying
the HTTP status it is answered with. Messages are user-facing and end up in the
``error`` field of the response body.
"""


class LedgerError(Exception):
    """Base exception for ledger operations"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(LedgerError):
    """Missing or malformed request parameters"""
    status_code = 400


class NotFoundError(LedgerError):
    """Unknown user or transaction id"""
    status_code = 404


class ConflictError(LedgerError):
    """Duplicate user or duplicate transaction id"""
    status_code = 409


class InternalError(LedgerError):
    """Persistence or connectivity failure"""
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class DuplicateRecordError(Exception):
    """Raised by storage backends when an insert collides with an existing key"""
    pass
