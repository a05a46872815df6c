"""
Error taxonomy for the API.

Every failure the service can report is a LedgerError subclass carrying
the HTTP status and a human-readable message. main.py renders them as
{"message": ...} responses.
"""


class LedgerError(Exception):
    """Base class for errors reported to the caller."""

    status_code = 500
    message = "Internal server error."

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)


class ValidationError(LedgerError):
    status_code = 400
    message = "Invalid request."


class AuthenticationRequired(LedgerError):
    status_code = 401
    message = "Authentication token required."


class AuthenticationInvalid(LedgerError):
    status_code = 403
    message = "Invalid or expired token."


class InvalidCredentials(LedgerError):
    status_code = 401
    message = "Invalid credentials."


class NotFound(LedgerError):
    status_code = 404
    message = "Not found."


class Forbidden(LedgerError):
    status_code = 403
    message = "Access denied."


class BusinessRuleViolation(LedgerError):
    status_code = 400
    message = "Request violates a business rule."


class InsufficientFunds(BusinessRuleViolation):
    message = "Insufficient funds."


class EmailInUse(BusinessRuleViolation):
    status_code = 409
    message = "Email already in use."


class StoreFailure(LedgerError):
    """Unexpected persistence error. The message never carries internals."""
    status_code = 500
    message = "Server error."
