"""Structured errors raised by the enrollment ledger.

Each error carries a stable ``code`` (returned to API callers next to the
message) and the HTTP status the blueprints answer with.
"""


class LedgerError(Exception):
    code = "LedgerError"
    status_code = 400
    message = "Enrollment request failed"

    def __init__(self, message: str = None, **details):
        super().__init__(message or self.message)
        self.details = details

    def to_dict(self):
        out = {"error": str(self), "code": self.code}
        out.update(self.details)
        return out


class SectionNotFound(LedgerError):
    code = "SectionNotFound"
    status_code = 404
    message = "Section not found"


class EnrollmentNotFound(LedgerError):
    code = "NotFound"
    status_code = 404
    message = "Enrollment not found"


class SectionFull(LedgerError):
    code = "SectionFull"
    status_code = 409
    message = "This section is full"


class InvalidPlan(LedgerError):
    code = "InvalidPlan"
    status_code = 400
    message = 'Invalid plan. Use "deposit" or "full"'


class NotWaitlisted(LedgerError):
    code = "NotWaitlisted"
    status_code = 400
    message = "Enrollment is not waitlisted"


class InvalidReorder(LedgerError):
    code = "InvalidReorder"
    status_code = 400
    message = "orderedIds must list every waitlisted enrollment of the section exactly once"


class EnrollmentClosed(LedgerError):
    code = "EnrollmentClosed"
    status_code = 403
    message = "Enrollment is currently closed"


class ConfigurationError(LedgerError):
    """Missing server configuration. The detail is logged, never returned."""

    code = "ConfigurationError"
    status_code = 500
    message = "Server configuration error"

    def __init__(self, detail: str):
        super().__init__(self.message)
        self.detail = detail


class CheckoutUnavailable(LedgerError):
    code = "CheckoutUnavailable"
    status_code = 502
    message = "Unable to create checkout session"


class TransactionFailed(LedgerError):
    """The ledger transaction could not be committed after bounded retries."""

    code = "TransactionFailed"
    status_code = 503
    message = "Could not commit enrollment change, please retry"


class SectionExists(LedgerError):
    code = "SectionExists"
    status_code = 409
    message = "Section label already exists"
