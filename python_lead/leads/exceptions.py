"""
Error taxonomy for the Lead Router service.

Views translate every ``LeadRouterError`` into a JSON response using
``status_code`` and ``code``; anything else is an internal error.
"""


class LeadRouterError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = 'internal_server_error'

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_response_body(self) -> dict:
        body = {'error': self.code, 'message': self.message}
        body.update(self.details)
        return body


class ValidationError(LeadRouterError):
    """Malformed or missing required input. Never retried."""

    status_code = 400
    code = 'validation_error'


class InvalidStatus(ValidationError):
    """Lead status outside the known enumeration."""

    code = 'invalid_status'


class NotFound(LeadRouterError):
    status_code = 404
    code = 'not_found'


class Conflict(LeadRouterError):
    """State-machine precondition violated (e.g. double soft delete)."""

    status_code = 409
    code = 'conflict'


class WindowExpired(LeadRouterError):
    """The restore grace period has elapsed."""

    status_code = 410
    code = 'window_expired'


class StoreError(LeadRouterError):
    """Persistence failure on the primary write path."""

    status_code = 500
    code = 'store_error'


class ForwardingError(Exception):
    """
    Outbound delivery failed.

    Never propagated to API callers; the dispatcher records it as a failed
    forwarding log entry.
    """

    def __init__(self, message: str, status_code: int = None, response_body: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class DeletionExecutionError(Exception):
    """Raised by the deletion executor so the queue re-delivers the job."""

    def __init__(self, job_id: str, message: str):
        super().__init__(f"Deletion job {job_id} failed: {message}")
        self.job_id = job_id
