"""
Domain exceptions raised by the services.

Each carries an error ``code``, an HTTP ``status`` and optional ``details``;
the application renders them with the standard API error envelope.
"""


class DriveError(Exception):
    """Base class for every error the services raise on purpose."""

    status = 400
    code = 'bad_request'

    def __init__(self, message, code=None, details=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self):
        body = {'code': self.code, 'message': self.message}
        if self.details:
            body['details'] = self.details
        return body


class AccessDenied(DriveError):
    """The caller is authenticated but may not perform this action."""
    status = 403
    code = 'forbidden'


class NotFound(DriveError):
    status = 404
    code = 'not_found'


class Conflict(DriveError):
    """The action clashes with the current state (duplicate, already handled)."""
    status = 409
    code = 'conflict'


class ValidationFailed(DriveError):
    status = 422
    code = 'validation_error'


class UpstreamError(DriveError):
    """Object storage (or another backend) failed; nothing was changed."""
    status = 502
    code = 'upstream_error'


class PartialDeleteError(DriveError):
    """The object was removed but its metadata row could not be deleted."""
    status = 500
    code = 'partial_delete'
