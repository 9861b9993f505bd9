"""
Error types surfaced to users of the marketplace.

Each error maps to one HTTP status; handlers in main.py turn them into
``{"detail": ...}`` responses so the client can show the message and retry.
"""


class MarketplaceError(Exception):
    status_code = 400
    code = "Error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(MarketplaceError):
    status_code = 404
    code = "NotFound"


class PermissionDeniedError(MarketplaceError):
    status_code = 403
    code = "PermissionDenied"


class AuthenticationError(MarketplaceError):
    status_code = 401
    code = "Unauthenticated"


class ValidationFailedError(MarketplaceError):
    status_code = 422
    code = "ValidationFailed"


class UploadFailedError(MarketplaceError):
    status_code = 400
    code = "UploadFailed"
