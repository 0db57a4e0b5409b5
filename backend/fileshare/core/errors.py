"""
Typed errors raised by the sharing core.

Each error carries the HTTP status the routing layer answers with, so the
exception handler in ``main`` is the only place that maps them to responses.
"""
from typing import Optional


class FileShareError(Exception):
    status_code = 400
    default_detail = "Request could not be completed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AccessDeniedError(FileShareError):
    status_code = 403
    default_detail = "Not enough permissions"


class NotFoundError(FileShareError):
    status_code = 404
    default_detail = "Not found"


class ExpiredError(FileShareError):
    status_code = 410
    default_detail = "Share link expired"


class LimitExceededError(FileShareError):
    status_code = 410
    default_detail = "Download limit reached"


class BadPasswordError(FileShareError):
    status_code = 403
    default_detail = "Invalid share password"


class InvalidArgumentError(FileShareError):
    status_code = 400
    default_detail = "Invalid argument"


class ConflictError(FileShareError):
    status_code = 409
    default_detail = "Conflicting record already exists"
