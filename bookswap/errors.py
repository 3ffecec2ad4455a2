"""Domain errors raised by the catalog and the request lifecycle.

Each error carries a snake_case ``code`` (the ``error`` field of the JSON
body), a human readable ``message``, the HTTP ``status_code`` it maps to and
optional ``details`` merged into the response body.
"""

from __future__ import annotations


class BookSwapError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Internal error"

    def __init__(self, code: str | None = None, message: str | None = None, **details):
        self.code = code or self.code
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.details}


class NotFoundError(BookSwapError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class AuthorizationError(BookSwapError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class InvalidStateError(BookSwapError):
    status_code = 400
    code = "invalid_state"
    message = "Action not allowed in the current state"


class ConflictError(BookSwapError):
    status_code = 409
    code = "conflict"
    message = "Conflict"


class ValidationError(BookSwapError):
    status_code = 400
    code = "invalid_field"
    message = "Invalid request"
