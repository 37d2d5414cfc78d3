"""
HTTP status codes used in response envelopes.
"""

from enum import IntEnum


class StatusCode(IntEnum):
    """Closed set of status codes a handler may put in an envelope."""

    OK = 200
    Created = 201
    NoContent = 204
    MovedPermanently = 301
    Found = 302
    SeeOther = 303
    BadRequest = 400
    Unauthorized = 401
    Forbidden = 403
    NotFound = 404
    MethodNotAllowed = 405
    Conflict = 409
    PayloadTooLarge = 413
    UnprocessableEntity = 422
    InternalServerError = 500
    ServiceUnavailable = 503

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.value < 400

    @property
    def is_error(self) -> bool:
        return self.value >= 400
