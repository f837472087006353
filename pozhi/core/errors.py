"""
Application error taxonomy.

Every error carries the HTTP status it maps to; ``pozhi.main`` renders them as
``{"success": false, "error": <message>}``.
"""


class ApiError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(ApiError):
    status_code = 400
    default_message = "Invalid request"


class AlreadyPaid(ApiError):
    status_code = 400
    default_message = "Order already paid"


class SignatureInvalid(ApiError):
    status_code = 400
    default_message = "Invalid webhook signature"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ApiError):
    status_code = 403
    default_message = "The user doesn't have enough privileges"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class RateLimited(ApiError):
    status_code = 429
    default_message = "Too many requests"


class InternalError(ApiError):
    status_code = 500
