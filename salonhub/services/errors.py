"""Failure signals of the two-factor subsystem.

Each class carries the HTTP status and a client-safe detail message; the
API layer maps them one to one.
"""


class TwoFactorError(Exception):
    status_code = 400
    detail = "Two-factor authentication error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class IdentityNotFoundError(TwoFactorError):
    status_code = 404
    detail = "User not found"


class NotConfiguredError(TwoFactorError):
    status_code = 400
    detail = "Two-factor authentication is not configured. Call /2fa/setup first"


class InvalidTokenFormatError(TwoFactorError):
    status_code = 422
    detail = "Invalid token format. Token must be 6 digits"


class InvalidTokenError(TwoFactorError):
    status_code = 401
    detail = "Invalid 2FA token"


class UnauthorizedError(TwoFactorError):
    status_code = 401
    detail = "Invalid password"
