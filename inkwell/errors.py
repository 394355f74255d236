"""
Error types shared by every part of the blog.

Three kinds of failure exist:

• ClientError   – the browser asked for something it can't have (404, 403).
                  Rendered as an ordinary themed page.
• AuthError     – login / session problems. Never raised out of a view,
                  ``authenticate()`` turns them into a login form.
• InternalError – the store, a template, the config or a stored hash is
                  broken. Fatal for the current request (500 page or a
                  CLI error message), never retried.
"""

from __future__ import annotations

from enum import Enum


class InkwellError(Exception):
    """Base for every error raised by inkwell itself."""


###############################################################################
# Client-correctable
###############################################################################
class ClientError(InkwellError):
    status = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail or str(self.status))
        self.detail = detail


class NotFound(ClientError):
    status = 404


class Forbidden(ClientError):
    status = 403


###############################################################################
# Authentication
###############################################################################
class LoginError(Enum):
    """Why ``authenticate()`` didn't produce a user."""

    INVALID_USER = "user"
    INVALID_TOKEN = "token"
    EXPIRED_TOKEN = "expired"
    # The response (303 + cookie) is complete, stop handling the request.
    REDIRECT = "redirect"


class AuthError(InkwellError):
    reason = LoginError.INVALID_TOKEN

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.reason.value)


class InvalidToken(AuthError):
    reason = LoginError.INVALID_TOKEN


class ExpiredToken(AuthError):
    reason = LoginError.EXPIRED_TOKEN


###############################################################################
# Internal / data integrity
###############################################################################
class InternalError(InkwellError):
    """Something on our side is broken; *reason* is safe to show."""

    def __init__(self, reason: str, cause: BaseException | None = None):
        super().__init__(f"{reason}: {cause}" if cause else reason)
        self.reason = reason
        self.cause = cause


class ConfigurationError(InternalError):
    pass


class MalformedHash(InternalError):
    pass


class TemplateError(InternalError):
    pass
