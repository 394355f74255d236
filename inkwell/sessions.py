"""
Login sessions.

A session token is an itsdangerous-signed ``{email, created, expires}``
payload stored in a cookie. Nothing is kept on the server: a token is
valid until it expires.
"""

from __future__ import annotations

import functools
import secrets
import time
from dataclasses import dataclass

from flask import Response, current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from inkwell.config import load_session_key
from inkwell.errors import (
    AuthError,
    ExpiredToken,
    InternalError,
    InvalidToken,
    LoginError,
)
from inkwell.models import User, credential_by_email, user_by_email
from inkwell.passwords import hash_password, verify_password

SESSION_COOKIE = "session"
TOKEN_SALT = "inkwell-session"


@functools.lru_cache(maxsize=None)
def _dummy_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


@dataclass(frozen=True)
class SessionToken:
    email: str
    created: int
    expires: int


class SessionStore:
    """Issues and verifies session tokens with one signing key."""

    def __init__(self, key: str | bytes, *, max_age: int, path: str = "/"):
        if not key:
            raise InternalError("session key is empty")
        self.max_age = max_age
        self.path = path
        self._serializer = URLSafeTimedSerializer(key, salt=TOKEN_SALT)

    def new_token(self, email: str) -> tuple[SessionToken, str]:
        now = int(time.time())
        token = SessionToken(email=email, created=now, expires=now + self.max_age)
        value = self._serializer.dumps(
            {"email": token.email, "created": token.created, "expires": token.expires}
        )
        return token, value

    def verify(self, value: str) -> SessionToken:
        """
        • ``ExpiredToken`` – the signature is good but the token is too old.
        • ``InvalidToken`` – anything else (forged, truncated, garbage).
        """
        try:
            data = self._serializer.loads(value, max_age=self.max_age)
        except SignatureExpired:
            raise ExpiredToken() from None
        except BadSignature:
            raise InvalidToken() from None

        try:
            token = SessionToken(
                email=str(data["email"]),
                created=int(data["created"]),
                expires=int(data["expires"]),
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidToken() from None

        if token.expires <= int(time.time()):
            raise ExpiredToken()
        return token


def get_store() -> SessionStore:
    """The app's token store, built on first use and reused afterwards."""
    store = current_app.extensions.get("inkwell.sessions")
    if store is None:
        cfg = current_app.config
        store = SessionStore(
            load_session_key(cfg),
            max_age=cfg["TOKEN_MAX_AGE"],
            path=cfg["URL_PREFIX"] + "/admin/",
        )
        current_app.extensions["inkwell.sessions"] = store
    return store


###############################################################################
# Authentication
###############################################################################
@dataclass
class AuthResult:
    """
    Exactly one of:
    • ``user``            – logged in
    • ``error``           – why not (``REDIRECT``: ``response`` is complete)
    • neither             – anonymous visitor
    """

    user: User | None = None
    error: LoginError | None = None
    response: Response | None = None


def _login(request) -> AuthResult:
    email = request.form.get("email", "")
    row = credential_by_email(email)
    password = request.form.get("password", "")
    if row is None:
        # same hashing work as for a known address
        verify_password(password, _dummy_hash())
    if row is None or not verify_password(password, row[1]):
        current_app.logger.warning("failed login for %r", email)
        return AuthResult(error=LoginError.INVALID_USER)

    store = get_store()
    _, value = store.new_token(row[0])

    resp = Response(b"", status=303)
    resp.set_cookie(
        SESSION_COOKIE,
        value,
        max_age=store.max_age,
        path=store.path,
        secure=current_app.config["SECURE"],
        httponly=True,
        samesite="Lax",
    )
    resp.headers["Location"] = request.url
    resp.headers["Content-Length"] = "0"
    current_app.logger.info("user %s logged in", row[0])
    return AuthResult(error=LoginError.REDIRECT, response=resp)


def authenticate(request) -> AuthResult:
    """Log in (POST with ``login`` field), or check the session cookie."""
    if request.method == "POST" and request.form.get("login"):
        return _login(request)

    if SESSION_COOKIE not in request.cookies:
        return AuthResult()

    try:
        token = get_store().verify(request.cookies[SESSION_COOKIE])
    except AuthError as exc:
        current_app.logger.warning("rejected session token: %s", exc.reason.value)
        return AuthResult(error=exc.reason)

    user = user_by_email(token.email)
    if user is None:
        raise InternalError(f"no user for verified session token ({token.email})")
    return AuthResult(user=user)
