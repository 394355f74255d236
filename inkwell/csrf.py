"""
CSRF protection for state-changing requests.

A request passes when its ``Origin`` header is our canonical origin, or
when it double-submits the same token in the ``csrftoken`` cookie and the
``csrftoken`` form field. The origin check alone is too coarse; the
double-submit token is the real defense and both stay.
"""

from __future__ import annotations

import hmac
import secrets

from flask import current_app, g, request
from markupsafe import Markup

CSRF_COOKIE = "csrftoken"
CSRF_FIELD = "csrftoken"
MIN_TOKEN_LEN = 32
SAFE_METHODS = {"GET", "HEAD"}


def validate_csrf(req, origin: str) -> bool:
    if req.headers.get("Origin") == origin:
        return True

    cookie = req.cookies.get(CSRF_COOKIE)
    if cookie is None:
        return False
    submitted = req.form.get(CSRF_FIELD, "")
    if len(submitted.encode()) < MIN_TOKEN_LEN:
        return False
    return hmac.compare_digest(submitted.encode(), cookie.encode())


# ──────────────────────────── issuing ───────────────────────────────
def csrf_token() -> str:
    """
    The token forms must resubmit. Reuses the browser's cookie when it is
    long enough, otherwise makes a new one that ``attach_csrf_cookie``
    sends along with the response.
    """
    token = g.get("csrf_token")
    if token:
        return token
    token = request.cookies.get(CSRF_COOKIE, "")
    if len(token.encode()) < MIN_TOKEN_LEN:
        token = secrets.token_hex(32)
        g.csrf_new_token = True
    g.csrf_token = token
    return token


def csrf_field() -> Markup:
    return Markup('<input type="hidden" name="%s" value="%s">') % (CSRF_FIELD, csrf_token())


def attach_csrf_cookie(resp):
    if not g.get("csrf_new_token"):
        return resp
    cfg = current_app.config
    resp.set_cookie(
        CSRF_COOKIE,
        g.csrf_token,
        path=cfg["URL_PREFIX"] or "/",
        secure=cfg["SECURE"],
        httponly=True,
        samesite="Strict",
    )
    return resp
