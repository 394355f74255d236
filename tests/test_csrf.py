"""
tests/test_csrf.py
"""
from __future__ import annotations

import pytest
from flask import request

from conftest import ORIGIN, body, login
from inkwell.csrf import CSRF_COOKIE, csrf_token, validate_csrf

TOKEN = "a" * 32


# ───────────────────────── helpers ──────────────────────────────────
def _valid(app, *, headers=None, cookie=None, form=None) -> bool:
    headers = dict(headers or {})
    if cookie is not None:
        headers["Cookie"] = f"{CSRF_COOKIE}={cookie}"
    with app.test_request_context(
        "/admin/edit/1", method="POST", headers=headers, data=form or {}
    ):
        return validate_csrf(request, ORIGIN)


# ───────────────────────── origin check ─────────────────────────────
def test_exact_origin_passes(app):
    assert _valid(app, headers={"Origin": ORIGIN})


@pytest.mark.parametrize(
    "origin",
    [
        "https://localhost",  # scheme
        "http://localhost:8080",  # port
        "http://evil.example",  # host
        "http://localhost/",  # trailing slash is not the same origin
        "null",
    ],
)
def test_other_origins_fail(app, origin):
    assert not _valid(app, headers={"Origin": origin})


# ───────────────────────── double submit ────────────────────────────
def test_matching_token_passes(app):
    assert _valid(app, cookie=TOKEN, form={"csrftoken": TOKEN})


def test_mismatching_token_fails(app):
    assert not _valid(app, cookie=TOKEN, form={"csrftoken": "b" * 32})


def test_missing_cookie_fails(app):
    assert not _valid(app, form={"csrftoken": TOKEN})


def test_short_token_fails_even_when_equal(app):
    short = "a" * 31
    assert not _valid(app, cookie=short, form={"csrftoken": short})


def test_empty_token_fails(app):
    assert not _valid(app, cookie="", form={"csrftoken": ""})


# ───────────────────────── issuing ──────────────────────────────────
def test_token_reuses_long_cookie(app):
    with app.test_request_context("/", headers={"Cookie": f"{CSRF_COOKIE}={TOKEN}"}):
        assert csrf_token() == TOKEN


def test_token_replaces_short_cookie(app):
    with app.test_request_context("/", headers={"Cookie": f"{CSRF_COOKIE}=short"}):
        token = csrf_token()
        assert len(token) >= 32
        assert token == csrf_token()  # stable within one request


def test_login_form_round_trip(client, user):
    """The form token plus the cookie set with it make a valid POST."""
    resp = client.get("/admin/")
    assert resp.status_code == 200
    cookie = client.get_cookie(CSRF_COOKIE)
    assert cookie is not None
    assert f'value="{cookie.value}"' in body(resp)

    resp = client.post(
        "/admin/",
        data={
            "csrftoken": cookie.value,
            "email": "ada@example.com",
            "password": "correct horse battery",
            "login": "1",
        },
    )
    assert resp.status_code == 303


def test_post_without_token_is_403(client, user):
    resp = client.post("/admin/", data={"login": "1"})
    assert resp.status_code == 403
    assert "403" in body(resp)


def test_origin_alone_is_enough(client, user):
    assert login(client).status_code == 303
