"""
tests/conftest.py
"""
from __future__ import annotations

import gzip
import os
import shutil
from datetime import datetime
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

from inkwell.blog import create_app
from inkwell.config import PACKAGE_ROOT
from inkwell.models import PageType, add_user, get_db, init_db
from inkwell.passwords import hash_password
from inkwell.timeutil import export_time

ORIGIN = "http://localhost"
EMAIL = "ada@example.com"
PASSWORD = "correct horse battery"


# ───────────────────────── helpers ──────────────────────────────────
def body(resp) -> str:
    """Every rendered page is gzipped."""
    return gzip.decompress(resp.data).decode("utf-8")


def insert_page(
    app: Flask,
    name: str,
    *,
    title: str = "",
    type: PageType = PageType.POST,
    text: str = "",
    published: datetime | None = None,
    modified: datetime | None = None,
) -> int:
    """Write a row directly, with exactly the timestamps given."""
    with app.app_context():
        db = get_db()
        cur = db.execute(
            "INSERT INTO pages (name, title, type, text, created, published, modified) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                name,
                title or name.title(),
                int(type),
                text,
                export_time(modified),
                export_time(published),
                export_time(modified),
            ),
        )
        db.commit()
        return cur.lastrowid


def login(client: FlaskClient, path: str = "/admin/", password: str = PASSWORD):
    return client.post(
        path,
        data={"email": EMAIL, "password": password, "login": "1"},
        headers={"Origin": ORIGIN},
    )


# ───────────────────────── fixtures ─────────────────────────────────
@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """A developer's INKWELL_* variables must not leak into the tests."""
    for name in list(os.environ):
        if name.startswith("INKWELL_"):
            monkeypatch.delenv(name)


@pytest.fixture
def skins_path(tmp_path: Path) -> Path:
    """A private copy of the bundled skins, so tests may touch mtimes."""
    dest = tmp_path / "skins"
    shutil.copytree(PACKAGE_ROOT / "skins", dest)
    return dest


@pytest.fixture
def app(tmp_path: Path, skins_path: Path) -> Flask:
    app = create_app(
        {
            "TESTING": True,
            "ORIGIN": ORIGIN,
            "SECURE": False,
            "SITE_TITLE": "Testblog",
            "DATABASE": str(tmp_path / "data" / "blog.sqlite3"),
            "WEB_ROOT": str(tmp_path / "www"),
            "SKINS_PATH": str(skins_path),
            "SESSION_KEY": "test-session-key",
        },
        root=tmp_path,
    )
    with app.app_context():
        init_db()
    return app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    # No app context around the client: every request must get its own `g`.
    return app.test_client()


@pytest.fixture
def user(app: Flask) -> str:
    with app.app_context():
        add_user(EMAIL, "Ada Lovelace", hash_password(PASSWORD))
    return EMAIL


@pytest.fixture
def logged_in(client: FlaskClient, user: str) -> FlaskClient:
    resp = login(client)
    assert resp.status_code == 303
    return client
