"""
tests/test_assets.py
"""
from __future__ import annotations

import gzip
import json
from pathlib import Path

import pytest

from conftest import ORIGIN
from inkwell import assets
from inkwell.blog import create_app


def test_asset_is_built_once_and_served_gzipped(app, client, tmp_path):
    resp = client.get("/assets/style.css")
    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "text/css; charset=utf-8"
    assert resp.headers["Content-Encoding"] == "gzip"
    assert resp.headers["Cache-Control"] == assets.STATIC_CACHE
    assert ":root" in gzip.decompress(resp.data).decode()

    outdir = tmp_path / "www" / "assets"
    assert (outdir / "style.css").read_text().startswith(":root")
    assert gzip.decompress((outdir / "style.css.gz").read_bytes()).startswith(b":root")

    again = client.get(
        "/assets/style.css", headers={"If-Modified-Since": resp.headers["Last-Modified"]}
    )
    assert again.status_code == 304
    assert again.data == b""


def test_javascript(client):
    resp = client.get("/assets/common.js")
    assert resp.headers["Content-Type"] == "text/javascript; charset=utf-8"


@pytest.mark.parametrize("name", ["missing.css", "skin.json", "base.html", "logo.png"])
def test_unknown_assets_are_404(client, name):
    assert client.get(f"/assets/{name}").status_code == 404


# ───────────────────────── inherited skins ──────────────────────────
@pytest.fixture
def child_app(tmp_path: Path, skins_path: Path):
    child = skins_path / "child"
    child.mkdir()
    (child / "skin.json").write_text(
        json.dumps({"parent": "base", "extraCSS": ["theme.css"]})
    )
    (child / "common.js").write_text("// child\n")
    (child / "theme.scss").write_text("$c: red; body { color: $c; }\n")
    return create_app(
        {
            "ORIGIN": ORIGIN,
            "SECURE": False,
            "SKIN": "child",
            "SKINS_PATH": str(skins_path),
            "DATABASE": str(tmp_path / "child.sqlite3"),
            "WEB_ROOT": str(tmp_path / "www"),
            "SESSION_KEY": "k" * 32,
        },
        root=tmp_path,
    )


def test_child_skin_overrides_parent(child_app):
    client = child_app.test_client()
    resp = client.get("/assets/common.js")
    assert gzip.decompress(resp.data) == b"// child\n"
    # not overridden: falls through to the parent
    assert b":root" in gzip.decompress(client.get("/assets/style.css").data)


def test_scss_is_compiled_with_skin_chain_includes(child_app, skins_path, monkeypatch):
    calls = []

    def fake_compile(source, include):
        calls.append((source, include))
        return b"body{color:red}"

    monkeypatch.setattr(assets, "_compile_scss", fake_compile)
    resp = child_app.test_client().get("/assets/theme.css")
    assert resp.status_code == 200
    assert gzip.decompress(resp.data) == b"body{color:red}"
    assert calls == [
        (skins_path / "child" / "theme.scss", [skins_path / "child", skins_path / "base"])
    ]
