"""
tests/test_skins.py
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone

import pytest
from flask import Flask

from inkwell import skins
from inkwell.errors import InternalError, TemplateError
from inkwell.skins import SkinSet, format_date


@pytest.fixture
def env():
    app = Flask(__name__)
    skins.init_app(app)
    return app.jinja_env


def _skin(root, name, data, **files):
    d = root / name
    d.mkdir()
    (d / "skin.json").write_text(json.dumps(data))
    for filename, text in files.items():
        (d / filename.replace("_", ".")).write_text(text)


def test_chain_and_lookup(tmp_path, env):
    _skin(tmp_path, "base", {"pages": {"x": {"templates": ["x.html", "b.html"]}}},
          x_html="{% extends 'b.html' %}{% block c %}base x{% endblock %}",
          b_html="[{% block c %}{% endblock %}]")
    _skin(tmp_path, "child", {"parent": "base", "extraCSS": ["c.css"]},
          x_html="{% extends 'b.html' %}{% block c %}child x {{ n }}{% endblock %}")

    s = SkinSet(tmp_path, "child", env)
    assert s.info.skins == ["child", "base"]
    assert s.info.extra_css == ["c.css"]
    assert s.render("x", {"n": 1}) == "[child x 1]"
    assert s.find_file("b.html") == tmp_path / "base" / "b.html"


def test_modified_is_newest_file_in_chain(tmp_path, env):
    _skin(tmp_path, "base", {"pages": {"x": {"templates": ["x.html", "b.html"]}}},
          x_html="x", b_html="b")
    old = datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp()
    new = datetime(2021, 1, 1, 0, 0, 1, tzinfo=timezone.utc).timestamp()
    os.utime(tmp_path / "base" / "x.html", (old, old))
    os.utime(tmp_path / "base" / "b.html", (new, new + 0.5))

    s = SkinSet(tmp_path, "base", env)
    assert s.modified("x") == datetime(2021, 1, 1, 0, 0, 1, tzinfo=timezone.utc)


def test_unknown_page(tmp_path, env):
    _skin(tmp_path, "base", {"pages": {}})
    with pytest.raises(TemplateError):
        SkinSet(tmp_path, "base", env).render("nope", {})


def test_broken_template(tmp_path, env):
    _skin(tmp_path, "base", {"pages": {"x": {"templates": ["x.html"]}}},
          x_html="{% if %}")
    with pytest.raises(TemplateError):
        SkinSet(tmp_path, "base", env).render("x", {})


def test_inheritance_cycle(tmp_path, env):
    _skin(tmp_path, "a", {"parent": "b"})
    _skin(tmp_path, "b", {"parent": "a"})
    with pytest.raises(InternalError):
        SkinSet(tmp_path, "a", env).info


def test_missing_skin(tmp_path, env):
    with pytest.raises(InternalError):
        SkinSet(tmp_path, "ghost", env).info


def test_filters(env):
    tpl = env.from_string("{{ d|date }} {{ t|markdown }} {{ x|xmlescape }} {{ d is time }}")
    out = tpl.render(d=datetime(2016, 1, 3), t="*a*", x="<&>")
    assert out == "3 januari 2016 <p><em>a</em></p> &lt;&amp;&gt; True"
    assert format_date(datetime(2020, 12, 25)) == "25 december 2020"
