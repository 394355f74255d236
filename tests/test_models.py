"""
tests/test_models.py
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

import pytest

from conftest import insert_page
from inkwell.errors import InternalError
from inkwell.models import (
    Hint,
    Page,
    PageType,
    get_db,
    init_db,
    menu_pages,
    page_from_query,
    pages_from_query,
)

JAN = datetime(2021, 1, 10, 12, 0, tzinfo=timezone.utc)


def test_upgrade_adds_columns_and_fixes_types(app, tmp_path):
    path = tmp_path / "old.sqlite3"
    db = sqlite3.connect(path)
    db.execute("CREATE TABLE pages (id INTEGER PRIMARY KEY, name TEXT, title TEXT, type INTEGER DEFAULT 0, text TEXT)")
    db.execute("INSERT INTO pages (name, title, text) VALUES ('old', 'Old', 'x')")
    db.commit()
    db.close()

    app.config["DATABASE"] = str(path)
    lines: list[str] = []
    with app.app_context():
        init_db(echo=lines.append)
        page = page_from_query(PageType.POST, Hint.ALL, "name=?", "", "old")

    assert "Creating table: users" in lines
    assert "Adding column to table 'pages': summary" in lines
    assert any(line.startswith("Applied update: update page type (1 rows") for line in lines)
    assert page.title == "Old"
    assert page.published is None


def test_page_urls():
    assert Page(name="a", type=PageType.POST, published=JAN).url() == "/2021/01/a"
    assert Page(name="a", type=PageType.STATIC).url() == "/a"
    with pytest.raises(InternalError):
        Page(name="a", type=PageType.POST).url()


def test_last_modified_includes_publishing():
    later = JAN.replace(month=3)
    assert Page(published=later, modified=JAN).last_modified() == later
    assert Page(modified=JAN).last_modified() == JAN
    assert Page().last_modified() is None


def test_queries(app):
    insert_page(app, "one", published=JAN, modified=JAN)
    insert_page(app, "two", modified=JAN)
    insert_page(app, "about", type=PageType.STATIC, published=JAN, modified=JAN)
    with app.app_context():
        published = pages_from_query(PageType.POST, Hint.TITLE, "published != 0")
        assert [p.name for p in published] == ["one"]
        assert published[0].text == ""  # not fetched with Hint.TITLE
        assert published.last_modified() == JAN

        everything = pages_from_query(PageType.NONE, Hint.ALL, "", "ORDER BY id")
        assert [p.name for p in everything] == ["one", "two", "about"]

        assert [p.name for p in menu_pages()] == ["about"]

        with pytest.raises(InternalError):
            page_from_query(PageType.POST, Hint.TITLE)


def test_update_and_publish(app):
    with app.app_context():
        page = Page(type=PageType.STATIC)
        page.update("contact", "Contact", "", "Mail")
        assert page.id > 0
        assert page.created == page.modified
        page.publish()
        assert page_from_query(PageType.STATIC, Hint.ALL, "id=?", "", page.id).published
        page.unpublish()
        assert page_from_query(PageType.STATIC, Hint.ALL, "id=?", "", page.id).published is None

        with pytest.raises(InternalError):
            Page().update("x", "x", "", "")


def test_sql_errors_are_internal(app):
    with app.app_context():
        get_db()
        with pytest.raises(InternalError):
            pages_from_query(PageType.NONE, Hint.TITLE, "no_such_column = 1")
