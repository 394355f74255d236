"""
Pages and users in sqlite.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path

from flask import current_app, g

from inkwell.errors import InternalError
from inkwell.timeutil import export_time, import_time, last_time, utc_now


###############################################################################
# Database helpers
###############################################################################
def get_db() -> sqlite3.Connection:
    if "db" not in g:
        path = Path(current_app.config["DATABASE"])
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            g.db = sqlite3.connect(path)
        except (OSError, sqlite3.Error) as exc:
            raise InternalError("could not open database", exc) from exc
        g.db.row_factory = sqlite3.Row
    return g.db


def close_db(error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def _query(sql: str, args=(), *, what: str) -> list[sqlite3.Row]:
    try:
        return get_db().execute(sql, args).fetchall()
    except sqlite3.Error as exc:
        raise InternalError(f"failed to {what}", exc) from exc


def _execute(sql: str, args=(), *, what: str) -> sqlite3.Cursor:
    db = get_db()
    try:
        cur = db.execute(sql, args)
        db.commit()
    except sqlite3.Error as exc:
        raise InternalError(f"could not {what}", exc) from exc
    return cur


# ──────────────────────────── schema ────────────────────────────────
TABLES = {
    "pages": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL"),
        ("text", "TEXT DEFAULT ''"),
        ("name", "TEXT UNIQUE DEFAULT ''"),
        ("title", "TEXT DEFAULT ''"),
        ("type", "INTEGER DEFAULT 0"),
        ("summary", "TEXT DEFAULT ''"),
        ("created", "INTEGER DEFAULT 0"),
        ("published", "INTEGER DEFAULT 0"),
        ("modified", "INTEGER DEFAULT 0"),
    ],
    "users": [
        ("id", "INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL"),
        ("email", "TEXT UNIQUE"),
        ("passwordHash", "TEXT"),
        ("fullname", "VARCHAR DEFAULT ''"),
    ],
}

# Must be harmless when run again.
FIXUPS = [
    ("update page type", "UPDATE pages SET type=1 WHERE type=0"),
]


def init_db(echo=None) -> None:
    """
    Create missing tables, add missing columns, then apply the fixups.
    *echo* gets one line per change (the CLI passes ``click.echo``).
    """
    echo = echo or (lambda msg: None)
    db = get_db()
    try:
        existing = {
            row["name"]
            for row in db.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        for name, columns in TABLES.items():
            if name not in existing:
                cols = ", ".join(f"{col} {typ}" for col, typ in columns)
                echo(f"Creating table: {name}")
                db.execute(f"CREATE TABLE {name} ({cols})")
                continue

            present = {row["name"] for row in db.execute(f"PRAGMA table_info({name})")}
            for col, typ in columns:
                if col in present:
                    continue
                echo(f"Adding column to table '{name}': {col}")
                db.execute(f"ALTER TABLE {name} ADD COLUMN {col} {typ}")

        for action, sql in FIXUPS:
            cur = db.execute(sql)
            if cur.rowcount > 0:
                echo(f"Applied update: {action} ({cur.rowcount} rows affected).")
        db.commit()
    except sqlite3.Error as exc:
        raise InternalError("could not install database schema", exc) from exc


###############################################################################
# Pages
###############################################################################
class PageType(IntEnum):
    NONE = 0
    POST = 1
    STATIC = 2


PAGE_TYPE_NAMES = {PageType.POST: "post", PageType.STATIC: "page"}


class Hint(IntEnum):
    TITLE = 1  # metadata only
    ALL = 2  # + created and text


@dataclass
class Page:
    id: int = 0
    name: str = ""
    title: str = ""
    type: PageType = PageType.NONE
    summary: str = ""
    created: datetime | None = None
    published: datetime | None = None
    modified: datetime | None = None
    text: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Page":
        keys = row.keys()
        return cls(
            id=row["id"],
            name=row["name"] or "",
            title=row["title"] or "",
            type=PageType(row["type"] or 0),
            summary=row["summary"] or "",
            created=import_time(row["created"]) if "created" in keys else None,
            published=import_time(row["published"]),
            modified=import_time(row["modified"]),
            text=(row["text"] or "") if "text" in keys else "",
        )

    @property
    def typename(self) -> str:
        return PAGE_TYPE_NAMES.get(self.type, "")

    def url(self) -> str:
        """Path below the URL prefix."""
        if self.type == PageType.POST:
            if self.published is None:
                raise InternalError(f"post {self.name!r} has no URL before publishing")
            return self.published.strftime("/%Y/%m/") + self.name
        if self.type == PageType.STATIC:
            return "/" + self.name
        raise InternalError("unknown page type while generating url")

    def last_modified(self) -> datetime | None:
        # Publishing is a change too, so take whichever happened last.
        return last_time(self.published, self.modified)

    def update(self, name: str, title: str, summary: str, text: str) -> None:
        self.name, self.title, self.summary, self.text = name, title, summary, text
        self.modified = utc_now().replace(microsecond=0)

        if self.id:
            _execute(
                "UPDATE pages SET name=?, title=?, summary=?, text=?, modified=? "
                "WHERE id=?",
                (name, title, summary, text, export_time(self.modified), self.id),
                what="update page",
            )
            return

        if self.type == PageType.NONE:
            raise InternalError("type is not defined while inserting page")
        self.created = self.modified
        cur = _execute(
            "INSERT INTO pages (name, title, type, summary, text, created, modified) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                name,
                title,
                int(self.type),
                summary,
                text,
                export_time(self.created),
                export_time(self.modified),
            ),
            what="insert page",
        )
        self.id = cur.lastrowid or 0
        if self.id <= 0:
            raise InternalError("page ID <= 0 after insert")

    def publish(self) -> None:
        """Make the page visible to the world, as of now."""
        self.published = utc_now().replace(microsecond=0)
        _execute(
            "UPDATE pages SET published=? WHERE id=?",
            (export_time(self.published), self.id),
            what="publish page",
        )

    def unpublish(self) -> None:
        self.published = None
        _execute(
            "UPDATE pages SET published=0 WHERE id=?", (self.id,), what="unpublish page"
        )


class Pages(list):
    def last_modified(self) -> datetime | None:
        return last_time(*(p.last_modified() for p in self))


TITLE_COLUMNS = "id, name, title, type, summary, published, modified"
ALL_COLUMNS = "id, name, title, type, summary, created, published, modified, text"


def pages_from_query(
    page_type: PageType,
    hint: Hint,
    where: str = "",
    other: str = "",
    *args,
) -> Pages:
    """
    SELECT pages of *page_type* (``PageType.NONE`` = any type) matching the
    SQL predicate *where*; *other* is appended verbatim (ORDER BY / LIMIT).
    """
    cols = ALL_COLUMNS if hint == Hint.ALL else TITLE_COLUMNS
    sql = f"SELECT {cols} FROM pages "
    params: list = []
    if page_type == PageType.NONE:
        if where:
            sql += f"WHERE {where} "
    else:
        sql += "WHERE type=? "
        params.append(int(page_type))
        if where:
            sql += f"AND ({where}) "
    sql += other
    params.extend(args)

    rows = _query(sql, params, what="fetch list of pages")
    return Pages(Page.from_row(r) for r in rows)


def page_from_query(
    page_type: PageType, hint: Hint, where: str = "", other: str = "", *args
) -> Page | None:
    pages = pages_from_query(page_type, hint, where, other, *args)
    if len(pages) > 1:
        raise InternalError("tried to fetch one page, but got more than one")
    return pages[0] if pages else None


def import_page(
    name: str,
    title: str,
    text: str,
    created: datetime | None,
    published: datetime | None,
    modified: datetime | None,
) -> bool:
    """Insert or overwrite the page called *name*. True if it was new."""
    times = (export_time(created), export_time(published), export_time(modified))
    row = _query("SELECT id FROM pages WHERE name=?", (name,), what="look up page")
    if row:
        _execute(
            "UPDATE pages SET text=?, title=?, created=?, published=?, modified=? "
            "WHERE id=?",
            (text, title, *times, row[0]["id"]),
            what="update page",
        )
        return False
    _execute(
        "INSERT INTO pages (text, name, title, type, created, published, modified) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (text, name, title, int(PageType.POST), *times),
        what="insert page into DB",
    )
    return True


def menu_pages() -> Pages:
    """Published static pages, as shown in the navigation menu."""
    return pages_from_query(
        PageType.STATIC, Hint.TITLE, "published != 0", "ORDER BY title DESC"
    )


###############################################################################
# Users
###############################################################################
@dataclass(frozen=True)
class User:
    name: str
    email: str


def credential_by_email(email: str) -> tuple[str, str] | None:
    rows = _query(
        "SELECT email, passwordHash FROM users WHERE email=?",
        (email,),
        what="fetch information about user",
    )
    if not rows:
        return None
    return rows[0]["email"], rows[0]["passwordHash"] or ""


def user_by_email(email: str) -> User | None:
    rows = _query(
        "SELECT fullname, email FROM users WHERE email=?",
        (email,),
        what="fetch user from database",
    )
    if not rows:
        return None
    return User(name=rows[0]["fullname"] or "", email=rows[0]["email"])


def add_user(email: str, fullname: str, password_hash: str) -> None:
    _execute(
        "INSERT INTO users (email, fullname, passwordHash) VALUES (?, ?, ?)",
        (email, fullname, password_hash),
        what="add user",
    )
