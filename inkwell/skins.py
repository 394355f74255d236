"""
Skins: the templates a blog is rendered with.

A skin directory holds ``skin.json`` and its template/asset files. Skins
inherit from a parent skin; a file missing in a skin is looked up in the
parent. ``skin.json`` maps logical page names to the template files that
render them, the first one being the template that is rendered::

    {"parent": "base",
     "pages": {"blogindex": {"templates": ["blogindex.html", "base.html"]}},
     "extraCSS": [], "extraJS": [], "icons": []}
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from xml.sax.saxutils import escape as xml_escape

import jinja2
import markdown
from markupsafe import Markup

from inkwell.errors import InternalError, TemplateError
from inkwell.timeutil import last_time, truncate

SKIN_FILE = "skin.json"

MONTHS = [
    "januari",
    "februari",
    "maart",
    "april",
    "mei",
    "juni",
    "juli",
    "augustus",
    "september",
    "oktober",
    "november",
    "december",
]

MD_EXTENSIONS = ["fenced_code", "tables", "footnotes"]


###############################################################################
# Template filters
###############################################################################
def format_date(dt: datetime) -> str:
    return f"{dt.day} {MONTHS[dt.month - 1]} {dt.year}"


def format_timestamp(dt: datetime) -> str:
    return dt.isoformat()


def format_markdown(text: str | None) -> Markup:
    return Markup(markdown.markdown(text or "", extensions=MD_EXTENSIONS))


def format_xml(text) -> Markup:
    return Markup(xml_escape(str(text)))


def is_time(value) -> bool:
    return isinstance(value, datetime)


def init_app(app) -> None:
    """Register filters/tests on the app's Jinja environment."""
    app.jinja_env.filters.update(
        date=format_date,
        timestamp=format_timestamp,
        markdown=format_markdown,
        xmlescape=format_xml,
    )
    app.jinja_env.tests["time"] = is_time


###############################################################################
# Skin set
###############################################################################
@dataclass
class SkinPage:
    skin: str
    files: list[str]


@dataclass
class SkinIcon:
    asset: str
    sizes: str = ""


@dataclass
class SkinInfo:
    skins: list[str] = field(default_factory=list)  # [skin, parent, ...]
    pages: dict[str, SkinPage] = field(default_factory=dict)
    extra_css: list[str] = field(default_factory=list)
    extra_js: list[str] = field(default_factory=list)
    icons: list[SkinIcon] = field(default_factory=list)


class SkinSet:
    """
    The active skin with its parents. ``skin.json`` files are read once;
    templates are parsed by Jinja (which caches them and reloads files that
    changed on disk).
    """

    def __init__(self, skins_path: str | Path, skin: str, jinja_env: jinja2.Environment):
        self.skins_path = Path(skins_path)
        self.skin = skin
        self._base_env = jinja_env
        self._env: jinja2.Environment | None = None
        self._info: SkinInfo | None = None
        self._lock = threading.Lock()

    # ──────────────────────────── loading ───────────────────────────
    def _read_skin(self, name: str) -> dict:
        path = self.skins_path / name / SKIN_FILE
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise InternalError("failed to open skin configuration file", exc) from exc
        except ValueError as exc:
            raise InternalError("failed to parse skin configuration file", exc) from exc
        if not isinstance(data, dict):
            raise InternalError(f"skin configuration of {name!r} is not an object")
        return data

    def _load(self) -> SkinInfo:
        info = SkinInfo()
        skin = self.skin
        while skin:
            if skin in info.skins:
                raise InternalError(f"skin {skin!r} inherits from itself")
            info.skins.append(skin)
            data = self._read_skin(skin)

            for name, page in (data.get("pages") or {}).items():
                if name not in info.pages:
                    files = list(page.get("templates") or [])
                    if not files:
                        raise InternalError(f"skin page {name!r} has no templates")
                    info.pages[name] = SkinPage(skin=skin, files=files)

            info.extra_css.extend(data.get("extraCSS") or [])
            info.extra_js.extend(data.get("extraJS") or [])
            if data.get("icons") and not info.icons:
                info.icons = [SkinIcon(**icon) for icon in data["icons"]]

            skin = data.get("parent") or ""
        return info

    @property
    def info(self) -> SkinInfo:
        if self._info is None:
            with self._lock:
                if self._info is None:
                    self._info = self._load()
        return self._info

    @property
    def env(self) -> jinja2.Environment:
        if self._env is None:
            paths = [str(self.skins_path / s) for s in self.info.skins]
            with self._lock:
                if self._env is None:
                    self._env = self._base_env.overlay(
                        loader=jinja2.FileSystemLoader(paths), auto_reload=True
                    )
        return self._env

    # ──────────────────────────── lookups ───────────────────────────
    def page(self, name: str) -> SkinPage:
        page = self.info.pages.get(name)
        if page is None:
            raise TemplateError(f"could not find template {name}")
        return page

    def find_file(self, filename: str, start: str | None = None) -> Path | None:
        """First existing *filename* in the skin chain (from *start* on)."""
        skins = self.info.skins
        if start is not None:
            skins = skins[skins.index(start) :]
        for skin in skins:
            path = self.skins_path / skin / filename
            if path.exists():
                return path
        return None

    def template(self, name: str) -> jinja2.Template:
        page = self.page(name)
        try:
            return self.env.get_template(page.files[0])
        except jinja2.TemplateError as exc:
            raise TemplateError("failed to parse template", exc) from exc

    def modified(self, name: str) -> datetime | None:
        """Newest mtime among the files that make up page *name*."""
        page = self.page(name)
        latest = None
        for filename in page.files:
            path = self.find_file(filename)
            if path is None:
                raise TemplateError(f"failed to stat template file {filename}")
            try:
                mtime = path.stat().st_mtime
            except OSError as exc:
                raise TemplateError("failed to stat template file", exc) from exc
            latest = last_time(latest, datetime.fromtimestamp(mtime, timezone.utc))
        return truncate(latest)

    def render(self, name: str, data: dict) -> str:
        try:
            return self.template(name).render(**data)
        except jinja2.TemplateError as exc:
            raise TemplateError("failed to get view output", exc) from exc
