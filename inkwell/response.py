"""
Rendering views, with conditional GET.

A handler fills a ``View`` and calls ``output(request, last_modified)``.
*last_modified* is the freshness of the handler's own data, or ``None``
when freshness isn't tracked for the response. When it is tracked, the
freshness of the templates and of the navigation menu is merged in, and a
request whose If-Modified-Since equals the result gets a 304.
"""

from __future__ import annotations

import gzip
from datetime import datetime

from flask import Response, current_app

from inkwell.models import menu_pages
from inkwell.timeutil import equal_last_modified, http_last_modified, last_time, truncate

HTML = "text/html; charset=utf-8"
PUBLIC_CACHE = "max-age=60,s-maxage=5"
PRIVATE_CACHE = "private"


def get_skins():
    return current_app.extensions["inkwell.skins"]


def base_data() -> dict:
    """Variables every template gets."""
    cfg = current_app.config
    info = get_skins().info
    prefix = cfg["URL_PREFIX"]
    return {
        "base": prefix,
        "siteTitle": cfg["SITE_TITLE"],
        "logo": cfg["LOGO"],
        "assets": prefix + "/assets",
        "admin": cfg["ORIGIN"] + prefix + "/admin",
        "extraCSS": info.extra_css,
        "extraJS": info.extra_js,
        "icons": info.icons,
    }


class View:
    def __init__(self, tpl: str = "", *, error_code: int = 0):
        self.data = base_data()
        self.tpl = tpl
        self.error_code = error_code
        self.cookie_authenticated = False
        self.content_type = HTML

    def freshness(self, last_modified: datetime | None, menu) -> datetime | None:
        """Merge templates + menu into the handler's freshness."""
        if last_modified is None:
            return None
        return truncate(
            last_time(last_modified, get_skins().modified(self.tpl), menu.last_modified())
        )

    def output(self, request, last_modified: datetime | None = None) -> Response:
        menu = menu_pages()
        self.data["menu"] = menu
        last_modified = self.freshness(last_modified, menu)

        # Headers that must be on a 304 as well as on the 200 (RFC 7232 4.1).
        headers = {}
        if last_modified is not None:
            if self.cookie_authenticated:
                headers["Cache-Control"] = PRIVATE_CACHE
                headers["Vary"] = "Cookie"
            else:
                headers["Cache-Control"] = PUBLIC_CACHE

        if (
            last_modified is not None
            and not self.error_code
            and equal_last_modified(last_modified, request)
        ):
            resp = Response(b"", status=304, headers=headers)
            resp.headers.pop("Content-Type", None)
            return resp

        html = get_skins().render(self.tpl, self.data)
        body = gzip.compress(html.encode("utf-8"))

        headers["Content-Type"] = self.content_type
        headers["Content-Encoding"] = "gzip"
        if last_modified is not None:
            headers["Last-Modified"] = http_last_modified(last_modified)

        resp = Response(
            b"" if request.method == "HEAD" else body,
            status=self.error_code or 200,
            headers=headers,
        )
        resp.headers["Content-Length"] = str(len(body))
        return resp
