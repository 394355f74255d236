"""
URL routing.

Routes are full-match regular expressions on the part of the path below
the URL prefix, tried in order: the first match wins. When nothing
matches, the same path with its trailing slash toggled is tried and a hit
there becomes a 301 to that canonical form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from flask import Response, current_app

from inkwell.csrf import SAFE_METHODS, validate_csrf
from inkwell.errors import ConfigurationError

Handler = Callable[..., Response]

SLUG = r"[a-z0-9]+(-[a-z0-9]+)*"
# Directory routes whose slash-less form must redirect, not become a page.
RESERVED = r"(?!(?:admin|archive)$)"

# (pattern, handler name). Order matters.
ROUTES = [
    (r"", "index"),
    (rf"(?P<year>[0-9]{{4}})/(?P<month>0[0-9]|1[0-2])/(?P<name>{SLUG})", "page"),
    (r"admin/", "admin"),
    (r"admin/edit/new(?P<id>post|page)", "edit"),
    (r"admin/edit/(?P<id>[1-9][0-9]*)", "edit"),
    (r"admin/edit/(?P<id>[1-9][0-9]*)/preview", "preview"),
    (r"archive/", "archive"),
    (r"feed\.xml", "feed"),
    (r"assets/(?P<name>[^/]+)", "asset"),
    (rf"(?P<name>{RESERVED}{SLUG})", "page"),
    (r".*", "not_found"),
]

NOT_FOUND = "not_found"
CSRF_FAILED = "csrf_failed"


@dataclass(frozen=True)
class Route:
    regex: re.Pattern
    handler: str

    @property
    def catch_all(self) -> bool:
        return self.handler == NOT_FOUND


class Router:
    """
    Built once by ``create_app``::

        router = Router(handlers, prefix="/blog", origin="https://example.com")
        resp = router.dispatch(request)

    *handlers* maps every handler name in *routes* (plus ``not_found`` and
    ``csrf_failed``) to ``handler(request, values) -> Response``.
    """

    def __init__(
        self,
        handlers: dict[str, Handler],
        *,
        prefix: str = "",
        origin: str,
        routes=ROUTES,
    ):
        if prefix and (not prefix.startswith("/") or prefix.endswith("/")):
            raise ConfigurationError(f"invalid URL prefix {prefix!r}")

        self.root = prefix + "/"
        self.origin = origin
        self.handlers = dict(handlers)
        self.routes: list[Route] = []
        for pattern, name in routes:
            try:
                regex = re.compile(pattern)
            except re.error as exc:
                raise ConfigurationError(f"bad route pattern {pattern!r}", exc) from exc
            self.routes.append(Route(regex, name))

        missing = {r.handler for r in self.routes} | {NOT_FOUND, CSRF_FAILED}
        missing -= set(self.handlers)
        if missing:
            raise ConfigurationError(f"no handler for: {', '.join(sorted(missing))}")

    # ──────────────────────────── matching ──────────────────────────
    def _match(self, path: str, *, catch_all: bool) -> tuple[Route, dict] | None:
        for route in self.routes:
            if route.catch_all and not catch_all:
                continue
            m = route.regex.fullmatch(path)
            if m:
                return route, m.groupdict(default="")
        return None

    def match(self, path: str) -> tuple[Route, dict] | None:
        """Match *path* (below the prefix) against the real routes only."""
        return self._match(path, catch_all=False)

    def canonical(self, path: str) -> str | None:
        """The slash-toggled form of *path* if that one is routable."""
        alt = path[:-1] if path.endswith("/") else path + "/"
        if self.match(alt) is not None:
            return alt
        return None

    # ──────────────────────────── dispatch ──────────────────────────
    def dispatch(self, request) -> Response:
        path = request.path
        if not path.startswith(self.root):
            return self.handlers[NOT_FOUND](request, {})
        rest = path[len(self.root) :]

        if request.method not in SAFE_METHODS and not validate_csrf(
            request, self.origin
        ):
            current_app.logger.warning(
                "CSRF check failed: %s %s", request.method, request.path
            )
            return self.handlers[CSRF_FAILED](request, {})

        hit = self.match(rest)
        if hit is not None:
            route, values = hit
            return self.handlers[route.handler](request, values)

        alt = self.canonical(rest)
        if alt is not None:
            location = self.root + alt
            if request.query_string:
                location += "?" + request.query_string.decode("latin-1")
            resp = Response(b"", status=301)
            resp.headers["Location"] = location
            return resp

        route, values = self._match(rest, catch_all=True) or (None, {})
        name = route.handler if route is not None else NOT_FOUND
        return self.handlers[name](request, values)
