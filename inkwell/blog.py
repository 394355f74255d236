#!/usr/bin/env python3
"""
inkwell – a small self-hosted blog.

Run it with ``flask --app inkwell.blog run`` (or ``python -m inkwell.blog``);
``flask --app inkwell.blog --help`` lists the admin commands.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from flask import Flask, current_app, render_template_string, request
from werkzeug.middleware.proxy_fix import ProxyFix

from inkwell import cli, skins
from inkwell.config import load_config
from inkwell.csrf import attach_csrf_cookie, csrf_field, csrf_token
from inkwell.errors import ClientError, InternalError
from inkwell.models import close_db
from inkwell.routing import Router
from inkwell.skins import SkinSet
from inkwell.views import HANDLERS

try:
    __version__ = version("inkwell")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]

TEMPL_500 = """<h1>500 Internal Server Error</h1><p>{{ reason }}</p>
"""


###############################################################################
# App factory
###############################################################################
def create_app(config: dict | None = None, *, root=None) -> Flask:
    """
    Build the app. *config* overrides anything from the environment,
    ``.env`` or defaults. Invalid configuration raises
    ``ConfigurationError`` here, before any request is served.
    """
    app = Flask(__name__)
    app.config.update(load_config(root, config))
    if app.config.get("BEHIND_PROXY"):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    skins.init_app(app)
    app.jinja_env.globals.update(
        csrf_field=csrf_field, csrf_token=csrf_token, version=__version__
    )
    app.extensions["inkwell.skins"] = SkinSet(
        app.config["SKINS_PATH"], app.config["SKIN"], app.jinja_env
    )

    router = Router(
        HANDLERS, prefix=app.config["URL_PREFIX"], origin=app.config["ORIGIN"]
    )
    app.extensions["inkwell.router"] = router

    def dispatch(path=""):
        return router.dispatch(request)

    # Flask's URL map only funnels everything into the router.
    app.add_url_rule("/", "dispatch", dispatch, methods=ALL_METHODS)
    app.add_url_rule("/<path:path>", "dispatch", dispatch, methods=ALL_METHODS)
    app.url_map.strict_slashes = False

    app.teardown_appcontext(close_db)
    app.after_request(attach_csrf_cookie)
    app.after_request(sec_headers)
    app.register_error_handler(ClientError, client_error)
    app.register_error_handler(InternalError, internal_error)
    app.register_error_handler(500, server_error)
    cli.init_app(app)
    return app


###############################################################################
# Response hooks + error pages
###############################################################################
def sec_headers(resp):
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    cfg = current_app.config
    if cfg["SECURE"] and cfg["HSTS_MAX_AGE"] > 0 and request.scheme == "https":
        resp.headers["Strict-Transport-Security"] = f"max-age={cfg['HSTS_MAX_AGE']}"
    return resp


def client_error(exc: ClientError):
    if exc.status == 403:
        return HANDLERS["csrf_failed"](request, {})
    return HANDLERS["not_found"](request, {})


def internal_error(exc: InternalError):
    """Our fault: log it, show the reason, don't retry."""
    current_app.logger.error("internal error: %s", exc, exc_info=exc)
    return render_template_string(TEMPL_500, reason=exc.reason), 500


def server_error(exc):
    return render_template_string(TEMPL_500, reason="Our fault, not yours."), 500


###############################################################################
# main
###############################################################################
if __name__ == "__main__":
    create_app().run(debug=True)
