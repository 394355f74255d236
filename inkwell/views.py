"""
Request handlers.

Every handler has the signature ``handler(request, values) -> Response``
where *values* are the named groups of the matched route. ``HANDLERS``
maps the handler names used in the route table to the functions.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from flask import Response, current_app

from inkwell.assets import serve_asset
from inkwell.errors import LoginError, NotFound
from inkwell.models import Hint, Page, PageType, page_from_query, pages_from_query
from inkwell.response import View
from inkwell.sessions import authenticate
from inkwell.timeutil import last_time

MAX_ROWID = 2**63 - 1


def _redirect(location: str, status: int = 303) -> Response:
    resp = Response(b"", status=status)
    resp.headers["Location"] = location
    return resp


def _page_by_id(request, page_id: str) -> Page:
    rowid = int(page_id)
    # past sqlite's INTEGER range there is no such row
    page = None
    if rowid <= MAX_ROWID:
        page = page_from_query(PageType.NONE, Hint.ALL, "id=?", "", rowid)
    if page is None:
        raise NotFound(request.path)
    return page


###############################################################################
# Public
###############################################################################
def blog_index(request, values):
    view = View("blogindex")
    posts = pages_from_query(
        PageType.POST,
        Hint.TITLE,
        "published != 0",
        "ORDER BY published DESC LIMIT 10",
    )
    view.data["posts"] = posts
    return view.output(request, posts.last_modified())


def page_view(request, values):
    page = page_from_query(
        PageType.NONE, Hint.ALL, "name=? AND published != 0", "", values["name"]
    )
    if page is None:
        raise NotFound(request.path)

    dated = bool(values.get("year"))
    if page.type == PageType.POST:
        if not dated:
            # /slug of a post lives at /YYYY/MM/slug
            return _redirect(current_app.config["URL_PREFIX"] + page.url(), 301)
        if page.published.strftime("%Y/%m") != f"{values['year']}/{values['month']}":
            raise NotFound(request.path)
        tpl = "blogpost"
    elif page.type == PageType.STATIC:
        if dated:
            raise NotFound(request.path)
        tpl = "page"
    else:
        raise NotFound(request.path)

    view = View(tpl)
    view.data["page"] = page
    view.data["title"] = page.title
    return view.output(request, page.last_modified())


def archive(request, values):
    view = View("archive")
    posts = pages_from_query(
        PageType.POST, Hint.TITLE, "published != 0", "ORDER BY published DESC"
    )
    view.data["posts"] = posts
    return view.output(request, posts.last_modified())


def feed(request, values):
    view = View("feed")
    view.content_type = "application/atom+xml; charset=utf-8"
    posts = pages_from_query(
        PageType.POST,
        Hint.ALL,
        "published != 0",
        "ORDER BY published DESC LIMIT 10",
    )
    view.data["posts"] = posts
    view.data["origin"] = current_app.config["ORIGIN"]
    view.data["updated"] = posts.last_modified()
    return view.output(request, posts.last_modified())


def asset(request, values):
    return serve_asset(request, values["name"])


def not_found(request, values):
    view = View("404", error_code=404)
    view.data["url"] = request.url
    return view.output(request)


def csrf_failed(request, values):
    view = View("403", error_code=403)
    return view.output(request)


###############################################################################
# Admin
###############################################################################
def authenticated_view(request) -> tuple[View | None, Response | None]:
    """
    ``(view, None)`` for a logged-in user, otherwise ``(None, response)``
    where *response* is a redirect or the login form.
    """
    origin = urlsplit(current_app.config["ORIGIN"])
    if request.host != origin.netloc or request.scheme != origin.scheme:
        location = f"{origin.scheme}://{origin.netloc}{request.path}"
        if request.query_string:
            location += "?" + request.query_string.decode("latin-1")
        return None, _redirect(location)

    auth = authenticate(request)
    if auth.user is None:
        if auth.error == LoginError.REDIRECT:
            return None, auth.response
        login = View("login")
        if auth.error is not None:
            login.data["loginerror"] = auth.error.value
        return None, login.output(request)

    view = View()
    view.data["user"] = auth.user
    view.cookie_authenticated = True
    return view, None


def admin(request, values):
    view, resp = authenticated_view(request)
    if view is None:
        return resp

    view.tpl = "admin"
    drafts = pages_from_query(
        PageType.POST, Hint.TITLE, "published == 0", "ORDER BY modified DESC"
    )
    published = pages_from_query(
        PageType.POST, Hint.TITLE, "published != 0", "ORDER BY published DESC"
    )
    unpublished = pages_from_query(
        PageType.STATIC, Hint.TITLE, "published == 0", "ORDER BY title DESC"
    )
    view.data.update(drafts=drafts, published=published, menuUnpublished=unpublished)
    return view.output(
        request,
        last_time(
            drafts.last_modified(),
            published.last_modified(),
            unpublished.last_modified(),
        ),
    )


def page_edit(request, values):
    view, resp = authenticated_view(request)
    if view is None:
        return resp

    page_id = values["id"]
    if page_id == "post":
        page = Page(type=PageType.POST)
    elif page_id == "page":
        page = Page(type=PageType.STATIC)
    else:
        page = _page_by_id(request, page_id)

    prefix = current_app.config["URL_PREFIX"]
    if request.method == "POST":
        is_new = page.id == 0
        form = request.form
        page.update(
            form.get("name", ""),
            form.get("title", ""),
            form.get("summary", ""),
            form.get("text", ""),
        )
        if form.get("publish"):
            page.publish()
            current_app.logger.info("published page %d (%s)", page.id, page.name)
            return _redirect(prefix + page.url())
        if form.get("unpublish"):
            page.unpublish()
            current_app.logger.info("unpublished page %d (%s)", page.id, page.name)
            return _redirect(request.path)
        if is_new:
            current_app.logger.info("created page %d (%s)", page.id, page.name)
            return _redirect(f"{prefix}/admin/edit/{page.id}")
        current_app.logger.info("updated page %d (%s)", page.id, page.name)
        return _redirect(request.path)

    view.tpl = "editpage"
    view.data["page"] = page
    if page.id:
        view.data["title"] = page.title
        return view.output(request, page.last_modified())
    return view.output(request)


def page_preview(request, values):
    view, resp = authenticated_view(request)
    if view is None:
        return resp

    page = _page_by_id(request, values["id"])

    view.tpl = "previewpage"
    view.data["page"] = page
    view.data["title"] = page.title
    return view.output(request, page.last_modified())


HANDLERS = {
    "index": blog_index,
    "page": page_view,
    "admin": admin,
    "edit": page_edit,
    "preview": page_preview,
    "archive": archive,
    "feed": feed,
    "asset": asset,
    "not_found": not_found,
    "csrf_failed": csrf_failed,
}
