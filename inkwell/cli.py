"""
Admin commands, available as ``flask --app inkwell.blog <command>``.
"""

from __future__ import annotations

import email
import functools
import os
from datetime import datetime, timezone
from pathlib import Path

import click
from flask import current_app
from flask.cli import with_appcontext

from inkwell.config import (
    generate_session_key,
    load_session_key,
    merge_env,
    read_env_file,
)
from inkwell.errors import InternalError
from inkwell.models import (
    Hint,
    PageType,
    add_user,
    import_page,
    init_db,
    pages_from_query,
    user_by_email,
)
from inkwell.passwords import MIN_PASSWORD_LEN, hash_password

PASSWORD_ATTEMPTS = 3
DATE_HEADERS = ("Created", "Published", "Modified")
RFC3339 = "%Y-%m-%dT%H:%M:%SZ"


def _fail_cleanly(fn):
    """Turn our InternalError into a one-line click error."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except InternalError as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


###############################################################################
# Setup
###############################################################################
@click.command("install")
@with_appcontext
@_fail_cleanly
def cli_install():
    """Create or upgrade the database and make sure a session key exists."""
    init_db(echo=click.echo)
    load_session_key(current_app.config)

    env = {**read_env_file(Path(current_app.config["BLOG_ROOT"])), **os.environ}
    if "INKWELL_ORIGIN" not in env:
        click.secho(
            "Warning: INKWELL_ORIGIN is not set, using "
            f"{current_app.config['ORIGIN']}",
            fg="yellow",
        )
    if "INKWELL_WEBROOT" not in env:
        click.secho(
            "Warning: INKWELL_WEBROOT is not set, using "
            f"{current_app.config['WEB_ROOT']}",
            fg="yellow",
        )
    click.secho("✅  Database ready.", fg="green")


@click.command("adduser")
@click.argument("email_address", metavar="EMAIL")
@click.argument("fullname")
@with_appcontext
@_fail_cleanly
def cli_adduser(email_address: str, fullname: str):
    """Add a user who may log in to the admin."""
    if user_by_email(email_address) is not None:
        raise click.ClickException("Email address already exists in database.")

    for _ in range(PASSWORD_ATTEMPTS):
        password = click.prompt("Password for new user", hide_input=True)
        repeat = click.prompt("Repeat password", hide_input=True)
        if len(password) < MIN_PASSWORD_LEN:
            click.echo(f"Use a password of at least {MIN_PASSWORD_LEN} characters.")
        elif password != repeat:
            click.echo("Passwords don't match.")
        else:
            break
    else:
        raise click.ClickException("No user added.")

    add_user(email_address, fullname, hash_password(password))
    click.secho(f"✅  Added {fullname} <{email_address}>.", fg="green")


@click.command("keygen")
@with_appcontext
def cli_keygen():
    """Generate a new session key. Everybody gets logged out."""
    generate_session_key(current_app.config)
    current_app.extensions.pop("inkwell.sessions", None)
    click.secho("🔑  New session key generated.", fg="yellow")


@click.command("secure")
@click.argument("state", type=click.Choice(["on", "off"], case_sensitive=False))
@with_appcontext
def cli_secure(state: str):
    """Switch enforcing of HTTPS-only cookies and HSTS on or off."""
    enabled = state.lower() == "on"
    merge_env(
        Path(current_app.config["BLOG_ROOT"]),
        {"INKWELL_SECURE": "on" if enabled else "off"},
    )
    current_app.config["SECURE"] = enabled
    click.echo(("Enabled" if enabled else "Disabled") + " enforcing security.")


###############################################################################
# Import / export
###############################################################################
def _parse_time(value: str | None, header: str, filename: str) -> datetime | None:
    if not value:
        return None
    try:
        # fromisoformat() only learned about "Z" in 3.11
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise click.ClickException(
            f"failed to read {header} timestamp for page {filename}"
        ) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _split_title(body: str) -> tuple[str, str]:
    """``# Title`` on the first line of the body, the rest is the text."""
    if not body.startswith("# "):
        return "", body
    first, _, rest = body.partition("\n")
    return first[2:].strip(), rest.lstrip()


@click.command("import")
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@with_appcontext
@_fail_cleanly
def cli_import(directory: Path):
    """Import (or update) posts from *.markdown files in DIRECTORY."""
    for path in sorted(directory.glob("*.markdown")):
        with path.open(encoding="utf-8") as fp:
            msg = email.message_from_file(fp)
        title, text = _split_title(msg.get_payload())
        created, published, modified = (
            _parse_time(msg.get(h), h, path.name) for h in DATE_HEADERS
        )
        name = (msg.get("Name") or "").strip()
        if not name:
            raise click.ClickException(f"no Name header in {path.name}")

        if import_page(name, title, text, created, published, modified):
            click.echo(f"importing: {name}")
        else:
            click.echo(f"updating:  {name}")


def _export_text(post) -> str:
    lines = [f"Name: {post.name}", "Content-Type: text/markdown; charset=utf-8"]
    for header, t in zip(DATE_HEADERS, (post.created, post.published, post.modified)):
        if t is not None:
            lines.append(f"{header}: {t.astimezone(timezone.utc).strftime(RFC3339)}")
    lines += ["", f"# {post.title}", ""]
    return "\n".join(lines) + "\n" + post.text


@click.command("export")
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@with_appcontext
@_fail_cleanly
def cli_export(directory: Path):
    """Write every post to DIRECTORY as a .markdown file."""
    for post in pages_from_query(PageType.POST, Hint.ALL):
        click.echo(f"exporting: {post.name}")
        filename = post.name + ".markdown"
        if post.published is not None:
            filename = post.published.strftime("%Y-%m-%d-") + filename
        target = directory / filename
        tmp = target.with_name(target.name + ".tmp")
        try:
            tmp.write_text(_export_text(post), encoding="utf-8")
            os.replace(tmp, target)
        except OSError as exc:
            raise click.ClickException(f"failed to write {filename}: {exc}") from exc


def init_app(app) -> None:
    for cmd in (cli_install, cli_adduser, cli_keygen, cli_secure, cli_import, cli_export):
        app.cli.add_command(cmd)
