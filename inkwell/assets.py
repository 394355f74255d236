"""
Skin assets (JavaScript and CSS).

The first request for an asset copies it out of the skin chain (CSS may be
compiled from SCSS) into ``<WEB_ROOT>/assets`` as a plain and a gzipped
file, so a front-end web server can serve them directly afterwards. Until
then the blog serves the gzipped copy itself.
"""

from __future__ import annotations

import gzip
import os
import subprocess
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from flask import Response, current_app

from inkwell.errors import InternalError, NotFound
from inkwell.response import get_skins
from inkwell.timeutil import equal_last_modified, http_last_modified

CONTENT_TYPES = {".css": "text/css", ".js": "text/javascript"}
STATIC_CACHE = "max-age=3600,s-maxage=5"
SCSS_COMMAND = "scss"  # Debian: ruby-sass


def serve_static(request, path: Path, content_type: str) -> Response:
    """Serve an already gzipped file."""
    try:
        st = path.stat()
    except OSError as exc:
        raise InternalError("could not stat file", exc) from exc
    mtime = datetime.fromtimestamp(int(st.st_mtime), timezone.utc)

    headers = {"Cache-Control": STATIC_CACHE}
    if equal_last_modified(mtime, request):
        resp = Response(b"", status=304, headers=headers)
        resp.headers.pop("Content-Type", None)
        return resp

    body = b""
    if request.method != "HEAD":
        try:
            body = path.read_bytes()
        except OSError as exc:
            raise InternalError("could not read file", exc) from exc

    headers.update(
        {
            "Content-Type": content_type + "; charset=utf-8",
            "Content-Encoding": "gzip",
            "Last-Modified": http_last_modified(mtime),
        }
    )
    resp = Response(body, headers=headers)
    resp.headers["Content-Length"] = str(st.st_size)
    return resp


# ──────────────────────────── building ──────────────────────────────
def _compile_scss(source: Path, include: list[Path]) -> bytes:
    args = [SCSS_COMMAND, "--default-encoding", "utf-8", "--no-cache"]
    for path in include:
        args += ["-I", str(path)]
    args.append(str(source))
    try:
        proc = subprocess.run(args, capture_output=True, check=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise InternalError("could not run scss", exc) from exc
    return proc.stdout


def _read_source(name: str) -> bytes | None:
    """Find *name* in the skin chain; None when no skin has it."""
    skins = get_skins()
    chain = skins.info.skins
    ext = Path(name).suffix
    for i, skin in enumerate(chain):
        skin_dir = skins.skins_path / skin
        plain = skin_dir / name
        if plain.is_file():
            try:
                return plain.read_bytes()
            except OSError as exc:
                raise InternalError("failed to open asset file", exc) from exc
        if ext == ".css":
            scss = skin_dir / (Path(name).stem + ".scss")
            if scss.is_file():
                include = [skins.skins_path / s for s in chain[i:]]
                return _compile_scss(scss, include)
    return None


def _write_atomic(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(data)
            fp.flush()
            os.fsync(fp.fileno())
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except OSError as exc:
        Path(tmp).unlink(missing_ok=True)
        raise InternalError(f"could not write asset file {path.name}", exc) from exc


def serve_asset(request, name: str) -> Response:
    ext = Path(name).suffix
    if ext not in CONTENT_TYPES:
        raise NotFound(name)

    outdir = Path(current_app.config["WEB_ROOT"]) / "assets"
    outpath = outdir / name
    gzpath = outdir / (name + ".gz")
    if not gzpath.exists():
        data = _read_source(name)
        if data is None:
            raise NotFound(name)
        try:
            outdir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InternalError("could not create asset directory", exc) from exc
        _write_atomic(outpath, data)
        _write_atomic(gzpath, gzip.compress(data))
        current_app.logger.info("built asset %s", name)

    return serve_static(request, gzpath, CONTENT_TYPES[ext])
