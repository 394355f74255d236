"""
Configuration.

Precedence: overrides passed to ``create_app`` > ``INKWELL_*`` environment
variables > the blog root's ``.env`` file > defaults.
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path
from urllib.parse import urlsplit

from inkwell.errors import ConfigurationError

PACKAGE_ROOT = Path(__file__).parent
ENV_PREFIX = "INKWELL_"
ENV_FILE_NAME = ".env"
KEY_FILE_NAME = ".session_key"
TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off", ""}

# config key -> (env suffix, type)
ENV_KEYS = {
    "BLOG_ROOT": ("ROOT", str),
    "SITE_TITLE": ("TITLE", str),
    "LOGO": ("LOGO", str),
    "SKIN": ("SKIN", str),
    "SKINS_PATH": ("SKINS_PATH", str),
    "WEB_ROOT": ("WEBROOT", str),
    "URL_PREFIX": ("URLPREFIX", str),
    "ORIGIN": ("ORIGIN", str),
    "SECURE": ("SECURE", bool),
    "HSTS_MAX_AGE": ("HSTS_MAX_AGE", int),
    "BEHIND_PROXY": ("BEHIND_PROXY", bool),
    "DATABASE": ("DATABASE", str),
    "SESSION_KEY": ("SESSION_KEY", str),
    "TOKEN_MAX_AGE": ("TOKEN_MAX_AGE", int),
}


def _defaults(root: Path) -> dict:
    return {
        "BLOG_ROOT": str(root),
        "SITE_TITLE": "Blog",
        "LOGO": "",
        "SKIN": "base",
        "SKINS_PATH": str(PACKAGE_ROOT / "skins"),
        "WEB_ROOT": str(root / "www"),
        "URL_PREFIX": "",
        "ORIGIN": "http://localhost:5000",
        "SECURE": True,
        "HSTS_MAX_AGE": 15552000,  # 180 days
        "BEHIND_PROXY": False,
        "DATABASE": str(root / "data" / "blog.sqlite3"),
        "SESSION_KEY": "",
        "TOKEN_MAX_AGE": 60 * 60 * 24 * 7,  # one week
    }


# ──────────────────────────── .env file ─────────────────────────────
def read_env_file(root: Path) -> dict[str, str]:
    env = {}
    path = Path(root) / ENV_FILE_NAME
    if not path.exists():
        return env
    for ln in path.read_text().splitlines():
        ln = ln.strip()
        if not ln or ln.startswith("#") or "=" not in ln:
            continue
        k, v = ln.split("=", 1)
        env[k.strip()] = v.strip()
    return env


def write_env_file(root: Path, env: dict[str, str]) -> None:
    path = Path(root) / ENV_FILE_NAME
    lines = [f"{k}={v}" for k, v in sorted(env.items())]
    path.write_text("\n".join(lines) + "\n" if lines else "")
    path.chmod(0o600)


def merge_env(root: Path, updates: dict[str, str]) -> dict[str, str]:
    """Merge *updates* into both the process env and the .env file."""
    env = read_env_file(root)
    env.update(updates)
    os.environ.update(updates)
    write_env_file(root, env)
    return env


def _convert(key: str, raw: str, typ: type):
    if typ is bool:
        val = raw.strip().lower()
        if val in TRUTHY:
            return True
        if val in FALSY:
            return False
        raise ConfigurationError(f"{key}: expected on/off, got {raw!r}")
    if typ is int:
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{key}: expected a number", exc) from exc
    return raw


def load_config(root: str | Path | None = None, overrides: dict | None = None) -> dict:
    overrides = dict(overrides or {})
    root = Path(
        root
        or overrides.get("BLOG_ROOT")
        or os.environ.get(ENV_PREFIX + "ROOT")
        or os.getcwd()
    ).resolve()

    cfg = _defaults(root)
    file_env = read_env_file(root)
    for key, (suffix, typ) in ENV_KEYS.items():
        name = ENV_PREFIX + suffix
        raw = os.environ.get(name, file_env.get(name))
        if raw is not None:
            cfg[key] = _convert(name, raw, typ)
    cfg.update(overrides)
    cfg["BLOG_ROOT"] = str(root)

    validate_config(cfg)
    return cfg


def validate_config(cfg: dict) -> None:
    """Startup checks; a bad prefix or origin must never reach a request."""
    prefix = cfg["URL_PREFIX"]
    if prefix and (not prefix.startswith("/") or prefix.endswith("/")):
        raise ConfigurationError(
            f"URL_PREFIX must be empty or look like '/blog', got {prefix!r}"
        )

    origin = urlsplit(cfg["ORIGIN"])
    if (
        origin.scheme not in ("http", "https")
        or not origin.netloc
        or origin.path
        or origin.query
        or origin.fragment
    ):
        raise ConfigurationError(
            f"ORIGIN must look like 'https://example.com', got {cfg['ORIGIN']!r}"
        )


# ──────────────────────────── session key ───────────────────────────
def key_file(cfg: dict) -> Path:
    return Path(cfg["BLOG_ROOT"]) / KEY_FILE_NAME


def generate_session_key(cfg: dict) -> str:
    """Create (or overwrite) the signing key. All sessions become invalid."""
    key = secrets.token_urlsafe(32)
    path = key_file(cfg)
    path.write_text(key)
    path.chmod(0o600)
    cfg["SESSION_KEY"] = key
    return key


def load_session_key(cfg: dict) -> str:
    if cfg.get("SESSION_KEY"):
        return cfg["SESSION_KEY"]
    path = key_file(cfg)
    if path.exists():
        key = path.read_text().strip()
        if key:
            cfg["SESSION_KEY"] = key
            return key
    return generate_session_key(cfg)
