"""
Credential hashing.

Hashes are werkzeug's ``method$salt$hash`` strings (salted scrypt by
default). ``check_password_hash`` compares the digests with
``hmac.compare_digest``, so a mismatch takes as long as a match.
"""

from __future__ import annotations

from werkzeug.security import check_password_hash, generate_password_hash

from inkwell.errors import MalformedHash

HASH_METHODS = ("scrypt", "pbkdf2")
MIN_PASSWORD_LEN = 8


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password must not be empty")
    return generate_password_hash(password)


def _check_format(pwhash: str) -> None:
    parts = (pwhash or "").split("$", 2)
    if len(parts) != 3 or not all(parts):
        raise MalformedHash("stored password hash has an unknown format")
    method = parts[0].split(":", 1)[0]
    if method not in HASH_METHODS:
        raise MalformedHash(f"unsupported password hash method {method!r}")


def verify_password(password: str, pwhash: str) -> bool:
    """
    • True / False for a well-formed hash.
    • ``MalformedHash`` when the stored value isn't one of ours – that is a
      broken database row, not a wrong password.
    """
    _check_format(pwhash)
    try:
        return check_password_hash(pwhash, password or "")
    except ValueError as exc:
        raise MalformedHash("cannot verify password", exc) from exc
