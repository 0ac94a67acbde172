"""Lenient base64 detection and decoding for subscription content."""

from __future__ import annotations

import base64
import binascii
import string

_ALPHABET = frozenset(string.ascii_letters + string.digits + "+/")


def _normalise(s: str) -> str:
    s = s.strip().replace("-", "+").replace("_", "/")
    if len(s) % 4:
        s += "=" * (4 - len(s) % 4)
    return s


def _decode(s: str) -> str | None:
    if not s:
        return None
    if any(c not in _ALPHABET for c in s.rstrip("=")):
        return None
    try:
        raw = base64.b64decode(s, validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, ValueError):
        return None


def is_base64_string(s: str) -> bool:
    """True if *s* is standard or URL-safe base64 of valid UTF-8 text."""
    return _decode(_normalise(s)) is not None


def decode_base64(s: str) -> str:
    """Decode *s* if it is base64 UTF-8 text, otherwise return it unchanged."""
    decoded = _decode(_normalise(s))
    return s if decoded is None else decoded