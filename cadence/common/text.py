"""Byte-bounded text helpers."""

from __future__ import annotations


def truncate_utf8(text: str, max_bytes: int | None) -> str:
    """Return ``text`` cut to at most ``max_bytes`` UTF-8 bytes.

    A multi-byte character straddling the limit is dropped whole.
    """
    if max_bytes is None:
        return text
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def utf8_size(text: str) -> int:
    """Return the UTF-8 encoded length of ``text``."""
    return len(text.encode("utf-8"))
