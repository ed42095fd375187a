"""Stable, content-addressed identifiers for highlights.

Identifiers are a 32-bit FNV-1a hash rendered as eight hex digits. They are
a lightweight label, not a unique key: two different highlights can collide,
and nothing here is suitable for security purposes.
"""
from __future__ import annotations

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
_MASK = 0xFFFFFFFF


def fnv1a_32(value: str) -> str:
    """Hash ``value`` over its UTF-16 code units and return 8 hex digits."""

    # Lone surrogates are valid UTF-16 code units and are hashed as-is.
    data = value.encode("utf-16-le", "surrogatepass")
    digest = FNV_OFFSET_BASIS
    for index in range(0, len(data), 2):
        digest ^= data[index] | (data[index + 1] << 8)
        digest = (digest * FNV_PRIME) & _MASK
    return f"{digest:08x}"


def stable_highlight_id(book_key: str, location: str, text: str) -> str:
    return fnv1a_32(f"{book_key}::{location}::{text}")
