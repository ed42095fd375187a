"""Derive colours, colour tags, and note tags/links for highlights."""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from .config import ColorTagging
from .models import Book, Highlight

# ``#`` at the start of the note or after whitespace, then letters, digits, ``_`` or ``-``.
TAG_PATTERN = re.compile(r"(?:^|\s)#([\w-]+)")
TRAILING_PUNCTUATION = re.compile(r"[.,;:!?]+$")
# [[Target]] or [[Target|Alias]]
LINK_PATTERN = re.compile(r"\[\[([^\[\]|]+)(?:\|[^\[\]]+)?\]\]")
WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class NoteExtract:
    tags: Tuple[str, ...] = ()
    links: Tuple[str, ...] = ()


def normalize_color(color: Optional[str]) -> Optional[str]:
    if not color:
        return None
    return color.strip().lower()


def tags_for_color(color: Optional[str], tagging: ColorTagging) -> List[str]:
    """Look up the tags configured for ``color``, keeping configured order."""

    if not color:
        return []
    tags = tagging.color_map.get(color)
    if tags is None:
        tags = tagging.color_map.get(WHITESPACE.sub("", color), ())
    return list(dict.fromkeys(tags))


def extract_from_note(note: Optional[str]) -> NoteExtract:
    """Collect ``#tags`` and ``[[wiki links]]`` from a note."""

    if not note or not note.strip():
        return NoteExtract()

    tags: List[str] = []
    for match in TAG_PATTERN.finditer(note):
        tag = TRAILING_PUNCTUATION.sub("", match.group(1).strip())
        if tag:
            tags.append(tag)

    links = [match.group(1).strip() for match in LINK_PATTERN.finditer(note)]
    return NoteExtract(
        tags=tuple(dict.fromkeys(tags)),
        links=tuple(dict.fromkeys(link for link in links if link)),
    )


def enrich_highlight(highlight: Highlight, tagging: ColorTagging) -> Highlight:
    color = normalize_color(highlight.color)
    color_tags = tags_for_color(color, tagging) if tagging.apply_color_tags else []
    extracted = extract_from_note(highlight.note)
    return replace(
        highlight,
        normalized_color=color,
        color_tags=tuple(color_tags),
        note_tags=extracted.tags,
        note_links=extracted.links,
    )


def enrich_book(book: Book, tagging: ColorTagging) -> Book:
    return replace(book, highlights=[enrich_highlight(h, tagging) for h in book.highlights])
