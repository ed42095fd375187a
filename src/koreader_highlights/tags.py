"""Tag aggregation for document front matter."""
from __future__ import annotations

from typing import Dict, Iterable, List

from .models import Book

BASE_TAGS = ("reading", "highlights")


def merge_tags(base: Iterable[str], extra: Iterable[str]) -> List[str]:
    """Merge tag sets, dropping blanks and case-insensitive duplicates.

    The first spelling seen wins, so base tags keep their form. The result is
    sorted case-insensitively.
    """

    merged: Dict[str, str] = {}
    for tag in list(base) + list(extra):
        if tag and tag.casefold() not in merged:
            merged[tag.casefold()] = tag
    return sorted(merged.values(), key=lambda tag: (tag.casefold(), tag))


def book_tags(book: Book, base: Iterable[str] = BASE_TAGS) -> List[str]:
    note_tags = [tag for highlight in book.highlights for tag in highlight.note_tags]
    color_tags = [tag for highlight in book.highlights for tag in highlight.color_tags]
    return merge_tags(base, note_tags + color_tags)
