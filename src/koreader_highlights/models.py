"""Data models for KOReader highlight synchronization."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Highlight:
    """Represents a single KOReader highlight and its optional note.

    The trailing fields are derived: ``highlight_id`` is assigned by the
    normaliser, the colour and tag fields by enrichment.
    """

    text: str
    note: Optional[str] = None
    color: Optional[str] = None
    page: Optional[int] = None
    location: str = ""
    created: Optional[str] = None
    chapter: Optional[str] = None
    highlight_id: str = ""
    normalized_color: Optional[str] = None
    color_tags: Tuple[str, ...] = ()
    note_tags: Tuple[str, ...] = ()
    note_links: Tuple[str, ...] = ()

    @property
    def has_note(self) -> bool:
        return bool(self.note and self.note.strip())


@dataclass(frozen=True)
class BookCounts:
    highlights: int
    notes: int


@dataclass
class Book:
    """Grouping of highlights for a single title/author pair."""

    title: str = "Unknown"
    author: str = "Unknown"
    highlights: List[Highlight] = field(default_factory=list)
    uid: Optional[str] = None

    @property
    def key(self) -> str:
        """Key used when deriving highlight identifiers."""

        return self.uid or f"{self.author}:{self.title}"

    @property
    def counts(self) -> BookCounts:
        return BookCounts(
            highlights=len(self.highlights),
            notes=sum(1 for highlight in self.highlights if highlight.has_note),
        )
