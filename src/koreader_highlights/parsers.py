"""Parsers that normalise KOReader highlight exports into books."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .identity import stable_highlight_id
from .models import Book, Highlight

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


def epoch_to_iso(seconds: float) -> str:
    """Convert epoch seconds to an ISO-8601 UTC instant with millisecond precision."""

    instant = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive values are read as UTC. Returns ``None`` when ``value`` is missing
    or cannot be parsed.
    """

    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        # Offsets can push instants at the ends of the calendar out of range.
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _location_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _page_number(value: Any) -> Optional[int]:
    if _is_number(value):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _created_text(value: Any) -> Optional[str]:
    if _is_number(value):
        return epoch_to_iso(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _clean(value: Any) -> str:
    if value is None:
        return UNKNOWN
    return str(value).strip() or UNKNOWN


def _build_highlight(book_key: str, payload: Dict[str, Any], created: Any) -> Highlight:
    text = payload.get("text")
    text = "" if text is None else str(text)
    location = _location_text(payload.get("location"))
    return Highlight(
        text=text,
        note=_optional_text(payload.get("note")),
        color=_optional_text(payload.get("color")),
        page=_page_number(payload.get("page")),
        location=location,
        created=_created_text(created),
        chapter=_optional_text(payload.get("chapter")),
        highlight_id=stable_highlight_id(book_key, location, text),
    )


class ExportParser:
    """Base class for export shape parsers."""

    name = "base"

    def matches(self, raw: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def parse(self, raw: Dict[str, Any]) -> List[Book]:
        raise NotImplementedError


class ClassicExportParser(ExportParser):
    """Parses ``{"book": {...}, "highlights": [...]}`` exports."""

    name = "classic"

    def matches(self, raw: Dict[str, Any]) -> bool:
        highlights = raw.get("highlights")
        if not isinstance(highlights, list):
            return False
        return isinstance(raw.get("book"), dict) or bool(highlights)

    @staticmethod
    def _author(book: Dict[str, Any]) -> str:
        authors = book.get("authors")
        if not isinstance(authors, list):
            authors = book.get("author") if isinstance(book.get("author"), list) else None
        if authors is not None:
            return ", ".join(str(name) for name in authors).strip() or UNKNOWN
        return _clean(book.get("author"))

    def parse(self, raw: Dict[str, Any]) -> List[Book]:
        book_data = raw.get("book") if isinstance(raw.get("book"), dict) else {}
        book = Book(
            title=_clean(book_data.get("title")),
            author=self._author(book_data),
            uid=_optional_text(book_data.get("uid")) or None,
        )
        for payload in raw["highlights"]:
            if not isinstance(payload, dict):
                logger.debug("Skipping non-object highlight entry in %s export", self.name)
                continue
            book.highlights.append(_build_highlight(book.key, payload, payload.get("created")))
        return [book]


class GroupedExportParser(ExportParser):
    """Parses ``{"entries": [...], "files": [...]}`` exports.

    Entries are grouped into one book per (title, author) pair in the order
    each pair is first seen. Missing authors are filled in from ``files``.
    """

    name = "grouped"

    def matches(self, raw: Dict[str, Any]) -> bool:
        entries = raw.get("entries")
        return isinstance(entries, list) and bool(entries)

    @staticmethod
    def _file_authors(files: Any) -> Dict[str, Any]:
        authors: Dict[str, Any] = {}
        if not isinstance(files, list):
            return authors
        for meta in files:
            if isinstance(meta, dict) and meta.get("title"):
                authors[str(meta["title"]).strip()] = meta.get("author")
        return authors

    def parse(self, raw: Dict[str, Any]) -> List[Book]:
        file_authors = self._file_authors(raw.get("files"))
        groups: Dict[Tuple[str, str], Book] = {}

        for entry in raw["entries"]:
            if not isinstance(entry, dict):
                logger.debug("Skipping non-object entry in %s export", self.name)
                continue
            title = _clean(entry.get("book"))
            author = entry.get("author")
            if author is None:
                author = file_authors.get(title)
            author = _clean(author)

            book = groups.get((title, author))
            if book is None:
                book = groups[(title, author)] = Book(title=title, author=author)
            book.highlights.append(_build_highlight(book.key, entry, entry.get("time")))

        return list(groups.values()) or [Book()]


PARSERS: Tuple[ExportParser, ...] = (ClassicExportParser(), GroupedExportParser())


def normalize_export(raw: Any) -> List[Book]:
    """Return the books described by one raw export document.

    Unrecognised or empty documents yield a single empty ``Unknown`` book.
    """

    if isinstance(raw, dict):
        for parser in PARSERS:
            if parser.matches(raw):
                return parser.parse(raw)
    return [Book()]


def parse_export_text(text: str) -> List[Book]:
    """Decode JSON ``text`` and normalise it. Raises ``json.JSONDecodeError``."""

    return normalize_export(json.loads(text))


def sort_highlights(highlights: Iterable[Highlight], mode: Optional[str]) -> List[Highlight]:
    """Stable sort by ``"page"`` or ``"time"``; other modes keep input order."""

    items = list(highlights)
    if mode == "page":
        items.sort(key=lambda value: (value.page is None, value.page or 0))
    elif mode == "time":
        def time_key(value: Highlight) -> Tuple[bool, float]:
            parsed = parse_timestamp(value.created)
            if parsed is None:
                return True, 0.0
            return False, parsed.timestamp()

        items.sort(key=time_key)
    return items
