"""Markdown rendering for KOReader highlights."""
from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from .models import Book, Highlight
from .parsers import parse_timestamp
from .tags import book_tags

SOURCE_LABEL = "KOReader"
MAX_FILENAME_PART = 120
ILLEGAL_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
WHITESPACE = re.compile(r"\s+")
LINE_BREAK = re.compile(r"\r?\n")

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def sanitise_filename(value: str, max_length: int = MAX_FILENAME_PART) -> str:
    """Return a filesystem-safe filename fragment derived from ``value``."""

    safe = ILLEGAL_FILENAME_CHARS.sub(" ", value)
    safe = WHITESPACE.sub(" ", safe).strip()
    safe = safe[:max_length].strip()
    return safe or "untitled"


def safe_inline(value: str) -> str:
    return WHITESPACE.sub(" ", value).strip()


def yaml_escape(value: str) -> str:
    """Escape ``value`` for a double-quoted YAML scalar.

    Output is also a valid JSON string body, which ``parse_front_matter``
    relies on.
    """

    escaped: List[str] = []
    for char in value:
        if char in _ESCAPES:
            escaped.append(_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            escaped.append(f"\\u{ord(char):04x}")
        else:
            escaped.append(char)
    return "".join(escaped)


def yaml_scalar(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return f'"{yaml_escape(str(value))}"'


def format_front_matter(metadata: Dict[str, Any]) -> str:
    lines: List[str] = ["---"]

    def emit(key: str, value: Any, indent: int) -> None:
        prefix = "  " * indent
        if isinstance(value, dict):
            if not value:
                lines.append(f"{prefix}{key}: {{}}")
                return
            lines.append(f"{prefix}{key}:")
            for subkey, subvalue in value.items():
                emit(subkey, subvalue, indent + 1)
        elif isinstance(value, (list, tuple)):
            lines.append(f"{prefix}{key}: [{', '.join(yaml_scalar(item) for item in value)}]")
        else:
            lines.append(f"{prefix}{key}: {yaml_scalar(value)}")

    for key, value in metadata.items():
        emit(key, value, 0)

    lines.append("---")
    return "\n".join(lines) + "\n"


def parse_front_matter(text: str) -> tuple[dict, str]:
    """Split ``text`` into its front matter mapping and the remaining body.

    Only the subset written by ``format_front_matter`` is understood: nested
    mappings by indentation and JSON-compatible scalars or inline lists.
    """

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    if not text.startswith("---\n"):
        return {}, text
    end_index = text.find("\n---", 3)
    if end_index == -1:
        return {}, text
    fm_text = text[4:end_index]
    remainder = text[end_index + 4 :]
    if remainder.startswith("\n"):
        remainder = remainder[1:]

    def parse_scalar(value: str) -> Any:
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    metadata: dict[str, Any] = {}
    stack: List[tuple[int, dict]] = [(-1, metadata)]

    for raw_line in fm_text.splitlines():
        if not raw_line.strip() or ":" not in raw_line:
            continue
        indent = len(raw_line) - len(raw_line.lstrip(" "))
        while len(stack) > 1 and indent <= stack[-1][0]:
            stack.pop()
        container = stack[-1][1]

        key, value = raw_line.strip().split(":", 1)
        key = key.strip()
        value = value.strip()
        if not value:
            child: dict[str, Any] = {}
            container[key] = child
            stack.append((indent, child))
        elif value == "{}":
            container[key] = {}
        else:
            container[key] = parse_scalar(value)

    return metadata, remainder


def iso_date(value: str) -> str:
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else value


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def _block_quote(text: str) -> str:
    return "\n".join(f"> {line}" for line in LINE_BREAK.split(text))


def _meta_line(highlight: Highlight) -> str:
    chapter = safe_inline(highlight.chapter or "") or None
    if highlight.page is not None:
        page_chapter: Optional[str] = f"p.{highlight.page}"
        if chapter is not None:
            page_chapter += f', chapter: "{chapter}"'
    elif chapter is not None:
        page_chapter = f'chapter: "{chapter}"'
    else:
        page_chapter = None

    tag_string = None
    if highlight.color_tags:
        tag_string = " ".join(f"#{tag[1:] if tag.startswith('#') else tag}" for tag in highlight.color_tags)

    bits = [
        page_chapter,
        f"loc {highlight.location}" if highlight.location else None,
        iso_date(highlight.created) if highlight.created else None,
        f"color:{highlight.normalized_color}" if highlight.normalized_color else None,
        tag_string,
    ]
    return " | ".join(bit for bit in bits if bit)


def render_highlight(highlight: Highlight, index: int) -> str:
    """Render one highlight block; ``index`` is zero based."""

    lines: List[str] = [f"## Highlight {index + 1}"]
    meta = _meta_line(highlight)
    if meta:
        lines.extend([f"*{meta}*", ""])

    text = highlight.text.strip()
    lines.append(_block_quote(text) if text else "> ")

    note = (highlight.note or "").strip()
    if note:
        lines.extend(["", f"**Note:** {note}"])
    return "\n".join(lines)


def book_metadata(book: Book, *, source_kind: str, src_path: str, today: date) -> Dict[str, Any]:
    counts = book.counts
    return {
        "title": book.title,
        "author": book.author,
        "source": SOURCE_LABEL,
        "updated": today.isoformat(),
        "tags": book_tags(book),
        "koreader": {
            "import_source": source_kind,
            "src_path": src_path,
            "counts": {"highlights": counts.highlights, "notes": counts.notes},
        },
    }


def render_book_document(
    book: Book,
    *,
    source_kind: str,
    src_path: str,
    today: Optional[date] = None,
) -> str:
    """Render the full Markdown document for ``book``.

    The output depends only on its arguments; ``today`` defaults to the
    current UTC date.
    """

    metadata = book_metadata(
        book, source_kind=source_kind, src_path=src_path, today=today or today_utc()
    )
    header = f"# {safe_inline(book.title)} - {safe_inline(book.author)}\n"
    body = "\n\n---\n\n".join(
        render_highlight(highlight, index) for index, highlight in enumerate(book.highlights)
    )
    document = format_front_matter(metadata) + "\n" + header
    if body:
        document += "\n" + body + "\n"
    return document


def document_updated_date(text: str) -> Optional[date]:
    """Return the ``updated`` date recorded in a rendered document, if any."""

    metadata, _ = parse_front_matter(text)
    value = metadata.get("updated")
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None
