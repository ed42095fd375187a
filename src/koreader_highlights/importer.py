"""Drive a full import: read exports, render one note per book, sync into the vault."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from .config import ColorTagging, SyncConfig
from .enrichment import enrich_book
from .fetchers import JsonSource, SourceFetcher, SourceReadError, build_fetcher
from .markdown import document_updated_date, render_book_document, today_utc
from .models import Book, Highlight
from .parsers import parse_export_text, sort_highlights
from .storage import (
    DocumentStore,
    SyncAction,
    VaultStore,
    apply_action,
    build_book_filename,
    decide_action,
)

logger = logging.getLogger(__name__)

# Only one import may touch the vault at a time.
_RUN_LOCK = threading.Lock()

BATCH_FILE = "(batch)"
UNKNOWN_FILE = "(unknown)"


@dataclass
class ImportDetail:
    file: str
    status: str
    reason: Optional[str] = None
    src_path: Optional[str] = None


@dataclass
class ImportSummary:
    """Counts and per-document outcomes of one import run."""

    source: str
    dry_run: bool = False
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    details: List[ImportDetail] = field(default_factory=list)

    def record(self, action: SyncAction, file: str, src_path: Optional[str] = None) -> None:
        setattr(self, action.value, getattr(self, action.value) + 1)
        reason = "No changes" if action is SyncAction.SKIPPED else None
        self.details.append(ImportDetail(file, action.value, reason=reason, src_path=src_path))

    def record_error(self, file: str, reason: str, src_path: Optional[str] = None) -> None:
        self.errors += 1
        self.details.append(ImportDetail(file, "error", reason=reason, src_path=src_path))

    def describe(self) -> str:
        text = f"{self.created} created, {self.updated} updated, {self.skipped} skipped"
        if self.errors:
            text += f", {self.errors} errors"
        return text


def _reason(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def read_export(fetcher: SourceFetcher, source: JsonSource) -> List[Book]:
    text = fetcher.read_text(source)
    try:
        return parse_export_text(text)
    except json.JSONDecodeError as exc:
        raise SourceReadError(f"Invalid JSON in {source.path}: {exc}") from exc


def split_documents(book: Book, one_note_per_book: bool) -> List[Tuple[Optional[str], Book]]:
    """Split ``book`` into the documents it is written as.

    With one note per book this is the book itself. Otherwise every chapter
    gets its own document, in first-seen order, and highlights without a
    chapter stay in the book-level document.
    """

    if one_note_per_book or not book.highlights:
        return [(None, book)]
    groups: Dict[Optional[str], List[Highlight]] = {}
    for highlight in book.highlights:
        chapter = (highlight.chapter or "").strip() or None
        groups.setdefault(chapter, []).append(highlight)
    return [(chapter, replace(book, highlights=items)) for chapter, items in groups.items()]


def render_for_target(
    book: Book,
    existing: Optional[str],
    *,
    source_kind: str,
    src_path: str,
    today: date,
    preserve_updated_date: bool = True,
) -> str:
    """Render ``book``, reusing the stored ``updated`` date when nothing else changed."""

    markdown = render_book_document(book, source_kind=source_kind, src_path=src_path, today=today)
    if existing is None or not preserve_updated_date:
        return markdown
    previous = document_updated_date(existing)
    if previous is None or previous == today:
        return markdown
    candidate = render_book_document(
        book, source_kind=source_kind, src_path=src_path, today=previous
    )
    if decide_action(existing, candidate) is SyncAction.SKIPPED:
        return candidate
    return markdown


class Importer:
    """Runs the normalise → enrich → render → sync pipeline over every source."""

    def __init__(
        self,
        config: SyncConfig,
        *,
        fetcher: Optional[SourceFetcher] = None,
        store: Optional[DocumentStore] = None,
        today: Optional[date] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.store = store if store is not None else VaultStore(config.vault_root)
        self.today = today
        self.tagging: ColorTagging = config.tagging

    def run(self, dry_run: Optional[bool] = None) -> ImportSummary:
        dry_run = self.config.dry_run if dry_run is None else dry_run
        summary = ImportSummary(source=self.config.source_type, dry_run=dry_run)

        if not _RUN_LOCK.acquire(blocking=False):
            logger.error("Refusing to start: another import is already running")
            summary.record_error(BATCH_FILE, "Another import is already running")
            return summary
        try:
            self._run(summary, dry_run)
        finally:
            _RUN_LOCK.release()
        return summary

    def _run(self, summary: ImportSummary, dry_run: bool) -> None:
        today = self.today or today_utc()
        try:
            fetcher = self.fetcher if self.fetcher is not None else build_fetcher(self.config)
            processed = 0
            for source in fetcher.list_sources():
                processed += 1
                try:
                    books = read_export(fetcher, source)
                except Exception as exc:
                    logger.error("Source failed: %s", source.path, exc_info=True)
                    summary.record_error(UNKNOWN_FILE, _reason(exc), src_path=source.path)
                    continue
                for book in books:
                    self._sync_book(book, source, summary, today, dry_run)
            logger.info("Imported %d export(s): %s", processed, summary.describe())
        except Exception as exc:
            logger.exception("Batch failed")
            summary.record_error(BATCH_FILE, _reason(exc))

    def _sync_book(
        self,
        book: Book,
        source: JsonSource,
        summary: ImportSummary,
        today: date,
        dry_run: bool,
    ) -> None:
        try:
            enriched = enrich_book(book, self.tagging)
            enriched = replace(
                enriched, highlights=sort_highlights(enriched.highlights, self.config.sort_by)
            )
            documents = split_documents(enriched, self.config.one_note_per_book)
        except Exception as exc:
            path = build_book_filename(self.config.vault_subdir, book)
            logger.error("Failed to prepare %s from %s", path, source.path, exc_info=True)
            summary.record_error(path, _reason(exc), src_path=source.path)
            return
        for chapter, document in documents:
            path = build_book_filename(self.config.vault_subdir, document, chapter)
            try:
                existing = self.store.read(path)
                markdown = render_for_target(
                    document,
                    existing,
                    source_kind=source.kind,
                    src_path=source.path,
                    today=today,
                    preserve_updated_date=self.config.preserve_updated_date,
                )
                action = apply_action(
                    self.store, path, markdown, decide_action(existing, markdown), dry_run=dry_run
                )
            except Exception as exc:
                logger.error("Failed to sync %s from %s", path, source.path, exc_info=True)
                summary.record_error(path, _reason(exc), src_path=source.path)
                continue
            logger.log(
                logging.DEBUG if action is SyncAction.SKIPPED else logging.INFO,
                "%s%s %s",
                "[dry-run] " if dry_run else "",
                action.value,
                path,
            )
            summary.record(action, path, src_path=source.path)


def import_all(
    config: SyncConfig,
    *,
    dry_run: Optional[bool] = None,
    fetcher: Optional[SourceFetcher] = None,
    store: Optional[DocumentStore] = None,
    today: Optional[date] = None,
) -> ImportSummary:
    """Import every export described by ``config`` and return the summary."""

    return Importer(config, fetcher=fetcher, store=store, today=today).run(dry_run=dry_run)
