"""Persisting rendered documents and deciding whether a write is needed."""
from __future__ import annotations

import enum
import posixpath
from pathlib import Path
from typing import Optional

from .markdown import sanitise_filename
from .models import Book


class SyncAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class DocumentStore:
    """Base class for targets addressed by vault-relative POSIX paths."""

    def read(self, path: str) -> Optional[str]:
        """Return the stored text, or ``None`` when nothing exists at ``path``."""

        raise NotImplementedError

    def write(self, path: str, content: str) -> None:
        raise NotImplementedError


class VaultStore(DocumentStore):
    """Markdown files inside an Obsidian vault on disk."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def resolve(self, path: str) -> Path:
        return self.root.expanduser() / Path(*path.split("/"))

    def read(self, path: str) -> Optional[str]:
        target = self.resolve(path)
        if not target.is_file():
            return None
        # newline="" keeps the stored line endings for comparison.
        with target.open("r", encoding="utf-8", newline="") as handle:
            return handle.read()

    def write(self, path: str, content: str) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8", newline="") as handle:
            handle.write(content)


def normalise_eol(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n").rstrip()


def decide_action(existing: Optional[str], rendered: str) -> SyncAction:
    """Classify what a target needs: nothing stored, unchanged, or changed."""

    if existing is None:
        return SyncAction.CREATED
    if normalise_eol(existing) == normalise_eol(rendered):
        return SyncAction.SKIPPED
    return SyncAction.UPDATED


def apply_action(
    store: DocumentStore, path: str, content: str, action: SyncAction, dry_run: bool = False
) -> SyncAction:
    """Carry out ``action``; a dry run only reports it. Updates replace the whole document."""

    if action is not SyncAction.SKIPPED and not dry_run:
        store.write(path, content)
    return action


def sync_document(
    store: DocumentStore, path: str, content: str, dry_run: bool = False
) -> SyncAction:
    action = decide_action(store.read(path), content)
    return apply_action(store, path, content, action, dry_run=dry_run)


def normalise_vault_path(path: str) -> str:
    cleaned = posixpath.normpath(path.replace("\\", "/")).strip("/")
    return "" if cleaned == "." else cleaned


def build_book_filename(subdir: str, book: Book, chapter: Optional[str] = None) -> str:
    """Vault-relative path for a book's note, ``<author> - <title>[ - <chapter>].md``."""

    parts = [sanitise_filename(book.author), sanitise_filename(book.title)]
    if chapter:
        parts.append(sanitise_filename(chapter))
    filename = " - ".join(parts) + ".md"
    folder = normalise_vault_path(subdir)
    return normalise_vault_path(posixpath.join(folder, filename)) if folder else filename
