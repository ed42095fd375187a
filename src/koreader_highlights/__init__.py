"""Utilities for syncing KOReader highlights into Markdown notes."""

from .config import ColorTagging, SyncConfig
from .importer import ImportSummary, import_all
from .models import Book, Highlight

__all__ = ["Book", "ColorTagging", "Highlight", "ImportSummary", "SyncConfig", "import_all"]
