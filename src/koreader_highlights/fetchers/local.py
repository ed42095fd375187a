"""Read KOReader exports from a local (or mounted device) folder."""
from __future__ import annotations

from pathlib import Path
from typing import List

from .base import JsonSource, SourceFetcher, SourceReadError


class LocalFolderFetcher(SourceFetcher):
    """Lists every ``*.json`` file directly inside ``folder``, sorted by name."""

    kind = "local"

    def __init__(self, folder: Path) -> None:
        self.folder = folder

    def list_sources(self) -> List[JsonSource]:
        folder = self.folder.expanduser()
        if not folder.is_dir():
            raise SourceReadError(f"Source folder not found: {folder}")
        return [
            JsonSource(path=str(entry), kind=self.kind)
            for entry in sorted(folder.iterdir())
            if entry.is_file() and entry.name.endswith(".json")
        ]

    def read_text(self, source: JsonSource) -> str:
        try:
            return Path(source.path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceReadError(f"Failed to read {source.path}: {exc}") from exc
