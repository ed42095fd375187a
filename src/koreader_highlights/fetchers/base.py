"""Shared types for export source fetchers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


class SourceReadError(RuntimeError):
    """Raised when an export source cannot be listed, read, or decoded."""


@dataclass(frozen=True)
class JsonSource:
    """One raw export document, addressed by a local or remote path."""

    path: str
    kind: str


class SourceFetcher:
    """Base class for collaborators that supply raw export text."""

    kind = "base"

    def list_sources(self) -> Iterable[JsonSource]:
        """Yield or return every export document; may be produced lazily."""

        raise NotImplementedError

    def read_text(self, source: JsonSource) -> str:
        raise NotImplementedError
