"""Collaborators that list and read raw KOReader export documents."""
from __future__ import annotations

from ..config import SyncConfig
from .base import JsonSource, SourceFetcher, SourceReadError
from .local import LocalFolderFetcher
from .webdav import WebDavFetcher


def build_fetcher(config: SyncConfig) -> SourceFetcher:
    """Pick the fetcher matching ``config.source_type``."""

    if config.source_type == "local":
        if config.source_folder is None:
            raise SourceReadError("Local source folder not configured")
        return LocalFolderFetcher(config.source_folder)
    if config.source_type == "webdav":
        settings = config.webdav
        return WebDavFetcher(
            url=settings.url,
            username=settings.username,
            password=settings.password,
            base_path=settings.base_path,
        )
    raise SourceReadError(f"Unsupported source type: {config.source_type}")


__all__ = [
    "JsonSource",
    "LocalFolderFetcher",
    "SourceFetcher",
    "SourceReadError",
    "WebDavFetcher",
    "build_fetcher",
]
