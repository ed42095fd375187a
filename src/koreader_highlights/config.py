"""Configuration helpers for the KOReader highlight synchroniser."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

SOURCE_TYPES = ("local", "webdav")
SORT_MODES = ("page", "time")


class ConfigError(ValueError):
    """Raised when configuration values are invalid."""


def default_color_map() -> Dict[str, List[str]]:
    return {
        "yellow": ["hl/insight"],
        "blue": ["hl/reference"],
        "pink": ["hl/quote"],
        "green": ["hl/todo"],
    }


@dataclass(frozen=True)
class ColorTagging:
    """Immutable colour → tags lookup handed to the enricher."""

    color_map: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    apply_color_tags: bool = True


@dataclass
class WebDavSettings:
    url: str = ""
    username: str = ""
    password: str = ""
    base_path: str = "/koreader/clipboard"


@dataclass
class SyncConfig:
    """Holds configuration for syncing highlights."""

    source_type: str = "local"
    source_folder: Optional[Path] = None
    webdav: WebDavSettings = field(default_factory=WebDavSettings)
    vault_root: Path = Path("./vault")
    vault_subdir: str = "Reading/Highlights"
    one_note_per_book: bool = True
    sort_by: Optional[str] = None
    color_map: Dict[str, List[str]] = field(default_factory=default_color_map)
    apply_color_tags: bool = True
    dry_run: bool = False
    preserve_updated_date: bool = True

    @property
    def tagging(self) -> ColorTagging:
        frozen = {color: tuple(tags) for color, tags in self.color_map.items()}
        return ColorTagging(
            color_map=MappingProxyType(frozen),
            apply_color_tags=self.apply_color_tags,
        )

    def validate(self) -> None:
        if self.source_type not in SOURCE_TYPES:
            raise ConfigError(f"Unsupported source type: {self.source_type!r}")
        if self.sort_by is not None and self.sort_by not in SORT_MODES:
            raise ConfigError(f"Unsupported highlight ordering: {self.sort_by!r}")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "SyncConfig":
        kwargs: Dict[str, Any] = {}
        if "source_type" in data and data["source_type"]:
            kwargs["source_type"] = str(data["source_type"]).strip().lower()
        if "source_folder" in data and data["source_folder"]:
            kwargs["source_folder"] = Path(data["source_folder"])
        if "webdav" in data and isinstance(data["webdav"], dict):
            webdav = data["webdav"]
            kwargs["webdav"] = WebDavSettings(
                url=str(webdav.get("url") or ""),
                username=str(webdav.get("username") or ""),
                password=str(webdav.get("password") or ""),
                base_path=str(webdav.get("base_path") or WebDavSettings.base_path),
            )
        if "vault_root" in data and data["vault_root"]:
            kwargs["vault_root"] = Path(data["vault_root"])
        if "vault_subdir" in data and data["vault_subdir"] is not None:
            kwargs["vault_subdir"] = str(data["vault_subdir"])
        if "one_note_per_book" in data:
            kwargs["one_note_per_book"] = bool(data["one_note_per_book"])
        if "sort_by" in data:
            kwargs["sort_by"] = str(data["sort_by"]).strip().lower() if data["sort_by"] else None
        if "color_map" in data and data["color_map"] is not None:
            kwargs["color_map"] = parse_color_map(data["color_map"])
        if "apply_color_tags" in data:
            kwargs["apply_color_tags"] = bool(data["apply_color_tags"])
        if "dry_run" in data:
            kwargs["dry_run"] = bool(data["dry_run"])
        if "preserve_updated_date" in data:
            kwargs["preserve_updated_date"] = bool(data["preserve_updated_date"])
        config = cls(**kwargs)
        config.validate()
        return config


def parse_color_map(raw: Any) -> Dict[str, List[str]]:
    """Normalise a user supplied colour map.

    Keys are trimmed and lowercased. Tag lists may be given as a list or a
    comma separated string; blanks are dropped and duplicates removed while
    keeping the configured order.
    """

    if not isinstance(raw, dict):
        raise ConfigError("color_map must be an object mapping colours to tag lists")
    color_map: Dict[str, List[str]] = {}
    for color, tags in raw.items():
        key = str(color).strip().lower()
        if not key:
            continue
        if isinstance(tags, str):
            tags = tags.split(",")
        if not isinstance(tags, list):
            raise ConfigError(f"Tags for colour {color!r} must be a list")
        merged: Iterable[str] = color_map.get(key, []) + [str(tag).strip() for tag in tags]
        color_map[key] = list(dict.fromkeys(tag for tag in merged if tag))
    return color_map


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    """Load a JSON configuration file if provided."""

    if path is None:
        return {}
    with path.expanduser().resolve().open("r", encoding="utf-8") as handle:
        return json.load(handle)
