"""Command line entry point for syncing KOReader highlights into an Obsidian vault."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from koreader_highlights.config import SORT_MODES, SOURCE_TYPES, ConfigError, SyncConfig, load_config
from koreader_highlights.importer import ImportSummary, import_all


def _parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, help="Path to JSON configuration file", default=None)
    parser.add_argument("--source", type=Path, help="Folder containing KOReader JSON exports", default=None)
    parser.add_argument("--source-type", choices=SOURCE_TYPES, help="Where exports are read from", default=None)
    parser.add_argument("--vault", type=Path, help="Path to the root of the Obsidian vault", default=None)
    parser.add_argument("--subdir", help="Folder inside the vault for highlight notes", default=None)
    parser.add_argument("--sort", choices=SORT_MODES, help="Order highlights by page or creation time", default=None)
    parser.add_argument("--no-color-tags", action="store_true", help="Do not add tags derived from highlight colours")
    parser.add_argument("--dry-run", action="store_true", help="Report what would change without writing files")
    parser.add_argument("--verbose", action="store_true", help="Log every document decision")
    return parser.parse_args(list(argv))


def _combine_config(args: argparse.Namespace) -> SyncConfig:
    try:
        config = SyncConfig.from_mapping(load_config(args.config))
    except FileNotFoundError as exc:  # pragma: no cover - user error
        raise SystemExit(f"Configuration file not found: {args.config}") from exc
    except (OSError, json.JSONDecodeError) as exc:  # pragma: no cover - user error
        raise SystemExit(f"Failed to read configuration file: {exc}") from exc
    except ConfigError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    if args.source is not None:
        config.source_folder = args.source
    if args.source_type is not None:
        config.source_type = args.source_type
    if args.vault is not None:
        config.vault_root = args.vault
    if args.subdir is not None:
        config.vault_subdir = args.subdir
    if args.sort is not None:
        config.sort_by = args.sort
    if args.no_color_tags:
        config.apply_color_tags = False
    if args.dry_run:
        config.dry_run = True
    return config


def _print_summary(summary: ImportSummary) -> None:
    prefix = "Dry-run" if summary.dry_run else "Sync complete"
    print(f"{prefix}: {summary.describe()}.")
    for detail in summary.details:
        line = f"  {detail.status.upper()}: {detail.file}"
        if detail.reason:
            line += f" ({detail.reason})"
        print(line)
    if summary.dry_run:
        print("No files were written.")


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = _combine_config(args)

    summary = import_all(config)
    _print_summary(summary)
    return 1 if summary.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
