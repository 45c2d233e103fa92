#!/usr/bin/env python3
"""CLI for listing and removing enrolled identities."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from facewatch.config import DEFAULT_CONFIG_PATH, load_settings
from facewatch.errors import NotFoundError
from facewatch.io_utils import ensure_dir, setup_logging
from facewatch.persistence import RegistryStore, RegistryWriter, restore_registry

LOGGER = logging.getLogger("scripts.registry")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect or edit the enrolled identities")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Watch configuration YAML")
    parser.add_argument("--state-path", type=Path, default=None, help="Registry state file override")
    sub = parser.add_subparsers(dest="command", required=True)

    list_parser = sub.add_parser("list", help="Show enrolled identities")
    list_parser.add_argument("--csv", type=Path, default=None, help="Also write the summary to this CSV")

    remove_parser = sub.add_parser("remove", help="Delete an identity")
    remove_parser.add_argument("name", help="Exact (case-sensitive) name to remove")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    settings = load_settings(args.config, {"state_path": args.state_path})
    store = RegistryStore(settings.state_path)
    registry, error = restore_registry(store, dimension=settings.embedding_dim)
    if error is not None:
        LOGGER.error("Saved identities are unreadable: %s", error)
        return 1

    if args.command == "list":
        summary = registry.summary_frame()
        if summary.empty:
            print("No persons added yet.")
        else:
            print(summary.to_string(index=False))
        if args.csv is not None:
            ensure_dir(args.csv.parent)
            summary.to_csv(args.csv, index=False)
            LOGGER.info("Summary written to %s", args.csv)
        return 0

    with RegistryWriter(registry, store):
        try:
            registry.remove(args.name)
        except NotFoundError as exc:
            LOGGER.warning("%s", exc)
            return 1
    LOGGER.info("Removed %s; %d identities remain", args.name, len(registry))
    return 0


if __name__ == "__main__":
    sys.exit(main())
