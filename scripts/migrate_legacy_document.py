#!/usr/bin/env python3
"""Convert a legacy single-guild ``db.json`` into the per-guild document.

The source file is read and normalized in memory. By default nothing is
written (dry-run) and a per-guild summary is printed. Pass ``--execute`` to
write the result back to the source file, or to a DynamoDB table with
``--table``.
"""

from __future__ import annotations

import argparse
import logging
import os
import pathlib
import sys
from collections.abc import Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from deathroll_bot import (  # noqa: E402
    DynamoDocumentBackend,
    GuildStore,
    JsonFileBackend,
    PersistenceError,
    resolve_legacy_guild_id,
)
from deathroll_bot.config import env_list  # noqa: E402


class _ReadOnlyBackend:
    """Wraps a backend so loading never writes the migrated document back."""

    def __init__(self, inner: JsonFileBackend) -> None:
        self._inner = inner

    def load(self) -> object | None:
        return self._inner.load()

    def save(self, document: dict[str, object]) -> None:
        del document


log = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--source",
        default="db.json",
        help="Path of the document to migrate (default: db.json)",
    )
    parser.add_argument(
        "--guild",
        help="Guild id that inherits a legacy document (defaults to GUILD_ID)",
    )
    parser.add_argument(
        "--table",
        help="Write the migrated document to this DynamoDB table instead",
    )
    parser.add_argument(
        "--region",
        help="AWS region (defaults to boto3's resolution order)",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Write the migrated document instead of printing the summary only",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def summarize(store: GuildStore) -> list[str]:
    lines: list[str] = []
    for guild_id in store.guild_ids():
        record = store.get(guild_id)
        lines.append(
            f"guild={guild_id} status={record.status.value} "
            f"players={len(record.roster())} nicknames={len(record.nicknames)}"
        )
    return lines


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    legacy_guild = args.guild or resolve_legacy_guild_id(
        os.getenv("GUILD_ID"), env_list("ALLOWED_GUILD_IDS")
    )
    source = JsonFileBackend(args.source)
    store = GuildStore.open(_ReadOnlyBackend(source), legacy_guild_id=legacy_guild)

    for line in summarize(store):
        print(line)

    if not args.execute:
        log.info("Dry run complete. Re-run with --execute to write changes.")
        return 0

    document = store.to_document()
    try:
        if args.table:
            session = boto3.session.Session(region_name=args.region)
            table = session.resource("dynamodb").Table(args.table)
            DynamoDocumentBackend(table).save(document)
            log.info("Wrote migrated document to table %s", args.table)
        else:
            source.save(document)
            log.info("Wrote migrated document to %s", args.source)
    except (PersistenceError, BotoCoreError, ClientError) as exc:
        log.error("Migration failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
