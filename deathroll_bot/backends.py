from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Final, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import PersistenceError
from .models import utc_now_iso

log: Final = logging.getLogger("deathroll-bot.storage")


class DocumentBackend(Protocol):
    def load(self) -> object | None:
        """Return the decoded document, ``None`` when nothing is stored yet.

        Raises ``ValueError`` when stored content cannot be decoded and
        ``PersistenceError`` when storage cannot be read at all.
        """

    def save(self, document: dict[str, object]) -> None: ...


class JsonFileBackend:
    """Keeps the document in a pretty-printed JSON file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> object | None:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Failed to read {self.path}: {exc}") from exc
        return json.loads(raw)

    def save(self, document: dict[str, object]) -> None:
        payload = json.dumps(document, indent=2)
        directory = self.path.parent
        tmp_name: str | None = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"Failed to write {self.path}: {exc}") from exc


class DynamoDocumentBackend:
    """Stores the whole document as one JSON attribute of a single item."""

    PK_VALUE: Final[str] = "DEATHROLL"
    SK_VALUE: Final[str] = "DOCUMENT"

    def __init__(self, table) -> None:
        self._table = table

    @classmethod
    def key(cls) -> dict[str, str]:
        return {"pk": cls.PK_VALUE, "sk": cls.SK_VALUE}

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Death roll table is not configured")

    def load(self) -> object | None:
        self.ensure_table()
        try:
            resp = self._table.get_item(Key=self.key())
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"Failed to read document item: {exc}") from exc
        item = resp.get("Item")
        if not item:
            return None
        raw = item.get("document")
        if raw is None:
            return None
        return json.loads(str(raw))

    def save(self, document: dict[str, object]) -> None:
        self.ensure_table()
        item = self.key()
        item.update({"document": json.dumps(document), "updated_at": utc_now_iso()})
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"Failed to write document item: {exc}") from exc


def build_backend(
    *, db_path: str, table_name: str | None, region: str
) -> DocumentBackend:
    if table_name:
        log.info("Using DynamoDB table %s for guild documents", table_name)
        dynamodb = boto3.resource("dynamodb", region_name=region)
        return DynamoDocumentBackend(dynamodb.Table(table_name))
    log.info("Using JSON file %s for guild documents", db_path)
    return JsonFileBackend(db_path)


__all__ = [
    "DocumentBackend",
    "DynamoDocumentBackend",
    "JsonFileBackend",
    "build_backend",
]
