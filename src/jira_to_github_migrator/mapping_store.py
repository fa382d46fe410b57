"""Durable Jira key -> GitHub issue mapping (``mapping.json``).

The whole table is the unit of persistence: it is read once at start-up and
rewritten after every batch. Writes go to a temporary file in the same
directory which is then atomically renamed over the mapping file, so readers
only ever see a complete snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .exceptions import PersistenceError
from .models import MappingTable, MigrationRecord, MigrationStatus

logger: logging.Logger = logging.getLogger(__name__)


def record_to_json(record: MigrationRecord) -> dict[str, Any]:
    return {
        "status": record.status.value,
        "destination_id": record.destination_id,
        "destination_url": record.destination_url,
        "error": record.error_message,
        "timestamp": record.timestamp,
    }


def record_from_json(source_key: str, data: dict[str, Any]) -> MigrationRecord:
    """Build a record from its JSON form.

    Raises:
        ValueError: If the status is missing or unknown
    """
    return MigrationRecord(
        source_key=source_key,
        status=MigrationStatus(data["status"]),
        timestamp=data.get("timestamp") or "",
        destination_id=data.get("destination_id"),
        destination_url=data.get("destination_url"),
        error_message=data.get("error"),
    )


class MappingStore:
    """Loads and saves the mapping table as a single JSON document."""

    path: Path

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def load(self) -> MappingTable:
        """Read the mapping table, or return an empty one if there is no file yet.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed
        """
        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"No existing mapping file at {self.path} - starting fresh migration")
            return {}
        except OSError as e:
            msg = f"Failed to read mapping file {self.path}: {e}"
            raise PersistenceError(msg) from e

        try:
            raw: object = json.loads(raw_text)
            if not isinstance(raw, dict):
                msg = f"expected a JSON object, got {type(raw).__name__}"
                raise TypeError(msg)
            table: MappingTable = {key: record_from_json(key, value) for key, value in raw.items()}
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            msg = f"Mapping file {self.path} is corrupt: {e}"
            raise PersistenceError(msg) from e

        logger.info(f"Loaded existing mappings for {len(table)} issues from {self.path}")
        return table

    def save(self, table: MappingTable) -> None:
        """Atomically replace the mapping file with ``table``.

        Raises:
            PersistenceError: If the snapshot cannot be written
        """
        payload = {key: record_to_json(record) for key, record in table.items()}
        directory = self.path.parent
        temp_path: str | None = None

        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, prefix=f".{self.path.name}.", suffix=".tmp", delete=False
            ) as f:
                temp_path = f.name
                json.dump(payload, f, indent=2, sort_keys=True)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
            temp_path = None
        except OSError as e:
            msg = f"Failed to write mapping file {self.path}: {e}"
            raise PersistenceError(msg) from e
        finally:
            if temp_path:
                Path(temp_path).unlink(missing_ok=True)

        logger.debug(f"Saved {len(table)} mappings to {self.path}")
