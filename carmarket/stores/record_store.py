"""
JSON-backed record store.

Each entity set (``users``, ``cars``, ``audit``) is one file holding a JSON
array of objects. Reads return the full snapshot, writes replace it
atomically. Callers that read-modify-write must do so inside
``write_region`` for the sets they touch.
"""

from __future__ import annotations

import json
import re
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError as ModelValidationError

from ..core.locks import LockRegistry
from ..utils.exceptions import StorageError
from ..utils.logger import get_logger

logger = get_logger(__name__)

USERS = "users"
CARS = "cars"
AUDIT = "audit"

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")

Record = Dict[str, Any]
M = TypeVar("M", bound=BaseModel)


class RecordStore:
    """Durable mapping from entity-set name to an ordered list of records."""

    def __init__(self, data_dir: Path, locks: LockRegistry | None = None):
        self.data_dir = Path(data_dir)
        self.locks = locks or LockRegistry()

    def path_for(self, name: str) -> Path:
        if not _NAME_RE.match(name):
            raise ValueError(f"Invalid record set name: {name!r}")
        return self.data_dir / f"{name}.json"

    def _read(self, name: str) -> Any:
        with open(self.path_for(name), "r", encoding="utf-8") as f:
            return json.load(f)

    def load(self, name: str) -> List[Record]:
        """Return the records of ``name``; absent or unreadable sets are empty."""
        if not self.path_for(name).exists():
            return []
        try:
            data = self._read(name)
        except (ValueError, OSError) as e:
            # ValueError covers both bad JSON and bytes that are not UTF-8
            logger.warning("Failed to load record set", name=name, error=str(e))
            return []
        if not isinstance(data, list):
            logger.warning("Record set is not a list", name=name)
            return []
        return [item for item in data if isinstance(item, dict)]

    def is_unreadable(self, name: str) -> bool:
        """True when the file of ``name`` exists but does not hold a JSON array."""
        if not self.path_for(name).exists():
            return False
        try:
            return not isinstance(self._read(name), list)
        except (ValueError, OSError):
            return True

    def save(self, name: str, records: List[Record]) -> None:
        """Atomically replace the records of ``name``."""
        path = self.path_for(name)
        temp_path = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w", dir=str(path.parent), delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                temp_path = Path(tf.name)
                json.dump(records, tf, indent=2, ensure_ascii=False)
            shutil.move(str(temp_path), str(path))
        except (OSError, TypeError, ValueError) as e:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            logger.error("Failed to save record set", name=name, error=str(e))
            raise StorageError(f"Failed to save {name} to {path}: {e}")

    @contextmanager
    def write_region(self, *names: str) -> Generator[None, None, None]:
        """Mutual exclusion over the named sets for one load -> save cycle."""
        with self.locks.acquire(names):
            yield


def parse_records(items: List[Record], model: Type[M]) -> Tuple[List[M], List[Record]]:
    """Split raw records into validated models and the records that failed validation."""
    valid: List[M] = []
    rejected: List[Record] = []
    for item in items:
        try:
            valid.append(model.model_validate(item))
        except ModelValidationError:
            rejected.append(item)
    return valid, rejected
