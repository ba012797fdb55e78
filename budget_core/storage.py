"""JSON file persistence for ``BudgetState`` snapshots.

Failures here must never reach the in-memory state: ``save`` and ``load``
report problems through ``Either``/``Maybe`` and log them instead of raising.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from budget_core.config import DEFAULT_MAX_SNAPSHOT_BYTES
from budget_core.domain import BudgetState
from budget_core.functional import Either, Left, Maybe, Nothing, Right, Some
from budget_core.serialization import is_valid_snapshot, state_from_dict, state_to_dict

logger = logging.getLogger(__name__)


class JsonFileStorage:

    def __init__(self, path: Union[str, Path], max_bytes: int = DEFAULT_MAX_SNAPSHOT_BYTES):
        self.path = Path(path)
        self.max_bytes = max_bytes

    def save(self, state: BudgetState) -> Either[str, int]:
        """Write the snapshot atomically; returns the number of bytes written."""
        data = state_to_dict(state)
        if not is_valid_snapshot(data):
            logger.warning("Refusing to save an invalid snapshot")
            return Left("invalid_snapshot")

        blob = json.dumps(data, ensure_ascii=False)
        size = len(blob.encode("utf-8"))
        if size > self.max_bytes:
            logger.warning("Snapshot of %d bytes exceeds limit of %d, not saved", size, self.max_bytes)
            return Left("snapshot_too_large")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(blob)
                os.replace(tmp_name, self.path)
            except OSError:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise
        except OSError as e:
            logger.error("Error saving budget data to %s: %s", self.path, e)
            return Left(f"io_error: {e}")

        logger.debug("Saved %d bytes to %s", size, self.path)
        return Right(size)

    def load(self) -> Maybe[BudgetState]:
        if not self.path.exists():
            return Nothing()

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Corrupted snapshot in %s (%s), starting fresh", self.path, e)
            self._discard()
            return Nothing()
        except OSError as e:
            logger.error("Error loading budget data from %s: %s", self.path, e)
            return Nothing()

        if not is_valid_snapshot(data):
            logger.warning("Invalid data structure in %s, starting fresh", self.path)
            self._discard()
            return Nothing()

        try:
            return Some(state_from_dict(data))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Malformed snapshot in %s (%s), starting fresh", self.path, e)
            self._discard()
            return Nothing()

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error("Error clearing budget data: %s", e)
            raise

    def _discard(self) -> None:
        try:
            self.path.unlink()
        except OSError as e:
            logger.debug("Could not remove %s: %s", self.path, e)
