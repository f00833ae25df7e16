"""JSON file storage adapter.

Writes go to ``<path>.tmp``, are fsynced, and are then atomically renamed over
the destination; the previous good file is kept as ``<path>.bak``. Failed
writes are retried a bounded number of times with a fixed delay.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import time
from collections.abc import Callable
from pathlib import Path

from todokeep.adapters.base import Record, StorageAdapter
from todokeep.adapters.envelope import decode_envelope, encode_envelope
from todokeep.models.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_WRITE_ATTEMPTS = 5
DEFAULT_RETRY_DELAY_MS = 50


class FileStorageAdapter(StorageAdapter):
    """Durable file-backed record store."""

    def __init__(
        self,
        path: str | Path,
        *,
        write_attempts: int = DEFAULT_WRITE_ATTEMPTS,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        keep_backup: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the file adapter.

        Args:
            path: Destination file of the store
            write_attempts: Attempts per save before giving up
            retry_delay_ms: Fixed delay between attempts
            keep_backup: Keep the previous good file as ``<path>.bak``
            sleep: Sleep function (injectable for tests)
        """
        if write_attempts < 1:
            raise ValueError("write_attempts must be at least 1")
        self.path = Path(path).expanduser()
        self.tmp_path = self.path.with_name(self.path.name + ".tmp")
        self.backup_path = self.path.with_name(self.path.name + ".bak")
        self.write_attempts = write_attempts
        self.retry_delay = retry_delay_ms / 1000.0
        self.keep_backup = keep_backup
        self._sleep = sleep
        # Only a primary file we have read or written successfully may
        # overwrite the backup.
        self._primary_verified = False

    @property
    def storage_type(self) -> str:
        return "file"

    def load(self) -> list[Record]:
        self._recover_tmp()

        if not self.path.exists():
            if self.backup_path.exists():
                logger.warning("Store %s missing; restoring from backup", self.path)
                return self._load_backup(cause=None)
            logger.debug("Store %s does not exist yet; starting empty", self.path)
            self._primary_verified = True
            return []

        try:
            records = self._read(self.path)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read store %s: %s", self.path, e)
            self._primary_verified = False
            return self._load_backup(cause=e)

        self._primary_verified = True
        logger.debug("Loaded %d record(s) from %s", len(records), self.path)
        return records

    def save(self, records: list[Record]) -> None:
        try:
            payload = json.dumps(encode_envelope(records), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError("Records are not serializable", cause=e) from e

        last_error: OSError | None = None
        for attempt in range(1, self.write_attempts + 1):
            try:
                self._write_atomic(payload)
            except OSError as e:
                last_error = e
                logger.warning(
                    "Write attempt %d/%d to %s failed: %s",
                    attempt,
                    self.write_attempts,
                    self.path,
                    e,
                )
                self._discard_tmp()
                if attempt < self.write_attempts:
                    self._sleep(self.retry_delay)
                continue
            self._primary_verified = True
            logger.debug("Wrote %d record(s) to %s", len(records), self.path)
            return

        raise StorageError(
            f"Failed to write {self.path} after {self.write_attempts} attempts",
            cause=last_error,
        ) from last_error

    def close(self) -> None:
        self._discard_tmp()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> list[Record]:
        text = path.read_text(encoding="utf-8")
        return decode_envelope(json.loads(text))

    def _load_backup(self, cause: BaseException | None) -> list[Record]:
        if not self.backup_path.exists():
            raise StorageError(
                f"Store {self.path} is unreadable and no backup exists", cause=cause
            ) from cause
        try:
            records = self._read(self.backup_path)
        except (OSError, ValueError) as e:
            logger.error("Backup %s is unreadable too: %s", self.backup_path, e)
            raise StorageError(
                f"Store {self.path} and its backup are both unreadable", cause=cause or e
            ) from e
        logger.warning(
            "Recovered %d record(s) from backup %s", len(records), self.backup_path
        )
        return records

    def _write_atomic(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        if self.keep_backup and self._primary_verified and self.path.exists():
            shutil.copy2(self.path, self.backup_path)
        os.replace(self.tmp_path, self.path)

    def _recover_tmp(self) -> None:
        """Handle a temp file left behind by an interrupted write.

        Without a primary file the temp file is the newest complete write and
        is promoted; next to a primary it is discarded.
        """
        if not self.tmp_path.exists():
            return
        if self.path.exists():
            logger.info("Discarding stale temp file %s", self.tmp_path)
            self._discard_tmp()
            return
        try:
            decode_envelope(json.loads(self.tmp_path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.warning("Stale temp file %s is unusable: %s", self.tmp_path, e)
            self._discard_tmp()
            return
        logger.warning("Promoting temp file %s left by an interrupted write", self.tmp_path)
        os.replace(self.tmp_path, self.path)

    def _discard_tmp(self) -> None:
        try:
            self.tmp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Could not remove temp file %s: %s", self.tmp_path, e)
