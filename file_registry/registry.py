"""Coordination of the blob store and the record store.

Every operation touches the record store first for lookups, then performs at
most one blob side effect. Nothing is rolled back across the two stores:

* ``create`` writes the blob before inserting the row, so a failed insert
  leaves an orphaned blob behind (see ``file_registry.cleaner``).
* ``delete`` removes the row before the blob, so a failed unlink is reported
  even though the metadata is already gone.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Protocol

from file_registry.config import ROOT_PATH_MARKER
from file_registry.core.exceptions import BadRequest, FileNotFound, StoreFailure
from file_registry.models import FileRecord

logger = logging.getLogger("file_registry.registry")


class BlobStorage(Protocol):
    def save(self, stream: BinaryIO) -> tuple[str, int]: ...

    def resolve(self, location: str) -> Path: ...

    def delete(self, location: str) -> None: ...


class RecordStorage(Protocol):
    def insert(self, record: FileRecord) -> FileRecord: ...

    def all(self) -> list[FileRecord]: ...

    def get(self, file_id: str) -> FileRecord | None: ...

    def update_path(self, file_id: str, path: str) -> int: ...

    def delete(self, file_id: str) -> int: ...

    def totals(self) -> dict[str, int]: ...


@contextmanager
def _failure_message(message: str) -> Iterator[None]:
    try:
        yield
    except StoreFailure as exc:
        exc.message = message
        raise


class FileRegistry:
    def __init__(self, blobs: BlobStorage, records: RecordStorage) -> None:
        self.blobs = blobs
        self.records = records

    def create(
        self,
        stream: BinaryIO | None,
        original_name: str | None,
        name: str | None = None,
        path: str | None = None,
        declared_size: int | None = None,
    ) -> FileRecord:
        if stream is None or not original_name:
            raise BadRequest("Missing file")

        with _failure_message("Failed to upload file"):
            location, size = self.blobs.save(stream)
            if declared_size is not None and declared_size != size:
                logger.warning(
                    "event=size_mismatch location=%s declared_bytes=%s written_bytes=%s",
                    location,
                    declared_size,
                    size,
                )

            file_id = str(uuid.uuid4())
            record = FileRecord(
                id=file_id,
                name=name or original_name,
                path=path or ROOT_PATH_MARKER,
                original_name=original_name,
                storage_location=location,
                size=size,
            )
            try:
                self.records.insert(record)
            except StoreFailure:
                # Blob stays on disk; the orphan sweep reclaims it.
                logger.error("event=orphaned_blob location=%s file_id=%s", location, file_id)
                raise

        logger.info(
            "event=file_created file_id=%s path=%s size_bytes=%s",
            record.id,
            record.path,
            record.size,
        )
        return record

    def list(self) -> list[FileRecord]:
        with _failure_message("Failed to get files"):
            return self.records.all()

    def totals(self) -> dict[str, int]:
        with _failure_message("Failed to get metrics"):
            return self.records.totals()

    def get(self, file_id: str) -> tuple[FileRecord, Path]:
        with _failure_message("Failed to get file"):
            record = self.records.get(file_id)
            if record is None:
                raise FileNotFound()
            # A known record with missing bytes is a storage failure, not a 404.
            return record, self.blobs.resolve(record.storage_location)

    def move(self, file_id: str, path: str) -> None:
        with _failure_message("Failed to move file"):
            updated = self.records.update_path(file_id, path)
        if not updated:
            raise FileNotFound()
        logger.info("event=file_moved file_id=%s path=%s", file_id, path)

    def delete(self, file_id: str) -> None:
        with _failure_message("Failed to delete file"):
            record = self.records.get(file_id)
            if record is None:
                raise FileNotFound()
            location = record.storage_location
            self.records.delete(file_id)
            try:
                self.blobs.delete(location)
            except StoreFailure:
                logger.error(
                    "event=dangling_delete file_id=%s location=%s",
                    file_id,
                    location,
                )
                raise
        logger.info("event=file_deleted file_id=%s", file_id)
