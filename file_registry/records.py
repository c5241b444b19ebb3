from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import delete, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from file_registry.core.exceptions import RecordStoreError
from file_registry.models import FileRecord

logger = logging.getLogger("file_registry.records")


class RecordStore:
    """File metadata rows, one session per request."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("event=record_store_failed operation=%s error=%s", operation, exc)
            raise RecordStoreError() from exc

    def insert(self, record: FileRecord) -> FileRecord:
        with self._guard("insert"):
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
        return record

    def all(self) -> list[FileRecord]:
        with self._guard("list"):
            return list(self.session.exec(select(FileRecord).order_by(FileRecord.created_at)).all())

    def get(self, file_id: str) -> FileRecord | None:
        with self._guard("get"):
            return self.session.get(FileRecord, file_id)

    def update_path(self, file_id: str, path: str) -> int:
        with self._guard("update_path"):
            result = self.session.exec(
                update(FileRecord).where(FileRecord.id == file_id).values(path=path)
            )
            self.session.commit()
        return result.rowcount

    def delete(self, file_id: str) -> int:
        with self._guard("delete"):
            result = self.session.exec(delete(FileRecord).where(FileRecord.id == file_id))
            self.session.commit()
        return result.rowcount

    def totals(self) -> dict[str, int]:
        with self._guard("totals"):
            total_files, total_bytes = self.session.exec(
                select(func.count(FileRecord.id), func.coalesce(func.sum(FileRecord.size), 0))
            ).one()
        return {
            "total_files": int(total_files or 0),
            "total_bytes": int(total_bytes or 0),
        }

    def known_locations(self) -> set[str]:
        with self._guard("known_locations"):
            return set(self.session.exec(select(FileRecord.storage_location)).all())
