from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from sqlmodel import Session

from file_registry.core.metrics import metrics
from file_registry.db import get_session
from file_registry.models import FileCreated, FileRead, MessageResponse, MoveRequest
from file_registry.records import RecordStore
from file_registry.registry import FileRegistry
from file_registry.storage import blob_store

router = APIRouter()

logger = logging.getLogger("file_registry")


def get_registry(session: Session = Depends(get_session)) -> FileRegistry:
    return FileRegistry(blob_store, RecordStore(session))


@router.post("/upload", response_model=FileCreated)
def upload(
    file: UploadFile | None = File(None),
    name: str | None = Form(None),
    path: str | None = Form(None),
    registry: FileRegistry = Depends(get_registry),
):
    record = registry.create(
        file.file if file else None,
        file.filename if file else None,
        name=name,
        path=path,
        declared_size=file.size if file else None,
    )
    metrics.record_upload(record.size)
    return FileCreated(id=record.id, name=record.name, path=record.path, size=record.size)


@router.delete("/files/{file_id}", response_model=MessageResponse)
def delete_file(file_id: str, registry: FileRegistry = Depends(get_registry)):
    registry.delete(file_id)
    metrics.record_deletions()
    return MessageResponse(message="File deleted successfully")


@router.get("/files", response_model=list[FileRead])
def list_files(registry: FileRegistry = Depends(get_registry)):
    return [FileRead.model_validate(record, from_attributes=True) for record in registry.list()]


@router.get("/file/{file_id}")
def download_file(file_id: str, registry: FileRegistry = Depends(get_registry)):
    record, blob_path = registry.get(file_id)
    metrics.record_download()
    logger.info("event=file_served file_id=%s size_bytes=%s", file_id, record.size)
    return FileResponse(blob_path, filename=record.original_name)


@router.patch("/files/{file_id}/move", response_model=MessageResponse)
def move_file(file_id: str, body: MoveRequest, registry: FileRegistry = Depends(get_registry)):
    registry.move(file_id, body.path)
    metrics.record_move()
    return MessageResponse(message="File moved successfully")


@router.get("/metrics")
def metrics_snapshot(registry: FileRegistry = Depends(get_registry)):
    payload = {**metrics.snapshot(), **registry.totals()}
    response = JSONResponse(payload)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response
