from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class FileRecord(SQLModel, table=True):
    __tablename__ = "files"

    id: str = Field(primary_key=True)
    name: str
    path: str  # Logical folder, unrelated to where the bytes live
    original_name: str
    storage_location: str  # Blob store handle, never returned to clients
    size: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FileRead(SQLModel):
    id: str
    name: str
    path: str
    original_name: str
    size: int
    created_at: datetime


class FileCreated(SQLModel):
    id: str
    name: str
    path: str
    size: int


class MoveRequest(SQLModel):
    path: str


class MessageResponse(SQLModel):
    message: str
