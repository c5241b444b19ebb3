from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlmodel import Session, SQLModel, create_engine

from file_registry.config import DB_CONNECT_ARGS, DB_URL

logger = logging.getLogger("file_registry.db")

engine = create_engine(
    DB_URL,
    connect_args=DB_CONNECT_ARGS,
    pool_pre_ping=True,  # Verify connections before use
    echo=False           # Set to True for debugging SQL queries
)


def init_db() -> None:
    # Register the table on the metadata before creating it
    import file_registry.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("event=db_ready url=%s", engine.url.render_as_string(hide_password=True))


def close_db() -> None:
    """Release every pooled connection. Called once on shutdown."""
    engine.dispose()
    logger.info("event=db_closed")


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


session_scope = contextmanager(get_session)
