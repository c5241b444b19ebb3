import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from file_registry.api.routes import router
from file_registry.cleaner import start_cleaner
from file_registry.config import CORS_ORIGINS, ENABLE_ORPHAN_SWEEP, HOST, LOG_LEVEL, PORT
from file_registry.core.exceptions import register_exception_handlers
from file_registry.core.metrics import metrics
from file_registry.db import close_db, engine, init_db
from file_registry.storage import blob_store

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("file_registry")


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = start_cleaner(engine, blob_store, metrics) if ENABLE_ORPHAN_SWEEP else None
    yield
    # In-flight requests are not drained here; uvicorn stops accepting first.
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    close_db()


app = FastAPI(title="File Registry API", version="1.0.0", lifespan=lifespan)

origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()
logger.info("event=storage_ready root=%s", blob_store.root)

app.include_router(router)
register_exception_handlers(app)


def run() -> None:
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
