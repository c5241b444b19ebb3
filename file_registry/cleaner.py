import logging
import time

from apscheduler.schedulers.background import BackgroundScheduler
from sqlmodel import Session

from file_registry.config import ORPHAN_GRACE_MINUTES, ORPHAN_SWEEP_INTERVAL_MINUTES
from file_registry.core.exceptions import StoreFailure
from file_registry.records import RecordStore
from file_registry.storage import BlobStore

logger = logging.getLogger("file_registry.cleaner")


def sweep_orphaned_blobs(engine, blob_store: BlobStore, grace_minutes: int = ORPHAN_GRACE_MINUTES) -> int:
    """Remove blobs that no record points at.

    Blobs younger than ``grace_minutes`` are skipped so an upload that has
    written its bytes but not yet inserted its row is left alone.
    """
    with Session(engine) as session:
        known = RecordStore(session).known_locations()

    cutoff = time.time() - grace_minutes * 60
    removed = 0
    for location, mtime in blob_store.locations():
        if location in known or mtime > cutoff:
            continue
        try:
            blob_store.delete(location)
        except StoreFailure:
            continue  # Already logged by the blob store
        logger.info("event=orphan_removed location=%s", location)
        removed += 1
    return removed


def start_cleaner(engine, blob_store: BlobStore, metrics) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()

    def _job():
        try:
            removed = sweep_orphaned_blobs(engine, blob_store)
            if removed:
                metrics.record_orphans_swept(removed)
                logger.info("event=orphan_sweep_done removed=%s", removed)
        except StoreFailure as e:
            logger.error("Record store error in orphan sweep: %s", e.__cause__)
        except OSError as e:
            logger.error("Could not scan storage root in orphan sweep: %s", e)

    scheduler.add_job(_job, "interval", minutes=ORPHAN_SWEEP_INTERVAL_MINUTES)
    scheduler.start()
    logger.info("event=orphan_sweep_started interval_minutes=%s", ORPHAN_SWEEP_INTERVAL_MINUTES)
    return scheduler
