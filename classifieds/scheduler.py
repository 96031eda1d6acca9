# classifieds/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler

from .auth import service_principal
from .config import CLEANUP_INTERVAL_MINUTES, STORAGE_URL
from .db import SessionLocal
from .exceptions import StorageError
from .reclaimer import ExpiryReclaimer
from .storage import ObjectStore, StorageClient
from .utils import logger

scheduler = BackgroundScheduler()


def check_storage_config():
    """Fail at startup rather than on every tick when the object store is not configured."""
    if not STORAGE_URL:
        raise StorageError("STORAGE_URL not set; expired listings cannot be reclaimed")


def run_cleanup(object_store: ObjectStore | None = None):
    """One reclaimer pass in its own session, under the service principal."""
    db = SessionLocal()
    store = object_store
    try:
        if store is None:
            store = StorageClient()
        return ExpiryReclaimer(db, store, service_principal()).run()
    finally:
        db.close()
        if object_store is None and store is not None:
            store.close()


def _scheduled_cleanup():
    try:
        run_cleanup()
    except Exception as e:
        # next tick re-selects whatever this run missed
        logger.exception("Scheduled cleanup failed: %s", e)


def start():
    if scheduler.running:
        return
    check_storage_config()
    scheduler.add_job(
        _scheduled_cleanup, 'interval', minutes=CLEANUP_INTERVAL_MINUTES,
        id="cleanup-expired", replace_existing=True, coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler started (cleanup every %d min)", CLEANUP_INTERVAL_MINUTES)


def shutdown():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
