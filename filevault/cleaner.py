from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import OperationalError

from filevault.config import CLEANER_BATCH_SIZE, STORAGE_DIR, TRASH_RETENTION_DAYS
from filevault.catalog import SQLCatalog
from filevault.db import ensure_connection
from filevault.services.trash import TrashManager
from filevault.storage import StorageResolver


def purge_expired_trash(manager: TrashManager, retention_days: int = TRASH_RETENTION_DAYS,
                        batch_size: int = CLEANER_BATCH_SIZE, now=None):
    cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
    return manager.purge_expired(cutoff, batch_size)


def start_cleaner(engine, metrics, logger):
    scheduler = BackgroundScheduler()
    manager = TrashManager(SQLCatalog(engine), StorageResolver(STORAGE_DIR))

    def _job():
        if not ensure_connection(engine):
            logger.warning("event=cleanup_skipped reason=db_unreachable")
            return
        try:
            purged, failed = purge_expired_trash(manager)
            if purged:
                metrics.record_purges(purged)
                logger.info("event=cleanup_purged count=%s", purged)
            if failed:
                logger.warning("event=cleanup_failures count=%s", failed)
        except OperationalError as e:
            logger.error("Database connection error in cleanup job: %s", str(e))
        except Exception as e:
            logger.error("Unexpected error in cleanup job: %s", str(e))

    scheduler.add_job(_job, "interval", hours=1)
    scheduler.start()
    return scheduler
