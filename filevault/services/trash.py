"""Business logic for trash (soft delete), restore and purge."""

from __future__ import annotations

import logging
from datetime import datetime

from filevault.catalog import Catalog
from filevault.core.exceptions import Forbidden, VaultError
from filevault.models import FileRecord
from filevault.services.library import owned_record
from filevault.storage import StorageResolver

logger = logging.getLogger("filevault.trash")


class TrashManager:
    """Moves files between active and trashed, and purges them.

    Purge removes bytes before the catalog row. A crash in between leaves
    a row without bytes, which the next read reports as a consistency
    fault and the next purge clears.
    """

    def __init__(self, catalog: Catalog, resolver: StorageResolver, clock=datetime.utcnow) -> None:
        self.catalog = catalog
        self.resolver = resolver
        self._clock = clock

    def trash(self, owner_id: int, file_id: int) -> FileRecord:
        """Move file to trash. Already-trashed files are left untouched.

        Raises:
            Forbidden: caller does not own the file, or it does not exist.
        """
        record = owned_record(self.catalog, owner_id, file_id)
        if record.trashed:
            return record
        updated = self.catalog.set_trashed(file_id, True, self._clock())
        logger.info("event=file_trashed file_id=%s owner_id=%s", file_id, owner_id)
        return updated or record

    def restore(self, owner_id: int, file_id: int) -> FileRecord:
        """Bring file back from trash. Active files are left untouched."""
        record = owned_record(self.catalog, owner_id, file_id)
        if not record.trashed:
            return record
        updated = self.catalog.set_trashed(file_id, False, None)
        logger.info("event=file_restored file_id=%s owner_id=%s", file_id, owner_id)
        return updated or record

    def purge(self, owner_id: int, file_id: int) -> bool:
        """Permanently delete bytes, then the catalog row.

        Purging an id that no longer exists succeeds and returns False.

        Raises:
            Forbidden: caller does not own the file.
            StorageFault: bytes exist but could not be removed; the row is kept.
        """
        record = self.catalog.get_file(file_id)
        if record is None:
            logger.info("event=purge_noop file_id=%s owner_id=%s", file_id, owner_id)
            return False
        if record.owner_id != owner_id:
            logger.warning("event=ownership_denied file_id=%s caller_id=%s", file_id, owner_id)
            raise Forbidden()

        # Phase 1: bytes
        removed = self.resolver.remove(record.owner_id, record.stored_name)
        if not removed:
            logger.warning(
                "event=purge_bytes_missing file_id=%s owner_id=%s stored_name=%s",
                file_id, owner_id, record.stored_name,
            )

        # Phase 2: catalog row
        self.catalog.delete_file(file_id)
        logger.info(
            "event=file_purged file_id=%s owner_id=%s size_bytes=%s",
            file_id, owner_id, record.size_bytes,
        )
        return True

    def purge_expired(self, older_than: datetime, limit: int = 1000) -> tuple[int, int]:
        """Purge files that have sat in trash since before ``older_than``.

        Returns:
            ``(purged, failed)`` counts. One failure does not stop the sweep.
        """
        purged = 0
        failed = 0
        for record in self.catalog.list_expired_trash(older_than, limit):
            try:
                if self.purge(record.owner_id, record.id):
                    purged += 1
            except VaultError:
                logger.exception("event=trash_purge_failure file_id=%s", record.id)
                failed += 1
        return purged, failed
