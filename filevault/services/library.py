from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from filevault.catalog import Catalog
from filevault.core.exceptions import ConsistencyFault, Forbidden
from filevault.models import FileRecord
from filevault.storage import StorageResolver

logger = logging.getLogger("filevault.library")


def owned_record(catalog: Catalog, owner_id: int, file_id: int) -> FileRecord:
    """Fetch a record and check that ``owner_id`` owns it.

    Raises:
        Forbidden: no record with this id belongs to the caller. A missing
            id and another owner's id look the same.
    """
    record = catalog.get_file(file_id)
    if record is None or record.owner_id != owner_id:
        logger.warning("event=ownership_denied file_id=%s caller_id=%s", file_id, owner_id)
        raise Forbidden()
    return record


class Library:
    def __init__(self, catalog: Catalog, resolver: StorageResolver) -> None:
        self.catalog = catalog
        self.resolver = resolver

    def list_active(self, owner_id: int) -> Sequence[FileRecord]:
        return self.catalog.list_files(owner_id, trashed=False)

    def list_trashed(self, owner_id: int) -> Sequence[FileRecord]:
        return self.catalog.list_files(owner_id, trashed=True)

    def get(self, owner_id: int, file_id: int) -> FileRecord:
        return owned_record(self.catalog, owner_id, file_id)

    def open(self, owner_id: int, file_id: int) -> tuple[FileRecord, Path]:
        record = owned_record(self.catalog, owner_id, file_id)
        path = self.resolver.path_for(owner_id, record.stored_name)
        if not path.is_file():
            logger.error("event=consistency_fault file_id=%s owner_id=%s", file_id, owner_id)
            raise ConsistencyFault(record.id)
        return record, path
