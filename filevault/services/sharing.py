from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from werkzeug.security import check_password_hash

from filevault.catalog import Catalog
from filevault.core.exceptions import ConsistencyFault, NotFound, Unauthorized
from filevault.models import FileRecord
from filevault.storage import StorageResolver

logger = logging.getLogger("filevault.sharing")

_SHARE_PASSWORD_DETAIL = "A valid password is required to access this file"


@dataclass(frozen=True)
class SharedFile:
    """What the public download path gets: no owner, no stored name."""

    original_name: str
    content_type: str
    size_bytes: int
    path: Path


class ShareLinkService:
    def __init__(self, catalog: Catalog, resolver: StorageResolver, hide_trashed: bool = True) -> None:
        self.catalog = catalog
        self.resolver = resolver
        self.hide_trashed = hide_trashed

    def _lookup(self, share_id: str) -> FileRecord:
        record = self.catalog.get_file_by_share_id(share_id) if share_id else None
        if record is None or (record.trashed and self.hide_trashed):
            raise NotFound()
        return record

    def describe(self, share_id: str) -> dict:
        record = self._lookup(share_id)
        return {
            "original_name": record.original_name,
            "size_bytes": record.size_bytes,
            "content_type": record.content_type,
            "password_required": record.password_protected,
        }

    def resolve(self, share_id: str, supplied_password: Optional[str] = None) -> SharedFile:
        record = self._lookup(share_id)

        if record.share_password_hash:
            if not supplied_password or not check_password_hash(record.share_password_hash, supplied_password):
                logger.info("event=share_password_rejected file_id=%s", record.id)
                raise Unauthorized(_SHARE_PASSWORD_DETAIL)

        path = self.resolver.path_for(record.owner_id, record.stored_name)
        if not path.is_file():
            logger.error(
                "event=consistency_fault file_id=%s owner_id=%s stored_name=%s",
                record.id, record.owner_id, record.stored_name,
            )
            raise ConsistencyFault(record.id)

        logger.info("event=share_resolved file_id=%s", record.id)
        return SharedFile(
            original_name=record.original_name,
            content_type=record.content_type,
            size_bytes=record.size_bytes,
            path=path,
        )
