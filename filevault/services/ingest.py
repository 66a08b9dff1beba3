"""Upload ingestion: bytes first, catalog row second.

Each file in a batch is its own unit of work. Bytes are written and
fsync'ed before the catalog insert; if anything after the reservation
fails, the bytes are removed again before the failure is reported, so a
failed file leaves neither a row nor an orphan behind.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import secrets
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

from werkzeug.security import generate_password_hash

from filevault.catalog import Catalog
from filevault.core.exceptions import (
    InvalidInput,
    PayloadTooLarge,
    ShareIdCollision,
    StorageFault,
    VaultError,
)
from filevault.models import FileRecord
from filevault.storage import CHUNK_SIZE_BYTES, StorageResolver

logger = logging.getLogger("filevault.ingest")

_MAX_SHARE_ID_ATTEMPTS = 5


@dataclass
class IncomingFile:
    original_name: str
    stream: BinaryIO
    size: Optional[int] = None
    content_type: Optional[str] = None


@dataclass
class IngestResult:
    original_name: str
    record: Optional[FileRecord] = None
    error: Optional[VaultError] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def generate_share_id(num_bytes: int) -> str:
    return secrets.token_urlsafe(num_bytes)


class UploadIngestor:
    def __init__(
        self,
        catalog: Catalog,
        resolver: StorageResolver,
        max_file_size: int,
        share_id_bytes: int = 16,
        password_method: str = "scrypt",
    ) -> None:
        self.catalog = catalog
        self.resolver = resolver
        self.max_file_size = max_file_size
        self.share_id_bytes = share_id_bytes
        self.password_method = password_method

    def ingest(
        self,
        owner_id: int,
        files: Sequence[IncomingFile],
        share_password: Optional[str] = None,
    ) -> list[IngestResult]:
        if not files:
            raise InvalidInput("No files were uploaded")

        password_hash = (
            generate_password_hash(share_password, method=self.password_method) if share_password else None
        )

        results = []
        for incoming in files:
            try:
                record = self._ingest_one(owner_id, incoming, password_hash)
            except VaultError as exc:
                logger.warning(
                    "event=upload_failed owner_id=%s original_name=%r reason=%s",
                    owner_id, incoming.original_name, type(exc).__name__,
                )
                results.append(IngestResult(incoming.original_name, error=exc))
            else:
                results.append(IngestResult(incoming.original_name, record=record))
        return results

    def _ingest_one(self, owner_id: int, incoming: IncomingFile, password_hash: Optional[str]) -> FileRecord:
        stored_name, path, fd = self.resolver.reserve(owner_id, incoming.original_name)

        # Step 1: bytes
        try:
            size_bytes = self._write(fd, incoming.stream)
        except (StorageFault, PayloadTooLarge):
            self.resolver.rollback(owner_id, stored_name)
            raise
        except Exception as exc:
            logger.exception("event=write_failure owner_id=%s stored_name=%s", owner_id, stored_name)
            self.resolver.rollback(owner_id, stored_name)
            raise StorageFault("Unable to write file") from exc

        if incoming.size is not None and incoming.size != size_bytes:
            logger.warning(
                "event=size_mismatch owner_id=%s stored_name=%s declared=%s written=%s",
                owner_id, stored_name, incoming.size, size_bytes,
            )

        # Step 2: catalog row
        try:
            record = self._insert(owner_id, incoming, stored_name, size_bytes, password_hash)
        except Exception:
            logger.exception(
                "event=catalog_insert_failure owner_id=%s stored_name=%s",
                owner_id, stored_name,
            )
            self.resolver.rollback(owner_id, stored_name)
            raise VaultError("Unable to record file") from None

        logger.info(
            "event=upload_success file_id=%s owner_id=%s stored_name=%s size_bytes=%s protected=%s",
            record.id, owner_id, stored_name, size_bytes, password_hash is not None,
        )
        return record

    def _write(self, fd: int, stream: BinaryIO) -> int:
        written = 0
        with os.fdopen(fd, "wb") as out:
            for chunk in iter(lambda: stream.read(CHUNK_SIZE_BYTES), b""):
                written += len(chunk)
                if written > self.max_file_size:
                    raise PayloadTooLarge(
                        f"File too large. Maximum allowed size is {self.max_file_size / (1024 * 1024):.1f} MB."
                    )
                out.write(chunk)
            out.flush()
            os.fsync(out.fileno())
        return written

    def _insert(
        self,
        owner_id: int,
        incoming: IncomingFile,
        stored_name: str,
        size_bytes: int,
        password_hash: Optional[str],
    ) -> FileRecord:
        content_type = (
            incoming.content_type
            or mimetypes.guess_type(incoming.original_name)[0]
            or "application/octet-stream"
        )
        for attempt in range(1, _MAX_SHARE_ID_ATTEMPTS + 1):
            share_id = generate_share_id(self.share_id_bytes)
            if self.catalog.share_id_exists(share_id):
                logger.warning("event=share_id_collision attempt=%d stage=precheck", attempt)
                continue
            record = FileRecord(
                owner_id=owner_id,
                stored_name=stored_name,
                original_name=incoming.original_name,
                content_type=content_type,
                size_bytes=size_bytes,
                share_id=share_id,
                share_password_hash=password_hash,
            )
            try:
                return self.catalog.add_file(record)
            except ShareIdCollision:
                logger.warning("event=share_id_collision attempt=%d stage=insert", attempt)
        raise RuntimeError("Unable to allocate a unique share id")
