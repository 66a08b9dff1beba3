from __future__ import annotations

import logging
import os
import re
import secrets
import time
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Callable, Iterable

from filevault.core.exceptions import StorageFault

logger = logging.getLogger("filevault.storage")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_STORED_NAME = re.compile(r"^[A-Za-z0-9._-]+$")
_MAX_NAME_ATTEMPTS = 8
_MAX_SANITIZED_LENGTH = 120
_FALLBACK_NAME = "file"
CHUNK_SIZE_BYTES = 1024 * 1024


def sanitize_name(original_name: str) -> str:
    """Reduce an untrusted display name to ``[A-Za-z0-9._-]``.

    Only the last path segment survives, so ``../../etc/passwd`` becomes
    ``passwd``. Names that end up empty or made of dots only are replaced
    with ``file``.
    """
    leaf = PureWindowsPath(PurePosixPath(original_name or "").name).name
    cleaned = _UNSAFE_CHARS.sub("_", leaf)
    if not cleaned.strip("."):
        return _FALLBACK_NAME
    if len(cleaned) > _MAX_SANITIZED_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and stem and len(ext) < 16:
            cleaned = stem[: _MAX_SANITIZED_LENGTH - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:_MAX_SANITIZED_LENGTH]
    return cleaned


class StorageResolver:
    """Maps ``(owner_id, stored_name)`` to a path under the storage root.

    Each owner gets one directory named after its account id. Stored names
    are claimed with an exclusive create, so a name is never handed out
    twice and an existing file is never overwritten.
    """

    def __init__(self, root: str | os.PathLike, clock: Callable[[], int] = time.time_ns) -> None:
        self.root = Path(root).resolve()
        self._clock = clock

    def owner_dir(self, owner_id: int) -> Path:
        directory = (self.root / str(int(owner_id))).resolve()
        if directory.parent != self.root:
            raise StorageFault()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("event=owner_dir_failure owner_id=%s error=%s", owner_id, exc)
            raise StorageFault("Unable to prepare storage") from exc
        if not os.access(directory, os.W_OK | os.X_OK):
            logger.error("event=owner_dir_unwritable owner_id=%s", owner_id)
            raise StorageFault("Storage is not writable")
        return directory

    def path_for(self, owner_id: int, stored_name: str) -> Path:
        if not stored_name or not _STORED_NAME.match(stored_name) or not stored_name.strip("."):
            raise StorageFault("Invalid stored name")
        return self.root / str(int(owner_id)) / stored_name

    def exists(self, owner_id: int, stored_name: str) -> bool:
        return self.path_for(owner_id, stored_name).is_file()

    def _candidates(self, sanitized: str) -> Iterable[str]:
        stamp = self._clock() // 1000  # microseconds
        yield f"{stamp}_{sanitized}"
        for _ in range(_MAX_NAME_ATTEMPTS - 1):
            yield f"{stamp}-{secrets.token_hex(4)}_{sanitized}"

    def reserve(self, owner_id: int, original_name: str) -> tuple[str, Path, int]:
        """Claim a fresh stored name and return it with an open descriptor.

        The caller owns the descriptor and must close it.
        """
        directory = self.owner_dir(owner_id)
        sanitized = sanitize_name(original_name)
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
        for stored_name in self._candidates(sanitized):
            path = directory / stored_name
            try:
                fd = os.open(path, flags, 0o640)
            except FileExistsError:
                logger.info("event=stored_name_collision owner_id=%s stored_name=%s", owner_id, stored_name)
                continue
            except OSError as exc:
                logger.error("event=reserve_failure owner_id=%s error=%s", owner_id, exc)
                raise StorageFault("Unable to write file") from exc
            return stored_name, path, fd
        raise StorageFault("Unable to allocate a unique stored name")

    def remove(self, owner_id: int, stored_name: str) -> bool:
        """Delete stored bytes. Returns False when they were already gone."""
        path = self.path_for(owner_id, stored_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error(
                "event=remove_failure owner_id=%s stored_name=%s error=%s",
                owner_id, stored_name, exc,
            )
            raise StorageFault("Unable to remove file") from exc
        return True

    def rollback(self, owner_id: int, stored_name: str) -> None:
        """Best-effort removal of bytes whose catalog row was never written."""
        try:
            logger.warning("event=rollback_upload owner_id=%s stored_name=%s", owner_id, stored_name)
            self.remove(owner_id, stored_name)
        except StorageFault:
            logger.exception(
                "event=rollback_failure owner_id=%s stored_name=%s orphaned=true",
                owner_id, stored_name,
            )
