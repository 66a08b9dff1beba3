from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("filevault")


class VaultError(Exception):
    """Base class for failures surfaced to callers of the core operations.

    ``detail`` is safe to show to the client: it never carries storage
    paths, stored names or owner ids.
    """

    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFound(VaultError):
    status_code = 404
    default_detail = "File not found"


class Forbidden(VaultError):
    status_code = 403
    default_detail = "You do not have access to this file"


class Unauthorized(VaultError):
    status_code = 401
    default_detail = "Invalid credentials"


class DuplicateIdentity(VaultError):
    status_code = 409
    default_detail = "Email already exists"


class InvalidInput(VaultError):
    status_code = 400
    default_detail = "Invalid request"


class PayloadTooLarge(VaultError):
    status_code = 413
    default_detail = "File too large"


class StorageFault(VaultError):
    """The storage directory is missing, unwritable or otherwise failing."""

    default_detail = "Storage unavailable"


class ConsistencyFault(VaultError):
    """A catalog row exists but its bytes are gone from the owner namespace."""

    default_detail = "File content is unavailable"

    def __init__(self, file_id: int | None = None, detail: str | None = None) -> None:
        self.file_id = file_id
        super().__init__(detail)


class ShareIdCollision(Exception):
    """Raised by the catalog when a share id is already taken."""


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(VaultError)
    async def vault_error_handler(request: Request, exc: VaultError):
        if isinstance(exc, ConsistencyFault):
            logger.error(
                "event=consistency_fault file_id=%s path=%s",
                exc.file_id,
                request.url.path,
            )
        elif isinstance(exc, StorageFault):
            logger.error("event=storage_fault path=%s detail=%s", request.url.path, exc)
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)
