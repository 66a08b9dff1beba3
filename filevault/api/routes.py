from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from sqlmodel import Session

from filevault.catalog import SQLCatalog
from filevault.config import (
    CACHE_MAX_AGE_SECONDS,
    MAX_FILE_SIZE,
    PASSWORD_HASH_METHOD,
    RATE_LIMIT_PER_MINUTE,
    SHARE_ID_BYTES,
    SHARE_TRASHED_FILES,
    STORAGE_DIR,
)
from filevault.core.metrics import metrics
from filevault.core.rate_limit import RateLimiter
from filevault.db import engine, get_session
from filevault.models import FileRecord
from filevault.services.auth import AuthGateway
from filevault.services.ingest import IncomingFile, UploadIngestor
from filevault.services.library import Library
from filevault.services.sharing import ShareLinkService, SharedFile
from filevault.services.stats import fetch_storage_totals
from filevault.services.trash import TrashManager
from filevault.storage import StorageResolver

router = APIRouter()

logger = logging.getLogger("filevault")

catalog = SQLCatalog(engine)
resolver = StorageResolver(STORAGE_DIR)
auth_gateway = AuthGateway(catalog, method=PASSWORD_HASH_METHOD)
library = Library(catalog, resolver)
ingestor = UploadIngestor(
    catalog,
    resolver,
    max_file_size=MAX_FILE_SIZE,
    share_id_bytes=SHARE_ID_BYTES,
    password_method=PASSWORD_HASH_METHOD,
)
share_links = ShareLinkService(catalog, resolver, hide_trashed=not SHARE_TRASHED_FILES)
trash_manager = TrashManager(catalog, resolver)

login_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE, namespace="login")
share_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE, namespace="share")


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enforce(limiter: RateLimiter, request: Request) -> None:
    allowed, retry_after = limiter.hit(_client_key(request))
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


async def enforce_login_rate_limit(request: Request):
    _enforce(login_limiter, request)


async def enforce_share_rate_limit(request: Request):
    _enforce(share_limiter, request)


def require_account(request: Request) -> int:
    """Session identity of the caller; passed explicitly to every core call."""
    account_id = request.session.get("account_id")
    if account_id is None:
        raise HTTPException(status_code=401, detail="Login required")
    return int(account_id)


def _serialize(record: FileRecord, request: Request) -> dict:
    return {
        "id": record.id,
        "original_name": record.original_name,
        "size_bytes": record.size_bytes,
        "content_type": record.content_type,
        "created_at": record.created_at.isoformat(),
        "share_id": record.share_id,
        "share_url": str(request.url_for("download_shared", share_id=record.share_id)),
        "password_protected": record.password_protected,
        "trashed": record.trashed,
        "trashed_at": record.trashed_at.isoformat() if record.trashed_at else None,
    }


def _shared_response(shared: SharedFile) -> FileResponse:
    response = FileResponse(shared.path, media_type=shared.content_type, filename=shared.original_name)
    if CACHE_MAX_AGE_SECONDS > 0:
        response.headers["Cache-Control"] = f"private, max-age={CACHE_MAX_AGE_SECONDS}"
    else:
        response.headers["Cache-Control"] = "private, no-store"
    return response


@router.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}


@router.post("/register", status_code=201)
def register(email: str = Form(...), password: str = Form(...)):
    account = auth_gateway.register(email, password)
    return {"id": account.id, "email": account.identity}


@router.post("/login", dependencies=[Depends(enforce_login_rate_limit)])
def login(request: Request, email: str = Form(...), password: str = Form(...)):
    account = auth_gateway.verify(email, password)
    request.session.clear()
    request.session["account_id"] = account.id
    return {"id": account.id, "email": account.identity}


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"status": "logged_out"}


@router.get("/files")
def dashboard(
    request: Request,
    owner_id: int = Depends(require_account),
    session: Session = Depends(get_session),
):
    return {
        "files": [_serialize(f, request) for f in library.list_active(owner_id)],
        "trash": [_serialize(f, request) for f in library.list_trashed(owner_id)],
        "usage": fetch_storage_totals(session, owner_id),
    }


@router.get("/files/{file_id}")
def file_detail(file_id: int, request: Request, owner_id: int = Depends(require_account)):
    return _serialize(library.get(owner_id, file_id), request)


@router.get("/files/{file_id}/download")
def owner_download(file_id: int, owner_id: int = Depends(require_account)):
    record, path = library.open(owner_id, file_id)
    metrics.record_download()
    return FileResponse(path, media_type=record.content_type, filename=record.original_name)


@router.post("/upload")
def upload(
    request: Request,
    files: List[UploadFile] = File(...),
    file_password: Optional[str] = Form(None),
    owner_id: int = Depends(require_account),
):
    incoming = [
        IncomingFile(
            original_name=f.filename or "",
            stream=f.file,
            size=f.size,
            content_type=f.content_type,
        )
        for f in files
    ]
    results = ingestor.ingest(owner_id, incoming, share_password=file_password or None)

    payload = []
    for result in results:
        if result.ok:
            metrics.record_upload(result.record.size_bytes)
            payload.append({"original_name": result.original_name, "ok": True, "file": _serialize(result.record, request)})
        else:
            metrics.record_upload_failure()
            payload.append({"original_name": result.original_name, "ok": False, "error": result.error.detail})

    if any(result.ok for result in results):
        status_code = 200
    else:
        status_code = results[0].error.status_code
    return JSONResponse({"results": payload}, status_code=status_code)


@router.get("/file/{share_id}/info", dependencies=[Depends(enforce_share_rate_limit)])
def shared_info(share_id: str):
    return share_links.describe(share_id)


@router.get("/file/{share_id}", dependencies=[Depends(enforce_share_rate_limit)])
def download_shared(share_id: str, request: Request):
    shared = share_links.resolve(share_id, request.headers.get("x-share-password"))
    metrics.record_download()
    return _shared_response(shared)


@router.post("/file/{share_id}", dependencies=[Depends(enforce_share_rate_limit)])
def download_shared_with_form(share_id: str, password: Optional[str] = Form(None)):
    shared = share_links.resolve(share_id, password)
    metrics.record_download()
    return _shared_response(shared)


@router.post("/trash/{file_id}")
def trash(file_id: int, request: Request, owner_id: int = Depends(require_account)):
    record = trash_manager.trash(owner_id, file_id)
    metrics.record_transition("trashed")
    return _serialize(record, request)


@router.post("/restore/{file_id}")
def restore(file_id: int, request: Request, owner_id: int = Depends(require_account)):
    record = trash_manager.restore(owner_id, file_id)
    metrics.record_transition("restored")
    return _serialize(record, request)


@router.post("/delete/{file_id}")
def purge(file_id: int, owner_id: int = Depends(require_account)):
    if trash_manager.purge(owner_id, file_id):
        metrics.record_purges(1)
    return {"status": "deleted", "file_id": file_id}


@router.get("/metrics")
def metrics_snapshot(session: Session = Depends(get_session)):
    stats = metrics.snapshot()
    totals = fetch_storage_totals(session)
    payload = {**stats, "files": totals["total_files"], "storage_bytes": totals["total_bytes"]}
    response = JSONResponse(payload)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response
