from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from filevault.models import FileRecord


def fetch_storage_totals(session: Session, owner_id: Optional[int] = None) -> dict[str, int]:
    count_stmt = select(func.count(FileRecord.id))
    bytes_stmt = select(func.coalesce(func.sum(FileRecord.size_bytes), 0))
    trashed_stmt = select(func.count(FileRecord.id)).where(FileRecord.trashed == True)  # noqa: E712
    if owner_id is not None:
        count_stmt = count_stmt.where(FileRecord.owner_id == owner_id)
        bytes_stmt = bytes_stmt.where(FileRecord.owner_id == owner_id)
        trashed_stmt = trashed_stmt.where(FileRecord.owner_id == owner_id)

    total_files = session.exec(count_stmt).one()
    total_bytes = session.exec(bytes_stmt).one()
    trashed_files = session.exec(trashed_stmt).one()

    return {
        "total_files": int(total_files or 0),
        "total_bytes": int(total_bytes or 0),
        "trashed_files": int(trashed_files or 0),
    }
