"""Metadata catalog for accounts and files.

Services receive a ``Catalog`` rather than reaching for a global session.
``SQLCatalog`` opens one short-lived session per call, so it can be shared
between request threads.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Protocol, Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from filevault.core.exceptions import DuplicateIdentity, ShareIdCollision
from filevault.models import Account, FileRecord

logger = logging.getLogger("filevault.catalog")


class Catalog(Protocol):
    def add_account(self, identity: str, password_hash: str) -> Account: ...

    def get_account_by_identity(self, identity: str) -> Optional[Account]: ...

    def get_account(self, account_id: int) -> Optional[Account]: ...

    def add_file(self, record: FileRecord) -> FileRecord: ...

    def get_file(self, file_id: int) -> Optional[FileRecord]: ...

    def get_file_by_share_id(self, share_id: str) -> Optional[FileRecord]: ...

    def share_id_exists(self, share_id: str) -> bool: ...

    def list_files(self, owner_id: int, trashed: bool) -> Sequence[FileRecord]: ...

    def set_trashed(self, file_id: int, trashed: bool, trashed_at: Optional[datetime]) -> Optional[FileRecord]: ...

    def delete_file(self, file_id: int) -> bool: ...

    def list_expired_trash(self, cutoff: datetime, limit: int) -> Sequence[FileRecord]: ...


class SQLCatalog:
    def __init__(self, engine) -> None:
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def add_account(self, identity: str, password_hash: str) -> Account:
        account = Account(identity=identity, password_hash=password_hash)
        with self._session() as session:
            session.add(account)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateIdentity() from exc
            session.refresh(account)
            return account

    def get_account_by_identity(self, identity: str) -> Optional[Account]:
        with self._session() as session:
            return session.exec(select(Account).where(Account.identity == identity)).first()

    def get_account(self, account_id: int) -> Optional[Account]:
        with self._session() as session:
            return session.get(Account, account_id)

    def add_file(self, record: FileRecord) -> FileRecord:
        with self._session() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if "share_id" in str(exc.orig):
                    raise ShareIdCollision(record.share_id) from exc
                raise
            session.refresh(record)
            return record

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        with self._session() as session:
            return session.get(FileRecord, file_id)

    def get_file_by_share_id(self, share_id: str) -> Optional[FileRecord]:
        with self._session() as session:
            return session.exec(select(FileRecord).where(FileRecord.share_id == share_id)).first()

    def share_id_exists(self, share_id: str) -> bool:
        return self.get_file_by_share_id(share_id) is not None

    def list_files(self, owner_id: int, trashed: bool) -> Sequence[FileRecord]:
        stmt = select(FileRecord).where(FileRecord.owner_id == owner_id, FileRecord.trashed == trashed)
        if trashed:
            stmt = stmt.order_by(FileRecord.trashed_at.desc(), FileRecord.id.desc())
        else:
            stmt = stmt.order_by(FileRecord.created_at.desc(), FileRecord.id.desc())
        with self._session() as session:
            return session.exec(stmt).all()

    def set_trashed(self, file_id: int, trashed: bool, trashed_at: Optional[datetime]) -> Optional[FileRecord]:
        with self._session() as session:
            record = session.get(FileRecord, file_id)
            if record is None:
                return None
            record.trashed = trashed
            record.trashed_at = trashed_at
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def delete_file(self, file_id: int) -> bool:
        with self._session() as session:
            record = session.get(FileRecord, file_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    def list_expired_trash(self, cutoff: datetime, limit: int) -> Sequence[FileRecord]:
        stmt = (
            select(FileRecord)
            .where(FileRecord.trashed == True, FileRecord.trashed_at < cutoff)  # noqa: E712
            .order_by(FileRecord.trashed_at)
            .limit(limit)
        )
        with self._session() as session:
            return session.exec(stmt).all()
