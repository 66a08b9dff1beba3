from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Account(SQLModel, table=True):
    __tablename__ = "accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    identity: str = Field(index=True, unique=True)  # normalised email
    password_hash: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class FileRecord(SQLModel, table=True):
    __tablename__ = "files"
    __table_args__ = (UniqueConstraint("owner_id", "stored_name", name="files_owner_stored_name_unique"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="accounts.id", index=True)
    stored_name: str  # on-disk name inside the owner's directory
    original_name: str  # untrusted display name, never a path component
    content_type: str = Field(default="application/octet-stream")
    size_bytes: int
    created_at: datetime = Field(default_factory=datetime.utcnow)
    share_id: str = Field(index=True, unique=True)
    share_password_hash: Optional[str] = Field(default=None, nullable=True)
    trashed: bool = Field(default=False, index=True)
    trashed_at: Optional[datetime] = Field(default=None, nullable=True)

    @property
    def password_protected(self) -> bool:
        return bool(self.share_password_hash)
