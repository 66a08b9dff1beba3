from collections.abc import Iterator
import logging

from sqlmodel import Session, SQLModel, create_engine
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import QueuePool

from filevault.config import DB_CONNECT_ARGS, DB_URL

logger = logging.getLogger("filevault.db")


def build_engine(url: str = DB_URL, connect_args: dict | None = None):
    return create_engine(
        url,
        connect_args=DB_CONNECT_ARGS if connect_args is None else connect_args,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600,   # Recycle connections after 1 hour
        echo=False,
    )


engine = build_engine()


def init_db(target_engine=None) -> None:
    target_engine = target_engine or engine
    SQLModel.metadata.create_all(target_engine)


def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


def ensure_connection(target_engine=None) -> bool:
    """Verify that the database connection is alive."""
    target_engine = target_engine or engine
    try:
        with target_engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except OperationalError:
        return False
