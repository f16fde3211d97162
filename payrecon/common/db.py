"""Engine and session factory for the reconciliation database.

Orders, generic attributes, the refund index and inbox claims share one
database. SQLite DSNs are accepted for local runs and tests.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from payrecon.common.config import settings


def _connect_args(dsn: str) -> dict:
    # Request handlers and the migration script share connections across threads.
    return {"check_same_thread": False} if dsn.startswith("sqlite") else {}


engine = create_engine(settings.postgres_dsn, pool_pre_ping=True, connect_args=_connect_args(settings.postgres_dsn))
# Matched orders are handed to the annotator after the matching session closes.
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
