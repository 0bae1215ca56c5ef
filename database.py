from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _create_engine() -> Engine:
    settings = get_settings()
    connect_args: dict[str, object] = {}
    if _is_sqlite(settings.database_url):
        connect_args["check_same_thread"] = False

    eng = create_engine(
        settings.database_url, connect_args=connect_args, pool_pre_ping=True
    )
    if _is_sqlite(settings.database_url):
        event.listen(eng, "connect", enable_sqlite_foreign_keys)
    return eng


def enable_sqlite_foreign_keys(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


engine = _create_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
