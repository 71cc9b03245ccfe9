from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from opsledger.app.core.config import settings

_engine_options: dict[str, Any] = {"echo": False}
if settings.DATABASE_URL.startswith("sqlite"):
    # Single shared connection so an in-memory database survives across sessions
    _engine_options["connect_args"] = {"check_same_thread": False}
    _engine_options["poolclass"] = StaticPool

engine = create_engine(settings.DATABASE_URL, **_engine_options)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase):
    pass


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
