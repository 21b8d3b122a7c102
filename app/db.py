"""
Database engine, session factory and declarative base.

The engine is built once at import from settings; request handlers receive a
Session through get_db(), other callers use db_manager.db_session().
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings, get_settings

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url_obj
    if url.get_backend_name() == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        connect_args={"application_name": settings.app_name},
    )


class DatabaseManager:
    """Owns the engine and session factory for the process."""

    def __init__(self, settings: Settings) -> None:
        self.engine = build_engine(settings)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    @contextmanager
    def db_session(self) -> Iterator[Session]:
        session = self.SessionLocal()
        try:
            yield session
        finally:
            session.close()


db_manager = DatabaseManager(get_settings())
engine = db_manager.engine
SessionLocal = db_manager.SessionLocal


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped Session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
