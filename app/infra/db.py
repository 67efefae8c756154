from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import SETTINGS

Base = declarative_base()
SQLITE_BUSY_TIMEOUT = 30


def create_db_engine(database_url: str) -> Engine:
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees its own empty database.
        return create_engine(
            database_url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    if database_url.startswith("sqlite"):
        # Concurrent writers wait on the database lock instead of failing at once.
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
            pool_pre_ping=True,
        )
    return create_engine(database_url, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def create_schema(engine: Engine) -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(engine)


engine = create_db_engine(SETTINGS.database_url)
SessionLocal = create_session_factory(engine)


def init_db() -> None:
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    # Other backends are migrated with alembic.
    if engine.dialect.name == "sqlite":
        create_schema(engine)
