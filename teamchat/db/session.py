from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker


def create_db_engine(database_uri: str) -> Engine:
    if database_uri.startswith("sqlite"):
        # Port calls run on worker threads (asyncio.to_thread).
        return create_engine(database_uri, connect_args={"check_same_thread": False})
    return create_engine(database_uri, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
