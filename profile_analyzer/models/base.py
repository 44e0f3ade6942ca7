"""SQLAlchemy engine and session setup."""

import os
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///data/profile_analyzer.db"


def get_database_url(default: str = DEFAULT_DATABASE_URL) -> str:
    url = os.environ.get("PROFILE_ANALYZER_DATABASE_URL", default)
    # Heroku-style URLs use postgres:// but SQLAlchemy 2.x requires postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def create_session_factory(database_url: str) -> sessionmaker:
    """Create the engine (and the SQLite parent directory) and return a session factory."""
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, pool_pre_ping=True, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass
