# fifo_pnl/db/session.py
"""Fill cache engine and session factory."""

from pathlib import Path
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session


def create_cache_engine(database_url: str) -> Engine:
    """Create the engine (and parent directory of a SQLite file)."""
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        db_path = database_url.replace("sqlite:///", "")
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
        echo=False,
    )


def init_db(engine: Engine) -> None:
    """Create all tables if they don't exist."""
    SQLModel.metadata.create_all(engine)


def get_session(engine: Engine) -> Session:
    """Get a new database session."""
    return Session(engine)
