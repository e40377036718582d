"""Database setup and session management."""
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for models
Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a sync engine for the given connection string.

    In-memory SQLite URLs share one connection so every session sees
    the same database.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build the session maker used by the progress store and CLI."""
    return sessionmaker(
        engine,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """Create tables that do not exist yet."""
    # Register models on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(engine)


def check_connection(engine: Engine) -> None:
    """Run a trivial query; raises if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
