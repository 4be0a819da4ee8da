from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import DATABASE_URL, DB_ECHO


def _make_engine(url: str) -> Engine:
    return create_engine(
        url,
        echo=DB_ECHO,            # PHYSF_DB_ECHO=1 to see the queries
        future=True,
    )


engine = _make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """ORM base for every model."""
    pass


def configure_database(url: str) -> Engine:
    """
    Point the session factory at another database (tests, CLI --db).
    The previous engine is disposed.
    """
    global engine
    engine.dispose()
    engine = _make_engine(url)
    SessionLocal.configure(bind=engine)
    return engine


def get_engine() -> Engine:
    return engine


@contextmanager
def db_session() -> Iterator[Session]:
    """
    One session per use case, one transaction per session:
    - commit if everything went fine
    - rollback on exceptions
    - always close
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create the tables if they do not exist."""
    from . import auth_models, models  # noqa: F401  registers the tables on Base.metadata
    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    from . import auth_models, models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
