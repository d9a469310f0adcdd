from sqlmodel import SQLModel, create_engine, Session
from officedesk.core.config import settings

_engine = None


def get_engine():
    global _engine

    if _engine is not None:
        return _engine

    db_url = settings.DATABASE_URL or "sqlite:///./officedesk.db"

    # SQLite fix for multithreading
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}

    _engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
    return _engine


def init_db(engine=None) -> None:
    # register every table on SQLModel.metadata
    import officedesk.models  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


def get_db():
    with Session(get_engine()) as session:
        yield session
