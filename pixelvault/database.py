from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session
from .config import settings


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def build_engine(url: str, echo: bool = False):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if _is_memory_sqlite(url):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            # Counter updates from parallel uploads wait on the lock instead of failing
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=30000")
            if not _is_memory_sqlite(url):
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return engine

    # Managed Postgres drops idle connections
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=5,
        max_overflow=10,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def create_db_and_tables(bind=None):
    # Registers users, categories and images on the metadata
    from . import db  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
