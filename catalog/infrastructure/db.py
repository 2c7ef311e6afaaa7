from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from catalog.core_settings import get_settings
from catalog.domain.models import Base

def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for the configured store.

    SQLite URLs (used by tests and local runs) get a single shared connection
    that may cross threads, plus foreign key enforcement, which SQLite leaves
    off by default.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, future=True, pool_pre_ping=True)

    sqlite_engine = create_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine

settings = get_settings()
engine = build_engine(settings.database_url, echo=settings.DATABASE_ECHO)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_models():
    Base.metadata.create_all(engine)

def drop_models():
    Base.metadata.drop_all(engine)
