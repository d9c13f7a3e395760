from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy import create_engine
from .config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # Server databases: keep a small pool, the store writes are short
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 3600,
    }


engine = create_engine(
    settings.database_url,
    future=True,
    pool_pre_ping=True,
    **_engine_kwargs(settings.database_url),
)

# One session per store operation; the provider opens and closes them itself
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def create_store_tables(bind=None) -> None:
    """Create the store_nodes table on the given engine (default: the configured one)."""
    from .models import models  # noqa: F401  registers StoreNode on Base
    Base.metadata.create_all(bind=bind or engine)
