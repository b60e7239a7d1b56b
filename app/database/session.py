from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import settings


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.database_echo, "future": True}
    if url.startswith("sqlite"):
        # FastAPI runs sync dependencies in a threadpool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create the system tables (users, model_definitions) if they don't exist."""
    # Import models so they register on Base.metadata
    from app.modules.users import models as _users_models  # noqa: F401
    from app.modules.model_definitions import models as _definition_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
