# tenanthub/core/db.py
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from .config import settings
from .errors import ConflictError

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def get_session():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db():
    """FastAPI dependency: one session per request, committed on success."""
    with get_session() as db:
        yield db


def flush_or_conflict(db: Session, message: str, meta: dict | None = None) -> None:
    """Flush pending writes; a unique-constraint hit rolls back and becomes ConflictError."""
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError(message, meta=meta)


def init_db() -> None:
    from tenanthub.domain.sqlalchemy_models import Base

    Base.metadata.create_all(bind=engine)
