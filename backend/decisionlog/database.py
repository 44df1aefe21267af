from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from decisionlog.config import settings

db_url = str(settings.database_url)
is_postgres = db_url.startswith("postgresql")
is_sqlite = db_url.startswith("sqlite")


def _engine_options() -> tuple[dict, dict]:
    """Engine kwargs plus the pool summary logged at startup."""

    if is_sqlite:
        return {"connect_args": {"check_same_thread": False}}, {"backend": "sqlite"}
    if not is_postgres:
        return {}, {"backend": "other"}

    options: dict = {
        "connect_args": {"connect_timeout": settings.db_connect_timeout_seconds},
        "pool_pre_ping": True,
    }
    if settings.db_use_null_pool:
        options["poolclass"] = NullPool
        return options, {"backend": "postgres", "use_null_pool": True}

    pool = {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout_seconds,
        "pool_recycle": settings.db_pool_recycle_seconds,
    }
    options.update(pool)
    return options, {"backend": "postgres", "use_null_pool": False, **pool}


_options, POOL_CONFIG = _engine_options()

engine = create_engine(db_url, future=True, **_options)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        if is_postgres and settings.db_statement_timeout_ms > 0:
            db.execute(text(f"SET statement_timeout = {int(settings.db_statement_timeout_ms)}"))
        yield db
    finally:
        db.close()
