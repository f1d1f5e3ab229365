from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from custody.core.config import settings


def build_engine_kwargs(database_url: str) -> dict[str, object]:
    engine_kwargs: dict[str, object] = {
        # Detect and recover from stale pooled connections.
        "pool_pre_ping": True,
    }

    if database_url.lower().startswith("sqlite"):
        # Concurrent writers wait on the database lock instead of failing immediately.
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
    else:
        # Tune SQLAlchemy pool for networked databases (e.g., Postgres).
        engine_kwargs.update(
            {
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
                "pool_timeout": settings.db_pool_timeout_seconds,
                "pool_recycle": settings.db_pool_recycle_seconds,
            }
        )
    return engine_kwargs


engine = create_engine(settings.database_url, **build_engine_kwargs(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
