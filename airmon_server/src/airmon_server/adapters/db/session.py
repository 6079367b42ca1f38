import logging
from functools import lru_cache

from airmon_core.config.environments import get_settings
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

log = logging.getLogger(__name__)

Base = declarative_base()


def create_engine_for(url: str):
    if url.startswith("sqlite") and ":memory:" in url:
        # one shared connection, otherwise every session sees an empty database
        return create_engine(
            url,
            future=True,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, future=True, echo=False)


@lru_cache(maxsize=1)
def get_session_factory():
    """Create the session factory with current settings."""
    settings = get_settings()

    log.info(f"Initializing database connection for {settings.ENVIRONMENT.value} environment")
    log.info(f"Database URL: {settings.DATABASE_URL}")

    engine = create_engine_for(settings.DATABASE_URL)
    if settings.DATABASE_URL.startswith("sqlite") and ":memory:" in settings.DATABASE_URL:
        from airmon_server.adapters.db import sqlalchemy_models  # noqa: F401

        Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def SessionLocal():
    return get_session_factory()()
