from contextlib import AbstractContextManager

from sqlalchemy.orm import Session

from airmon_server.adapters.db.session import SessionLocal


class SqlAlchemyUoW(AbstractContextManager):
    """Commits when the outermost ``with`` block exits cleanly, rolls back otherwise."""

    def __init__(self, session: Session | None = None):
        self._external = session is not None
        self._session = session
        self._depth = 0

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = SessionLocal()
        return self._session

    def __enter__(self):
        self._depth += 1
        return self

    def __exit__(self, exc_type, *_):
        self._depth -= 1
        if self._external or self._depth > 0 or self._session is None:
            return
        if exc_type:
            self._session.rollback()
        else:
            self._session.commit()
        self._session.close()
        self._session = None

    def reading_repo(self):
        from airmon_server.adapters.db.repository import SqlAlchemyReadingRepository

        return SqlAlchemyReadingRepository(self.session)


class UoWReadingSource:
    """Reading source for long-lived consumers; every fetch runs in its own unit of work."""

    def __init__(self, uow_factory=SqlAlchemyUoW):
        self._uow_factory = uow_factory

    def fetch_readings(self, device_id, start_ts, end_ts, sensor_types=None):
        with self._uow_factory() as uow:
            return uow.reading_repo().fetch_readings(device_id, start_ts, end_ts, sensor_types)
