"""Database connection handling and model validation hooks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import Config

DEFAULTS: dict[str, Any] = {
    "db.maxidleconnections": 2,
    "db.maxopenconnections": 12,
    "db.connect_timeout": 90,
    "db.port": 3306,
    "db.user": "",
    "db.name": "",
    "db.pass": "",
}

_DB_FIELDS = ("user", "pass", "host", "name")


class DatabaseError(Exception):
    """Raised when the database cannot be opened or an operation on it fails."""


def apply_defaults(config: Config) -> None:
    """Install the database defaults into ``config`` as its lowest layer."""
    for key, value in DEFAULTS.items():
        config.set_default(key, value)


def connection_url(config: Config) -> URL:
    """Build the MySQL connection URL from the ``db.*`` settings."""
    apply_defaults(config)
    user, password, host, name = (config.get_str(f"db.{field}") or None for field in _DB_FIELDS)
    return URL.create(
        "mysql+pymysql",
        username=user,
        password=password,
        host=host,
        port=config.get_int("db.port") or None,
        database=name,
        query={"charset": "utf8", "connect_timeout": str(config.get_int("db.connect_timeout"))},
    )


def _run_validation(mapper: Any, connection: Any, target: Any) -> None:
    check = getattr(target, "validate", None)
    if callable(check):
        try:
            check()
        except ValueError as exc:
            raise DatabaseError(str(exc)) from exc


def register_validation(target: Any) -> None:
    """Call each object's ``validate()`` before it is inserted or updated.

    A ``ValueError`` from ``validate()`` becomes a :class:`DatabaseError`.
    Registering the same target twice has no further effect.
    """
    for name in ("before_insert", "before_update"):
        if not event.contains(target, name, _run_validation):
            event.listen(target, name, _run_validation, propagate=True)


class Database:
    """A lazily opened database; the connection is attempted once."""

    def __init__(self, config: Config | None = None, url: str | URL | None = None) -> None:
        self.config = config if config is not None else Config()
        apply_defaults(self.config)
        self.url = url
        self._engine: Engine | None = None
        self._error: str | None = None
        self._opened = False
        self._lock = threading.Lock()

    def _open(self) -> Engine:
        url = make_url(self.url) if self.url is not None else connection_url(self.config)
        options: dict[str, Any] = {}
        if url.get_backend_name() != "sqlite":
            idle = max(self.config.get_int("db.maxidleconnections"), 1)
            options["pool_size"] = idle
            options["max_overflow"] = max(self.config.get_int("db.maxopenconnections") - idle, 0)
        engine = create_engine(url, **options)
        with engine.connect():
            pass
        return engine

    def engine(self) -> Engine:
        """Return the engine, opening the database on first use."""
        with self._lock:
            if not self._opened:
                self._opened = True
                try:
                    self._engine = self._open()
                except SQLAlchemyError as exc:
                    self._error = str(exc)
        if self._engine is None:
            raise DatabaseError(self._error or "database is not available")
        return self._engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on error."""
        with Session(self.engine(), expire_on_commit=False) as session:
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise DatabaseError(str(exc)) from exc
            except BaseException:
                session.rollback()
                raise


_global_db: Database | None = None
_global_lock = threading.Lock()


def get_db(config: Config | None = None) -> Database:
    """Return the process-wide database, creating it on the first call."""
    global _global_db
    with _global_lock:
        if _global_db is None:
            _global_db = Database(config)
        return _global_db