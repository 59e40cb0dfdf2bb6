"""
ctgossip_store/database.py - Store Handle

Responsibilities:
- Own the SQLAlchemy engine with an explicit open/close lifecycle
- One transaction per top-level mutating call (commit or roll back as a unit)
- Plain connections for reads (read-committed, no explicit transaction)
- Translate driver failures into StorageUnavailable

Nothing here is global: callers construct a Database and pass it to each store.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import InterfaceError, OperationalError

from .config import Settings
from .errors import storage_unavailable
from .schema import Base


logger = logging.getLogger(__name__)


class Database:
    """
    Handle to the shared persistent store.

    Usage:
        with Database("sqlite:///gossip.db") as db:
            FeedbackStore(db).add(entries)
    """

    def __init__(self, database_url: str, echo: bool = False, busy_timeout: float = 30.0):
        """
        Parameters:
            database_url (str): SQLAlchemy connection URL.
            echo (bool): Log every SQL statement through SQLAlchemy's logger.
            busy_timeout (float): Seconds a SQLite writer waits for a competing lock.
        """
        self.database_url = database_url
        self.echo = echo
        self.busy_timeout = busy_timeout
        self._engine: Optional[Engine] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            echo=settings.SQL_ECHO,
            busy_timeout=settings.SQLITE_BUSY_TIMEOUT,
        )

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise storage_unavailable("store is closed", {"database_url": self._safe_url()})
        return self._engine

    def open(self, create_schema: bool = True) -> "Database":
        """
        Create the engine and, unless told otherwise, the schema.

        Raises:
            RuntimeError: If the handle is already open.
            StorageUnavailable: If the store cannot be reached.
        """
        if self._engine is not None:
            raise RuntimeError("attempting to open an already open Database")

        engine = self._create_engine()
        try:
            if create_schema:
                Base.metadata.create_all(engine)
            else:
                # Fail at open time, not on first use
                with engine.connect():
                    pass
        except (OperationalError, InterfaceError) as e:
            engine.dispose()
            raise storage_unavailable(str(e.orig), {"database_url": self._safe_url()}) from e

        self._engine = engine
        logger.info("Opened gossip store at %s", self._safe_url())
        return self

    def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        logger.info("Closed gossip store at %s", self._safe_url())

    def __enter__(self) -> "Database":
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Yield a connection inside a single transaction.

        Commits when the block exits normally; rolls back everything on any exception.
        """
        engine = self.engine
        try:
            with engine.begin() as conn:
                yield conn
        except (OperationalError, InterfaceError) as e:
            logger.error("Transaction aborted, store unavailable: %s", e.orig)
            raise storage_unavailable(str(e.orig)) from e

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Yield a connection for reads. Nothing is committed."""
        engine = self.engine
        try:
            with engine.connect() as conn:
                yield conn
        except (OperationalError, InterfaceError) as e:
            logger.error("Read failed, store unavailable: %s", e.orig)
            raise storage_unavailable(str(e.orig)) from e

    def _create_engine(self) -> Engine:
        if self.database_url.startswith("sqlite"):
            engine = create_engine(
                self.database_url,
                echo=self.echo,
                connect_args={"timeout": self.busy_timeout, "check_same_thread": False},
            )
            _install_sqlite_hooks(engine)
            return engine

        return create_engine(
            self.database_url,
            echo=self.echo,
            pool_pre_ping=True,
            pool_recycle=300,
            pool_size=10,
            max_overflow=20,
        )

    def _safe_url(self) -> str:
        if self._engine is not None:
            return self._engine.url.render_as_string(hide_password=True)
        # Drop credentials before the URL reaches a log line or an error
        scheme, sep, rest = self.database_url.partition("://")
        if "@" in rest:
            rest = rest.split("@", 1)[1]
        return f"{scheme}{sep}{rest}"


def _install_sqlite_hooks(engine: Engine) -> None:
    """
    Make pysqlite honour SQLAlchemy's transaction boundaries.

    pysqlite's own implicit BEGIN handling breaks SAVEPOINT; take control of
    BEGIN ourselves and turn on foreign key enforcement for every connection.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")
