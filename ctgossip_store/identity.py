"""
ctgossip_store/identity.py - Identity Table

Get-or-create mapping from an opaque key to a stable integer id.

Invariants:
- A key is assigned exactly one id, ever
- Ids are never reassigned or recycled
- Racing creators of the same key all observe the same id

Strategy: atomic conditional insert. Where the dialect has a native
"insert if absent" (ON CONFLICT DO NOTHING) it is used; otherwise the
insert runs in a SAVEPOINT and a uniqueness conflict rolls back to it and
falls back to a lookup, all inside the caller's transaction.
"""
import logging
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import Table, func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from .database import Database
from .errors import ConstraintConflict, constraint_conflict, not_found


logger = logging.getLogger(__name__)

NATIVE_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def supports_native_upsert(conn: Connection) -> bool:
    return conn.dialect.name in NATIVE_UPSERT_DIALECTS


def insert_if_absent(
    conn: Connection,
    table: Table,
    values: Dict[str, Any],
    conflict_columns: Sequence[str],
    native: Optional[bool] = None,
) -> bool:
    """
    Insert a row unless one with the same unique columns already exists.

    Parameters:
        conn (Connection): Connection inside the caller's transaction.
        table (Table): Target table.
        values (dict): Column values of the new row.
        conflict_columns (Sequence[str]): Columns of the uniqueness constraint that may conflict.
        native (bool | None): Force (True) or bypass (False) the dialect's ON CONFLICT support.
            None picks it automatically.

    Returns:
        bool: True if a row was inserted, False if an existing row made it a no-op.
    """
    if native is None:
        native = supports_native_upsert(conn)

    if native:
        dialect_insert = NATIVE_UPSERT_DIALECTS[conn.dialect.name]
        stmt = dialect_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        return conn.execute(stmt).rowcount > 0

    try:
        _insert_in_savepoint(conn, table, values)
        return True
    except ConstraintConflict as e:
        logger.debug("Recovered %s", e.error.message)
        return False


def _insert_in_savepoint(conn: Connection, table: Table, values: Dict[str, Any]) -> None:
    try:
        with conn.begin_nested():
            conn.execute(insert(table).values(**values))
    except IntegrityError as e:
        raise constraint_conflict(table.name, values) from e


class IdentityTable:
    """
    Stable integer identities for opaque keys.

    Used twice: certificate chains (key = encoded chain) and SCTs (key = token).
    """

    def __init__(
        self,
        db: Database,
        table: Table,
        id_column: str,
        key_column: str,
        native_upsert: Optional[bool] = None,
    ):
        """
        Parameters:
            db (Database): Shared store handle.
            table (Table): Table holding the mapping.
            id_column (str): Name of the integer identity column.
            key_column (str): Name of the unique key column.
            native_upsert (bool | None): See `insert_if_absent`.
        """
        self.db = db
        self.table = table
        self.id_column = table.c[id_column]
        self.key_column = table.c[key_column]
        self.native_upsert = native_upsert

    @property
    def name(self) -> str:
        return self.table.name

    def get_or_create(self, conn: Connection, key: str) -> int:
        """
        Return the id of `key`, assigning a new one if it has none.

        Must be called inside a transaction opened with `Database.transaction()`;
        the new row commits or rolls back with it.
        """
        created = insert_if_absent(
            conn,
            self.table,
            {self.key_column.name: key},
            [self.key_column.name],
            native=self.native_upsert,
        )
        identity = self.find(conn, key)
        if identity is None:
            raise RuntimeError(f"{self.name} row vanished after insert")
        if created:
            logger.debug("Assigned %s id %d", self.name, identity)
        return identity

    def find(self, conn: Connection, key: str) -> Optional[int]:
        return conn.execute(
            select(self.id_column).where(self.key_column == key)
        ).scalar_one_or_none()

    def lookup(self, key: str) -> int:
        """
        Return the id of `key` without creating anything.

        Raises:
            NotFound: If `key` has never been stored.
            StorageUnavailable: If the store is closed or unreachable.
        """
        with self.db.connect() as conn:
            identity = self.find(conn, key)
        if identity is None:
            raise not_found(self.name, key)
        return identity

    def count(self) -> int:
        with self.db.connect() as conn:
            return conn.execute(select(func.count()).select_from(self.table)).scalar_one()
