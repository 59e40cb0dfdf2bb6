"""
ctgossip_store/pollination.py - STH Pollination Pool

Responsibilities:
- Insert STH tuples, full tuple is the key, duplicates ignored
- Answer exact-tuple membership and pool size
- Return a uniform random sample of "fresh" STHs (at most 14 days old)

Entries are never mutated or deleted; the pool only grows.
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import and_, func, select

from .database import Database
from .errors import invalid_argument
from .identity import insert_if_absent
from .keys import check_pollination
from .models import STHPollinationEntry
from .sampling import reservoir_sample
from .schema import STH_COLUMNS, STHRow


logger = logging.getLogger(__name__)

# "Fresh" per the CT gossip draft
FRESHNESS_WINDOW = timedelta(days=14)

NATIVE_RANDOM_DIALECTS = ("sqlite", "postgresql")

# Rows fetched per round trip while streaming the reservoir scan
SCAN_BATCH_SIZE = 500


def fresh_cutoff(now: Optional[datetime] = None) -> int:
    """Oldest timestamp (Unix seconds) still inside the freshness window."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        raise invalid_argument("now must be timezone-aware", {"now": now.isoformat()})
    return math.ceil((now - FRESHNESS_WINDOW).timestamp())


def _row_values(entry: STHPollinationEntry) -> dict:
    return {
        "version": entry.sth_version,
        "tree_size": entry.tree_size,
        "timestamp": entry.timestamp,
        "root_hash": entry.sha256_root_hash,
        "signature": entry.tree_head_signature,
        "log_id": entry.log_id,
    }


def _entry_from_row(row) -> STHPollinationEntry:
    return STHPollinationEntry(
        sth_version=row.version,
        tree_size=row.tree_size,
        timestamp=row.timestamp,
        sha256_root_hash=row.root_hash,
        tree_head_signature=row.signature,
        log_id=row.log_id,
    )


class PollinationStore:
    """Append-only pool of STH pollination entries."""

    def __init__(
        self,
        db: Database,
        native_upsert: Optional[bool] = None,
        native_random: Optional[bool] = None,
    ):
        """
        Parameters:
            db (Database): Shared store handle.
            native_upsert (bool | None): See `identity.insert_if_absent`.
            native_random (bool | None): Use ORDER BY random() (True) or the
                reservoir scan (False). None picks by dialect.
        """
        self.db = db
        self.native_upsert = native_upsert
        self.native_random = native_random

    def add(self, entries: Iterable[STHPollinationEntry]) -> int:
        """
        Store a pollination submission in one transaction.

        Returns:
            int: Number of tuples that were not already stored.

        Raises:
            InvalidArgument: If any entry is malformed. Nothing is written.
            StorageUnavailable: If the store is closed or fails mid-way. Nothing is written.
        """
        entries = check_pollination(entries)
        added = 0
        conflict_columns = [c.name for c in STH_COLUMNS]
        with self.db.transaction() as conn:
            for entry in entries:
                if insert_if_absent(
                    conn,
                    STHRow.__table__,
                    _row_values(entry),
                    conflict_columns,
                    native=self.native_upsert,
                ):
                    added += 1
        logger.debug("Stored %d pollination entries, %d new", len(entries), added)
        return added

    def count(self) -> int:
        with self.db.connect() as conn:
            return conn.execute(select(func.count()).select_from(STHRow)).scalar_one()

    def exists(self, entry: STHPollinationEntry) -> bool:
        """Exact six-field tuple match."""
        check_pollination([entry])
        values = _row_values(entry)
        stmt = (
            select(STHRow.timestamp)
            .where(and_(*(column == values[column.name] for column in STH_COLUMNS)))
            .limit(1)
        )
        with self.db.connect() as conn:
            return conn.execute(stmt).first() is not None

    def sample_fresh(self, limit: int, now: Optional[datetime] = None) -> List[STHPollinationEntry]:
        """
        Return a uniform random sample of fresh entries.

        The qualifying set is every entry with `timestamp >= now - 14 days`.
        The result holds min(limit, |qualifying set|) distinct entries and is
        an empty list, never None, when nothing qualifies.

        Parameters:
            limit (int): Maximum number of entries to return. 0 returns [].
            now (datetime | None): Reference time (timezone-aware); defaults to the current UTC time.

        Raises:
            InvalidArgument: If limit is negative or not an int.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise invalid_argument("limit must be a non-negative integer", {"limit": limit})
        cutoff = fresh_cutoff(now)
        if limit == 0:
            return []

        fresh = select(*STH_COLUMNS).where(STHRow.timestamp >= cutoff)
        with self.db.connect() as conn:
            if self._use_native_random(conn.dialect.name):
                rows = conn.execute(fresh.order_by(func.random()).limit(limit)).all()
            else:
                result = conn.execution_options(yield_per=SCAN_BATCH_SIZE).execute(fresh)
                rows = reservoir_sample(result, limit)

        sample = [_entry_from_row(row) for row in rows]
        logger.debug("Sampled %d fresh STHs (limit=%d, cutoff=%d)", len(sample), limit, cutoff)
        return sample

    def _use_native_random(self, dialect_name: str) -> bool:
        if self.native_random is None:
            return dialect_name in NATIVE_RANDOM_DIALECTS
        return self.native_random
