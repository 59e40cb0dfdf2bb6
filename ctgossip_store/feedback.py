"""
ctgossip_store/feedback.py - Association Set

Records which SCTs were observed alongside which certificate chains.

Invariants:
- (chain_id, sct_id) pairs are unique; re-adding one is a no-op
- One submission = one transaction: every pair lands or none do
"""
import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select

from .database import Database
from .identity import IdentityTable, insert_if_absent
from .keys import chain_key, check_feedback, check_sct
from .models import SCTFeedbackEntry
from .schema import ChainRow, FeedbackRow, SCTRow


logger = logging.getLogger(__name__)


class FeedbackStore:
    """SCT feedback storage built on two identity tables."""

    def __init__(self, db: Database, native_upsert: Optional[bool] = None):
        self.db = db
        self.native_upsert = native_upsert
        self.chains = IdentityTable(db, ChainRow.__table__, "chain_id", "chain_key", native_upsert)
        self.scts = IdentityTable(db, SCTRow.__table__, "sct_id", "sct", native_upsert)

    def add(self, entries: Iterable[SCTFeedbackEntry]) -> int:
        """
        Store a feedback submission.

        Every entry is validated before the store is touched. All chain and SCT
        resolutions and all pair inserts then share one transaction.

        Parameters:
            entries (Iterable[SCTFeedbackEntry]): Chains with the SCTs seen alongside them.

        Returns:
            int: Number of pairs that were not already recorded.

        Raises:
            InvalidArgument: If any entry is malformed. Nothing is written.
            StorageUnavailable: If the store is closed or fails mid-way. Nothing is written.
        """
        entries = check_feedback(entries)
        added = 0
        with self.db.transaction() as conn:
            for entry in entries:
                chain_id = self.chains.get_or_create(conn, chain_key(entry.x509_chain))
                for token in entry.sct_data:
                    sct_id = self.scts.get_or_create(conn, token)
                    if insert_if_absent(
                        conn,
                        FeedbackRow.__table__,
                        {"chain_id": chain_id, "sct_id": sct_id},
                        ["chain_id", "sct_id"],
                        native=self.native_upsert,
                    ):
                        added += 1
        logger.debug("Stored %d feedback entries, %d new pairs", len(entries), added)
        return added

    def add_one(self, chain: Sequence[str], sct_tokens: Iterable[str]) -> int:
        return self.add([SCTFeedbackEntry(x509_chain=chain, sct_data=sct_tokens)])

    def has(self, chain: Sequence[str], sct_token: str) -> bool:
        """True if the pair has been recorded. Unknown chains or tokens are simply absent."""
        key = chain_key(chain)
        check_sct(sct_token)
        stmt = (
            select(FeedbackRow.chain_id)
            .join(ChainRow, ChainRow.chain_id == FeedbackRow.chain_id)
            .join(SCTRow, SCTRow.sct_id == FeedbackRow.sct_id)
            .where(ChainRow.chain_key == key, SCTRow.sct == sct_token)
            .limit(1)
        )
        with self.db.connect() as conn:
            return conn.execute(stmt).first() is not None

    def count(self) -> int:
        """Number of distinct (chain, sct) pairs."""
        with self.db.connect() as conn:
            return conn.execute(select(func.count()).select_from(FeedbackRow)).scalar_one()

    def count_chains(self) -> int:
        return self.chains.count()

    def count_scts(self) -> int:
        return self.scts.count()

    def chain_id(self, chain: Sequence[str]) -> int:
        """Raises NotFound if the chain was never stored."""
        return self.chains.lookup(chain_key(chain))

    def sct_id(self, sct_token: str) -> int:
        """Raises NotFound if the token was never stored."""
        check_sct(sct_token)
        return self.scts.lookup(sct_token)
