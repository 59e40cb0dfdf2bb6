"""
ctgossip_store/relay.py - Gossip Relay Core

The surface the request-handling layer talks to. It owns no wire format:
callers decode their payloads into SCTFeedbackEntry / STHPollinationEntry
and encode whatever comes back.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .config import get_settings
from .database import Database
from .feedback import FeedbackStore
from .keys import check_feedback
from .models import SCTFeedbackEntry, STHPollinationEntry
from .pollination import PollinationStore
from .verification import AcceptAllVerifier, Verifier, filter_feedback


logger = logging.getLogger(__name__)


class GossipRelay:
    """
    Feedback and pollination storage behind one store handle.

    Args:
        db: Open store handle shared by both stores.
        verifier: Gatekeeper for feedback material. Defaults to AcceptAllVerifier.
        default_sample_size: Sample size used when callers pass no limit.
            Defaults to DEFAULT_NUM_POLLINATIONS_TO_RETURN from settings.
    """

    def __init__(
        self,
        db: Database,
        verifier: Optional[Verifier] = None,
        default_sample_size: Optional[int] = None,
    ):
        self.db = db
        self.verifier = verifier or AcceptAllVerifier()
        if default_sample_size is None:
            default_sample_size = get_settings().DEFAULT_NUM_POLLINATIONS_TO_RETURN
        self.default_sample_size = default_sample_size
        self.feedback = FeedbackStore(db)
        self.pollination = PollinationStore(db)

    def add_feedback(self, entries: Iterable[SCTFeedbackEntry]) -> int:
        """
        Verify, then store a feedback submission atomically.

        Returns:
            int: Number of newly recorded (chain, sct) pairs.
        """
        entries = check_feedback(entries)
        accepted = filter_feedback(entries, self.verifier)
        if len(accepted) != len(entries):
            logger.info("Dropped %d of %d feedback entries", len(entries) - len(accepted), len(entries))
        return self.feedback.add(accepted)

    def add_pollination(self, entries: Iterable[STHPollinationEntry]) -> int:
        return self.pollination.add(entries)

    def sample_fresh_pollination(self, limit: Optional[int] = None) -> List[STHPollinationEntry]:
        if limit is None:
            limit = self.default_sample_size
        return self.pollination.sample_fresh(limit)

    def exchange_pollination(
        self,
        entries: Iterable[STHPollinationEntry],
        limit: Optional[int] = None,
    ) -> List[STHPollinationEntry]:
        """Store the peer's STHs, then hand back a fresh random selection from the pool."""
        self.add_pollination(entries)
        return self.sample_fresh_pollination(limit)

    # Diagnostics

    def has_feedback(self, chain: Sequence[str], sct_token: str) -> bool:
        return self.feedback.has(chain, sct_token)

    def has_pollination(self, entry: STHPollinationEntry) -> bool:
        return self.pollination.exists(entry)

    def count_feedback(self) -> int:
        return self.feedback.count()

    def count_chains(self) -> int:
        return self.feedback.count_chains()

    def count_scts(self) -> int:
        return self.feedback.count_scts()

    def count_pollination(self) -> int:
        return self.pollination.count()

    def stats(self) -> Dict[str, int]:
        return {
            "chains": self.count_chains(),
            "scts": self.count_scts(),
            "feedback": self.count_feedback(),
            "sths": self.count_pollination(),
        }
