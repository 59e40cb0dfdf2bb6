"""
ctgossip_store/verification.py - Verifier Boundary

The store only ever persists material a verifier has accepted. Chain
validation, SCT provenance checks and hostname policy live behind this
interface, outside the store.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Union

from .models import SCTFeedbackEntry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Accepted:
    """Verdict for accepted material. `cert` is the parsed leaf, opaque to the store."""
    cert: Optional[Any] = None


@dataclass(frozen=True)
class Rejected:
    reason: str


Verdict = Union[Accepted, Rejected]


class Verifier(ABC):
    """Decides which chains and SCTs the relay is willing to store."""

    @abstractmethod
    def verify_chain(self, chain: Sequence[str]) -> Verdict:
        """Accept with the leaf certificate, or reject with a reason."""

    @abstractmethod
    def verify_sct(self, token: str, cert: Any) -> Verdict:
        """Accept or reject one SCT for an already accepted leaf certificate."""


class AcceptAllVerifier(Verifier):
    """
    Accepts everything. The leaf element stands in for the parsed certificate.

    For relays that verify upstream, and for tests.
    """

    def verify_chain(self, chain: Sequence[str]) -> Verdict:
        return Accepted(cert=chain[0] if chain else None)

    def verify_sct(self, token: str, cert: Any) -> Verdict:
        return Accepted()


def filter_feedback(entries: Iterable[SCTFeedbackEntry], verifier: Verifier) -> List[SCTFeedbackEntry]:
    """
    Drop rejected chains, and rejected SCTs from accepted chains.

    A chain whose SCTs are all rejected is kept with an empty SCT list, so its
    identity is still recorded.
    """
    kept = []
    for entry in entries:
        verdict = verifier.verify_chain(entry.x509_chain)
        if isinstance(verdict, Rejected):
            logger.info("Failed to validate chain: %s", verdict.reason)
            continue

        scts = []
        for token in entry.sct_data:
            sct_verdict = verifier.verify_sct(token, verdict.cert)
            if isinstance(sct_verdict, Rejected):
                logger.info("Failed to validate SCT: %s", sct_verdict.reason)
                continue
            scts.append(token)
        kept.append(SCTFeedbackEntry(x509_chain=entry.x509_chain, sct_data=scts))
    return kept
