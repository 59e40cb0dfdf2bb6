"""
Persistence and sampling core of a Certificate-Transparency gossip relay.

Deduplicated storage of SCT feedback and STH pollination, plus a
time-windowed random sampler over the pollination pool.
"""

from .database import Database
from .errors import (
    ConstraintConflict,
    GossipErrorCode,
    GossipException,
    InvalidArgument,
    NotFound,
    StorageUnavailable,
)
from .feedback import FeedbackStore
from .models import SCTFeedbackEntry, STHPollinationEntry
from .pollination import FRESHNESS_WINDOW, PollinationStore
from .relay import GossipRelay
from .verification import Accepted, AcceptAllVerifier, Rejected, Verifier

__all__ = [
    'Accepted',
    'AcceptAllVerifier',
    'ConstraintConflict',
    'Database',
    'FRESHNESS_WINDOW',
    'FeedbackStore',
    'GossipErrorCode',
    'GossipException',
    'GossipRelay',
    'InvalidArgument',
    'NotFound',
    'PollinationStore',
    'Rejected',
    'SCTFeedbackEntry',
    'STHPollinationEntry',
    'StorageUnavailable',
    'Verifier',
]
