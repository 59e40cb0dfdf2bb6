"""
conftest.py - Shared fixtures for store tests.

Each test gets its own SQLite file under tmp_path; nothing is shared
between tests.
"""
import time

import pytest

from .database import Database
from .models import SCTFeedbackEntry, STHPollinationEntry
from .relay import GossipRelay


# Chains and SCTs from two observed connections
FEEDBACK = [
    SCTFeedbackEntry(
        x509_chain=["CHAIN00", "CHAIN01"],
        sct_data=["SCT00", "SCT01", "SCT02"],
    ),
    SCTFeedbackEntry(
        x509_chain=["CHAIN10", "CHAIN11"],
        sct_data=["SCT10", "SCT11", "SCT12"],
    ),
]


def make_sth(
    age_seconds: int = 0,
    tree_size: int = 100,
    log_id: str = "LOG0",
    root_hash: str = "HASH0",
    signature: str = "SIG0",
    now: int = None,
) -> STHPollinationEntry:
    """Build an STH whose timestamp is `age_seconds` before now."""
    now = int(time.time()) if now is None else now
    return STHPollinationEntry(
        sth_version=0,
        tree_size=tree_size,
        timestamp=now - age_seconds,
        sha256_root_hash=root_hash,
        tree_head_signature=signature,
        log_id=log_id,
    )


def fresh_sths(count: int = 3):
    """`count` distinct STHs, all timestamped within the last minute."""
    return [
        make_sth(age_seconds=i, tree_size=100 * (i + 1), root_hash=f"HASH{i}", signature=f"SIG{i}")
        for i in range(count)
    ]


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'gossip.db'}"


@pytest.fixture
def db(database_url):
    """Open store handle, closed after the test."""
    database = Database(database_url, busy_timeout=30.0)
    database.open()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def relay(db):
    return GossipRelay(db, default_sample_size=10)
