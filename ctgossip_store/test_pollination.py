"""
test_pollination.py - STH Pollination Pool

Tests:
- Idempotent inserts (across and within submissions)
- Exact tuple membership
- Freshness and bound invariants of sample_fresh, on both the native
  random-order query and the reservoir scan
- All-or-nothing submissions
"""
import math
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import BigInteger

from . import pollination
from .conftest import fresh_sths, make_sth
from .errors import InvalidArgument, StorageUnavailable, storage_unavailable
from .keys import MAX_INT64
from .models import STHPollinationEntry
from .pollination import FRESHNESS_WINDOW, PollinationStore, fresh_cutoff
from .schema import STHRow


DAY = 24 * 60 * 60


@pytest.fixture(params=[None, False], ids=["native", "fallback"])
def store(request, db):
    return PollinationStore(db, native_upsert=request.param, native_random=request.param)


class TestAddPollination:

    def test_entries_stored(self, store):
        entries = fresh_sths(3)

        assert store.add(entries) == 3

        assert store.count() == 3
        for entry in entries:
            assert store.exists(entry)

    def test_resubmission_is_idempotent(self, store):
        entries = fresh_sths(3)
        for _ in range(10):
            store.add(entries)

        assert store.count() == 3

    def test_duplicates_within_one_submission(self, store):
        entry = make_sth()

        assert store.add([entry, entry, entry]) == 1
        assert store.count() == 1

    def test_tuples_differing_in_one_field_are_distinct(self, store):
        """Signature is part of the key: same tree head, different signature."""
        base = make_sth(now=1438254824)
        store.add([
            base,
            make_sth(now=1438254824, signature="SIG-OTHER"),
            make_sth(now=1438254825),
            make_sth(now=1438254824, log_id="LOG1"),
        ])

        assert store.count() == 4

    def test_wide_integer_fields(self, store):
        entry = STHPollinationEntry(
            sth_version=2**40,
            tree_size=MAX_INT64,
            timestamp=int(datetime.now(timezone.utc).timestamp()),
            sha256_root_hash="HASH0",
            tree_head_signature="SIG0",
            log_id="LOG0",
        )
        store.add([entry])

        assert store.exists(entry)
        assert store.sample_fresh(10) == [entry]

    def test_integer_columns_are_64_bit(self):
        for name in ("version", "tree_size", "timestamp"):
            assert isinstance(STHRow.__table__.c[name].type, BigInteger)

    def test_exists_requires_exact_match(self, store):
        entry = make_sth(now=1438254824)
        store.add([entry])

        assert store.exists(entry)
        assert not store.exists(make_sth(now=1438254824, root_hash="HASH-OTHER"))
        assert not store.exists(make_sth(now=1438254825))

    @pytest.mark.parametrize("field,value", [
        ("tree_size", -1),
        ("timestamp", -5),
        ("sth_version", True),
        ("tree_size", "100"),
        ("sha256_root_hash", ""),
        ("tree_head_signature", None),
        ("log_id", ""),
    ])
    def test_invalid_entry_rejects_whole_submission(self, store, field, value):
        bad = make_sth().to_dict()
        bad[field] = value

        with pytest.raises(InvalidArgument) as exc_info:
            store.add([make_sth(age_seconds=1), STHPollinationEntry(**bad)])

        assert exc_info.value.error.details["field"] == field
        assert store.count() == 0

    def test_failure_mid_submission_rolls_back(self, store):
        entries = fresh_sths(3)
        calls = []

        real_insert = pollination.insert_if_absent

        def failing(*args, **kwargs):
            calls.append(1)
            if len(calls) == 3:
                raise storage_unavailable("disk detached")
            return real_insert(*args, **kwargs)

        with patch.object(pollination, "insert_if_absent", side_effect=failing):
            with pytest.raises(StorageUnavailable):
                store.add(entries)

        assert store.count() == 0


class TestSampleFresh:

    def test_empty_store_returns_empty_list(self, store):
        sample = store.sample_fresh(10)

        assert sample == []
        assert isinstance(sample, list)

    def test_returns_all_when_fewer_than_limit(self, store):
        """3 fresh entries, limit 10: exactly those 3, no duplicates."""
        entries = fresh_sths(3)
        store.add(entries)

        sample = store.sample_fresh(10)

        assert len(sample) == 3
        assert set(sample) == set(entries)

    def test_limit_one_returns_member(self, store):
        entries = fresh_sths(3)
        store.add(entries)

        sample = store.sample_fresh(1)

        assert len(sample) == 1
        assert sample[0] in entries

    def test_bound_invariant(self, store):
        entries = fresh_sths(25)
        store.add(entries)

        for limit in (0, 1, 7, 25, 40):
            sample = store.sample_fresh(limit)
            assert len(sample) == min(limit, 25)
            assert len(set(sample)) == len(sample)
            assert set(sample) <= set(entries)

    def test_stale_entries_never_returned(self, store):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        now_ts = int(now.timestamp())
        fresh = [make_sth(age_seconds=d * DAY, now=now_ts, root_hash=f"F{d}") for d in range(14)]
        stale = [make_sth(age_seconds=d * DAY + 1, now=now_ts, root_hash=f"S{d}") for d in range(14, 30)]
        store.add(fresh + stale)

        for _ in range(5):
            sample = store.sample_fresh(100, now=now)
            assert set(sample) == set(fresh)
            assert all(entry.timestamp >= now_ts - 14 * DAY for entry in sample)

    def test_window_boundary_is_inclusive(self, store):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        boundary = make_sth(age_seconds=14 * DAY, now=int(now.timestamp()))
        just_outside = make_sth(age_seconds=14 * DAY + 1, now=int(now.timestamp()))
        store.add([boundary, just_outside])

        assert store.sample_fresh(10, now=now) == [boundary]

    def test_fractional_second_reference_time(self, store):
        """The cutoff rounds up, so an entry 0.9s past the window is excluded."""
        now = datetime(2024, 6, 1, 0, 0, 0, 900000, tzinfo=timezone.utc)
        window_start = (now - FRESHNESS_WINDOW).timestamp()
        too_old = make_sth(now=math.floor(window_start), root_hash="OLD")
        inside = make_sth(now=math.ceil(window_start), root_hash="NEW")
        store.add([too_old, inside])

        assert store.sample_fresh(10, now=now) == [inside]

    def test_every_qualifying_entry_can_be_chosen(self, store):
        """Not seeded: repeated single-entry samples cover the pool."""
        entries = fresh_sths(3)
        store.add(entries)

        seen = set()
        for _ in range(200):
            seen.update(store.sample_fresh(1))
            if seen == set(entries):
                break

        assert seen == set(entries)

    @pytest.mark.parametrize("limit", [-1, 1.5, True, "10"])
    def test_invalid_limit(self, store, limit):
        with pytest.raises(InvalidArgument):
            store.sample_fresh(limit)

    def test_naive_reference_time_rejected(self, store):
        with pytest.raises(InvalidArgument):
            store.sample_fresh(10, now=datetime(2024, 6, 1))


class TestFreshCutoff:

    def test_rounds_up_fractional_seconds(self):
        now = datetime(2024, 6, 15, 0, 0, 0, 500000, tzinfo=timezone.utc)

        assert fresh_cutoff(now) == int(datetime(2024, 6, 1, tzinfo=timezone.utc).timestamp()) + 1

    def test_fourteen_day_window(self):
        now = datetime(2024, 6, 15, tzinfo=timezone.utc)

        assert FRESHNESS_WINDOW == timedelta(days=14)
        assert fresh_cutoff(now) == int(datetime(2024, 6, 1, tzinfo=timezone.utc).timestamp())

    def test_defaults_to_current_time(self):
        before = math.ceil((datetime.now(timezone.utc) - FRESHNESS_WINDOW).timestamp())
        cutoff = fresh_cutoff()
        after = math.ceil((datetime.now(timezone.utc) - FRESHNESS_WINDOW).timestamp())

        assert before <= cutoff <= after
