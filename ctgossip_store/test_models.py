"""
test_models.py - Value types, key derivation and error contracts
"""
import pytest

from .errors import (
    GossipErrorCode,
    InvalidArgument,
    NotFound,
    StorageUnavailable,
    constraint_conflict,
    invalid_argument,
    not_found,
    storage_unavailable,
)
from .keys import CHAIN_KEY_PREFIX, chain_key
from .models import SCTFeedbackEntry, STHPollinationEntry


STH_DICT = {
    "sth_version": 0,
    "tree_size": 100,
    "timestamp": 1438254824,
    "sha256_root_hash": "HASH0",
    "tree_head_signature": "SIG0",
    "log_id": "LOG0",
}


class TestChainKey:

    def test_deterministic(self):
        assert chain_key(["CHAIN00", "CHAIN01"]) == chain_key(("CHAIN00", "CHAIN01"))

    def test_fixed_size(self):
        key = chain_key(["A" * 10000, "B"])

        assert key.startswith(CHAIN_KEY_PREFIX)
        assert len(key) == len(CHAIN_KEY_PREFIX) + 64

    @pytest.mark.parametrize("left,right", [
        (["AB", "C"], ["A", "BC"]),
        (["ABC"], ["A", "BC"]),
        (["A", "B"], ["B", "A"]),
        (['A","B'], ["A", "B"]),
        (["A,B"], ["A", "B"]),
    ])
    def test_no_collisions(self, left, right):
        assert chain_key(left) != chain_key(right)

    @pytest.mark.parametrize("chain", [[], "CHAIN00", ["A", ""], ["A", None], [b"A"]])
    def test_invalid_chain(self, chain):
        with pytest.raises(InvalidArgument):
            chain_key(chain)


class TestFeedbackEntry:

    def test_from_dict(self):
        entry = SCTFeedbackEntry.from_dict({"x509_chain": ["C0", "C1"], "sct_data": ["S0"]})

        assert entry.x509_chain == ("C0", "C1")
        assert entry.sct_data == ("S0",)
        assert entry.to_dict() == {"x509_chain": ["C0", "C1"], "sct_data": ["S0"]}

    def test_sct_data_optional(self):
        entry = SCTFeedbackEntry.from_dict({"x509_chain": ["C0"]})

        assert entry.sct_data == ()

    def test_hashable(self):
        a = SCTFeedbackEntry(x509_chain=["C0"], sct_data=["S0"])
        b = SCTFeedbackEntry(x509_chain=("C0",), sct_data=("S0",))

        assert a == b
        assert len({a, b}) == 1

    @pytest.mark.parametrize("data", [
        [],
        {"sct_data": ["S0"]},
        {"x509_chain": "C0"},
        {"x509_chain": 5},
    ])
    def test_from_dict_rejects(self, data):
        with pytest.raises(InvalidArgument):
            SCTFeedbackEntry.from_dict(data)


class TestSTHEntry:

    def test_round_trip_field_names(self):
        entry = STHPollinationEntry.from_dict(STH_DICT)

        assert entry.tree_size == 100
        assert entry.to_dict() == STH_DICT
        assert entry.as_tuple() == (0, 100, 1438254824, "HASH0", "SIG0", "LOG0")

    def test_missing_fields(self):
        data = dict(STH_DICT)
        del data["log_id"]
        del data["timestamp"]

        with pytest.raises(InvalidArgument) as exc_info:
            STHPollinationEntry.from_dict(data)

        assert exc_info.value.error.details["missing"] == ["timestamp", "log_id"]


class TestErrors:

    def test_error_to_dict(self):
        error = invalid_argument("bad chain", {"field": "x509_chain"}).error

        assert error.to_dict() == {
            "error_code": "GOSSIP_INVALID_ARGUMENT",
            "message": "bad chain",
            "details": {"field": "x509_chain"},
        }

    def test_details_default_to_empty(self):
        assert storage_unavailable("closed").error.to_dict()["details"] == {}

    def test_factories_build_matching_classes(self):
        assert isinstance(storage_unavailable("x"), StorageUnavailable)
        assert isinstance(not_found("scts", "S0"), NotFound)
        assert not_found("scts", "S0").code == GossipErrorCode.NOT_FOUND
        assert constraint_conflict("scts", {"sct": "S0"}).code == GossipErrorCode.CONSTRAINT_CONFLICT

    def test_message_is_exception_text(self):
        assert str(storage_unavailable("disk detached")) == "Storage unavailable: disk detached"
