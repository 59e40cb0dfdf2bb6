"""
ctgossip_store/models.py - Gossip Value Types

Immutable, already-accepted material handed to the store.
The store never interprets these values; it only deduplicates them.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Tuple

from .errors import invalid_argument


@dataclass(frozen=True)
class SCTFeedbackEntry:
    """A certificate chain (leaf first) and the SCTs observed alongside it."""
    x509_chain: Tuple[str, ...]
    sct_data: Tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any iterable of strings, freeze to tuples so entries stay hashable
        object.__setattr__(self, "x509_chain", _freeze(self.x509_chain, "x509_chain"))
        object.__setattr__(self, "sct_data", _freeze(self.sct_data, "sct_data"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SCTFeedbackEntry":
        """
        Build an entry from a plain dict using the gossip field names.

        Parameters:
            data (dict): Mapping with `x509_chain` (list of str) and optional `sct_data` (list of str).

        Raises:
            InvalidArgument: If `data` is not a mapping or `x509_chain` is missing.
        """
        if not isinstance(data, dict):
            raise invalid_argument("Feedback entry must be an object", {"type": type(data).__name__})
        if "x509_chain" not in data:
            raise invalid_argument("Feedback entry missing x509_chain", {"field": "x509_chain"})
        return cls(x509_chain=data["x509_chain"], sct_data=data.get("sct_data") or ())

    def to_dict(self) -> Dict[str, Any]:
        return {"x509_chain": list(self.x509_chain), "sct_data": list(self.sct_data)}


STH_FIELDS = (
    "sth_version",
    "tree_size",
    "timestamp",
    "sha256_root_hash",
    "tree_head_signature",
    "log_id",
)


@dataclass(frozen=True)
class STHPollinationEntry:
    """
    One Signed Tree Head as exchanged between gossip participants.

    The full tuple is the identity of the entry. `timestamp` is seconds since the Unix epoch.
    """
    sth_version: int
    tree_size: int
    timestamp: int
    sha256_root_hash: str
    tree_head_signature: str
    log_id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "STHPollinationEntry":
        """
        Build an entry from a plain dict using the gossip field names.

        Raises:
            InvalidArgument: If `data` is not a mapping or any field is missing.
        """
        if not isinstance(data, dict):
            raise invalid_argument("STH entry must be an object", {"type": type(data).__name__})
        missing = [f for f in STH_FIELDS if f not in data]
        if missing:
            raise invalid_argument("STH entry missing fields", {"missing": missing})
        return cls(**{f: data[f] for f in STH_FIELDS})

    def to_dict(self) -> Dict[str, Any]:
        return {f: getattr(self, f) for f in STH_FIELDS}

    def as_tuple(self) -> Tuple[int, int, int, str, str, str]:
        return (
            self.sth_version,
            self.tree_size,
            self.timestamp,
            self.sha256_root_hash,
            self.tree_head_signature,
            self.log_id,
        )


def _freeze(values: Iterable[str], field: str) -> Tuple[str, ...]:
    if isinstance(values, (str, bytes)):
        raise invalid_argument(f"{field} must be a list of strings, not a single string", {"field": field})
    try:
        return tuple(values)
    except TypeError:
        raise invalid_argument(f"{field} must be a list of strings", {"field": field})
