"""
ctgossip_store/keys.py - Key Derivation & Argument Gate

Responsibilities:
- Derive the unambiguous identity key of an ordered certificate chain
- Reject malformed submissions before any store interaction

Chain keys: the ordered elements are serialized as a compact JSON array
(each element quoted and escaped, so element boundaries survive), then
hashed with SHA-256. ["AB", "C"] and ["A", "BC"] never share a key.
"""
import hashlib
import json
from typing import Iterable, List, Sequence

from .errors import invalid_argument
from .models import SCTFeedbackEntry, STHPollinationEntry


CHAIN_KEY_PREFIX = "sha256:"

# BIGINT upper bound; tree sizes and timestamps are stored as 64-bit integers
MAX_INT64 = 2**63 - 1


def chain_key(chain: Sequence[str]) -> str:
    """
    Return the identity key for an ordered certificate chain.

    Parameters:
        chain (Sequence[str]): Chain elements, leaf first.

    Returns:
        str: `sha256:` followed by the hex SHA-256 of the canonical JSON array.

    Raises:
        InvalidArgument: If the chain is empty or contains an empty or non-string element.
    """
    check_chain(chain)
    canonical = json.dumps(list(chain), separators=(",", ":"))
    return CHAIN_KEY_PREFIX + hashlib.sha256(canonical.encode("ascii")).hexdigest()


def check_chain(chain: Sequence[str]) -> None:
    if isinstance(chain, (str, bytes)) or not chain:
        raise invalid_argument("Certificate chain must be a non-empty list", {"field": "x509_chain"})
    for index, element in enumerate(chain):
        if not isinstance(element, str) or not element:
            raise invalid_argument(
                "Certificate chain elements must be non-empty strings",
                {"field": "x509_chain", "index": index},
            )


def check_sct(token: str) -> None:
    if not isinstance(token, str) or not token:
        raise invalid_argument("SCT token must be a non-empty string", {"field": "sct_data"})


def check_feedback(entries: Iterable[SCTFeedbackEntry]) -> List[SCTFeedbackEntry]:
    """
    Validate a feedback submission in full and return it as a list.

    Raises:
        InvalidArgument: On the first malformed entry; nothing is written.
    """
    checked = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, SCTFeedbackEntry):
            raise invalid_argument("Feedback entries must be SCTFeedbackEntry", {"index": index})
        check_chain(entry.x509_chain)
        for token in entry.sct_data:
            check_sct(token)
        checked.append(entry)
    return checked


def check_pollination(entries: Iterable[STHPollinationEntry]) -> List[STHPollinationEntry]:
    """
    Validate a pollination submission in full and return it as a list.

    Raises:
        InvalidArgument: On the first malformed entry; nothing is written.
    """
    checked = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, STHPollinationEntry):
            raise invalid_argument("Pollination entries must be STHPollinationEntry", {"index": index})
        for field in ("sth_version", "tree_size", "timestamp"):
            value = getattr(entry, field)
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_INT64:
                raise invalid_argument(
                    f"{field} must be a non-negative 64-bit integer",
                    {"field": field, "index": index},
                )
        for field in ("sha256_root_hash", "tree_head_signature", "log_id"):
            value = getattr(entry, field)
            if not isinstance(value, str) or not value:
                raise invalid_argument(
                    f"{field} must be a non-empty string",
                    {"field": field, "index": index},
                )
        checked.append(entry)
    return checked
