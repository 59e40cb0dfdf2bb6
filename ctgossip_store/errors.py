"""
ctgossip_store/errors.py - Error Taxonomy

Errors are contracts, not strings.

- STORAGE_UNAVAILABLE: store closed or unreachable. Fatal to the call.
- CONSTRAINT_CONFLICT: uniqueness violation. Recovered locally, never surfaced.
- NOT_FOUND: pure lookups only.
- INVALID_ARGUMENT: rejected before the store is touched.
"""
from enum import Enum
from dataclasses import dataclass
from typing import Optional, Dict, Any


class GossipErrorCode(str, Enum):
    STORAGE_UNAVAILABLE = "GOSSIP_STORAGE_UNAVAILABLE"
    CONSTRAINT_CONFLICT = "GOSSIP_CONSTRAINT_CONFLICT"
    NOT_FOUND = "GOSSIP_NOT_FOUND"
    INVALID_ARGUMENT = "GOSSIP_INVALID_ARGUMENT"


@dataclass(frozen=True)
class GossipError:
    """Immutable error object."""
    error_code: GossipErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the error into a plain dictionary.

        Returns:
            dict: `error_code` and `message` strings, and `details` (empty dict if unset).
        """
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details or {},
        }


class GossipException(Exception):
    """Base exception carrying a GossipError."""
    def __init__(self, error: GossipError):
        self.error = error
        super().__init__(error.message)

    @property
    def code(self) -> GossipErrorCode:
        return self.error.error_code


class StorageUnavailable(GossipException):
    """The persistent store is closed or cannot be reached."""


class ConstraintConflict(GossipException):
    """A uniqueness constraint rejected an insert."""


class NotFound(GossipException):
    """A pure lookup found no row for the key."""


class InvalidArgument(GossipException):
    """A submission was malformed."""


# Pre-defined error factories for consistency
def storage_unavailable(reason: str, details: Optional[Dict[str, Any]] = None) -> StorageUnavailable:
    return StorageUnavailable(GossipError(
        error_code=GossipErrorCode.STORAGE_UNAVAILABLE,
        message=f"Storage unavailable: {reason}",
        details=details,
    ))


def constraint_conflict(table: str, key: Any) -> ConstraintConflict:
    return ConstraintConflict(GossipError(
        error_code=GossipErrorCode.CONSTRAINT_CONFLICT,
        message=f"Uniqueness conflict in {table}",
        details={"table": table, "key": key},
    ))


def not_found(table: str, key: Any) -> NotFound:
    """
    Create a NotFound for a key with no assigned identity.

    Parameters:
        table (str): Name of the relation that was searched.
        key: The key that was looked up.
    """
    return NotFound(GossipError(
        error_code=GossipErrorCode.NOT_FOUND,
        message=f"No {table} row for key",
        details={"table": table, "key": key},
    ))


def invalid_argument(message: str, details: Optional[Dict[str, Any]] = None) -> InvalidArgument:
    """
    Create an InvalidArgument for a submission rejected before store access.

    Parameters:
        message (str): Human-readable reason.
        details (dict): Optional context, e.g. the offending field and index.
    """
    return InvalidArgument(GossipError(
        error_code=GossipErrorCode.INVALID_ARGUMENT,
        message=message,
        details=details,
    ))
