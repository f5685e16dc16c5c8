"""
Error Hierarchy for datamirror

Design Principles:
- Configuration boundaries return Result types; store operations raise
- Contract violations are raised synchronously and never stored on a record
- Fetch failures are stored on records and surfaced through `get()`
- Carry error context for debugging

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Timestamp for correlation with logs

Usage:
    try:
        handle.update(lambda todo: {**todo, "done": True})
    except MissingDataError as e:
        logger.warning(e.to_dict())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence
from uuid import uuid4

from datamirror.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.
    
    Codes are grouped by concern:
    - 1xxx: Fetch errors
    - 2xxx: Update errors
    - 3xxx: Configuration errors
    - 4xxx: State transfer errors
    """
    
    # Fetch errors (1xxx)
    FETCH_UNAVAILABLE = 1001
    FETCH_SHAPE_MISMATCH = 1002
    FETCH_REJECTED = 1003
    FETCH_CANCELLED = 1004
    
    # Update errors (2xxx)
    UPDATE_MISSING_DATA = 2001
    UPDATE_SHAPE_MISMATCH = 2002
    
    # Configuration errors (3xxx)
    CONFIGURATION_INVALID = 3001
    
    # State transfer errors (4xxx)
    STATE_INVALID_RECORD = 4001
    STATE_CORRUPT = 4002


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass(eq=False)
class MirrorError(Exception):
    """
    Base class for all datamirror errors.
    
    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp of creation
    - Cause chain for root cause analysis
    """
    
    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)
    
    def __post_init__(self) -> None:
        super().__init__(self.message)
    
    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }
    
    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"
    
    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )
    

# =============================================================================
# FETCH ERRORS
# =============================================================================
@dataclass(eq=False)
class FetchError(MirrorError):
    """
    Errors raised on the fetch path.
    
    Stored as a record's failure reason when a batch cannot be
    fulfilled, and used to reject `get()` when no reason is carried.
    """
    
    @classmethod
    def unavailable(cls, keys: Sequence[Any]) -> FetchError:
        """No fetch function is configured and nothing stored the data."""
        return cls(
            code=ErrorCode.FETCH_UNAVAILABLE,
            message=f"Unable to fetch: no data available for {len(keys)} key(s)",
            context={"keys": [repr(key) for key in keys]},
        )
    
    @classmethod
    def shape_mismatch(cls, expected: int, received: int) -> FetchError:
        """fetch_many returned a different number of values than keys."""
        return cls(
            code=ErrorCode.FETCH_SHAPE_MISMATCH,
            message=f"fetch_many returned {received} value(s) for {expected} key(s)",
            context={"expected": expected, "received": received},
        )
    
    @classmethod
    def cancelled(cls, keys: Sequence[Any]) -> FetchError:
        """The fetch (or predicted-update outcome) future was cancelled."""
        return cls(
            code=ErrorCode.FETCH_CANCELLED,
            message=f"Fetch cancelled for {len(keys)} key(s)",
            context={"keys": [repr(key) for key in keys]},
        )
    
    @classmethod
    def rejected(cls, keys: Sequence[Any], reason: Any = None) -> FetchError:
        """A record settled unprimed with a non-exception (or no) reason."""
        detail = "no reason given" if reason is None else str(reason)
        return cls(
            code=ErrorCode.FETCH_REJECTED,
            message=f"Fetch failed: {detail}",
            context={"keys": [repr(key) for key in keys], "reason": detail},
        )


# =============================================================================
# UPDATE ERRORS
# =============================================================================
@dataclass(eq=False)
class MissingDataError(MirrorError):
    """
    An updater function was given for keys that have no data yet.
    
    This is a programming-contract violation; the store is left untouched.
    """
    
    @classmethod
    def for_keys(cls, keys: Sequence[Any]) -> MissingDataError:
        return cls(
            code=ErrorCode.UPDATE_MISSING_DATA,
            message=(
                "Cannot apply an updater before data is available "
                f"for {len(keys)} key(s)"
            ),
            context={"keys": [repr(key) for key in keys]},
        )


@dataclass(eq=False)
class UpdateError(MirrorError):
    """Malformed update payloads."""
    
    @classmethod
    def shape_mismatch(cls, expected: int, received: int) -> UpdateError:
        """List update given the wrong number of values."""
        return cls(
            code=ErrorCode.UPDATE_SHAPE_MISMATCH,
            message=f"Expected {expected} value(s) for update, got {received}",
            context={"expected": expected, "received": received},
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass(eq=False)
class ConfigurationError(MirrorError):
    """Rejected mirror options or configuration."""
    
    @classmethod
    def invalid(cls, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIGURATION_INVALID,
            message=f"Invalid configuration: {reason}",
            context={"reason": reason},
        )


# =============================================================================
# STATE TRANSFER ERRORS
# =============================================================================
@dataclass(eq=False)
class HydrationError(MirrorError):
    """Extracted state that cannot be decoded or hydrated."""
    
    @classmethod
    def invalid_record(cls, record_hash: str, reason: str) -> HydrationError:
        return cls(
            code=ErrorCode.STATE_INVALID_RECORD,
            message=f"Cannot hydrate record {record_hash!r}: {reason}",
            context={"hash": record_hash, "reason": reason},
        )
    
    @classmethod
    def corrupt(
        cls,
        reason: str,
        cause: Optional[BaseException] = None,
    ) -> HydrationError:
        return cls(
            code=ErrorCode.STATE_CORRUPT,
            message=f"Corrupt state payload: {reason}",
            cause=cause,
            context={"reason": reason},
        )
