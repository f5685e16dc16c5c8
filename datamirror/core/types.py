"""
Core Type Definitions for datamirror

Result/Either containers for configuration-boundary control flow,
a nanosecond timestamp, and the UNSET sentinel used where `None`
is a legitimate value.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    ClassVar,
    Generic,
    Literal,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


# =============================================================================
# RESULT CONTAINERS
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success variant of Result."""
    
    value: T
    
    def is_ok(self) -> Literal[True]:
        return True
    
    def is_err(self) -> Literal[False]:
        return False
    
    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value
    
    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result.
    
    Carries the error for exhaustive handling by the caller.
    """
    
    error: E
    
    def is_ok(self) -> Literal[False]:
        return False
    
    def is_err(self) -> Literal[True]:
        return True
    
    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.
        
        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")
    
    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Wall-clock timestamp in nanoseconds since the Unix epoch.
    
    Records carry these for `updated_at` and failure times. Millisecond
    views are used when records cross a process boundary.
    """
    
    nanos: int
    
    NANOS_PER_MILLI: ClassVar[int] = 1_000_000
    
    @classmethod
    def now(cls) -> Timestamp:
        """Capture current time via time.time_ns()."""
        return cls(nanos=time.time_ns())
    
    @classmethod
    def from_millis(cls, millis: int) -> Timestamp:
        """Convert milliseconds to Timestamp."""
        return cls(nanos=int(millis) * cls.NANOS_PER_MILLI)
    
    @property
    def millis(self) -> int:
        """Convert to milliseconds (truncating)."""
        return self.nanos // self.NANOS_PER_MILLI
    
    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# SENTINELS
# =============================================================================
class _Unset:
    """Marks an omitted argument where None is a valid value."""
    
    _instance: ClassVar[_Unset | None] = None
    
    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    def __bool__(self) -> bool:
        return False
    
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()
