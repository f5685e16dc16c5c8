"""
Snapshots: Immutable Per-Key Records

A Snapshot is the cached state for one key. Stores never mutate a
snapshot in place; every transition builds a new one and commits it.

Lifecycle flags:
    primed       - data has been set at least once (never reverts)
    pending      - a fetch is in flight or expected imminently
    invalidated  - marked stale until a newer value arrives
    failure      - last fetch failed; stale data is retained

A ListSnapshot aggregates the member snapshots of an ordered key list.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar

from datamirror.core.types import Timestamp

K = TypeVar("K")
D = TypeVar("D")


# =============================================================================
# FAILURE
# =============================================================================
@dataclass(frozen=True, slots=True)
class Failure:
    """Why and when the last fetch for a record failed."""
    reason: Any
    at: Timestamp

    def to_dict(self) -> dict[str, Any]:
        return {"reason": str(self.reason), "at": self.at.millis}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Failure:
        return cls(reason=data["reason"], at=Timestamp.from_millis(data["at"]))


# =============================================================================
# DOCUMENT SNAPSHOT
# =============================================================================
@dataclass(frozen=True, slots=True)
class Snapshot(Generic[K, D]):
    """
    Cached state for a single key.

    `data` is None until the record is primed; check `primed` rather
    than `data` since None is also a valid fetched value.
    """

    key: K
    data: Optional[D] = None
    primed: bool = False
    pending: bool = True
    invalidated: bool = False
    failure: Optional[Failure] = None
    updated_at: Optional[Timestamp] = None

    @classmethod
    def initial(cls, key: K) -> Snapshot[K, D]:
        """Empty record for a key that has never been seen."""
        return cls(key=key)

    @classmethod
    def fulfilled(
        cls,
        key: K,
        data: D,
        pending: bool,
        updated_at: Timestamp,
    ) -> Snapshot[K, D]:
        """Record carrying a full value; clears failure and invalidation."""
        return cls(
            key=key,
            data=data,
            primed=True,
            pending=pending,
            invalidated=False,
            failure=None,
            updated_at=updated_at,
        )

    def as_pending(self) -> Snapshot[K, D]:
        if self.pending:
            return self
        return replace(self, pending=True)

    def as_invalidated(self, pending: Optional[bool] = None) -> Snapshot[K, D]:
        return replace(
            self,
            invalidated=True,
            pending=self.pending if pending is None else pending,
        )

    def with_failure(self, reason: Any, at: Timestamp) -> Snapshot[K, D]:
        """Keep existing data; record the failure and stop pending."""
        return replace(self, failure=Failure(reason=reason, at=at), pending=False)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form used for state transfer."""
        return {
            "key": self.key,
            "data": self.data,
            "primed": self.primed,
            "pending": self.pending,
            "invalidated": self.invalidated,
            "failure": self.failure.to_dict() if self.failure else None,
            "updated_at": self.updated_at.millis if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Snapshot[Any, Any]:
        failure = data.get("failure")
        updated_at = data.get("updated_at")
        return cls(
            key=data["key"],
            data=data.get("data"),
            primed=bool(data.get("primed", False)),
            pending=bool(data.get("pending", False)),
            invalidated=bool(data.get("invalidated", False)),
            failure=Failure.from_dict(failure) if failure else None,
            updated_at=Timestamp.from_millis(updated_at) if updated_at is not None else None,
        )


# =============================================================================
# LIST SNAPSHOT
# =============================================================================
@dataclass(frozen=True, slots=True)
class ListSnapshot(Generic[K, D]):
    """
    Composite view over an ordered list of keys.

    `primed` is true only when every member is primed; `failure` is the
    first member failure in key order.
    """

    key: list[K]
    data: list[Snapshot[K, D]]
    primed: bool
    failure: Optional[Failure] = None

    @classmethod
    def from_members(
        cls,
        keys: Sequence[K],
        members: Sequence[Snapshot[K, D]],
    ) -> ListSnapshot[K, D]:
        failure = next((m.failure for m in members if m.failure is not None), None)
        return cls(
            key=list(keys),
            data=list(members),
            primed=all(m.primed for m in members),
            failure=failure,
        )

    @property
    def pending(self) -> bool:
        return any(m.pending for m in self.data)

    @property
    def invalidated(self) -> bool:
        return any(m.invalidated for m in self.data)
