"""
Mirror Options: Fetch, Effect, Hashing and Purge Configuration

The callbacks a mirror consumes from its host application:

    compute_hash_for_key(key) -> str
    fetch(key, context, mirror) -> awaitable data
    fetch_many(keys, context, mirror) -> awaitable list of data (input order)
    effect(snapshot, context) -> optional cleanup()
    schedule_purge: delay in ms, or (purge, snapshot, context) -> canceller
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Optional,
    Sequence,
    Union,
)

from datamirror.core.types import Result, Ok, Err
from datamirror.mirror.snapshots import Snapshot

if TYPE_CHECKING:
    from datamirror.mirror.namespaced import NamespacedMirror


CancelPurgeFunction = Callable[[], None]
CleanupFunction = Callable[[], None]
FetchFunction = Callable[[Any, Any, "NamespacedMirror"], Awaitable[Any]]
FetchManyFunction = Callable[[list, Any, "NamespacedMirror"], Awaitable[Sequence[Any]]]
EffectFunction = Callable[[Snapshot, Any], Optional[CleanupFunction]]
PurgeScheduler = Callable[[Callable[[], None], Snapshot, Any], Optional[CancelPurgeFunction]]


def default_compute_hash_for_key(key: Any) -> str:
    """Strings hash to themselves; anything else to compact, key-sorted JSON."""
    if isinstance(key, str):
        return key
    return json.dumps(key, sort_keys=True, separators=(",", ":"), default=str)


def create_timeout_purge_scheduler(milliseconds: float) -> PurgeScheduler:
    """Purge strategy that fires a fixed delay after a record becomes unheld."""

    def schedule(
        purge: Callable[[], None],
        snapshot: Snapshot,
        context: Any,
    ) -> CancelPurgeFunction:
        handle = asyncio.get_running_loop().call_later(milliseconds / 1000, purge)
        return handle.cancel

    return schedule


@dataclass(frozen=True)
class MirrorOptions:
    """
    Per-mirror configuration, shared by every namespace of the mirror.

    At least one of `fetch` / `fetch_many` must be supplied for data to
    ever resolve on its own; without them only `update()` and hydration
    provide data. `schedule_purge=None` uses the MirrorConfig default.
    """

    compute_hash_for_key: Callable[[Any], str] = default_compute_hash_for_key
    fetch: Optional[FetchFunction] = None
    fetch_many: Optional[FetchManyFunction] = None
    effect: Optional[EffectFunction] = None
    schedule_purge: Union[int, float, PurgeScheduler, None] = None

    def validate(self) -> Result[None, str]:
        """Validate option types and ranges."""
        if not callable(self.compute_hash_for_key):
            return Err("compute_hash_for_key must be callable")
        for name in ("fetch", "fetch_many", "effect"):
            value = getattr(self, name)
            if value is not None and not callable(value):
                return Err(f"{name} must be callable")
        purge = self.schedule_purge
        if isinstance(purge, bool):
            return Err("schedule_purge must be a delay in milliseconds or a callable")
        if isinstance(purge, (int, float)):
            if purge < 0:
                return Err("schedule_purge delay cannot be negative")
        elif purge is not None and not callable(purge):
            return Err("schedule_purge must be a delay in milliseconds or a callable")
        return Ok(None)

    def purge_scheduler(self, default_delay_ms: float) -> PurgeScheduler:
        """Resolve `schedule_purge` into a scheduler function."""
        purge = self.schedule_purge
        if purge is None:
            return create_timeout_purge_scheduler(default_delay_ms)
        if isinstance(purge, (int, float)):
            return create_timeout_purge_scheduler(purge)
        return purge
