"""
Handles: Per-Key and Per-Key-List Views Over a Store

A handle binds an ordered tuple of keys to the store that owns them and
exposes the same capability for one key or many:

    get_latest()      - current record, never blocks
    get()             - future resolving once data is settled
    subscribe(cb)     - change notifications until unsubscribed
    hold()            - keep records from being purged
    invalidate()      - mark stale, refetch if subscribed
    update(value)     - store a value or apply an updater
    predict_update()  - show a value until an outcome settles

Variants differ only in how member records are aggregated and how an
update value is spread across members.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

from datamirror.core.errors import FetchError, MissingDataError, UpdateError
from datamirror.core.types import UNSET
from datamirror.mirror.snapshots import ListSnapshot, Snapshot

if TYPE_CHECKING:
    from datamirror.mirror.namespaced import NamespacedMirror


# =============================================================================
# HANDLE BASE
# =============================================================================
class MirrorHandle(ABC):
    """Capability shared by document and list handles."""

    __slots__ = ("_mirror", "_keys")

    def __init__(self, mirror: NamespacedMirror, keys: Sequence[Any]) -> None:
        self._mirror = mirror
        self._keys = tuple(keys)

    @abstractmethod
    def _aggregate(self, snapshots: Sequence[Snapshot]) -> Any:
        """Combine member records into the value callers observe."""

    @abstractmethod
    def _spread(self, value: Any) -> list:
        """Split an update value into one value per member key."""

    @abstractmethod
    def _current_data(self, snapshots: Sequence[Snapshot]) -> Any:
        """Value passed to an updater function."""

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def get_latest(self) -> Any:
        """Current record(s); stores empty pending records for unseen keys."""
        return self._aggregate(self._mirror._get_latest(self._keys))

    def get(self) -> asyncio.Future:
        """
        Future resolving to the record(s) once settled.

        Resolves immediately when every member is already primed. Otherwise
        subscribes (starting any needed fetch) until no member is pending,
        then resolves if all members are primed, or rejects with the first
        member failure.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        stored = self._mirror._get(self._keys)
        if all(snapshot is not None and snapshot.primed for snapshot in stored):
            future.set_result(self._aggregate(stored))
            return future

        def on_change(snapshots: list[Snapshot]) -> None:
            if not future.done() and not any(s.pending for s in snapshots):
                self._settle(future, snapshots)

        unsubscribe = self._mirror._subscribe(self._keys, on_change)
        future.add_done_callback(lambda _: unsubscribe())

        if not future.done():
            snapshots = [
                snapshot or Snapshot.initial(key)
                for key, snapshot in zip(self._keys, self._mirror._get(self._keys))
            ]
            on_change(snapshots)
        return future

    def _settle(self, future: asyncio.Future, snapshots: Sequence[Snapshot]) -> None:
        if all(snapshot.primed for snapshot in snapshots):
            future.set_result(self._aggregate(snapshots))
            return

        failure = next((s.failure for s in snapshots if s.failure is not None), None)
        reason = failure.reason if failure is not None else None
        if isinstance(reason, BaseException):
            future.set_exception(reason)
        else:
            future.set_exception(FetchError.rejected(self._keys, reason))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Call `callback` with the aggregated record(s) on every change."""
        return self._mirror._subscribe(
            self._keys,
            lambda snapshots: callback(self._aggregate(snapshots)),
        )

    def hold(self) -> Callable[[], None]:
        return self._mirror._hold(self._mirror._compute_hashes(self._keys))

    def invalidate(self) -> None:
        self._mirror._invalidate(self._keys)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def update(self, data_or_updater: Any) -> None:
        """
        Store new data for every member key.

        A callable is treated as an updater receiving the current data;
        it requires every member to be primed.

        Raises:
            MissingDataError: Updater given before data is available
            UpdateError: List value with the wrong number of items
        """
        self._mirror._update(self._keys, self._resolve_update(data_or_updater))

    def predict_update(
        self,
        outcome: Awaitable[Any],
        data_or_updater: Any = UNSET,
    ) -> asyncio.Task:
        """
        Show predicted data until `outcome` settles.

        Without a value the records are only marked pending, then
        invalidated once the outcome succeeds. If the outcome fails every
        member is restored to its previous data with the failure attached,
        and the returned task raises it.
        """
        if data_or_updater is UNSET:
            datas = [UNSET] * len(self._keys)
        else:
            datas = self._resolve_update(data_or_updater)
        return self._mirror._predict(self._keys, datas, outcome)

    def _resolve_update(self, data_or_updater: Any) -> list:
        if not callable(data_or_updater):
            return self._spread(data_or_updater)

        snapshots = self._mirror._get(self._keys)
        missing = [
            key for key, snapshot in zip(self._keys, snapshots)
            if snapshot is None or not snapshot.primed
        ]
        if missing:
            raise MissingDataError.for_keys(missing)
        return self._spread(data_or_updater(self._current_data(snapshots)))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._keys!r})"


# =============================================================================
# DOCUMENT HANDLE
# =============================================================================
class DocumentHandle(MirrorHandle):
    """Handle for a single key; observes a `Snapshot`."""

    __slots__ = ()

    def __init__(self, mirror: NamespacedMirror, key: Any) -> None:
        super().__init__(mirror, (key,))

    @property
    def key(self) -> Any:
        return self._keys[0]

    def _aggregate(self, snapshots: Sequence[Snapshot]) -> Snapshot:
        return snapshots[0]

    def _spread(self, value: Any) -> list:
        return [value]

    def _current_data(self, snapshots: Sequence[Snapshot]) -> Any:
        return snapshots[0].data


# =============================================================================
# DOCUMENT LIST HANDLE
# =============================================================================
class DocumentListHandle(MirrorHandle):
    """Handle for an ordered list of keys; observes a `ListSnapshot`."""

    __slots__ = ()

    @property
    def keys(self) -> list:
        return list(self._keys)

    def _aggregate(self, snapshots: Sequence[Snapshot]) -> ListSnapshot:
        return ListSnapshot.from_members(self._keys, snapshots)

    def _spread(self, value: Any) -> list:
        values = list(value)
        if len(values) != len(self._keys):
            raise UpdateError.shape_mismatch(len(self._keys), len(values))
        return values

    def _current_data(self, snapshots: Sequence[Snapshot]) -> list:
        return [snapshot.data for snapshot in snapshots]
