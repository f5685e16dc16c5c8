"""
Namespaced Mirror: Per-Context Snapshot Store

Owns the hash -> snapshot mapping for one context and coordinates the
lifecycle of every record in it:

- Fetch dispatch: one fetch_many call per batch, at most one in flight per hash
- Holds: reference counts that keep records from being purged
- Purge scheduling: deferred, cancellable eviction of unheld records
- Subscriptions: one notification per subscriber per commit
- Effects: re-run on every change, previous cleanup first

Every mutation of stored snapshots goes through `_commit`, which runs one
notification pass and one effect pass over exactly the committed hashes.
No mutating section awaits, so a record is never observed half-updated.

Usage:
    mirror = create_mirror(fetch_todo)
    handle = mirror.key(1)

    snapshot = await handle.get()
    unsubscribe = handle.subscribe(lambda s: print(s.data))
    handle.invalidate()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import weakref
from dataclasses import dataclass, replace
from functools import partial
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Generic,
    Mapping,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from datamirror.core.config import MirrorConfig
from datamirror.core.errors import ConfigurationError, FetchError, HydrationError
from datamirror.core.types import Timestamp, UNSET
from datamirror.mirror import transfer
from datamirror.mirror.handles import DocumentHandle, DocumentListHandle
from datamirror.mirror.options import FetchManyFunction, MirrorOptions
from datamirror.mirror.snapshots import Snapshot

logger = logging.getLogger(__name__)

K = TypeVar("K")
D = TypeVar("D")
C = TypeVar("C")

ReleaseFunction = Callable[[], None]
UnsubscribeFunction = Callable[[], None]
SubscriptionCallback = Callable[[list], None]


# =============================================================================
# STORE STATISTICS
# =============================================================================
@dataclass
class MirrorStats:
    """Counters for one namespace."""
    commits: int = 0
    notifications: int = 0
    fetch_batches: int = 0
    fetched_keys: int = 0
    fetch_failures: int = 0
    purges: int = 0


# =============================================================================
# INTERNAL BOOKKEEPING
# =============================================================================
@dataclass(eq=False, slots=True)
class _Subscription:
    """One callback registered under every hash it covers."""
    keys: tuple
    hashes: tuple[str, ...]
    callback: SubscriptionCallback
    active: bool = True


@dataclass(eq=False, slots=True)
class _ScheduledPurge:
    canceller: Optional[Callable[[], None]] = None


class _StrongReference:
    """Stand-in for weakref.ref when an object cannot be weakly referenced."""

    __slots__ = ("_obj",)

    def __init__(self, obj: Any) -> None:
        self._obj = obj

    def __call__(self) -> Any:
        return self._obj


def reference_to(
    obj: Any,
    callback: Optional[Callable[[Any], None]] = None,
) -> Callable[[], Any]:
    """Weak reference to `obj` if it supports one, else a strong one."""
    try:
        return weakref.ref(obj, callback)
    except TypeError:
        return _StrongReference(obj)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _is_newer(incoming: Snapshot, current: Snapshot) -> bool:
    if current.updated_at is None:
        return True
    return incoming.updated_at is not None and incoming.updated_at > current.updated_at


# =============================================================================
# NAMESPACED MIRROR
# =============================================================================
class NamespacedMirror(Generic[K, D, C]):
    """
    Snapshot store bound to a single context.

    All operations must run on the thread of the running event loop;
    fetches and deferred purges are scheduled on it.
    """

    def __init__(
        self,
        options: MirrorOptions,
        context: C,
        config: Optional[MirrorConfig] = None,
    ) -> None:
        validation = options.validate()
        if validation.is_err():
            raise ConfigurationError.invalid(validation.error)

        self._options = options
        self._config = config or MirrorConfig()
        self._context_ref = reference_to(context)

        self._compute_hash = options.compute_hash_for_key
        self._effect = options.effect
        self._fetch_many = self._resolve_fetch_many(options)
        self._schedule = options.purge_scheduler(self._config.default_purge_delay_ms)

        self._snapshots: dict[str, Snapshot] = {}
        self._fetches: dict[str, asyncio.Future] = {}
        self._holds: dict[str, int] = {}
        self._scheduled_purges: dict[str, _ScheduledPurge] = {}
        # Unheld hashes committed while no event loop was running
        self._deferred_purges: set[str] = set()
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._effect_cleanups: dict[str, Callable[[], None]] = {}

        # Bumped by purge(); results of older fetches are discarded
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self.stats = MirrorStats()

    @property
    def context(self) -> C:
        return self._context_ref()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------
    def key(self, key: K) -> DocumentHandle:
        """Handle for a single key."""
        return DocumentHandle(self, key)

    def keys(self, keys: Sequence[K]) -> DocumentListHandle:
        """Handle for an ordered list of keys."""
        return DocumentListHandle(self, keys)

    def known_keys(self) -> list[K]:
        """Keys currently stored in this namespace."""
        return [snapshot.key for snapshot in self._snapshots.values()]

    def extract_state(self) -> dict[str, Snapshot]:
        """Mapping of hash -> snapshot for transfer to another process."""
        return dict(self._snapshots)

    def serialize_state(self) -> bytes:
        """extract_state() encoded with the state transfer codec."""
        return transfer.encode_state(
            self.extract_state(),
            self._config.state_compression_threshold,
        )

    def hydrate_from_state(
        self,
        state: Mapping[str, Union[Snapshot, Mapping[str, Any]]],
    ) -> int:
        """
        Merge extracted state into this namespace.

        Primed records replace stored ones that are unprimed or older.
        Failure records are only taken for keys with nothing stored.
        Hydrated records are committed with pending=False, which resolves
        waiting get() calls; invalidated ones with subscribers are refetched.

        Returns:
            Number of records hydrated
        """
        incoming: list[Snapshot] = []
        keys_to_fetch: list[Any] = []
        hashes_to_fetch: list[str] = []

        for record_hash, value in state.items():
            snapshot = self._coerce_record(record_hash, value)
            hash_ = self._compute_hash(snapshot.key)
            current = self._snapshots.get(hash_)

            if snapshot.primed:
                if current is not None and current.primed and not _is_newer(snapshot, current):
                    continue
            elif snapshot.failure is None or current is not None:
                continue

            refetch = (
                snapshot.invalidated
                and hash_ in self._subscriptions
                and hash_ not in self._fetches
            )
            incoming.append(replace(snapshot, pending=refetch))
            if refetch:
                keys_to_fetch.append(snapshot.key)
                hashes_to_fetch.append(hash_)

        self._commit(incoming)
        if keys_to_fetch:
            self._fetch(keys_to_fetch, hashes_to_fetch)

        logger.info(f"Hydrated {len(incoming)} of {len(state)} record(s)")
        return len(incoming)

    def hydrate_from_bytes(self, data: bytes) -> int:
        """Hydrate from the output of serialize_state()."""
        return self.hydrate_from_state(transfer.decode_state(data))

    def purge(self) -> None:
        """
        Immediately evict every record in this namespace.

        Effect cleanups run as for a scheduled purge. Fetches already in
        flight are abandoned; hashes that still have subscribers are
        refetched so their subscribers see fresh data.
        """
        self._generation += 1

        self._deferred_purges.clear()
        for hash_ in list(self._scheduled_purges):
            self._cancel_scheduled_purge(hash_)
        self._fetches.clear()

        evicted = list(self._snapshots)
        for hash_ in evicted:
            self._evict(hash_)

        keys_to_fetch: list[Any] = []
        hashes_to_fetch: list[str] = []
        for hash_, subscriptions in self._subscriptions.items():
            subscription = subscriptions[0]
            keys_to_fetch.append(subscription.keys[subscription.hashes.index(hash_)])
            hashes_to_fetch.append(hash_)

        logger.info(
            f"Purged {len(evicted)} record(s); refetching {len(hashes_to_fetch)} subscribed"
        )
        if keys_to_fetch:
            self._fetch(keys_to_fetch, hashes_to_fetch)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def _compute_hashes(self, keys: Sequence[Any]) -> list[str]:
        return [self._compute_hash(key) for key in keys]

    def _get(self, keys: Sequence[Any]) -> list[Optional[Snapshot]]:
        return [self._snapshots.get(self._compute_hash(key)) for key in keys]

    def _get_latest(self, keys: Sequence[Any]) -> list[Snapshot]:
        """Current snapshots, storing empty pending ones for unseen keys."""
        snapshots: list[Snapshot] = []
        created: list[Snapshot] = []
        for key, snapshot in zip(keys, self._get(keys)):
            if snapshot is None:
                snapshot = Snapshot.initial(key)
                created.append(snapshot)
            snapshots.append(snapshot)
        if created:
            self._commit(created)
        return snapshots

    # -------------------------------------------------------------------------
    # Commit
    # -------------------------------------------------------------------------
    def _commit(self, snapshots: Sequence[Snapshot]) -> None:
        """
        Store snapshots, then notify, run effects, and schedule purges.

        Each hash is computed from the snapshot's own key.
        """
        if not snapshots:
            return

        hashes: list[str] = []
        hashes_to_schedule_purge: list[str] = []
        touched: dict[_Subscription, None] = {}

        for snapshot in snapshots:
            hash_ = self._compute_hash(snapshot.key)
            hashes.append(hash_)
            self._snapshots[hash_] = snapshot

            for subscription in self._subscriptions.get(hash_, ()):
                touched[subscription] = None

            if not self._holds.get(hash_):
                hashes_to_schedule_purge.append(hash_)

        self.stats.commits += 1

        for subscription in touched:
            if subscription.active:
                self._notify(subscription)

        if self._effect is not None:
            for hash_ in dict.fromkeys(hashes):
                self._run_effect(hash_)

        self._schedule_purge(hashes_to_schedule_purge)

    def _notify(self, subscription: _Subscription) -> None:
        snapshots = [
            self._snapshots.get(hash_) or Snapshot.initial(key)
            for key, hash_ in zip(subscription.keys, subscription.hashes)
        ]
        self.stats.notifications += 1
        try:
            subscription.callback(snapshots)
        except Exception:
            logger.exception("Subscriber callback failed")

    def _run_effect(self, hash_: str) -> None:
        # Re-read: a subscriber may have committed again
        snapshot = self._snapshots.get(hash_)
        if snapshot is None:
            return

        self._run_cleanup(hash_)
        try:
            cleanup = self._effect(snapshot, self.context)
        except Exception:
            logger.exception(f"Effect failed for {hash_!r}")
            return

        if cleanup is not None:
            self._effect_cleanups[hash_] = cleanup

    # -------------------------------------------------------------------------
    # Fetch dispatch
    # -------------------------------------------------------------------------
    def _resolve_fetch_many(self, options: MirrorOptions) -> FetchManyFunction:
        if options.fetch_many is not None:
            return options.fetch_many

        if options.fetch is not None:
            fetch = options.fetch

            async def fetch_each(keys: list, context: Any, mirror: NamespacedMirror) -> list:
                return list(await asyncio.gather(
                    *(_resolve(fetch(key, context, mirror)) for key in keys)
                ))

            return fetch_each

        return self._fetch_from_store

    async def _fetch_from_store(
        self,
        keys: list,
        context: Any,
        mirror: NamespacedMirror,
    ) -> list:
        """
        Fallback when no fetch function is configured.

        Waits one scheduling step for something else (an update or a
        hydration) to supply the data, then gives up.
        """
        await asyncio.sleep(0)
        datas = []
        for snapshot in self._get(keys):
            if snapshot is None or not snapshot.primed:
                raise FetchError.unavailable(keys)
            datas.append(snapshot.data)
        return datas

    async def _call_fetch_many(self, keys: list) -> list:
        return list(await _resolve(self._fetch_many(keys, self.context, self)))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _fetch(self, keys: Sequence[Any], hashes: Sequence[str]) -> Optional[asyncio.Task]:
        """
        Start one fetch_many batch for every key without an in-flight fetch.

        Returns the task settling the batch, or None if nothing was started.
        """
        keys_to_fetch: list[Any] = []
        hashes_to_fetch: list[str] = []
        seen: set[str] = set()
        for key, hash_ in zip(keys, hashes):
            if hash_ in self._fetches or hash_ in seen:
                continue
            seen.add(hash_)
            keys_to_fetch.append(key)
            hashes_to_fetch.append(hash_)

        if not keys_to_fetch:
            return None

        loop = asyncio.get_running_loop()
        release = self._hold(hashes_to_fetch)

        request = loop.create_task(self._call_fetch_many(keys_to_fetch))
        for hash_ in hashes_to_fetch:
            self._fetches[hash_] = request

        self.stats.fetch_batches += 1
        self.stats.fetched_keys += len(keys_to_fetch)
        logger.debug(f"Fetching batch of {len(keys_to_fetch)} key(s)")

        pending: list[Snapshot] = []
        for key, hash_ in zip(keys_to_fetch, hashes_to_fetch):
            current = self._snapshots.get(hash_)
            if current is None:
                pending.append(Snapshot.initial(key))
            elif not current.pending:
                pending.append(current.as_pending())
        self._commit(pending)

        return self._spawn(self._settle_fetch(
            request, keys_to_fetch, hashes_to_fetch, self._generation, release,
        ))

    async def _settle_fetch(
        self,
        request: asyncio.Future,
        keys: list,
        hashes: list[str],
        generation: int,
        release: ReleaseFunction,
    ) -> None:
        try:
            try:
                datas = await self._await_request(request, keys)
                if len(datas) != len(keys):
                    raise FetchError.shape_mismatch(len(keys), len(datas))
            except Exception as exc:
                failed_at = Timestamp.now()
                owned = self._owned_indices(hashes, request, generation)
                self._clear_fetches(hashes, request)
                self.stats.fetch_failures += 1
                logger.warning(f"Fetch of {len(keys)} key(s) failed: {exc!r}")
                self._commit([
                    (self._snapshots.get(hashes[i]) or Snapshot.initial(keys[i]))
                    .with_failure(exc, failed_at)
                    for i in owned
                ])
            else:
                updated_at = Timestamp.now()
                owned = self._owned_indices(hashes, request, generation)
                self._clear_fetches(hashes, request)
                self._commit([
                    Snapshot.fulfilled(keys[i], datas[i], pending=False, updated_at=updated_at)
                    for i in owned
                ])
        finally:
            self._clear_fetches(hashes, request)
            release()

    @staticmethod
    async def _await_request(request: asyncio.Future, keys: Sequence[Any]) -> Any:
        """
        Await a fetch or outcome future, reporting its cancellation as a
        FetchError. Cancellation of the awaiting task itself propagates.
        """
        try:
            return await asyncio.shield(request)
        except asyncio.CancelledError:
            if not request.cancelled():
                raise
            raise FetchError.cancelled(keys) from None

    def _owned_indices(
        self,
        hashes: Sequence[str],
        request: asyncio.Future,
        generation: int,
    ) -> list[int]:
        """Positions whose in-flight marker is still `request`."""
        if generation != self._generation:
            return []
        return [i for i, hash_ in enumerate(hashes) if self._fetches.get(hash_) is request]

    def _clear_fetches(self, hashes: Sequence[str], request: asyncio.Future) -> None:
        for hash_ in hashes:
            if self._fetches.get(hash_) is request:
                del self._fetches[hash_]

    # -------------------------------------------------------------------------
    # Holds and purges
    # -------------------------------------------------------------------------
    def _hold(self, hashes: Sequence[str]) -> ReleaseFunction:
        """Increment hold counts; the returned release is safe to call twice."""
        hashes = list(hashes)
        for hash_ in hashes:
            self._cancel_scheduled_purge(hash_)
            self._holds[hash_] = self._holds.get(hash_, 0) + 1

        released = False

        def release() -> None:
            nonlocal released
            if released:
                return
            released = True

            hashes_to_schedule_purge: list[str] = []
            for hash_ in hashes:
                count = self._holds.get(hash_, 0)
                if count > 1:
                    self._holds[hash_] = count - 1
                else:
                    self._holds.pop(hash_, None)
                    hashes_to_schedule_purge.append(hash_)
            self._schedule_purge(hashes_to_schedule_purge)

        return release

    def _schedule_purge(self, hashes: Sequence[str]) -> None:
        """
        Schedule purges for unheld records. Outside a running loop the
        hashes are kept and scheduled by the next call made inside one.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._deferred_purges.update(hashes)
            return
        if self._deferred_purges:
            hashes = [*self._deferred_purges, *hashes]
            self._deferred_purges.clear()

        for hash_ in hashes:
            snapshot = self._snapshots.get(hash_)
            if snapshot is None or hash_ in self._scheduled_purges or self._holds.get(hash_):
                continue

            scheduled = _ScheduledPurge()
            self._scheduled_purges[hash_] = scheduled
            trigger = partial(self._trigger_scheduled_purge, hash_, scheduled)
            scheduled.canceller = self._schedule(trigger, snapshot, self.context)

    def _trigger_scheduled_purge(self, hash_: str, scheduled: _ScheduledPurge) -> None:
        # Defer one step so a hold taken and released in the same
        # synchronous section does not evict the record.
        asyncio.get_running_loop().call_soon(self._perform_scheduled_purge, hash_, scheduled)

    def _perform_scheduled_purge(self, hash_: str, scheduled: _ScheduledPurge) -> None:
        if self._scheduled_purges.get(hash_) is not scheduled:
            return
        del self._scheduled_purges[hash_]
        self._evict(hash_)
        logger.debug(f"Purged {hash_!r}")

    def _cancel_scheduled_purge(self, hash_: str) -> None:
        scheduled = self._scheduled_purges.pop(hash_, None)
        if scheduled is not None and scheduled.canceller is not None:
            scheduled.canceller()

    def _run_cleanup(self, hash_: str) -> None:
        cleanup = self._effect_cleanups.pop(hash_, None)
        if cleanup is None:
            return
        try:
            cleanup()
        except Exception:
            logger.exception(f"Effect cleanup failed for {hash_!r}")

    def _evict(self, hash_: str) -> None:
        self._run_cleanup(hash_)
        if self._snapshots.pop(hash_, None) is not None:
            self.stats.purges += 1

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------
    def _subscribe(
        self,
        keys: Sequence[Any],
        callback: SubscriptionCallback,
    ) -> UnsubscribeFunction:
        """
        Register `callback` for all keys and fetch whatever is missing,
        pending without a fetch, invalidated, or unprimed after a failure.

        The keys stay held until the returned function is called.
        """
        keys = tuple(keys)
        hashes = tuple(self._compute_hashes(keys))
        release = self._hold(hashes)
        subscription = _Subscription(keys=keys, hashes=hashes, callback=callback)

        keys_to_fetch: list[Any] = []
        hashes_to_fetch: list[str] = []
        for key, hash_ in zip(keys, hashes):
            self._subscriptions.setdefault(hash_, []).append(subscription)

            if hash_ in self._fetches:
                continue
            snapshot = self._snapshots.get(hash_)
            if (
                snapshot is None
                or snapshot.pending
                or snapshot.invalidated
                or not snapshot.primed
            ):
                keys_to_fetch.append(key)
                hashes_to_fetch.append(hash_)

        if keys_to_fetch:
            self._fetch(keys_to_fetch, hashes_to_fetch)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            for hash_ in hashes:
                subscriptions = self._subscriptions.get(hash_)
                if subscriptions is None:
                    continue
                subscriptions.remove(subscription)
                if not subscriptions:
                    del self._subscriptions[hash_]
            release()

        return unsubscribe

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    def _invalidate(self, keys: Sequence[Any]) -> None:
        """
        Mark stored records stale. Subscribed ones are refetched now;
        held-only ones wait until someone subscribes.
        """
        snapshots_to_store: list[Snapshot] = []
        keys_to_fetch: list[Any] = []
        hashes_to_fetch: list[str] = []

        for key, hash_ in zip(keys, self._compute_hashes(keys)):
            snapshot = self._snapshots.get(hash_)
            if snapshot is None or snapshot.invalidated:
                continue

            refetch = hash_ in self._subscriptions and hash_ not in self._fetches
            snapshots_to_store.append(snapshot.as_invalidated(pending=True if refetch else None))
            if refetch:
                keys_to_fetch.append(key)
                hashes_to_fetch.append(hash_)

        self._commit(snapshots_to_store)
        if keys_to_fetch:
            self._fetch(keys_to_fetch, hashes_to_fetch)

    def _update(self, keys: Sequence[Any], datas: Sequence[Any]) -> None:
        """Store full values; the pending flag is left as it was."""
        updated_at = Timestamp.now()
        snapshots = []
        for key, data in zip(keys, datas):
            current = self._snapshots.get(self._compute_hash(key))
            snapshots.append(Snapshot.fulfilled(
                key,
                data,
                pending=current.pending if current is not None else False,
                updated_at=updated_at,
            ))
        self._commit(snapshots)

    def _predict(
        self,
        keys: Sequence[Any],
        datas: Sequence[Any],
        outcome: Awaitable[Any],
    ) -> asyncio.Task:
        """
        Show predicted values until `outcome` settles.

        `datas` holds one predicted value per key, or UNSET for keys that
        are only expected to change. The outcome's future stands in as the
        in-flight fetch for every key, so no fetches start meanwhile.
        """
        keys = list(keys)
        hashes = self._compute_hashes(keys)
        release = self._hold(hashes)
        previous = [self._snapshots.get(hash_) for hash_ in hashes]

        marker = asyncio.ensure_future(outcome)
        for hash_ in hashes:
            self._fetches[hash_] = marker

        predicted: list[Snapshot] = []
        for key, data, current in zip(keys, datas, previous):
            base = current if current is not None else Snapshot.initial(key)
            if data is UNSET:
                predicted.append(base.as_pending())
            else:
                predicted.append(replace(base, data=data, primed=True, pending=True))
        self._commit(predicted)

        return self._spawn(self._settle_prediction(
            marker, keys, hashes, list(datas), previous, self._generation, release,
        ))

    async def _settle_prediction(
        self,
        marker: asyncio.Future,
        keys: list,
        hashes: list[str],
        datas: list,
        previous: list[Optional[Snapshot]],
        generation: int,
        release: ReleaseFunction,
    ) -> None:
        try:
            try:
                await self._await_request(marker, keys)
            except Exception as exc:
                failed_at = Timestamp.now()
                self._clear_fetches(hashes, marker)
                logger.warning(f"Predicted update of {len(keys)} key(s) rolled back: {exc!r}")
                if generation == self._generation:
                    self._commit([
                        (current if current is not None else Snapshot.initial(key))
                        .with_failure(exc, failed_at)
                        for key, current in zip(keys, previous)
                    ])
                raise

            confirmed_at = Timestamp.now()
            self._clear_fetches(hashes, marker)
            if generation != self._generation:
                return

            confirmed: list[Snapshot] = []
            keys_to_fetch: list[Any] = []
            hashes_to_fetch: list[str] = []
            for key, hash_, data in zip(keys, hashes, datas):
                if data is UNSET:
                    current = self._snapshots.get(hash_) or Snapshot.initial(key)
                    refetch = hash_ in self._subscriptions and hash_ not in self._fetches
                    confirmed.append(current.as_invalidated(pending=refetch))
                    if refetch:
                        keys_to_fetch.append(key)
                        hashes_to_fetch.append(hash_)
                else:
                    confirmed.append(
                        Snapshot.fulfilled(key, data, pending=False, updated_at=confirmed_at)
                    )
            self._commit(confirmed)
            if keys_to_fetch:
                self._fetch(keys_to_fetch, hashes_to_fetch)
        finally:
            self._clear_fetches(hashes, marker)
            release()

    # -------------------------------------------------------------------------
    # Hydration helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def _coerce_record(
        record_hash: str,
        value: Union[Snapshot, Mapping[str, Any]],
    ) -> Snapshot:
        if isinstance(value, Snapshot):
            return value
        if isinstance(value, Mapping):
            try:
                return Snapshot.from_dict(value)
            except (KeyError, TypeError, ValueError) as e:
                raise HydrationError.invalid_record(record_hash, str(e)) from e
        raise HydrationError.invalid_record(
            record_hash, f"unsupported record type {type(value).__name__}",
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(records={len(self._snapshots)}, "
            f"subscribed={len(self._subscriptions)}, fetching={len(self._fetches)})"
        )
