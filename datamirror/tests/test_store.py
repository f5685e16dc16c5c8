"""
Unit Tests: Namespaced Store

Tests:
    - Fetch dispatch (success, batching, dedup, atomic failure, fallback)
    - Holds and deferred purges
    - Effects and their cleanups
    - Subscription notification batching
    - Namespace purge
    - Synchronous use before an event loop runs
"""

import asyncio
import logging

import pytest

from datamirror.core.errors import ErrorCode, FetchError
from datamirror.mirror import create_mirror


async def drain(steps: int = 10) -> None:
    """Let queued callbacks and short tasks run."""
    for _ in range(steps):
        await asyncio.sleep(0)


def purge_immediately(purge, snapshot, context):
    purge()
    return None


async def double(key, context, mirror):
    return {"test": key * 2}


class EffectLog:
    """Effect that records every invocation and cleanup."""

    def __init__(self):
        self.events = []

    def __call__(self, snapshot, context):
        self.events.append(("effect", snapshot.key, snapshot.data))
        return lambda: self.events.append(("cleanup", snapshot.key, snapshot.data))

    def count(self, kind):
        return sum(1 for event in self.events if event[0] == kind)


class TestFetch:
    """Tests for the fetch dispatcher."""

    def test_get_resolves_fetched_record(self):
        async def scenario():
            mirror = create_mirror(double)
            return await mirror.key(1).get()

        snapshot = asyncio.run(scenario())
        assert snapshot.key == 1
        assert snapshot.data == {"test": 2}
        assert snapshot.primed is True
        assert snapshot.pending is False
        assert snapshot.invalidated is False
        assert snapshot.failure is None
        assert snapshot.updated_at is not None

    def test_concurrent_gets_share_one_fetch(self):
        calls = []

        async def scenario():
            gate = asyncio.Event()

            async def fetch(key, context, mirror):
                calls.append(key)
                await gate.wait()
                return key

            mirror = create_mirror(fetch)
            first = mirror.key(1).get()
            second = mirror.key(1).get()
            assert mirror.key(1).get_latest().pending is True
            gate.set()
            return await asyncio.gather(first, second)

        first, second = asyncio.run(scenario())
        assert calls == [1]
        assert first.data == second.data == 1

    def test_fetch_many_called_once_per_batch(self):
        batches = []

        async def fetch_many(keys, context, mirror):
            batches.append(list(keys))
            return [key * 10 for key in keys]

        async def scenario():
            mirror = create_mirror(fetch_many=fetch_many)
            return await mirror.keys([1, 2, 3]).get()

        result = asyncio.run(scenario())
        assert batches == [[1, 2, 3]]
        assert [member.data for member in result.data] == [10, 20, 30]
        assert len({member.updated_at for member in result.data}) == 1

    def test_per_key_fetch_is_batched(self):
        async def scenario():
            mirror = create_mirror(double)
            result = await mirror.keys([1, 2]).get()
            return mirror, result

        mirror, result = asyncio.run(scenario())
        assert mirror.stats.fetch_batches == 1
        assert mirror.stats.fetched_keys == 2
        assert result.data[0].updated_at == result.data[1].updated_at

    def test_duplicate_keys_fetched_once(self):
        batches = []

        async def fetch_many(keys, context, mirror):
            batches.append(list(keys))
            return list(keys)

        async def scenario():
            mirror = create_mirror(fetch_many=fetch_many)
            return await mirror.keys(["a", "a"]).get()

        result = asyncio.run(scenario())
        assert batches == [["a"]]
        assert [member.data for member in result.data] == ["a", "a"]

    def test_batch_fails_atomically(self):
        async def fetch_many(keys, context, mirror):
            raise ValueError("boom")

        async def scenario():
            mirror = create_mirror(fetch_many=fetch_many)
            with pytest.raises(ValueError, match="boom"):
                await mirror.keys([1, 2]).get()
            return mirror

        mirror = asyncio.run(scenario())
        for key in (1, 2):
            latest = mirror.key(key).get_latest()
            assert latest.primed is False
            assert latest.pending is False
            assert isinstance(latest.failure.reason, ValueError)
        assert mirror.stats.fetch_failures == 1

    def test_failed_refresh_keeps_stale_data(self):
        attempts = []

        async def fetch(key, context, mirror):
            attempts.append(key)
            if len(attempts) > 1:
                raise RuntimeError("down")
            return "v1"

        async def scenario():
            mirror = create_mirror(fetch)
            handle = mirror.key("k")
            unsubscribe = handle.subscribe(lambda snapshot: None)
            await drain()
            handle.invalidate()
            await drain()
            latest = handle.get_latest()
            unsubscribe()
            return latest

        latest = asyncio.run(scenario())
        assert len(attempts) == 2
        assert latest.data == "v1"
        assert latest.primed is True
        assert latest.pending is False
        assert isinstance(latest.failure.reason, RuntimeError)

    def test_wrong_result_length_fails_batch(self):
        async def fetch_many(keys, context, mirror):
            return [1]

        async def scenario():
            mirror = create_mirror(fetch_many=fetch_many)
            with pytest.raises(FetchError) as exc_info:
                await mirror.keys([1, 2]).get()
            return exc_info.value

        error = asyncio.run(scenario())
        assert error.code == ErrorCode.FETCH_SHAPE_MISMATCH

    def test_cancelled_fetch_fails_batch(self):
        async def fetch(key, context, mirror):
            raise asyncio.CancelledError()

        async def scenario():
            mirror = create_mirror(fetch)
            with pytest.raises(FetchError) as exc_info:
                await asyncio.wait_for(mirror.key(1).get(), 1)
            return mirror, exc_info.value

        mirror, error = asyncio.run(scenario())
        assert error.code == ErrorCode.FETCH_CANCELLED
        latest = mirror.key(1).get_latest()
        assert latest.pending is False
        assert latest.failure.reason is error

    def test_cancelled_fetch_many_future_fails_batch(self):
        async def scenario():
            loop = asyncio.get_running_loop()

            def fetch_many(keys, context, mirror):
                future = loop.create_future()
                future.cancel()
                return future

            mirror = create_mirror(fetch_many=fetch_many)
            with pytest.raises(FetchError) as exc_info:
                await asyncio.wait_for(mirror.keys([1, 2]).get(), 1)
            return mirror, exc_info.value

        mirror, error = asyncio.run(scenario())
        assert error.code == ErrorCode.FETCH_CANCELLED
        for key in (1, 2):
            assert mirror.key(key).get_latest().pending is False

    def test_fetch_failure_is_logged(self, caplog):
        async def fetch(key, context, mirror):
            raise RuntimeError("down")

        async def scenario():
            mirror = create_mirror(fetch)
            with pytest.raises(RuntimeError):
                await mirror.key(1).get()

        with caplog.at_level(logging.WARNING, logger="datamirror.mirror.namespaced"):
            asyncio.run(scenario())
        assert any("failed" in record.getMessage() for record in caplog.records)


class TestFallbackFetch:
    """Tests for the store without a fetch function."""

    def test_rejects_when_nothing_supplies_data(self):
        async def scenario():
            mirror = create_mirror()
            with pytest.raises(FetchError) as exc_info:
                await mirror.key("x").get()
            return exc_info.value

        error = asyncio.run(scenario())
        assert error.code == ErrorCode.FETCH_UNAVAILABLE

    def test_resolves_when_update_arrives_first(self):
        async def scenario():
            mirror = create_mirror()
            future = mirror.key("x").get()
            mirror.key("x").update("supplied")
            return await future

        snapshot = asyncio.run(scenario())
        assert snapshot.data == "supplied"
        assert snapshot.pending is False


class TestHoldsAndPurges:
    """Tests for holds and purge scheduling."""

    def test_held_record_is_not_purged(self):
        async def scenario():
            mirror = create_mirror(double, schedule_purge=purge_immediately)
            release = mirror.key(1).hold()
            await mirror.key(1).get()
            await drain()
            held = list(mirror.extract_state())
            release()
            await drain()
            return held, list(mirror.extract_state())

        held, released = asyncio.run(scenario())
        assert held == ["1"]
        assert released == []

    def test_hold_and_release_in_one_step_does_not_purge(self):
        effect = EffectLog()

        async def scenario():
            mirror = create_mirror(double, effect=effect, schedule_purge=purge_immediately)
            handle = mirror.key(1)
            release = handle.hold()
            await handle.get()
            await drain()
            cleanups = effect.count("cleanup")

            release()
            release = handle.hold()
            await drain()
            survived = "1" in mirror.extract_state()
            after_churn = effect.count("cleanup")

            release()
            await drain()
            return cleanups, survived, after_churn, mirror.extract_state()

        cleanups, survived, after_churn, state = asyncio.run(scenario())
        assert survived is True
        assert after_churn == cleanups
        assert state == {}
        assert effect.count("cleanup") == cleanups + 1

    def test_immediate_purge_runs_cleanup_once(self):
        effect = EffectLog()

        async def scenario():
            mirror = create_mirror(double, effect=effect, schedule_purge=purge_immediately)
            unsubscribe = mirror.key(1).subscribe(lambda snapshot: None)
            await drain()
            before = effect.count("cleanup")
            unsubscribe()
            await asyncio.sleep(0)
            state = mirror.extract_state()
            await drain()
            return before, state, mirror

        before, state, mirror = asyncio.run(scenario())
        assert state == {}
        assert effect.count("cleanup") == before + 1
        assert effect.count("cleanup") == effect.count("effect")
        assert mirror.stats.purges == 1

    def test_release_is_idempotent(self):
        async def scenario():
            mirror = create_mirror(double, schedule_purge=purge_immediately)
            first = mirror.key(1).hold()
            second = mirror.key(1).hold()
            mirror.key(1).update("v")
            first()
            first()
            await drain()
            return mirror.extract_state()

        state = asyncio.run(scenario())
        assert list(state) == ["1"]

    def test_cancelled_purge_is_noop(self):
        cancelled = []

        def scheduler(purge, snapshot, context):
            loop = asyncio.get_running_loop()
            handle = loop.call_later(0.01, purge)

            def cancel():
                cancelled.append(snapshot.key)
                handle.cancel()

            return cancel

        async def scenario():
            mirror = create_mirror(double, schedule_purge=scheduler)
            mirror.key("a").update("v")
            release = mirror.key("a").hold()
            await asyncio.sleep(0.05)
            state = mirror.extract_state()
            release()
            return state

        state = asyncio.run(scenario())
        assert cancelled == ["a"]
        assert list(state) == ["a"]

    def test_fixed_delay_purge(self):
        async def scenario():
            mirror = create_mirror(double, schedule_purge=10)
            await mirror.key(1).get()
            await drain()
            before = list(mirror.extract_state())
            await asyncio.sleep(0.05)
            return before, list(mirror.extract_state())

        before, after = asyncio.run(scenario())
        assert before == ["1"]
        assert after == []


class TestEffects:
    """Tests for the effect runner."""

    def test_cleanup_runs_before_next_effect(self):
        effect = EffectLog()

        async def scenario():
            mirror = create_mirror(double, effect=effect)
            await mirror.key(1).get()

        asyncio.run(scenario())
        assert effect.events == [
            ("effect", 1, None),
            ("cleanup", 1, None),
            ("effect", 1, {"test": 2}),
        ]

    def test_effect_receives_context(self):
        contexts = []

        async def scenario():
            mirror = create_mirror(
                effect=lambda snapshot, context: contexts.append(context),
            )
            tenant = {"tenant": "t1"}
            mirror.namespace(tenant).key("a").update(1)
            return tenant

        tenant = asyncio.run(scenario())
        assert contexts == [tenant]

    def test_failing_effect_is_logged(self, caplog):
        def effect(snapshot, context):
            raise RuntimeError("effect broke")

        async def scenario():
            mirror = create_mirror(effect=effect)
            mirror.key("a").update(1)
            return mirror.key("a").get_latest()

        with caplog.at_level(logging.ERROR, logger="datamirror.mirror.namespaced"):
            latest = asyncio.run(scenario())
        assert latest.data == 1
        assert any("Effect failed" in record.getMessage() for record in caplog.records)


class TestSubscriptions:
    """Tests for notification batching."""

    def test_list_subscriber_notified_once_per_commit(self):
        seen = []

        async def scenario():
            mirror = create_mirror(double)
            unsubscribe = mirror.keys([1, 2, 3]).subscribe(seen.append)
            await drain()
            unsubscribe()

        asyncio.run(scenario())
        assert len(seen) == 2
        assert seen[0].pending is True
        assert seen[-1].primed is True
        assert [member.key for member in seen[-1].data] == [1, 2, 3]

    def test_unsubscribe_stops_notifications(self):
        seen = []

        async def scenario():
            mirror = create_mirror(double)
            unsubscribe = mirror.key(1).subscribe(seen.append)
            unsubscribe()
            unsubscribe()
            await drain()
            mirror.key(1).update("later")

        asyncio.run(scenario())
        assert all(snapshot.data != "later" for snapshot in seen)

    def test_failing_subscriber_does_not_block_others(self, caplog):
        seen = []

        def broken(snapshot):
            raise RuntimeError("subscriber broke")

        async def scenario():
            mirror = create_mirror(double)
            first = mirror.key(1).subscribe(broken)
            second = mirror.key(1).subscribe(seen.append)
            await drain()
            first()
            second()

        with caplog.at_level(logging.ERROR, logger="datamirror.mirror.namespaced"):
            asyncio.run(scenario())
        assert seen[-1].data == {"test": 2}
        assert any("Subscriber callback failed" in r.getMessage() for r in caplog.records)


class TestNamespacePurge:
    """Tests for purge() of a whole namespace."""

    def test_evicts_everything_and_cleans_up(self):
        effect = EffectLog()

        async def scenario():
            mirror = create_mirror(double, effect=effect)
            await mirror.keys([1, 2]).get()
            await drain()
            mirror.purge()
            return mirror

        mirror = asyncio.run(scenario())
        assert mirror.extract_state() == {}
        assert effect.count("cleanup") == effect.count("effect")
        assert mirror.stats.purges == 2

    def test_refetches_subscribed_keys(self):
        calls = []
        seen = []

        async def fetch(key, context, mirror):
            calls.append(key)
            return len(calls)

        async def scenario():
            mirror = create_mirror(fetch)
            unsubscribe = mirror.key("a").subscribe(seen.append)
            await drain()
            mirror.purge()
            pending = mirror.key("a").get_latest()
            await drain()
            latest = mirror.key("a").get_latest()
            unsubscribe()
            return pending, latest

        pending, latest = asyncio.run(scenario())
        assert calls == ["a", "a"]
        assert pending.pending is True
        assert pending.primed is False
        assert latest.data == 2

    def test_discards_fetch_started_before_purge(self):
        async def scenario():
            gate = asyncio.Event()
            calls = []

            async def fetch(key, context, mirror):
                calls.append(key)
                label = "stale" if len(calls) == 1 else "fresh"
                await gate.wait()
                return label

            mirror = create_mirror(fetch)
            unsubscribe = mirror.key("a").subscribe(lambda snapshot: None)
            await drain()
            mirror.purge()
            await drain()
            gate.set()
            await drain()
            latest = mirror.key("a").get_latest()
            unsubscribe()
            return latest

        latest = asyncio.run(scenario())
        assert latest.data == "fresh"


class TestWithoutRunningLoop:
    """Tests for synchronous use before an event loop is running."""

    def test_get_latest_does_not_raise(self):
        latest = create_mirror(double).key(1).get_latest()
        assert latest.pending is True
        assert latest.primed is False

    def test_purges_scheduled_once_loop_runs(self):
        mirror = create_mirror(double, schedule_purge=purge_immediately)
        mirror.key(1).get_latest()
        mirror.key(2).update("local")
        release = mirror.key(2).hold()
        release()
        assert mirror.key(2).get_latest().data == "local"
        assert sorted(mirror.extract_state()) == ["1", "2"]

        async def scenario():
            mirror.key(3).update("inside")
            await drain()
            return mirror.extract_state()

        assert asyncio.run(scenario()) == {}
