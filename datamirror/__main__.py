#!/usr/bin/env python3
"""
datamirror demo

Fetches, subscribes, invalidates and hands state over to a second
mirror through the transfer codec.

Usage:
    python -m datamirror

    # Or with custom config
    DATAMIRROR_LOG_LEVEL=DEBUG DATAMIRROR_LOG_JSON=false python -m datamirror
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any

from datamirror.core.config import MirrorConfig
from datamirror.mirror import Snapshot, create_mirror
from datamirror.observability.logging import StructuredLogger, setup_logging_from_config

log = StructuredLogger("datamirror.demo")


async def fetch_todo(key: int, context: Any, mirror: Any) -> dict[str, Any]:
    """Pretend remote lookup."""
    await asyncio.sleep(0.01)
    return {"id": key, "title": f"Todo #{key}", "done": False}


async def demo(config: MirrorConfig) -> None:
    print("\n" + "=" * 60)
    print("datamirror - Local Demo")
    print("=" * 60 + "\n")

    def effect(snapshot: Snapshot, context: Any):
        log.debug("Effect", key=snapshot.key, primed=snapshot.primed)
        return lambda: log.debug("Effect cleanup", key=snapshot.key)

    mirror = create_mirror(fetch_todo, config=config, effect=effect)

    # Fetch
    todo = await mirror.key(1).get()
    print(f"✓ Fetched: {todo.data}")

    # List fetch: one batch for both keys
    todos = await mirror.keys([2, 3]).get()
    print(f"✓ Fetched list: {[member.data['title'] for member in todos.data]}")

    # Subscribe and invalidate
    seen: list[Snapshot] = []
    unsubscribe = mirror.key(1).subscribe(seen.append)
    mirror.key(1).invalidate()
    await mirror.key(1).get()
    await asyncio.sleep(0.05)
    print(f"✓ Subscriber saw {len(seen)} update(s) after invalidation")

    # Local update
    mirror.key(1).update(lambda current: {**current, "done": True})
    print(f"✓ Updated: {mirror.key(1).get_latest().data}")
    unsubscribe()

    # Namespaces
    tenant = object()
    namespaced = mirror.namespace(tenant)
    await namespaced.key(1).get()
    print(f"✓ Namespace has {len(namespaced.known_keys())} key(s); root has {len(mirror.known_keys())}")

    # Handoff
    payload = mirror.serialize_state()
    receiver = create_mirror(fetch_todo, config=config)
    with log.context(phase="handoff"):
        count = receiver.hydrate_from_bytes(payload)
        log.info("Hydrated state", records=count, bytes=len(payload))
    print(f"✓ Handed over {count} record(s) in {len(payload)} bytes")

    mirror.purge()
    print(f"✓ Purged root; stats: {mirror.stats}")


def main() -> None:
    config_result = MirrorConfig.from_env()
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}")
        sys.exit(1)

    config = config_result.unwrap()
    setup_logging_from_config(config)
    asyncio.run(demo(config))


if __name__ == "__main__":
    main()
