"""
Bounded fan-out of blocking platform calls.

Independent queries (summary aggregates, filter-option loaders) run on worker
threads through `asyncio.to_thread`, gathered with a concurrency limit. Each
call's failure is captured next to its key instead of failing the batch.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

Outcome = Tuple[Any, Optional[BaseException]]


async def gather_tolerant(
    calls: Mapping[str, Callable[[], Any]],
    concurrency: int = 6,
    tolerate: Tuple[type, ...] = (Exception,),
) -> Dict[str, Outcome]:
    """
    Run blocking callables concurrently.

    Returns ``{key: (result, None)}`` on success and ``{key: (None, exc)}``
    when the call raised one of `tolerate`. Other exceptions propagate.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run_one(key: str, call: Callable[[], Any]) -> Tuple[str, Outcome]:
        async with semaphore:
            try:
                return key, (await asyncio.to_thread(call), None)
            except tolerate as exc:
                return key, (None, exc)

    pairs = await asyncio.gather(*[run_one(key, call) for key, call in calls.items()])
    return dict(pairs)


def run_sync(factory: Callable[[], Awaitable[Any]], name: str) -> Any:
    """
    Run a coroutine from synchronous code.

    Raises
    ------
    RuntimeError
        If called while an event loop is running in this thread; async callers
        must await the `_async` variant instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(factory())
    raise RuntimeError(f"{name}() cannot be called from a running event loop; await {name}_async()")


__all__ = ["gather_tolerant", "run_sync"]
