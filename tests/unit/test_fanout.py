from __future__ import annotations

import asyncio
import threading

import pytest

from approval_engine.engine.fanout import gather_tolerant, run_sync
from approval_engine.errors import PlatformError


def test_failures_are_captured_per_key() -> None:
    def boom():
        raise PlatformError("rejected")

    outcomes = asyncio.run(gather_tolerant({"ok": lambda: 1, "bad": boom}, tolerate=(PlatformError,)))

    assert outcomes["ok"] == (1, None)
    assert outcomes["bad"][0] is None
    assert isinstance(outcomes["bad"][1], PlatformError)


def test_untolerated_errors_propagate() -> None:
    def boom():
        raise KeyError("x")

    with pytest.raises(KeyError):
        asyncio.run(gather_tolerant({"bad": boom}, tolerate=(PlatformError,)))


def test_concurrency_is_bounded() -> None:
    lock = threading.Lock()
    active = {"now": 0, "peak": 0}

    def work():
        with lock:
            active["now"] += 1
            active["peak"] = max(active["peak"], active["now"])
        threading.Event().wait(0.02)
        with lock:
            active["now"] -= 1

    asyncio.run(gather_tolerant({str(i): work for i in range(8)}, concurrency=2))

    assert active["peak"] <= 2


def test_run_sync_outside_loop() -> None:
    async def answer():
        return 42

    assert run_sync(answer, "answer") == 42
