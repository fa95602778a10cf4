"""Settling Futures from trio

fibrio has no event loop of its own; something else has to perform the actual
asynchronous operations and settle the Futures that bodies wait on.  TrioHost does
that with trio: each operation runs as a task in a nursery we're given, and settles
its Future when it completes.  The parked coroutine is resumed right there, inside
that task, and runs until it parks again.

An error raised while settling (for example, by a protocol's end hook) propagates
out of that task, and so out of the nursery.

We take the nursery explicitly, rather than finding some ambient one, so that the
lifetime of everything we start is visible to whoever makes the TrioHost.

"""
from __future__ import annotations
from fibrio.future import Future
import logging
import trio
import typing as t

__all__ = [
    'TrioHost',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')

class TrioHost:
    def __init__(self, nursery: trio.Nursery) -> None:
        self.nursery = nursery

    def spawn(self, async_fn: t.Callable[..., t.Awaitable[T]], *args: t.Any) -> Future[T]:
        "Run `async_fn(*args)` as a trio task; the Future settles with its outcome."
        future = Future[T]()
        async def run() -> None:
            # Cancellation isn't an outcome of the operation; let it unwind the task.
            try:
                value = await async_fn(*args)
            except Exception as exn:
                logger.debug("TrioHost.spawn(%s): raised %s", async_fn, exn)
                future.reject(exn)
            else:
                logger.debug("TrioHost.spawn(%s): returned %s", async_fn, value)
                future.resolve(value)
        self.nursery.start_soon(run)
        return future

    def sleep(self, seconds: float) -> Future[None]:
        return self.spawn(trio.sleep, seconds)

    def call_soon(self, fn: t.Callable[..., T], *args: t.Any) -> Future[T]:
        "Call `fn(*args)` on a later trio scheduling tick, not right now."
        async def later() -> T:
            await trio.lowlevel.checkpoint()
            return fn(*args)
        return self.spawn(later)
