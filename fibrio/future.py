"""Handles on pending operations

A Future is settled once, with an outcome, by whatever performs the operation; code
interested in the result registers a callback, which receives the outcome.  Nothing
here schedules anything: callbacks run synchronously, in registration order, inside
the call that settles the Future.  That's how a coroutine parked in `await_` gets
resumed exactly when, and in the order that, its operations complete.

"""
from __future__ import annotations
from fibrio.exceptions import FutureStateError
import logging
import outcome
import trio
import typing as t

__all__ = [
    'Future',
    'Thunk',
    'gather',
    'as_future',
    'unwrap',
]

logger = logging.getLogger(__name__)

T = t.TypeVar('T')
DoneCallback = t.Callable[[outcome.Outcome], None]

class Future(t.Generic[T]):
    def __init__(self) -> None:
        self._result: t.Optional[outcome.Outcome] = None
        self._callbacks: t.List[DoneCallback] = []
        self._progress_callbacks: t.List[t.Callable[[t.Any], None]] = []

    def __repr__(self) -> str:
        return f"Future({self._result!r})" if self._result else "Future(<pending>)"

    @property
    def done(self) -> bool:
        return self._result is not None

    @property
    def outcome(self) -> outcome.Outcome:
        if self._result is None:
            raise FutureStateError("future hasn't settled yet", self)
        return self._result

    def result(self) -> T:
        "Return the value, or raise the error, that we settled with."
        return unwrap(self.outcome)

    def settle(self, result: outcome.Outcome) -> None:
        if self._result is not None:
            raise FutureStateError("future already settled", self, result)
        self._result = result
        callbacks, self._callbacks = self._callbacks, []
        self._progress_callbacks = []
        for cb in callbacks:
            cb(result)

    def resolve(self, value: T) -> None:
        self.settle(outcome.Value(value))

    def reject(self, exn: BaseException) -> None:
        self.settle(outcome.Error(exn))

    def add_done_callback(self, cb: DoneCallback) -> None:
        "Call `cb` with our outcome once we settle; immediately, if we already have."
        if self._result is not None:
            cb(self._result)
        else:
            self._callbacks.append(cb)

    def remove_done_callback(self, cb: DoneCallback) -> None:
        "Forget `cb`, if it's still waiting for us to settle."
        try:
            self._callbacks.remove(cb)
        except ValueError:
            pass

    def add_progress_callback(self, cb: t.Callable[[t.Any], None]) -> None:
        if self._result is None:
            self._progress_callbacks.append(cb)

    def progress(self, value: t.Any) -> None:
        "Report an intermediate value; dropped if we already settled."
        if self._result is not None:
            logger.debug("Future.progress(%s): already settled, dropping", value)
            return
        for cb in list(self._progress_callbacks):
            cb(value)

    async def wait(self) -> T:
        """Wait for this future from a trio task.

        If the task is cancelled while waiting, this waiter stops listening for the
        outcome; the future itself is unaffected.

        """
        if self._result is not None:
            return self.result()
        task = trio.lowlevel.current_task()
        def wake(result: outcome.Outcome) -> None:
            # an outcome can only be unwrapped once, and other callbacks share this one
            trio.lowlevel.reschedule(task, copy(result))
        def abort(raise_cancel) -> trio.lowlevel.Abort:
            logger.debug("Future.wait(%s): cancelled, dropping our callback", task)
            self.remove_done_callback(wake)
            return trio.lowlevel.Abort.SUCCEEDED
        self.add_done_callback(wake)
        return await trio.lowlevel.wait_task_rescheduled(abort)

class Thunk(t.Generic[T]):
    """A zero-argument handle that starts some work when first called.

    Calling it again returns the same Future; the work is only started once.

    """
    def __init__(self, start: t.Callable[[], Future[T]]) -> None:
        self._start: t.Optional[t.Callable[[], Future[T]]] = start
        self._future: t.Optional[Future[T]] = None

    def __call__(self) -> Future[T]:
        if self._start is not None:
            start, self._start = self._start, None
            self._future = start()
        assert self._future is not None
        return self._future

    @property
    def started(self) -> bool:
        return self._start is None

def unwrap(result: outcome.Outcome) -> t.Any:
    "Like Outcome.unwrap, but can be called any number of times on the same outcome."
    if isinstance(result, outcome.Error):
        raise result.error
    return result.value

def copy(result: outcome.Outcome) -> outcome.Outcome:
    if isinstance(result, outcome.Error):
        return outcome.Error(result.error)
    return outcome.Value(result.value)

def as_future(item: t.Any) -> Future:
    if isinstance(item, Future):
        return item
    elif isinstance(item, Thunk):
        return item()
    else:
        raise TypeError("can only wait for a Future or a Thunk", item)

def gather(items: t.Sequence[t.Any]) -> Future[t.List[t.Any]]:
    """Combine a sequence of Futures (or Thunks) into one Future of the list of their values.

    The values are in the same order as `items`, whatever order they settle in.  The
    first rejection rejects the combined future; later outcomes are discarded.

    """
    futures = [as_future(item) for item in items]
    combined = Future[t.List[t.Any]]()
    values: t.List[t.Any] = [None]*len(futures)
    remaining = len(futures)
    if remaining == 0:
        combined.resolve(values)
        return combined
    def make_cb(i: int) -> DoneCallback:
        def cb(result: outcome.Outcome) -> None:
            nonlocal remaining
            if combined.done:
                return
            if isinstance(result, outcome.Error):
                combined.settle(result)
                return
            values[i] = result.value
            remaining -= 1
            if remaining == 0:
                combined.resolve(values)
        return cb
    for i, fut in enumerate(futures):
        fut.add_done_callback(make_cb(i))
    return combined
