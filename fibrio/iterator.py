"""Lazy sequences produced by iterable suspendable functions

The body of an iterable variant runs one step per call to `next`: from wherever it
was parked up to its next `yield_`, or to its end.  Steps are delivered as
`Step(done, value)`; the final step carries the body's return value.

"""
from __future__ import annotations
from dataclasses import dataclass
from fibrio.awaiting import await_
from fibrio.config import ReturnKind
from fibrio.exceptions import IteratorStateError, AwaitOutsideCoroutineError
from fibrio.future import Future, Thunk, unwrap
from fibrio.pool import CoroutinePool
import enum
import functools
import logging
import outcome
import typing as t

if t.TYPE_CHECKING:
    from fibrio.context import RunContext

__all__ = [
    'AsyncIterator',
    'IteratorState',
    'Step',
]

logger = logging.getLogger(__name__)

class IteratorState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUSPENDED = "suspended"
    DONE = "done"

@dataclass(frozen=True)
class Step:
    done: bool
    value: t.Any = None

StepCallback = t.Callable[[outcome.Outcome], None]

class AsyncIterator:
    """Pulls values out of one invocation of an iterable body.

    Only one step may be outstanding at a time, and stepping past the end is an
    error.  What `next` returns follows the return kind of the variant.

    """
    def __init__(self, context: RunContext, return_kind: ReturnKind, accepts_callback: bool) -> None:
        self._context = context
        self.return_kind = return_kind
        self.accepts_callback = accepts_callback
        self.state = IteratorState.IDLE
        self._pending: t.Optional[Future[Step]] = None

    def __repr__(self) -> str:
        return f"<AsyncIterator {self._context!r} {self.state.name}>"

    def next(self, callback: t.Optional[StepCallback]=None) -> t.Any:
        self._check_steppable()
        if callback is not None and not self.accepts_callback:
            raise TypeError("this iterator doesn't accept callbacks")
        if self.return_kind is ReturnKind.NONE and callback is None:
            raise TypeError("this iterator reports steps only through a callback, and none was passed")
        if self.return_kind is ReturnKind.THUNK:
            return Thunk(lambda: self._step(callback))
        if self.return_kind is ReturnKind.VALUE and not CoroutinePool.is_currently_executing():
            raise AwaitOutsideCoroutineError("a value-returning iterator can only be stepped from inside a suspendable function")
        future = self._step(callback)
        if self.return_kind is ReturnKind.VALUE:
            return await_(future)
        elif self.return_kind is ReturnKind.NONE:
            return None
        else:
            return future

    def _check_steppable(self) -> None:
        if self.state is IteratorState.RUNNING:
            raise IteratorStateError("a step is already outstanding", self)
        elif self.state is IteratorState.DONE:
            raise IteratorStateError("iterated past end", self)

    def _step(self, callback: t.Optional[StepCallback]=None) -> Future[Step]:
        self._check_steppable()
        future = self._pending = Future[Step]()
        if callback is not None:
            future.add_done_callback(callback)
        previous, self.state = self.state, IteratorState.RUNNING
        logger.debug("AsyncIterator.next(): %s -> RUNNING", previous.name)
        if previous is IteratorState.IDLE:
            self._context.start()
        else:
            if self._context.coroutine is None:
                raise IteratorStateError("suspended iterator has no coroutine to resume", self)
            self._context.coroutine.resume(outcome.Value(None))
        return future

    def suspended(self, error: t.Optional[BaseException], value: t.Any) -> None:
        """Called from the body when it yields; parks it until the next step.

        The outstanding step is only settled once the body is parked, so whoever
        receives it can step again immediately.

        """
        if self._pending is None:
            raise IteratorStateError("yielded with no step outstanding", self)
        result = outcome.Error(error) if error is not None else outcome.Value(Step(False, value))
        self.state = IteratorState.SUSPENDED
        self._context.park(after=functools.partial(self._settle_step, result))

    def _settle_step(self, result: outcome.Outcome) -> None:
        pending, self._pending = self._pending, None
        if pending is None:
            raise IteratorStateError("no step outstanding to settle", self, result)
        pending.settle(result)

    def finished(self, error: t.Optional[BaseException], value: t.Any) -> None:
        "Called when the body has ended."
        self.state = IteratorState.DONE
        logger.debug("AsyncIterator.finished(%s, %s)", error, value)
        if error is not None:
            self._settle_step(outcome.Error(error))
        else:
            self._settle_step(outcome.Value(Step(True, value)))

    def for_each(self, callback: t.Callable[[t.Any], None]) -> Future:
        """Drive this iterator to the end, calling `callback` with each value yielded.

        The returned Future resolves with the body's return value, or rejects with the
        first error from the body or from `callback`.

        """
        if not callable(callback):
            raise TypeError("for_each expects a callable", callback)
        finished = Future[t.Any]()
        def handle(result: outcome.Outcome) -> bool:
            "Returns True if we should keep going."
            try:
                step = unwrap(result)
                if step.done:
                    finished.resolve(step.value)
                    return False
                callback(step.value)
            except Exception as exn:
                finished.reject(exn)
                return False
            return True
        def on_async_step(result: outcome.Outcome) -> None:
            if handle(result):
                drive()
        def drive() -> None:
            # Loop over steps that are available immediately, so a body that never
            # awaits doesn't grow our stack by a frame per value.
            while True:
                try:
                    future = self._step()
                except Exception as exn:
                    finished.reject(exn)
                    return
                if not future.done:
                    future.add_done_callback(on_async_step)
                    return
                if not handle(future.outcome):
                    return
        drive()
        return finished
