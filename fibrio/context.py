"Per-invocation state of a suspendable function"
from __future__ import annotations
from fibrio.exceptions import MisuseError
from fibrio.pool import CoroutinePool, Coroutine, pool as default_pool
from fibrio.protocol import Protocol
from fibrio.semaphore import Semaphore, UNLIMITED
import functools
import logging
import typing as t

__all__ = [
    'RunContext',
]

logger = logging.getLogger(__name__)

def _nothing_to_release() -> None:
    pass

class RunContext:
    """Everything about one call of a suspendable function.

    The protocol hooks receive this object; `protocol_context` is theirs to attach
    state to, everything else is driven by the pool and by `start`.

    """
    def __init__(self, body: t.Callable, receiver: t.Any,
                 args: t.Sequence[t.Any], kwargs: t.Mapping[str, t.Any],
                 protocol: Protocol, semaphore: Semaphore,
                 callback: t.Optional[t.Callable]=None,
                 pool: CoroutinePool=default_pool) -> None:
        self.body = body
        self.receiver = receiver
        self.args = tuple(args)
        self.kwargs = dict(kwargs)
        self.protocol = protocol
        self.semaphore = semaphore
        self.callback = callback
        self.pool = pool
        self.protocol_context: t.Any = None
        self.release: t.Callable[[], None] = _nothing_to_release
        self.coroutine: t.Optional[Coroutine] = None
        self.started = False

    def __repr__(self) -> str:
        name = getattr(self.body, '__qualname__', self.body)
        return f"<RunContext {name} protocol={self.protocol.name}>"

    def start(self) -> None:
        """Get the body running, once the semaphore admits us.

        A call made from inside a running coroutine skips the semaphore: the caller may
        be holding the only slot, and would wait on itself forever.

        """
        if self.started:
            raise MisuseError("context already started", self)
        self.started = True
        semaphore = UNLIMITED if self.pool.is_currently_executing() else self.semaphore
        semaphore.enter(functools.partial(self._admitted, semaphore))

    def _admitted(self, semaphore: Semaphore) -> None:
        self.release = semaphore.leave
        self.pool.run(self)

    def park(self, after: t.Optional[t.Callable[[], None]]=None) -> t.Any:
        """Park the coroutine running our body; only valid from inside the body.

        `after` is run by whoever regains control, once the coroutine is parked.

        """
        if self.coroutine is None:
            raise MisuseError("context isn't running", self)
        return self.coroutine.park(after)

    def take_release(self) -> t.Callable[[], None]:
        "Take the function which gives up our semaphore slot; only the first taker gets it."
        release, self.release = self.release, _nothing_to_release
        return release

    def execute(self) -> None:
        """Run the body to completion and report it to the protocol; called by our coroutine.

        Our semaphore slot is still held when this returns; the coroutine gives it up.

        """
        try:
            if self.receiver is None:
                value = self.body(*self.args, **self.kwargs)
            else:
                value = self.body(self.receiver, *self.args, **self.kwargs)
        except Exception as exn:
            self._end(exn, None)
        else:
            self._end(None, value)

    def _end(self, error: t.Optional[BaseException], value: t.Any) -> None:
        try:
            self.protocol.end(self, error, value)
        except Exception:
            # There's no observer left to hand this to, so it goes to whoever resumed us.
            logger.exception("RunContext(%s): end hook raised", self)
            raise
