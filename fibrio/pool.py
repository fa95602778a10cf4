"""Stackful coroutines, and the pool that recycles them

A fibrio coroutine is a greenlet which serves one RunContext at a time: it runs the
body, which may park the greenlet any number of times from arbitrarily deep in its
call stack, and when the body finishes the greenlet goes back to the pool and waits
for its next lease.  The stack isn't torn down between leases.

Control always passes back to whoever switched into a coroutine last.  Whenever we
switch into a coroutine, whether to start a lease or to resume it, we first make
the switching greenlet its parent; parking or finishing then just switches to the
parent.  The chain of parents from the running greenlet up is always exactly the
chain of greenlets blocked in a switch, so it never forms a cycle.

"""
from __future__ import annotations
import contextvars
import greenlet
import logging
import outcome
import typing as t
from fibrio.exceptions import MisuseError

if t.TYPE_CHECKING:
    from fibrio.context import RunContext

__all__ = [
    'Coroutine',
    'CoroutinePool',
    'pool',
]

logger = logging.getLogger(__name__)

class Coroutine(greenlet.greenlet):
    def __init__(self, pool: CoroutinePool) -> None:
        super().__init__(self._serve)
        self.pool = pool
        self.context: t.Optional[RunContext] = None
        self.parked = False

    def __repr__(self) -> str:
        return f"<Coroutine {id(self):#x} context={self.context!r} parked={self.parked}>"

    def _serve(self, context: RunContext) -> t.Callable[[], None]:
        while True:
            self.context = context
            context.coroutine = self
            try:
                context.execute()
            except BaseException:
                # we won't be going back to the pool, so give up the slot on the way out
                context.take_release()()
                raise
            finally:
                context.coroutine = None
                self.context = None
            # The slot is given up by our parent, after we're idle; the next queued body
            # is then leased to this same coroutine, rather than nested inside it.
            release = context.take_release()
            # Don't keep the finished context alive while we sit in the pool.
            del context
            if not self.pool.release(self):
                return release
            context = self.parent.switch(release)

    def lease(self, context: RunContext) -> None:
        "Start running `context` in this idle coroutine; returns when it first parks or finishes."
        if self.context is not None or self.parked:
            raise MisuseError("coroutine is already leased", self, context)
        self.parent = greenlet.getcurrent()
        self.gr_context = contextvars.copy_context()
        self._run_after(self.switch(context))

    def park(self, after: t.Optional[t.Callable[[], None]]=None) -> outcome.Outcome:
        """Park this running coroutine until someone calls resume; return what we're resumed with.

        `after` is called by whoever gets control back, once we're parked; so it may
        itself resume us.

        """
        if greenlet.getcurrent() is not self:
            raise MisuseError("only the running coroutine can park itself", self)
        self.parked = True
        return self.parent.switch(after)

    def resume(self, result: outcome.Outcome) -> None:
        "Continue a parked coroutine at its park point; returns when it parks again or finishes."
        if not self.parked:
            raise MisuseError("can't resume a coroutine which isn't parked", self)
        self.parked = False
        self.parent = greenlet.getcurrent()
        self._run_after(self.switch(result))

    @staticmethod
    def _run_after(after: t.Optional[t.Callable[[], None]]) -> None:
        if after is not None:
            after()

class CoroutinePool:
    """Hands out coroutines to run RunContexts in, and takes them back when they're done.

    There's no cap on how many coroutines may exist at once.  With reuse=False a fresh
    coroutine is made for every run, which behaves the same, only more slowly.

    """
    def __init__(self, reuse: bool=True) -> None:
        self.reuse = reuse
        self.idle: t.List[Coroutine] = []

    def acquire(self) -> Coroutine:
        if self.idle:
            return self.idle.pop()
        coroutine = Coroutine(self)
        logger.debug("CoroutinePool.acquire(): no idle coroutines, made %s", coroutine)
        return coroutine

    def release(self, coroutine: Coroutine) -> bool:
        "Take back a coroutine whose body finished; returns False if it should just exit instead."
        if self.reuse:
            self.idle.append(coroutine)
        return self.reuse

    def run(self, context: RunContext) -> None:
        self.acquire().lease(context)

    @staticmethod
    def current() -> t.Optional[Coroutine]:
        "The fibrio coroutine we're running in, or None if we're not running in one."
        current = greenlet.getcurrent()
        if isinstance(current, Coroutine):
            return current
        return None

    @classmethod
    def is_currently_executing(cls) -> bool:
        return cls.current() is not None

pool = CoroutinePool()
