"""The suspension primitives called from inside a body

`await_` turns waiting for a callback into a plain function call: it registers our
coroutine as the callback on the pending operations, parks the coroutine, and
returns (or raises) once it's resumed.  Nothing blocks; the thread goes back to
whoever resumed us, and comes back when the operations settle.

`yield_` emits an intermediate value through the running body's protocol; what
that means is up to the protocol.

"""
from __future__ import annotations
from fibrio.exceptions import AwaitOutsideCoroutineError
from fibrio.future import Future, as_future, gather, unwrap
from fibrio.pool import Coroutine, CoroutinePool
import logging
import typing as t

__all__ = [
    'await_',
    'yield_',
]

logger = logging.getLogger(__name__)

def _current_coroutine(what: str) -> Coroutine:
    coroutine = CoroutinePool.current()
    if coroutine is None:
        raise AwaitOutsideCoroutineError(f"{what} must be called from inside a suspendable function")
    return coroutine

def await_(expr: t.Any) -> t.Any:
    """Wait for a Future or Thunk, or a list or tuple of them, and return the value(s).

    For a list or tuple we return a list of values in the same order; if any of them
    fails, we raise the first error to arrive and ignore the rest.

    """
    coroutine = _current_coroutine("await_")
    future: Future
    if isinstance(expr, (list, tuple)):
        future = gather(expr)
    else:
        future = as_future(expr)
    if future.done:
        # resuming ourselves while we're still running isn't possible; just return
        return future.result()
    future.add_done_callback(coroutine.resume)
    logger.debug("await_(%s): parking %s", future, coroutine)
    return unwrap(coroutine.park())

def yield_(value: t.Any) -> None:
    "Emit an intermediate value from the running body."
    coroutine = _current_coroutine("yield_")
    context = coroutine.context
    assert context is not None
    context.protocol.suspend(context, None, value)
