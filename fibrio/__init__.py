"""Suspendable functions: sequential code, asynchronous execution

fibrio lets a function body be written as plain straight-line code, while calls
that would normally need callbacks are made inline. Instead of:

```
def on_stat(outcome):
    stat = outcome.unwrap()
    if stat.is_dir():
        more_work(path)
host.spawn(trio.Path(path).stat).add_done_callback(on_stat)
```

we write:

```
@async_
def work(host, path):
    stat = await_(host.spawn(trio.Path(path).stat))
    if stat.is_dir():
        more_work(path)
```

Each call of `work` runs its body in a stackful coroutine (a greenlet).  `await_`
registers that coroutine as the callback on the pending operation and parks it;
the thread goes back to whoever was running before, and the coroutine is resumed,
right inside the code that settles the operation, once it completes.  `await_` can
be called from any depth of ordinary function calls in the body; nothing between
the body and the `await_` needs to know about it.

There's no event loop here.  Something else, usually trio through
`fibrio.trio_host.TrioHost`, performs the operations and settles their Futures.
Everything runs on one thread, and a coroutine only ever stops running at an
`await_` or, in iterable bodies, a `yield_`.

What calling a suspendable function returns is decided by the protocol of its
variant: a Future, a Thunk, the plain value (when called from inside another
body), nothing with a trailing callback, or an AsyncIterator for iterable
bodies.  Variants are derived from each other with `AsyncFactory.mod`, which can
also layer new protocols over old ones.

"""
from fibrio.awaiting import await_, yield_
from fibrio.config import Config, ReturnKind
from fibrio.exceptions import (
    FibrioError, ConfigError, MisuseError,
    AwaitOutsideCoroutineError, IteratorStateError, FutureStateError,
)
from fibrio.factory import (
    AsyncFactory, SuspendableFunction,
    async_, async_cps, async_thunk, async_value, async_iterable, async_iterable_cps,
)
from fibrio.future import Future, Thunk, gather
from fibrio.iterator import AsyncIterator, IteratorState, Step
from fibrio.protocol import Protocol, Mod
from fibrio.semaphore import Semaphore, UNLIMITED
from fibrio.trio_host import TrioHost
