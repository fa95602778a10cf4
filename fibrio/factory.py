"""Building suspendable functions

An AsyncFactory holds a validated Config and the protocol assembled from it.
Applying the factory to a body, usually as a decorator, makes a
SuspendableFunction; calling that runs the body in a coroutine, driven by the
protocol.

```
@async_
def fetch_both(host):
    a, b = await_([host.spawn(get, 'a'), host.spawn(get, 'b')])
    return a + b

future = fetch_both(host)
```

"""
from __future__ import annotations
from fibrio.config import Config, ReturnKind
from fibrio.context import RunContext
from fibrio.exceptions import ConfigError
from fibrio.pool import CoroutinePool, pool as default_pool
from fibrio.protocol import Mod
from fibrio.protocols import build_protocol
from fibrio.semaphore import Semaphore, UNLIMITED
import functools
import inspect
import logging
import typing as t

__all__ = [
    'AsyncFactory',
    'SuspendableFunction',
    'async_',
    'async_cps',
    'async_thunk',
    'async_value',
    'async_iterable',
    'async_iterable_cps',
]

logger = logging.getLogger(__name__)

class AsyncFactory:
    def __init__(self, config: Config, pool: CoroutinePool=default_pool) -> None:
        if not isinstance(config, Config):
            raise ConfigError("AsyncFactory needs a Config", config)
        self.config = config
        self.protocol = build_protocol(config)
        self.pool = pool

    def __repr__(self) -> str:
        return f"AsyncFactory({self.config!r})"

    def __call__(self, body: t.Callable) -> SuspendableFunction:
        if not callable(body):
            raise TypeError("can only make a suspendable function out of a callable", body)
        return SuspendableFunction(self, body)

    def mod(self, mod: t.Optional[Mod]=None, *,
            options: t.Optional[t.Mapping[str, t.Any]]=None,
            **overrides: t.Any) -> AsyncFactory:
        """Derive a new factory, overriding config fields and/or layering `mod` over our protocol.

        Unspecified fields are inherited; see Config.derive for how options merge.

        """
        return AsyncFactory(self.config.derive(mod, options, **overrides), self.pool)

class SuspendableFunction:
    """A body wrapped so that calling it runs it in a coroutine.

    Each SuspendableFunction has its own semaphore, bounding how many of its calls
    may be running at once.  It binds like a method when accessed through an
    instance; the instance is then passed to the body as its first argument.

    """
    def __init__(self, factory: AsyncFactory, body: t.Callable) -> None:
        functools.update_wrapper(self, body)
        self.factory = factory
        self.body = body
        max_concurrency = factory.config.max_concurrency
        self.semaphore = UNLIMITED if max_concurrency is None else Semaphore(max_concurrency)
        try:
            self.signature: t.Optional[inspect.Signature] = inspect.signature(body)
        except (TypeError, ValueError):
            # some builtins have no signature; we'll let the body complain instead
            self.signature = None

    def __repr__(self) -> str:
        return f"<SuspendableFunction {getattr(self.body, '__qualname__', self.body)} protocol={self.factory.protocol.name}>"

    def __get__(self, instance: t.Any, owner: t.Any=None) -> t.Any:
        if instance is None:
            return self
        return functools.partial(self.call_method, instance)

    def __call__(self, *args: t.Any, **kwargs: t.Any) -> t.Any:
        return self.invoke(None, args, kwargs)

    def call_method(self, receiver: t.Any, *args: t.Any, **kwargs: t.Any) -> t.Any:
        return self.invoke(receiver, args, kwargs)

    def invoke(self, receiver: t.Any, args: t.Sequence[t.Any], kwargs: t.Mapping[str, t.Any]) -> t.Any:
        config = self.factory.config
        callback: t.Optional[t.Callable] = None
        if config.accepts_callback and not config.is_iterable and args and callable(args[-1]):
            *rest, callback = args
            args = tuple(rest)
        if config.return_kind is ReturnKind.NONE and not config.is_iterable and callback is None:
            raise TypeError(f"{getattr(self.body, '__qualname__', self.body)} reports only through a trailing callback, and none was passed")
        if self.signature is not None:
            # raises TypeError on a mismatch, before anything starts
            if receiver is None:
                self.signature.bind(*args, **kwargs)
            else:
                self.signature.bind(receiver, *args, **kwargs)
        ctx = RunContext(self.body, receiver, args, kwargs, self.factory.protocol, self.semaphore,
                         callback=callback, pool=self.factory.pool)
        return self.factory.protocol.begin(ctx)

async_ = AsyncFactory(Config())
"Suspendable functions returning a Future"
async_cps = async_.mod(return_kind=ReturnKind.NONE, accepts_callback=True)
"Suspendable functions reporting only through a trailing callback, which receives an outcome"
async_thunk = async_.mod(return_kind=ReturnKind.THUNK)
async_value = async_.mod(return_kind=ReturnKind.VALUE)
async_iterable = async_.mod(is_iterable=True)
async_iterable_cps = async_.mod(return_kind=ReturnKind.NONE, accepts_callback=True, is_iterable=True)
