"""The builtin completion protocols, and assembling the protocol for a Config"""
from __future__ import annotations
from fibrio.awaiting import await_
from fibrio.config import Config, ReturnKind
from fibrio.exceptions import AwaitOutsideCoroutineError
from fibrio.future import Future, Thunk
from fibrio.iterator import AsyncIterator
from fibrio.pool import CoroutinePool
from fibrio.protocol import Protocol, Mod
import functools
import logging
import outcome
import typing as t

if t.TYPE_CHECKING:
    from fibrio.context import RunContext

__all__ = [
    'future_protocol',
    'thunk_protocol',
    'value_protocol',
    'none_protocol',
    'callback_mod',
    'iterable_protocol',
    'build_protocol',
]

logger = logging.getLogger(__name__)

#### Future
def _future_begin(ctx: RunContext) -> Future:
    future = ctx.protocol_context = Future[t.Any]()
    ctx.start()
    return future

def _future_suspend(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
    # intermediate values are progress reports; the body keeps running
    if error is not None:
        raise error
    ctx.protocol_context.progress(value)

def _future_end(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
    if error is not None:
        ctx.protocol_context.reject(error)
    else:
        ctx.protocol_context.resolve(value)

future_protocol = Protocol(_future_begin, _future_suspend, _future_end, name='future')

#### Thunk
def _thunk_begin(ctx: RunContext) -> Thunk:
    future = ctx.protocol_context = Future[t.Any]()
    def start() -> Future:
        ctx.start()
        return future
    return Thunk(start)

thunk_protocol = future_protocol.layer(name='thunk', begin=_thunk_begin)

#### Value
def _value_begin(ctx: RunContext) -> t.Any:
    if not CoroutinePool.is_currently_executing():
        raise AwaitOutsideCoroutineError("a value-returning suspendable function can only be called "
                                         "from inside another suspendable function")
    return await_(_future_begin(ctx))

value_protocol = future_protocol.layer(name='value', begin=_value_begin)

#### None
def _none_begin(ctx: RunContext) -> None:
    ctx.start()

def _none_suspend(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
    if error is not None:
        raise error

def _none_end(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
    pass

none_protocol = Protocol(_none_begin, _none_suspend, _none_end, name='none')

#### Callback
def _override_with_callback(base: Protocol, options: t.Mapping[str, t.Any]) -> t.Mapping[str, t.Callable]:
    def end(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
        base.end(ctx, error, value)
        if ctx.callback is not None:
            ctx.callback(outcome.Error(error) if error is not None else outcome.Value(value))
    return {'end': end}

callback_mod = Mod('callback', _override_with_callback)
"Reports the end of the body to the trailing callback, if one was passed, after the base protocol."

#### Iterable
def _iterable_begin(return_kind: ReturnKind, accepts_callback: bool, ctx: RunContext) -> AsyncIterator:
    iterator = ctx.protocol_context = AsyncIterator(ctx, return_kind, accepts_callback)
    return iterator

def _iterable_suspend(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
    ctx.protocol_context.suspended(error, value)

def _iterable_end(ctx: RunContext, error: t.Optional[BaseException], value: t.Any) -> None:
    ctx.protocol_context.finished(error, value)

def iterable_protocol(return_kind: ReturnKind, accepts_callback: bool) -> Protocol:
    "The protocol of iterable variants; steps are delivered according to `return_kind`."
    return Protocol(functools.partial(_iterable_begin, return_kind, accepts_callback),
                    _iterable_suspend, _iterable_end,
                    name=f'iterable-{return_kind.value}')

_protocols_by_kind = {
    ReturnKind.FUTURE: future_protocol,
    ReturnKind.THUNK: thunk_protocol,
    ReturnKind.VALUE: value_protocol,
    ReturnKind.NONE: none_protocol,
}

def build_protocol(config: Config) -> Protocol:
    """Assemble the protocol a Config describes.

    That's the base protocol, then the callback layer for non-iterable variants which
    accept callbacks, then each of the config's mods in turn, each wrapping everything
    assembled before it.

    """
    if config.protocol is not None:
        protocol = config.protocol
    elif config.is_iterable:
        protocol = iterable_protocol(config.return_kind, config.accepts_callback)
    else:
        protocol = _protocols_by_kind[config.return_kind]
    if config.accepts_callback and not config.is_iterable:
        protocol = callback_mod.apply(protocol, config.options)
    for mod in config.mods:
        protocol = mod.apply(protocol, config.options)
    return protocol
