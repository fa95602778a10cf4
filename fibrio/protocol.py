"""Completion protocols, and layering them into new protocols

A suspendable function's externally observable behavior is decided by its
Protocol: three hooks, called with the RunContext of an invocation.

- `begin(ctx)` is called synchronously when the suspendable function is called. It
  returns whatever the caller gets back, and arranges for the body to start by
  calling `ctx.start()`, now or later.
- `suspend(ctx, error, value)` is called whenever the body emits an intermediate
  result with `yield_`.
- `end(ctx, error, value)` is called exactly once, when the body returns `value` or
  raises `error`.

New protocols are made only by layering over an existing one; a layer replaces
some hooks with functions which close over the base protocol, and which may call
through to the base hooks, rewriting the error or value they pass along.  A layer
never looks at another layer's state, only at the ctx.

"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
import types
import typing as t

if t.TYPE_CHECKING:
    from fibrio.context import RunContext

__all__ = [
    'Protocol',
    'Mod',
    'BeginHook',
    'SuspendHook',
    'EndHook',
]

BeginHook = t.Callable[['RunContext'], t.Any]
SuspendHook = t.Callable[['RunContext', t.Optional[BaseException], t.Any], None]
EndHook = t.Callable[['RunContext', t.Optional[BaseException], t.Any], None]

HOOK_NAMES = ('begin', 'suspend', 'end')

@dataclass(frozen=True)
class Protocol:
    begin: BeginHook
    suspend: SuspendHook
    end: EndHook
    name: str = 'protocol'

    def layer(self, name: t.Optional[str]=None, **hooks: t.Callable) -> Protocol:
        "Make a new Protocol with some of our hooks replaced; unmentioned hooks are inherited."
        unknown = set(hooks) - set(HOOK_NAMES)
        if unknown:
            raise TypeError("unknown protocol hooks", sorted(unknown))
        return replace(self, name=name or self.name, **hooks)

def _no_overrides(base: Protocol, options: t.Mapping[str, t.Any]) -> t.Mapping[str, t.Callable]:
    return {}

@dataclass(frozen=True)
class Mod:
    """A reusable protocol layer.

    `override_protocol` is called with the protocol being layered over and the merged
    protocol options of the variant, and returns a mapping from hook names to the
    replacement hooks. `default_options` are merged under any options given when the
    variant is derived.

    """
    name: str
    override_protocol: t.Callable[[Protocol, t.Mapping[str, t.Any]], t.Mapping[str, t.Callable]] = _no_overrides
    default_options: t.Mapping[str, t.Any] = field(default_factory=lambda: types.MappingProxyType({}))

    def apply(self, base: Protocol, options: t.Mapping[str, t.Any]) -> Protocol:
        return base.layer(name=f'{self.name}({base.name})', **self.override_protocol(base, options))
