"Descriptions of suspendable-function variants"
from __future__ import annotations
from dataclasses import dataclass, field, replace
from fibrio.exceptions import ConfigError
from fibrio.protocol import Protocol, Mod
import enum
import types
import typing as t

__all__ = [
    'ReturnKind',
    'Config',
]

class ReturnKind(enum.Enum):
    "What calling a suspendable function hands back to the caller"
    FUTURE = "future"
    THUNK = "thunk"
    VALUE = "value"
    NONE = "none"

def _empty_options() -> t.Mapping[str, t.Any]:
    return types.MappingProxyType({})

@dataclass(frozen=True)
class Config:
    """An immutable description of one suspendable-function variant.

    `max_concurrency` of None means unbounded. `protocol` replaces the builtin
    protocol for `return_kind` and `is_iterable`; `mods` are layered over the base
    protocol in order, each one seeing the same merged `options`.

    We check the combination once, here, so that calling a suspendable function never
    fails for configuration reasons.

    """
    return_kind: ReturnKind = ReturnKind.FUTURE
    accepts_callback: bool = False
    is_iterable: bool = False
    max_concurrency: t.Optional[int] = None
    protocol: t.Optional[Protocol] = None
    mods: t.Tuple[Mod, ...] = ()
    options: t.Mapping[str, t.Any] = field(default_factory=_empty_options)

    def __post_init__(self) -> None:
        if not isinstance(self.return_kind, ReturnKind):
            raise ConfigError("return_kind must be a ReturnKind", self.return_kind)
        if not isinstance(self.accepts_callback, bool):
            raise ConfigError("accepts_callback must be a bool", self.accepts_callback)
        if not isinstance(self.is_iterable, bool):
            raise ConfigError("is_iterable must be a bool", self.is_iterable)
        if self.max_concurrency is not None:
            # bool is a subclass of int, but max_concurrency=True is certainly a mistake
            if isinstance(self.max_concurrency, bool) or not isinstance(self.max_concurrency, int):
                raise ConfigError("max_concurrency must be an int or None", self.max_concurrency)
            if self.max_concurrency < 1:
                raise ConfigError("max_concurrency must be at least 1", self.max_concurrency)
        if self.return_kind is ReturnKind.NONE and not self.accepts_callback:
            raise ConfigError("a variant returning nothing must accept a callback, "
                              "otherwise its result can't be observed")
        if self.protocol is not None and not isinstance(self.protocol, Protocol):
            raise ConfigError("protocol must be a Protocol", self.protocol)
        if not isinstance(self.mods, tuple):
            # lists sneak in easily; freeze them
            object.__setattr__(self, 'mods', tuple(self.mods))
        for mod in self.mods:
            if not isinstance(mod, Mod):
                raise ConfigError("mods must all be Mod instances", mod)
        object.__setattr__(self, 'options', types.MappingProxyType(dict(self.options)))

    def derive(self, mod: t.Optional[Mod]=None,
               options: t.Optional[t.Mapping[str, t.Any]]=None,
               **overrides: t.Any) -> Config:
        """Make a new Config from this one.

        Fields in `overrides` replace ours; the rest are inherited. Options are
        shallow-merged: ours, then the defaults of `mod`, then `options`.

        """
        unknown = set(overrides) - {'return_kind', 'accepts_callback', 'is_iterable',
                                    'max_concurrency', 'protocol'}
        if unknown:
            raise ConfigError("unknown config fields", sorted(unknown))
        merged = dict(self.options)
        mods = self.mods
        if mod is not None:
            if not isinstance(mod, Mod):
                raise ConfigError("mod must be a Mod", mod)
            merged.update(mod.default_options)
            mods = mods + (mod,)
        if options:
            merged.update(options)
        return replace(self, mods=mods, options=merged, **overrides)
