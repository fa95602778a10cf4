"Exceptions raised by fibrio"

class FibrioError(Exception):
    "Base class for errors raised by fibrio itself, as opposed to errors raised by bodies."
    pass

class ConfigError(FibrioError, ValueError):
    """A Config describes a variant that can't exist.

    Raised when the Config is constructed, never when a suspendable function is called.
    """
    pass

class MisuseError(FibrioError):
    "Some fibrio object was used in a way its current state doesn't allow."
    pass

class AwaitOutsideCoroutineError(MisuseError):
    """await_ or yield_ was called from code that isn't running inside a fibrio coroutine.

    There's no coroutine to park, and we refuse to block the thread instead.
    """
    pass

class IteratorStateError(MisuseError):
    "AsyncIterator.next was called while a step was outstanding, or after the iterator finished."
    pass

class FutureStateError(MisuseError):
    "A Future was settled twice, or its result was read before it settled."
    pass
