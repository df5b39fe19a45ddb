"Exceptions raised by the runtime which a caller can reasonably handle."

__all__ = [
    "ResourceBusyError",
    "WrongThreadError",
]

class ResourceBusyError(Exception):
    """A process-wide resource is already owned by someone else.

    Raised by `coopio.io.ResourceGuard.take`, and so by any adapter (such as
    `coopio.io.Stdin`) which wraps a resource that can only be used by one
    object at a time.

    """
    pass

class WrongThreadError(Exception):
    "A reactor, or a handle bound to one, was used from a thread other than the one that created it."
    pass
