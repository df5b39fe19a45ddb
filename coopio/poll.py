"""The polling protocol shared by every future in the runtime

A future is polled with a `Context`. It either returns `Ready(value)`, or it
returns `PENDING`, in which case it must first have stored `Context.waker`
somewhere that will fire it once progress is possible.

Coroutines take part in this protocol through `coopio.task.Task`: when a
coroutine awaits a `Future`, the `Future` itself is yielded up to the `Task`,
which polls it on the coroutine's behalf.  So a blocking operation is written
as a small `Future` (or a `PollFn` around a poll-shaped function), and
everything above it is regular straight-line `async def` code:

```
data = await file.read()
```

"""
from __future__ import annotations
from dataclasses import dataclass
import abc
import enum
import typing as t

if t.TYPE_CHECKING:
    from coopio.waker import Wake

__all__ = [
    "Pending",
    "PENDING",
    "Ready",
    "Poll",
    "Context",
    "Future",
    "PollFn",
    "ready",
    "yield_now",
]

T = t.TypeVar('T')

class Pending(enum.Enum):
    "The type of `PENDING`."
    PENDING = "pending"

    def __repr__(self) -> str:
        return "PENDING"

PENDING = Pending.PENDING
"Returned by `Future.poll` when no value is available yet."

@dataclass(frozen=True)
class Ready(t.Generic[T]):
    "Returned by `Future.poll` when the future has produced its value."
    value: T

Poll = t.Union[Ready[T], Pending]

@dataclass(frozen=True)
class Context:
    "Passed to every `Future.poll`; holds the waker to fire when the future can make progress."
    waker: Wake

class Future(t.Generic[T]):
    """Something which can be polled until it produces a value of type T.

    Awaiting a Future from a coroutine yields the Future to the `coopio.task.Task`
    which is driving that coroutine.

    """
    @abc.abstractmethod
    def poll(self, ctx: Context) -> Poll[T]: ...

    def close(self) -> None:
        "Release anything this future holds; called when it's abandoned before completing."
        pass

    def __await__(self) -> t.Generator[Future[T], t.Any, T]:
        return (yield self)

class PollFn(Future[T]):
    "A Future which polls by calling a function."
    def __init__(self, func: t.Callable[[Context], Poll[T]]) -> None:
        self.func = func

    def poll(self, ctx: Context) -> Poll[T]:
        return self.func(ctx)

    def __repr__(self) -> str:
        return f"PollFn({self.func!r})"

class _Ready(Future[T]):
    def __init__(self, value: T) -> None:
        self.value = value

    def poll(self, ctx: Context) -> Poll[T]:
        return Ready(self.value)

def ready(value: T) -> Future[T]:
    "A Future which is immediately ready with this value."
    return _Ready(value)

class _YieldNow(Future[None]):
    def __init__(self) -> None:
        self.yielded = False

    def poll(self, ctx: Context) -> Poll[None]:
        if self.yielded:
            return Ready(None)
        self.yielded = True
        ctx.waker.wake_by_ref()
        return PENDING

def yield_now() -> Future[None]:
    """Return PENDING exactly once, after waking ourselves; then be ready.

    This gives every other task which is already awaiting re-polling a chance to
    run before we continue.

    """
    return _YieldNow()
