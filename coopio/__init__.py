"""A small single-threaded cooperative runtime: executor, wakers, and an epoll reactor

## `Executor`

`coopio.executor.Executor.complete` runs one primary future to completion on the
calling thread; `coopio.executor.Executor.spawn` adds background tasks which are
polled while `complete` runs.  A future is a `coopio.poll.Future`, or any
coroutine which awaits them:

```
async def main() -> bytes:
    with Stdin() as stdin:
        return await stdin.read_some_bytes()

data = Executor().complete(main())
```

## Wakers

A future which can't make progress returns `coopio.poll.PENDING`, after storing
the `coopio.waker.Wake` it was polled with somewhere that will fire it.  Firing
a `coopio.waker.Waker` puts its task on the executor's wake queue; the executor
polls tasks in the order they come off that queue.

## `Reactor`

When no task is waiting to be polled, the executor blocks in
`coopio.reactor.Reactor.spin` until some fd registered with the reactor is
ready, and the wakers stored for it have been fired.  `coopio.io.AsyncFile`
shows how an I/O resource registers itself and reports readiness.

"""
from coopio.exceptions import ResourceBusyError, WrongThreadError
from coopio.poll import Context, Future, PENDING, Pending, Poll, PollFn, Ready, ready, yield_now
from coopio.waker import PRIMARY, Wake, Waker
from coopio.task import Task, TaskRegistry
from coopio.executor import Executor
from coopio.epoll import EPOLL
from coopio.reactor import Handle, Reactor, spin
from coopio.io import AsyncFile, ResourceGuard, Stdin
from coopio.buffer import AsyncReadBuffer
