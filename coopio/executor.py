"""The executor: the entrypoint to the runtime, which polls tasks when they need polling.

Only one future is ever being polled at a time, on the thread that calls
`Executor.complete`. Futures which can't make progress return PENDING after
arranging for their waker to be fired; firing a waker puts the task's target
on our wake queue, and we poll tasks in the order their targets come off the
queue. When the queue is empty, the only thing left that can make progress is
I/O, so we block in the reactor until some fd is ready and its wakers have
been fired.

"""
from __future__ import annotations
from coopio.poll import Context, Future, Ready
from coopio.reactor import Reactor
from coopio.task import Slot, TaskRegistry, as_future
from coopio.waker import PRIMARY, Waker, WakeQueue
import logging
import queue
import typing as t

logger = logging.getLogger(__name__)

__all__ = [
    "Executor",
    "WAKE_QUEUE_CAPACITY",
]

WAKE_QUEUE_CAPACITY = 64
"How many wake events can be queued before a waker on another thread blocks."

T = t.TypeVar('T')

class Executor:
    """Runs a primary future to completion, polling background tasks alongside it.

    Background tasks are added with `spawn` and are only polled while some call
    to `complete` is running. They stay around between calls to `complete`, so
    a later call picks up where an earlier one left off.

    An executor is tied to the thread it's used on, through its reactor.

    """
    def __init__(self, reactor: t.Optional[Reactor]=None, capacity: int=WAKE_QUEUE_CAPACITY) -> None:
        self._reactor = reactor
        self.to_do = WakeQueue(capacity)
        self.tasks = TaskRegistry()
        self.running = False

    @property
    def reactor(self) -> Reactor:
        "The reactor we block in; this thread's reactor unless one was passed in."
        if self._reactor is None:
            self._reactor = Reactor.current()
        return self._reactor

    def spawn(self, future: t.Union[Future[None], t.Awaitable[None]]) -> int:
        """Store a future as a background task, to be polled while `complete` runs.

        The future is a `coopio.poll.Future`, a coroutine, or an awaitable; its result
        is discarded.  Returns the task's slot id.

        """
        task = as_future(future)
        id = self.tasks.allocate_slot()
        waker = Waker(self.to_do, id)
        self.tasks.fill(id, Slot(task, waker))
        logger.debug("spawned %s as task %d", task, id)
        if self.running:
            # the bootstrap sweep already happened, so nothing else will poll it this run
            waker.wake()
        return id

    def _poll_task(self, id: int, slot: Slot) -> None:
        "Poll a background task, removing it once it has finished or raised."
        try:
            result = slot.task.poll(Context(slot.waker))
        except BaseException:
            logger.debug("task %d raised, removing it", id)
            self.tasks.remove(id)
            raise
        if isinstance(result, Ready):
            logger.debug("task %d finished", id)
            self.tasks.remove(id)

    def complete(self, future: t.Union[Future[T], t.Awaitable[T]]) -> T:
        """Run this future to completion, polling background tasks meanwhile; return its value.

        We return as soon as the primary future is done, even if background tasks are
        still pending.  Exceptions raised by the primary future, or by the reactor while we
        wait for I/O, are raised out of here.  So is an exception raised by any background
        task: a failing background task is fatal to the current run, not just to itself.
        In every case the primary future is abandoned; the failed background task is
        removed, and the other background tasks are kept for the next run.

        """
        main = as_future(future)
        if self.running:
            main.close()
            raise RuntimeError("Executor.complete is not reentrant")
        self.to_do.bind_thread()
        ctx = Context(Waker(self.to_do, PRIMARY))
        self.running = True
        try:
            # Poll everything once, in case it's already able to finish without waiting
            # on a wake. The primary comes first, so if it finishes immediately, no
            # background task has been polled yet and there's nothing to clean up.
            result = main.poll(ctx)
            if isinstance(result, Ready):
                return result.value
            for id, slot in list(self.tasks.items()):
                self._poll_task(id, slot)
            while True:
                try:
                    target = self.to_do.get_nowait()
                except queue.Empty:
                    self.reactor.spin()
                    continue
                if target is PRIMARY:
                    result = main.poll(ctx)
                    if isinstance(result, Ready):
                        return result.value
                else:
                    slot = self.tasks.get(target)
                    if slot is None:
                        logger.debug("skipping wake for task %d, which no longer exists", target)
                        continue
                    self._poll_task(target, slot)
        finally:
            self.running = False
            main.close()

    def close(self) -> None:
        "Abandon every background task."
        for id, slot in list(self.tasks.items()):
            self.tasks.remove(id)
            slot.task.close()

    def __enter__(self) -> Executor:
        return self

    def __exit__(self, *args: t.Any) -> None:
        self.close()
