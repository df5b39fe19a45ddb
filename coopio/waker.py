"""Wakers: requests for a task to be polled again

A `Waker` names one task and the `WakeQueue` that the task's executor reads
from. Firing it puts the task's target on that queue; that's all it does,
which is why it may be fired from any thread.

"""
from __future__ import annotations
from dataclasses import dataclass
import abc
import collections
import enum
import logging
import queue
import threading
import typing as t

logger = logging.getLogger(__name__)

__all__ = [
    "Wake",
    "Waker",
    "Primary",
    "PRIMARY",
    "TaskTarget",
    "WakeQueue",
]

class Wake:
    """Anything that can ask for some task to be polled again.

    Futures only ever see this interface, through `coopio.poll.Context.waker`.
    Implementations must be safe to fire more than once, and from any thread.

    """
    @abc.abstractmethod
    def wake(self) -> None: ...

    def wake_by_ref(self) -> None:
        "Fire without giving up this reference; the same as `wake` for us, since nothing is consumed."
        self.wake()

    @abc.abstractmethod
    def clone(self) -> Wake: ...

    @abc.abstractmethod
    def will_wake(self, other: Wake) -> bool:
        "Return true if firing `other` would have the same effect as firing us."
        ...

class Primary(enum.Enum):
    """The target type for the primary future of `coopio.executor.Executor.complete`

    The primary future isn't stored in the task registry, so it has no slot id;
    wake events for it carry this marker instead.

    """
    TASK = "primary"

    def __repr__(self) -> str:
        return "PRIMARY"

PRIMARY = Primary.TASK

TaskTarget = t.Union[int, Primary]
"What a wake event names: either a background slot id, or `PRIMARY`."

@dataclass(frozen=True)
class Waker(Wake):
    "Wakes a task by putting its target on the executor's wake queue."
    sender: WakeQueue
    target: TaskTarget

    def wake(self) -> None:
        logger.debug("Waker(%r): waking", self.target)
        self.sender.put(self.target)

    def clone(self) -> Waker:
        return Waker(self.sender, self.target)

    def will_wake(self, other: Wake) -> bool:
        return (isinstance(other, Waker)
                and self.sender is other.sender
                and self.target == other.target)

    def __repr__(self) -> str:
        return f"Waker({self.target!r})"

class WakeQueue:
    """The bounded queue of wake events that an executor polls tasks from.

    Wakes from other threads block while the queue is full, until the executor
    drains it.  The executor's own thread can't wait on itself, so its wakes go
    to an unbounded overflow instead, which is moved into the queue, in order,
    as room appears.

    """
    def __init__(self, capacity: int) -> None:
        self.queue: queue.Queue[TaskTarget] = queue.Queue(maxsize=capacity)
        self.overflow: t.Deque[TaskTarget] = collections.deque()
        self.thread_id = threading.get_ident()

    def bind_thread(self) -> None:
        "Make the calling thread the one which drains this queue."
        self.thread_id = threading.get_ident()

    def put(self, target: TaskTarget) -> None:
        if threading.get_ident() != self.thread_id:
            self.queue.put(target)
            return
        if not self.overflow:
            try:
                self.queue.put_nowait(target)
                return
            except queue.Full:
                pass
        logger.debug("wake queue full, overflowing %r", target)
        self.overflow.append(target)

    def get_nowait(self) -> TaskTarget:
        "Take the next target; raises queue.Empty if there is none."
        try:
            target = self.queue.get_nowait()
        except queue.Empty:
            if not self.overflow:
                raise
            return self.overflow.popleft()
        while self.overflow:
            try:
                self.queue.put_nowait(self.overflow[0])
            except queue.Full:
                break
            self.overflow.popleft()
        return target

    def empty(self) -> bool:
        return not self.overflow and self.queue.empty()

    def __len__(self) -> int:
        return self.queue.qsize() + len(self.overflow)
