"""Driving coroutines through the polling protocol, and storing them while they wait

`Task` is the bridge between `async def` code and `coopio.poll.Future`: it
runs a coroutine until the coroutine awaits a Future, then polls that Future
for it, resuming the coroutine as soon as the Future is ready.

`TaskRegistry` is where an executor keeps its background tasks, each with the
waker it's polled with.

"""
from __future__ import annotations
from dataclasses import dataclass
from coopio.poll import Context, Future, Poll, Ready, PENDING
from coopio.waker import Waker
import enum
import inspect
import logging
import outcome
import typing as t

logger = logging.getLogger(__name__)

__all__ = [
    "Task",
    "as_future",
    "Slot",
    "TaskRegistry",
]

T = t.TypeVar('T')

Coroutine = t.Union[t.Coroutine[Future, t.Any, T], t.Generator[Future, t.Any, T]]

class Task(Future[T]):
    """A Future which runs a coroutine, polling the Futures it awaits.

    The coroutine must only ever yield `Future`s; that's what awaiting a Future
    does.  Anything else gets a TypeError thrown into the coroutine, and then
    raised out of `poll`.

    """
    def __init__(self, coro: Coroutine[T]) -> None:
        self.coro = coro
        self.waiting_on: t.Optional[Future] = None
        self.finished = False

    def __repr__(self) -> str:
        return f"Task({self.coro!r})"

    def poll(self, ctx: Context) -> Poll[T]:
        if self.finished:
            raise RuntimeError("polled a task which already finished", self)
        to_send: outcome.Outcome = outcome.Value(None)
        while True:
            if self.waiting_on is not None:
                result = outcome.capture(self.waiting_on.poll, ctx)
                if isinstance(result, outcome.Value):
                    if result.value is PENDING:
                        return PENDING
                    to_send = outcome.Value(result.value.value)
                else:
                    to_send = result
                self.waiting_on = None
            try:
                yielded = to_send.send(self.coro)
            except StopIteration as e:
                self.finished = True
                return Ready(e.value)
            except BaseException:
                self.finished = True
                raise
            if not isinstance(yielded, Future):
                self.finished = True
                try:
                    self.coro.throw(TypeError("coroutine yielded something other than a Future", yielded))
                except (StopIteration, TypeError):
                    pass
                raise TypeError("coro", self.coro, "yielded something other than a Future", yielded)
            self.waiting_on = yielded

    def close(self) -> None:
        "Abandon the coroutine, running its finally blocks."
        if self.waiting_on is not None:
            self.waiting_on.close()
            self.waiting_on = None
        self.finished = True
        self.coro.close()

def as_future(obj: t.Any) -> Future:
    "Turn a Future, coroutine, or other awaitable into something the executor can poll."
    if isinstance(obj, Future):
        return obj
    elif inspect.iscoroutine(obj) or inspect.isgenerator(obj):
        return Task(obj)
    elif hasattr(obj, '__await__'):
        return Task(obj.__await__())
    else:
        raise TypeError("can't run as a future", obj)

@dataclass
class Slot:
    "A background task, and the waker that it's always polled with."
    task: Future[None]
    waker: Waker

class _Reserved(enum.Enum):
    RESERVED = "reserved"

_RESERVED = _Reserved.RESERVED

class TaskRegistry:
    """A slab of background tasks, addressed by small reusable integers.

    Inserting is two-phase: `allocate_slot` hands out the id first, so that the
    waker which names that id can be built before the task is stored with
    `fill`.  A slot which has been allocated but not filled is never yielded by
    `items` or returned by `get`.

    Freed ids are reused most-recently-freed first.

    """
    def __init__(self) -> None:
        self._slots: t.List[t.Union[Slot, _Reserved, None]] = []
        self._free: t.List[int] = []

    def allocate_slot(self) -> int:
        if self._free:
            id = self._free.pop()
            self._slots[id] = _RESERVED
        else:
            id = len(self._slots)
            self._slots.append(_RESERVED)
        return id

    def fill(self, id: int, slot: Slot) -> None:
        if self._slots[id] is not _RESERVED:
            raise ValueError("slot was not allocated, or is already filled", id)
        self._slots[id] = slot

    def get(self, id: int) -> t.Optional[Slot]:
        if 0 <= id < len(self._slots):
            slot = self._slots[id]
            if isinstance(slot, Slot):
                return slot
        return None

    def remove(self, id: int) -> Slot:
        slot = self.get(id)
        if slot is None:
            raise KeyError(id)
        self._slots[id] = None
        self._free.append(id)
        return slot

    def items(self) -> t.Iterator[t.Tuple[int, Slot]]:
        "Yield (id, slot) for each filled slot, in id order."
        for id, slot in enumerate(self._slots):
            if isinstance(slot, Slot):
                yield id, slot

    def __contains__(self, id: object) -> bool:
        return isinstance(id, int) and self.get(id) is not None

    def __len__(self) -> int:
        return sum(1 for _ in self.items())
