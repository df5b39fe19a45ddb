from coopio.poll import Context, Future, PENDING, Poll, Ready
from coopio.waker import Wake
import typing as t

class Pause(Future[None]):
    "Pauses once: the first poll wakes itself and returns PENDING, the second is ready."
    def __init__(self) -> None:
        self.paused = False

    def poll(self, ctx: Context) -> Poll[None]:
        if self.paused:
            return Ready(None)
        self.paused = True
        ctx.waker.wake_by_ref()
        return PENDING

async def pause_n(n: int, value: t.Any) -> t.Any:
    for _ in range(n):
        await Pause()
    return value

class Never(Future[None]):
    "Never ready, and never wakes anyone; counts how often it's polled."
    def __init__(self) -> None:
        self.polls = 0

    def poll(self, ctx: Context) -> Poll[None]:
        self.polls += 1
        return PENDING

class CallbackWaker(Wake):
    "A waker which calls a function, for testing the reactor without an executor."
    def __init__(self, name: str, callback: t.Callable[[str], None]) -> None:
        self.name = name
        self.callback = callback

    def wake(self) -> None:
        self.callback(self.name)

    def clone(self) -> 'CallbackWaker':
        return CallbackWaker(self.name, self.callback)

    def will_wake(self, other: Wake) -> bool:
        return isinstance(other, CallbackWaker) and other.name == self.name and other.callback == self.callback

class FakeReactor:
    "Stands in for a Reactor; blocking in it is a test failure unless it's given something to do."
    def __init__(self, on_spin: t.Optional[t.Callable[[], None]]=None) -> None:
        self.spins = 0
        self.on_spin = on_spin

    def spin(self) -> None:
        self.spins += 1
        if self.on_spin is None:
            raise AssertionError("executor blocked in the reactor with nothing to wait for")
        self.on_spin()
