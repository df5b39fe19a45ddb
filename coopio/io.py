"""Reactor-integrated I/O resources.

An `AsyncFile` wraps an fd so it can be read without blocking the thread:
the fd is put in O_NONBLOCK mode and registered, edge-triggered, with a
reactor.  Each read attempts the non-blocking read first; only if that fails
with EAGAIN do we register the task's waker with the reactor and report
PENDING.  When the reactor sees the fd become readable, the task is woken and
polled again, and the read is retried.

`Stdin` is the same thing for fd 0, with the extra constraint that only one
can exist in the process at a time, since two objects reading from stdin
would each get an unpredictable part of the input.

"""
from __future__ import annotations
from coopio.epoll import EPOLL
from coopio.exceptions import ResourceBusyError, WrongThreadError
from coopio.poll import Context, Future, PENDING, Poll, PollFn, Ready
from coopio.reactor import Reactor
import fcntl
import functools
import logging
import os
import threading
import typing as t

logger = logging.getLogger(__name__)

__all__ = [
    "ResourceGuard",
    "AsyncFile",
    "Stdin",
    "READ_SIZE",
]

READ_SIZE = 4096
"The default number of bytes to read at once."

class ResourceGuard:
    """Exclusive, process-wide ownership of some named resource.

    Take it with `ResourceGuard.take`, which fails if someone else holds it; give it
    back with `release`, or by leaving a `with` block.

    """
    _held: t.Set[str] = set()
    _mutex = threading.Lock()

    @classmethod
    def take(cls, name: str) -> ResourceGuard:
        with cls._mutex:
            if name in cls._held:
                raise ResourceBusyError(name, "is already locked")
            cls._held.add(name)
        return cls(name)

    def __init__(self, name: str) -> None:
        "Don't construct directly; use ResourceGuard.take."
        self.name = name
        self.released = False

    def __repr__(self) -> str:
        return f"ResourceGuard({self.name!r}, released={self.released})"

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        with self._mutex:
            self._held.discard(self.name)

    def __del__(self) -> None:
        if not getattr(self, 'released', True):
            self.release()

    def __enter__(self) -> ResourceGuard:
        return self

    def __exit__(self, *args: t.Any) -> None:
        self.release()

class AsyncFile:
    """A file descriptor which can be read without blocking the thread.

    We don't own the fd: closing an AsyncFile just unregisters it from the reactor and
    puts its flags back how we found them.

    """
    def __init__(self, fd: int, reactor: t.Optional[Reactor]=None) -> None:
        self.fd = fd
        self.reactor = reactor if reactor is not None else Reactor.current()
        self.old_flags = fcntl.fcntl(fd, fcntl.F_GETFL)
        fcntl.fcntl(fd, fcntl.F_SETFL, self.old_flags | os.O_NONBLOCK)
        try:
            self.handle = self.reactor.register(fd, EPOLL.IN, edge=True)
        except BaseException:
            fcntl.fcntl(fd, fcntl.F_SETFL, self.old_flags)
            raise
        self.closed = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.fd}, {self.handle})"

    def poll_read(self, ctx: Context, count: int=READ_SIZE) -> Poll[bytes]:
        "Try to read at most `count` bytes; b'' means EOF."
        if self.closed:
            raise ValueError("read from closed file", self)
        try:
            data = os.read(self.fd, count)
        except BlockingIOError:
            self.handle.add_waker(ctx.waker)
            return PENDING
        return Ready(data)

    def read(self, count: int=READ_SIZE) -> Future[bytes]:
        "Return a Future which reads at most `count` bytes, waiting until some are available."
        return PollFn(functools.partial(self.poll_read, count=count))

    async def read_some_bytes(self, count: int=READ_SIZE) -> bytes:
        "Read at most count bytes; possibly less, if we have a partial read."
        return await self.read(count)

    def close(self) -> None:
        "Unregister from the reactor and restore the fd's original flags."
        if self.closed:
            return
        self.closed = True
        try:
            self.handle.close()
        finally:
            fcntl.fcntl(self.fd, fcntl.F_SETFL, self.old_flags)

    def __del__(self) -> None:
        if getattr(self, 'closed', True):
            return
        try:
            self.close()
        except WrongThreadError:
            # flags and guard are restored regardless; the handle is left to its own __del__
            logger.debug("%s: collected off its reactor's thread", self)

    def __enter__(self) -> AsyncFile:
        return self

    def __exit__(self, *args: t.Any) -> None:
        self.close()

class Stdin(AsyncFile):
    "An asynchronous wrapper around stdin; only one can be open at a time."
    def __init__(self, reactor: t.Optional[Reactor]=None) -> None:
        guard = ResourceGuard.take("stdin")
        try:
            super().__init__(0, reactor)
        except BaseException:
            guard.release()
            raise
        self.guard = guard

    def close(self) -> None:
        try:
            super().close()
        finally:
            self.guard.release()
