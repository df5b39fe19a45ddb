"""A per-thread epoll reactor, which turns I/O readiness into wake events.

We use epoll in edge-triggered mode. Each I/O resource gets a `Handle` from
the reactor, which owns a token; the reactor maps the resource's fd to that
token, and the token to the list of wakers interested in the resource.

When nothing is ready to run, the executor calls `Reactor.spin`, which blocks
in epoll_wait until at least one registered fd becomes ready, and then fires
every waker registered for each ready fd. The woken tasks are then polled by
the executor, and retry whatever operation they were blocked on. We don't
check whether that retry will succeed; the resource does that itself on its
next poll, and registers its waker again if it still can't make progress.

Since we're edge-triggered, a resource must only report PENDING after it has
actually seen EAGAIN, never on a guess; otherwise we can miss the edge and
block forever.

--------------------------------------------------------------------------------

A reactor is bound to the thread that creates it. Its registration table is
never locked; instead, every method checks that it's called from the owning
thread, and the table can't be mutated while we're in the middle of
dispatching wakers from it. Wakers themselves only touch their executor's
thread-safe wake queue, so firing them from elsewhere is fine; but a handle
must never be used from another thread, and cross-thread wakeups go through
the wake queue, not through the reactor.

Usually a reactor is passed explicitly to the objects that need it. For
convenience, `Reactor.current` lazily creates one reactor per thread, which
lives until `Reactor.close` is called on it or the thread exits.

"""
from __future__ import annotations
from coopio.epoll import EPOLL, EpollEvent
from coopio.exceptions import WrongThreadError
from coopio.waker import Wake
import contextlib
import errno
import itertools
import logging
import select
import threading
import typing as t

logger = logging.getLogger(__name__)

__all__ = [
    "Reactor",
    "Handle",
    "spin",
    "MAX_EVENTS",
]

MAX_EVENTS = 32
"How many events we read from epoll in a single epoll_wait."

FileLike = t.Union[int, t.Any]
"An fd number, or an object with a fileno() method."

def _fileno(source: FileLike) -> int:
    if isinstance(source, int):
        return source
    return source.fileno()

class Reactor:
    "Owns one epoll instance, and the wakers waiting on each fd registered on it."
    _local = threading.local()

    def __init__(self, max_events: int=MAX_EVENTS) -> None:
        self.epfd = select.epoll()
        self.max_events = max_events
        self.thread_id = threading.get_ident()
        self.closed = False
        self._tokens: t.Dict[int, t.List[Wake]] = {}
        self._fd_tokens: t.Dict[int, int] = {}
        self._token_numbers = itertools.count()
        self._borrowed = False

    def __repr__(self) -> str:
        return f"Reactor(epfd={self.epfd.fileno() if not self.closed else None}, tokens={len(self._tokens)})"

    @classmethod
    def current(cls) -> Reactor:
        "Return this thread's reactor, creating it if it doesn't exist yet."
        reactor: t.Optional[Reactor] = getattr(cls._local, 'reactor', None)
        if reactor is None or reactor.closed:
            reactor = cls()
            logger.debug("created %s for thread %d", reactor, reactor.thread_id)
            cls._local.reactor = reactor
        return reactor

    def check_thread(self) -> None:
        if threading.get_ident() != self.thread_id:
            raise WrongThreadError("reactor used from a thread other than its own", self)

    @contextlib.contextmanager
    def _borrow(self) -> t.Iterator[t.Dict[int, t.List[Wake]]]:
        "Give exclusive access to the registration table; nested access is a bug."
        self.check_thread()
        if self.closed:
            raise ValueError("reactor is closed", self)
        if self._borrowed:
            raise RuntimeError("registration table accessed while it's already in use, "
                               "such as by a waker fired during dispatch")
        self._borrowed = True
        try:
            yield self._tokens
        finally:
            self._borrowed = False

    def handle(self) -> Handle:
        "Allocate a new token and return a Handle owning it; nothing is registered with epoll yet."
        with self._borrow() as tokens:
            token = next(self._token_numbers)
            tokens[token] = []
        logger.debug("allocated token %d", token)
        return Handle(self, token)

    def register(self, source: FileLike, interest: EPOLL=EPOLL.IN, edge: bool=True) -> Handle:
        "Make a Handle and register this fd with epoll through it."
        handle = self.handle()
        try:
            handle.register(source, interest, edge)
        except BaseException:
            handle.close()
            raise
        return handle

    def turn(self, timeout: t.Optional[float]=None) -> int:
        """Wait up to `timeout` seconds for readiness, fire the wakers for every ready fd.

        With a timeout of None, we wait until at least one fd is ready. Returns the number
        of events received.

        """
        self.check_thread()
        logger.debug("spinning, timeout %s", timeout)
        events = [EpollEvent.from_tuple(pair) for pair in
                  self.epfd.poll(-1 if timeout is None else timeout, self.max_events)]
        with self._borrow() as tokens:
            for event in events:
                token = self._fd_tokens.get(event.fd)
                if token is None:
                    logger.debug("dropping %s for an fd with no handle", event)
                    continue
                wakers = tokens[token]
                logger.debug("dispatching %s to %d wakers on token %d", event, len(wakers), token)
                for waker in wakers:
                    waker.wake_by_ref()
        return len(events)

    def spin(self) -> None:
        "Block until at least one registered fd is ready, and fire its wakers."
        self.turn(None)

    def close(self) -> None:
        "Close the epoll instance; every Handle must have been closed first."
        self.check_thread()
        if self.closed:
            return
        if self._tokens:
            raise RuntimeError("reactor closed while handles are still alive", list(self._tokens))
        self.closed = True
        self.epfd.close()
        if getattr(type(self)._local, 'reactor', None) is self:
            del type(self)._local.reactor

    def __enter__(self) -> Reactor:
        return self

    def __exit__(self, *args: t.Any) -> None:
        self.close()

def spin() -> None:
    "Spin the reactor of the calling thread."
    Reactor.current().spin()

class Handle:
    """One resource's registration with a reactor.

    The Handle owns its token: closing it forgets every waker registered under
    the token, and takes the fd out of epoll if it's still there. The resource
    itself isn't closed; that's up to whoever owns it.

    """
    def __init__(self, reactor: Reactor, token: int) -> None:
        "Don't construct directly; use Reactor.handle or Reactor.register."
        self.reactor = reactor
        self.token = token
        self.fd: t.Optional[int] = None
        self.closed = False

    def __repr__(self) -> str:
        return f"Handle(token={self.token}, fd={self.fd})"

    def register(self, source: FileLike, interest: EPOLL=EPOLL.IN, edge: bool=True) -> None:
        "Register an fd with epoll under our token, for these events."
        if self.closed:
            raise ValueError("handle is closed", self)
        if self.fd is not None:
            raise ValueError("handle already has a registered fd", self)
        self.reactor.check_thread()
        fd = _fileno(source)
        if edge:
            interest |= EPOLL.ET
        self.reactor.epfd.register(fd, interest)
        self.reactor._fd_tokens[fd] = self.token
        self.fd = fd
        logger.debug("%s: registered for %s", self, interest)

    def add_waker(self, waker: Wake) -> None:
        "Fire this waker whenever our fd is ready, unless an equivalent waker is already registered."
        with self.reactor._borrow() as tokens:
            wakers = tokens[self.token]
            if all(not existing.will_wake(waker) for existing in wakers):
                wakers.append(waker.clone())

    def close(self) -> None:
        if self.closed:
            return
        with self.reactor._borrow() as tokens:
            del tokens[self.token]
            if self.fd is not None:
                del self.reactor._fd_tokens[self.fd]
                self._unregister(self.fd)
        self.closed = True
        logger.debug("%s: closed", self)

    def __del__(self) -> None:
        if getattr(self, 'closed', True) or self.reactor.closed:
            return
        if threading.get_ident() != self.reactor.thread_id or self.reactor._borrowed:
            # we can only touch the table from its own thread, and not mid-dispatch
            logger.debug("leaked handle: %s", self)
            return
        self.close()

    def _unregister(self, fd: int) -> None:
        try:
            self.reactor.epfd.unregister(fd)
        except OSError as e:
            # a closed fd has already left the epoll set, or its number was reused
            if e.errno in (errno.EBADF, errno.ENOENT):
                logger.debug("%s: fd %d was already gone from epoll", self, fd)
            else:
                raise

    def __enter__(self) -> Handle:
        return self

    def __exit__(self, *args: t.Any) -> None:
        self.close()
