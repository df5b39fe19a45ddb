"`#include <sys/epoll.h>`, as far as the reactor needs it"
from __future__ import annotations
from dataclasses import dataclass
import enum
import select
import typing as t

__all__ = [
    "EPOLL",
    "EpollEvent",
]

class EPOLL(enum.IntFlag):
    "Interest and readiness flags for epoll."
    NONE = 0
    IN = select.EPOLLIN
    OUT = select.EPOLLOUT
    RDHUP = select.EPOLLRDHUP
    PRI = select.EPOLLPRI
    ERR = select.EPOLLERR
    HUP = select.EPOLLHUP
    # options
    ET = select.EPOLLET

@dataclass(frozen=True)
class EpollEvent:
    "One readiness event, as returned from epoll_wait."
    fd: int
    events: EPOLL

    @classmethod
    def from_tuple(cls, pair: t.Tuple[int, int]) -> EpollEvent:
        fd, mask = pair
        return cls(fd, EPOLL(mask))
