from coopio.epoll import EPOLL
from coopio.exceptions import WrongThreadError
from coopio.reactor import Reactor
from coopio.waker import Waker, WakeQueue
from coopio.tests.utils import CallbackWaker
import gc
import os
import threading
import typing as t
import unittest

class TestReactor(unittest.TestCase):
    def setUp(self) -> None:
        self.reactor = Reactor()
        self.read_fd, self.write_fd = os.pipe()
        self.woken: t.List[str] = []

    def tearDown(self) -> None:
        os.close(self.read_fd)
        os.close(self.write_fd)
        self.reactor.close()

    def waker(self, name: str) -> CallbackWaker:
        return CallbackWaker(name, self.woken.append)

    def test_wake_on_readable(self) -> None:
        with self.reactor.register(self.read_fd, EPOLL.IN) as handle:
            handle.add_waker(self.waker("a"))
            handle.add_waker(self.waker("b"))
            os.write(self.write_fd, b"x")
            self.reactor.spin()
            self.assertEqual(sorted(self.woken), ["a", "b"])

    def test_no_duplicate_wakers(self) -> None:
        with self.reactor.register(self.read_fd, EPOLL.IN) as handle:
            handle.add_waker(self.waker("a"))
            handle.add_waker(self.waker("a"))
            os.write(self.write_fd, b"x")
            self.reactor.spin()
            self.assertEqual(self.woken, ["a"])

    def test_no_duplicate_queue_wakers(self) -> None:
        wake_queue = WakeQueue(16)
        waker = Waker(wake_queue, 3)
        with self.reactor.register(self.read_fd, EPOLL.IN) as handle:
            handle.add_waker(waker)
            handle.add_waker(waker.clone())
            handle.add_waker(Waker(wake_queue, 4))
            os.write(self.write_fd, b"x")
            self.reactor.spin()
        self.assertEqual(sorted([wake_queue.get_nowait(), wake_queue.get_nowait()]), [3, 4])
        self.assertTrue(wake_queue.empty())

    def test_edge_triggered(self) -> None:
        "We get one event per readiness transition, not one per spin."
        with self.reactor.register(self.read_fd, EPOLL.IN, edge=True) as handle:
            handle.add_waker(self.waker("a"))
            self.assertEqual(self.reactor.turn(0), 0)
            os.write(self.write_fd, b"x")
            self.assertEqual(self.reactor.turn(0), 1)
            self.assertEqual(self.reactor.turn(0), 0)
            self.assertEqual(self.woken, ["a"])
            os.write(self.write_fd, b"y")
            self.assertEqual(self.reactor.turn(0), 1)
            self.assertEqual(self.woken, ["a", "a"])

    def test_tokens_are_separate(self) -> None:
        other_read, other_write = os.pipe()
        try:
            with self.reactor.register(self.read_fd) as first, self.reactor.register(other_read) as second:
                self.assertNotEqual(first.token, second.token)
                first.add_waker(self.waker("first"))
                second.add_waker(self.waker("second"))
                os.write(other_write, b"x")
                self.reactor.spin()
                self.assertEqual(self.woken, ["second"])
        finally:
            os.close(other_read)
            os.close(other_write)

    def test_close_handle(self) -> None:
        handle = self.reactor.register(self.read_fd)
        handle.add_waker(self.waker("a"))
        handle.close()
        handle.close()
        os.write(self.write_fd, b"x")
        self.assertEqual(self.reactor.turn(0), 0)
        self.assertEqual(self.woken, [])
        # the fd is free to be registered again
        with self.reactor.register(self.read_fd) as handle:
            handle.add_waker(self.waker("b"))
            os.write(self.write_fd, b"y")
            self.reactor.spin()
        self.assertEqual(self.woken, ["b"])

    def test_close_handle_after_fd_closed(self) -> None:
        read_fd, write_fd = os.pipe()
        handle = self.reactor.register(read_fd)
        os.close(read_fd)
        os.close(write_fd)
        handle.close()

    def test_dropped_handle(self) -> None:
        "A handle that's garbage collected without being closed gives back its token and fd."
        handle = self.reactor.register(self.read_fd)
        handle.add_waker(self.waker("a"))
        del handle
        gc.collect()
        self.assertEqual(self.reactor._tokens, {})
        self.assertEqual(self.reactor._fd_tokens, {})
        with self.reactor.register(self.read_fd) as handle:
            handle.add_waker(self.waker("b"))
            os.write(self.write_fd, b"x")
            self.reactor.spin()
        self.assertEqual(self.woken, ["b"])

    def test_handle_without_fd(self) -> None:
        with self.reactor.handle() as handle:
            handle.add_waker(self.waker("a"))
            handle.register(self.read_fd, EPOLL.IN)
            with self.assertRaises(ValueError):
                handle.register(self.write_fd, EPOLL.OUT)

    def test_mutation_during_dispatch(self) -> None:
        handle = self.reactor.register(self.read_fd)
        def meddle(name: str) -> None:
            handle.add_waker(self.waker("other"))
        handle.add_waker(CallbackWaker("meddler", meddle))
        os.write(self.write_fd, b"x")
        with self.assertRaises(RuntimeError):
            self.reactor.spin()
        # the table is usable again afterwards
        handle.close()

    def test_close_with_live_handle(self) -> None:
        handle = self.reactor.register(self.read_fd)
        with self.assertRaises(RuntimeError):
            self.reactor.close()
        handle.close()

    def test_wrong_thread(self) -> None:
        handle = self.reactor.register(self.read_fd)
        errors: t.List[BaseException] = []
        def use_elsewhere() -> None:
            for func in [self.reactor.spin, lambda: handle.add_waker(self.waker("a")), handle.close]:
                try:
                    func()
                except WrongThreadError as e:
                    errors.append(e)
        thread = threading.Thread(target=use_elsewhere)
        thread.start()
        thread.join()
        self.assertEqual(len(errors), 3)
        handle.close()

class TestCurrentReactor(unittest.TestCase):
    def test_per_thread(self) -> None:
        reactor = Reactor.current()
        self.assertIs(Reactor.current(), reactor)
        others: t.List[Reactor] = []
        def get_other() -> None:
            other = Reactor.current()
            others.append(other)
            other.close()
        thread = threading.Thread(target=get_other)
        thread.start()
        thread.join()
        self.assertIsNot(others[0], reactor)

    def test_close_current(self) -> None:
        reactor = Reactor.current()
        reactor.close()
        new = Reactor.current()
        self.assertIsNot(new, reactor)
        self.assertFalse(new.closed)

if __name__ == '__main__':
    unittest.main()
