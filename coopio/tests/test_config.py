from coopio.__main__ import main
from coopio.config import TRACE, configure_logging, log_level, parse_args
import contextlib
import io
import logging
import unittest

class TestConfig(unittest.TestCase):
    def test_log_level(self) -> None:
        self.assertGreater(log_level(0), logging.CRITICAL)
        self.assertEqual(log_level(1), logging.ERROR)
        self.assertEqual(log_level(2), logging.WARNING)
        self.assertEqual(log_level(3), logging.INFO)
        self.assertEqual(log_level(4), logging.DEBUG)
        self.assertEqual(log_level(5), TRACE)
        self.assertEqual(log_level(12), TRACE)

    def test_parse_args(self) -> None:
        args = parse_args(["-vvv", "tcp://example.com:4000"])
        self.assertEqual(args.verbose, 3)
        self.assertEqual(args.url.scheme, "tcp")
        self.assertEqual(args.url.hostname, "example.com")
        self.assertEqual(args.url.port, 4000)
        self.assertEqual(parse_args(["https://example.com/"]).verbose, 0)

    def test_bad_url(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                parse_args(["not a url"])
            with self.assertRaises(SystemExit):
                parse_args([])

    def test_configure_logging(self) -> None:
        logger = logging.getLogger('coopio')
        old_level = logger.level
        try:
            configure_logging(parse_args(["-vv", "tcp://localhost:1"]))
            self.assertEqual(logger.level, logging.INFO)
        finally:
            logger.setLevel(old_level)

    def test_main(self) -> None:
        logger = logging.getLogger('coopio')
        old_level = logger.level
        try:
            with self.assertLogs('coopio', level=logging.DEBUG) as logs:
                self.assertEqual(main(["-vvvv", "tcp://example.com:4000"]), 0)
        finally:
            logger.setLevel(old_level)
        self.assertEqual([record.getMessage() for record in logs.records], [
            "Starting up",
            "Connecting to tcp://example.com:4000",
            "We can't connect yet",
        ])

if __name__ == '__main__':
    unittest.main()
