"Command line arguments, and the logging setup they control."
from __future__ import annotations
from dataclasses import dataclass
import argparse
import logging
import typing as t
import urllib.parse

__all__ = [
    "Arguments",
    "TRACE",
    "log_level",
    "parse_url",
    "parse_args",
    "configure_logging",
]

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# 0 means logging is off entirely
_LEVELS = [logging.CRITICAL + 10, logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG, TRACE]

def log_level(verbose: int) -> int:
    "Map a count of -v flags to a logging level; more flags mean more logging."
    return _LEVELS[min(max(verbose, 0), len(_LEVELS) - 1)]

def parse_url(text: str) -> urllib.parse.SplitResult:
    url = urllib.parse.urlsplit(text)
    if not url.scheme or not url.netloc:
        raise argparse.ArgumentTypeError(f"not an absolute URL: {text!r}")
    return url

@dataclass
class Arguments:
    "Command line arguments given to the process."
    url: urllib.parse.SplitResult
    "The remote end to connect to."
    verbose: int = 0
    "How verbosely to log."

def parse_args(argv: t.Sequence[str]) -> Arguments:
    parser = argparse.ArgumentParser(prog='coopio', description='Connect to a remote endpoint')
    parser.add_argument('url', type=parse_url, help='the remote end to connect to')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='log more; may be repeated')
    args = parser.parse_args(argv)
    return Arguments(args.url, args.verbose)

def configure_logging(args: Arguments) -> None:
    "Log to stderr; our own loggers are one step more verbose than everything else."
    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s',
                        level=log_level(args.verbose))
    logging.getLogger('coopio').setLevel(log_level(args.verbose + 1))
