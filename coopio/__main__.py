from coopio.config import parse_args, configure_logging
import logging
import sys
import typing as t

logger = logging.getLogger('coopio')

def main(argv: t.Optional[t.List[str]]=None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args)
    logger.debug("Starting up")
    logger.info("Connecting to %s", args.url.geturl())
    logger.error("We can't connect yet")
    return 0

if __name__ == "__main__":
    sys.exit(main())
