import argparse
import sys

from .client import resolve_base
from .logsink import Severity, stderr_sink
from .service import DEFAULT_POLL_INTERVAL, BridgeService


def build_parser():
    parser = argparse.ArgumentParser(prog="hostbridge", add_help=True,
                                     description="Serve file-based bridge requests in this Python process.")
    parser.add_argument('--base', dest='base', default=None,
                        help='Bridge directory (creates requests/responses). Defaults to $HOSTBRIDGE_DIR or ~/Documents/AE-MCP.')
    parser.add_argument('--interval', dest='interval', type=float, default=DEFAULT_POLL_INTERVAL,
                        help=f'Polling interval in seconds (default: {DEFAULT_POLL_INTERVAL}).')
    parser.add_argument('--verbosity', dest='verbosity', default='info',
                        choices=[s.name.lower() for s in Severity],
                        help='Log verbosity written to stderr (default: info).')
    parser.add_argument('--once', dest='once', action='store_true', default=False,
                        help='Process pending requests once and exit.')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    base = resolve_base(args.base)
    service = BridgeService(poll_interval=args.interval, log_sink=stderr_sink,
                            verbosity=Severity.parse(args.verbosity), name="cli")
    try:
        if not service.start(base):
            return 1
        if args.once:
            service.poll_now()
        else:
            service.serve_forever()
    finally:
        service.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
