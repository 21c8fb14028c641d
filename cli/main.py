import argparse
import logging
import sys

from core.config import settings
from core.models import PortRange
from pipeline.sweep import sweep

RANGE_ERROR = "Invalid port range. Ports must be between 1 and 65535 and start_port <= end_port."


class _UsageParser(argparse.ArgumentParser):
    """Malformed invocations print the usage text and exit cleanly."""

    def error(self, message):
        self.print_help()
        self.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = _UsageParser(
        prog="tcpsweep",
        description="Simple TCP port scanner: reports the ports that accept a connection.",
        epilog="Example:\n  tcpsweep 192.168.1.1 20 100",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("target_ip", help="IPv4 address to scan (no DNS lookup)")
    parser.add_argument("start_port", type=int, help="first port of the range")
    parser.add_argument("end_port", type=int, help="last port of the range (inclusive)")
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help=f"per-port connect timeout in ms (default: {settings.probe_timeout_ms})",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        default=None,
        help=f"ports probed in parallel (default: {settings.concurrency})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log every probe to stderr")
    return parser


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv=None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        port_range = PortRange(start=args.start_port, end=args.end_port)
    except ValueError:
        return _fail(RANGE_ERROR)
    if args.timeout is not None and args.timeout <= 0:
        return _fail("--timeout must be a positive number of milliseconds")
    if args.concurrency is not None and args.concurrency < 1:
        return _fail("--concurrency must be >= 1")

    timeout = args.timeout / 1000.0 if args.timeout is not None else None

    print(f"\nScanning ports {port_range.start} to {port_range.end} on {args.target_ip}...\n")
    try:
        with sweep(args.target_ip, port_range, timeout=timeout, concurrency=args.concurrency) as scan:
            for port in scan:
                print(f"[+] Port {port} is OPEN", flush=True)
    except KeyboardInterrupt:
        print("Scan aborted.", file=sys.stderr)
        return 130
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
