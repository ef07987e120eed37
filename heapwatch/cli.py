"""
heapwatch command line.

    heapwatch [durationMs] [intervalMs] [outputFile] [--config PATH]
              [--verbose] [--json-logs] [--log-file PATH]

Profiles the current Python process (the CLI itself, or the program that
embeds it), writes the JSON report and prints a short summary. SIGINT and
SIGTERM end the run early; the report is still written.
"""

import sys
import signal
import argparse
import threading
from typing import List, Optional

from .config import load_config
from .exceptions import ConfigError
from .logging_config import configure_from_environment
from .report import format_summary
from .sampler import MemorySampler

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='heapwatch',
        description='In-process memory profiler with heuristic leak detection',
    )
    parser.add_argument('duration_ms', nargs='?', type=int, metavar='durationMs',
                        help='Profiling duration in milliseconds (default: 300000)')
    parser.add_argument('interval_ms', nargs='?', type=int, metavar='intervalMs',
                        help='Sampling interval in milliseconds (default: 1000)')
    parser.add_argument('output_file', nargs='?', metavar='outputFile',
                        help='Report path (default: memory-profile-report.json)')
    parser.add_argument('--config', '-c', type=str,
                        help='JSON or YAML configuration file')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('--json-logs', action='store_true',
                        help='Output logs in JSON format')
    parser.add_argument('--log-file', type=str,
                        help='Also write logs to this file')
    return parser


def _install_signal_handlers(cancel_event: threading.Event):
    """Route SIGINT/SIGTERM to the cancel event; returns the previous handlers."""
    if threading.current_thread() is not threading.main_thread():
        return {}

    def _signal_handler(signum, frame):
        print(f"\nReceived signal {signum}, stopping memory profiling...")
        cancel_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _signal_handler)
    return previous


def _restore_signal_handlers(previous):
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_from_environment(
        verbose=args.verbose,
        log_file=args.log_file,
        json_format=args.json_logs,
    )

    try:
        config = load_config(
            args.config,
            duration_ms=args.duration_ms,
            interval_ms=args.interval_ms,
            output_file=args.output_file,
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    print("=" * 70)
    print("heapwatch - Memory Profiler")
    print("=" * 70)
    print(f"Duration: {config.duration_ms}ms")
    print(f"Interval: {config.interval_ms}ms")
    print(f"Output: {config.output_file}")
    print()

    cancel_event = threading.Event()
    previous_handlers = _install_signal_handlers(cancel_event)
    try:
        sampler = MemorySampler(config, cancel_event=cancel_event)
        report = sampler.run()
    finally:
        _restore_signal_handlers(previous_handlers)

    print()
    print(format_summary(report))
    if sampler.report_saved:
        print(f"\nReport saved to: {config.output_file}")
    else:
        print(f"\nReport could not be written to: {config.output_file}", file=sys.stderr)
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
