"""Local stand-in for the dumper tool used by integration tests.

Behaviour is driven by environment variables so that tests can shape the
log output without changing the argument contract:

- ``DUMPER_ECHO_LINES``: total lines to write (default 10)
- ``DUMPER_ECHO_BURSTS``: number of write bursts (default 1)
- ``DUMPER_ECHO_INTERVAL_SECONDS``: pause between bursts (default 0.1)
- ``DUMPER_ECHO_EXIT_CODE``: exit code after the last burst (default 0)
- ``DUMPER_ECHO_HANG``: ``1`` to sleep forever after the last burst
- ``DUMPER_ECHO_PROFILES``: comma-separated names printed by ``-l``
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path

_DEFAULT_PROFILES = "imgur,reddit,tumblr"


def main(argv: list[str] | None = None) -> int:
    """Write deterministic log lines in bursts, like a gallery dump would."""

    parser = argparse.ArgumentParser(prog="dumper")
    parser.add_argument("-l", dest="list_profiles", action="store_true")
    parser.add_argument("--output")
    parser.add_argument("--url")
    parser.add_argument("--path")
    parser.add_argument("--from", dest="page_from", type=int, default=1)
    parser.add_argument("--to", dest="page_to", type=int, default=None)
    parser.add_argument("--profile", default=None)
    parser.add_argument("--threads", default="1:1")
    args = parser.parse_args(argv)

    if args.list_profiles:
        print("Available profiles:")
        for name in os.getenv("DUMPER_ECHO_PROFILES", _DEFAULT_PROFILES).split(","):
            print(f"  {name}")
        return 0

    if not args.output:
        parser.error("--output is required")

    total = int(os.getenv("DUMPER_ECHO_LINES", "10"))
    bursts = max(1, int(os.getenv("DUMPER_ECHO_BURSTS", "1")))
    interval = float(os.getenv("DUMPER_ECHO_INTERVAL_SECONDS", "0.1"))
    output = Path(args.output)

    written = 0
    for burst in range(bursts):
        size = total // bursts + (1 if burst < total % bursts else 0)
        with output.open("a", encoding="utf-8") as handle:
            for _ in range(size):
                written += 1
                handle.write(f"[{args.profile or 'auto'}] {args.url} item {written}\n")
            handle.flush()
        if burst < bursts - 1:
            time.sleep(interval)

    if os.getenv("DUMPER_ECHO_HANG", "0") == "1":
        while True:
            time.sleep(3600)
    return int(os.getenv("DUMPER_ECHO_EXIT_CODE", "0"))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
