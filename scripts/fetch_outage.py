"""One-shot live lookup of the DTEK outage schedule for an address.

Usage: python scripts/fetch_outage.py --house 1 [--city ...] [--street ...]
"""

from __future__ import annotations

import argparse
import asyncio

from grid_watch.config.schema import OutageConfig
from grid_watch.errors import OutageError
from grid_watch.logging.structured import setup_logging
from grid_watch.outage.browser import PlaywrightChallengeSolver
from grid_watch.outage.client import OutageScheduleClient


def parse_args() -> argparse.Namespace:
    defaults = OutageConfig()
    p = argparse.ArgumentParser()
    p.add_argument("--city", default=defaults.city)
    p.add_argument("--street", default=defaults.street)
    p.add_argument("--house", default=defaults.house)
    p.add_argument("--log-level", default="INFO")
    return p.parse_args()


async def main_async(args: argparse.Namespace) -> int:
    config = OutageConfig(city=args.city, street=args.street, house=args.house)
    client = OutageScheduleClient(config, PlaywrightChallengeSolver(config))
    try:
        window = await client.fetch_shutdowns()
    except OutageError as exc:
        print(f"Lookup failed: {exc}")
        return 1
    finally:
        await client.close()

    if window is None:
        print(f"No shutdown scheduled for house {args.house}")
    else:
        print(f"Shutdown: {window.start} -> {window.end} ({window.sub_type})")
        for reason in window.reasons:
            print(f"  reason: {reason}")
    return 0


def main() -> None:
    args = parse_args()
    setup_logging(level=args.log_level, fmt="console")
    raise SystemExit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    main()
