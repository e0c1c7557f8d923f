"""
client/main.py

Smoke tool: start an AnalyticsProcessor, record some evaluations, wait for
one flush window and report what happened.

    flagtally-smoke --feature 1 --feature 2 --count 5 --timer-ms 2000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import NoReturn

from .analytics import AnalyticsProcessor
from .config import Settings, settings
from .metrics import METRICS

logger = logging.getLogger("flagtally.main")

# Extra time allowed after the window for the POST itself.
_FLUSH_MARGIN_SECONDS = 0.5


async def run(cfg: Settings, feature_ids: list[int], count: int) -> bool:
    """Return True if every window carrying recorded evaluations was delivered."""
    async with AnalyticsProcessor.from_settings(cfg) as processor:
        logger.info("Recording %d evaluations each for features %s", count, feature_ids)
        for _ in range(count):
            processor.track_features(feature_ids)
            # Give the loop a chance to drain the channel between bursts.
            await asyncio.sleep(cfg.ANALYTICS_POLL_INTERVAL_SECONDS * 2)

        stats = processor.stats
        loop = asyncio.get_running_loop()
        deadline = (
            loop.time()
            + cfg.ANALYTICS_TIMER_MS / 1000
            + cfg.REQUEST_TIMEOUT_SECONDS
            + _FLUSH_MARGIN_SECONDS
        )
        # Empty windows are skipped; wait for one that actually carried data.
        while stats["flushes_sent"] + stats["flushes_failed"] == 0 and loop.time() < deadline:
            await asyncio.sleep(0.05)

    logger.info("Last flush: %s", processor.last_flush.to_dict() if processor.last_flush else None)
    logger.info("Final stats — processor=%s metrics=%s", stats, METRICS.as_dict())
    return stats["flushes_failed"] == 0 and (
        stats["flushes_sent"] > 0 or stats["events_aggregated"] == 0
    )


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="flagtally analytics smoke test")
    parser.add_argument("--api-url", default=settings.API_URL)
    parser.add_argument("--environment-key", default=settings.ENVIRONMENT_KEY)
    parser.add_argument(
        "--feature", type=int, action="append", dest="features",
        help="feature id to record (repeatable)",
    )
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--timer-ms", type=int, default=settings.ANALYTICS_TIMER_MS)
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args()


def main() -> NoReturn:
    args = _parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    if args.count < 1:
        print("ERROR: --count must be at least 1", file=sys.stderr)
        sys.exit(1)

    try:
        cfg = Settings(
            API_URL=args.api_url,
            ENVIRONMENT_KEY=args.environment_key,
            ANALYTICS_TIMER_MS=args.timer_ms,
        )
    except ValueError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    ok = asyncio.run(run(cfg, args.features or [1], args.count))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
