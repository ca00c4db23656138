"""
Entrypoints for Index Retention
Lambda handler for scheduled (EventBridge/cron) triggers, plus a CLI that
either runs a single pass or keeps repeating it on an interval.
"""

import argparse
import asyncio
import logging
from typing import Optional

from index_retention.agents.retention_agent import RetentionAgent
from index_retention.config import Settings, get_settings
from index_retention.models import RetentionReport
from index_retention.services.cluster_client import build_cluster_client

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    # Lambda installs its own root handler, so basicConfig alone is a no-op there
    logging.getLogger().setLevel(settings.log_level)


async def run_retention_pass(
    settings: Optional[Settings] = None,
) -> Optional[RetentionReport]:
    """Run one retention pass with a fresh cluster client."""
    settings = settings or get_settings()

    try:
        client = build_cluster_client(settings)
    except ValueError as e:
        logger.error(f"Invalid cluster configuration: {e}")
        return None

    async with client:
        return await RetentionAgent(settings, client).run()


class RetentionScheduler:
    """
    Repeats the retention pass every check_interval seconds.
    Default: once a day (86400 seconds)
    """

    def __init__(self, settings: Optional[Settings] = None, check_interval: Optional[int] = None):
        self.settings = settings or get_settings()
        self.check_interval = check_interval or self.settings.schedule_interval_seconds
        self.running = False
        self.runs = 0

    async def run_scheduler(self, max_runs: Optional[int] = None):
        self.running = True
        logger.info(f"Retention scheduler started (interval: {self.check_interval}s)")

        while self.running:
            self.runs += 1
            try:
                report = await run_retention_pass(self.settings)
                if report is not None:
                    logger.info(f"Run #{self.runs} finished: {report.outcome.value}")
            except Exception:
                logger.exception(f"Run #{self.runs} failed")

            if max_runs is not None and self.runs >= max_runs:
                break

            await asyncio.sleep(self.check_interval)

        self.running = False
        logger.info("Retention scheduler stopped")

    def stop(self):
        self.running = False


def handler(event, context):
    """Lambda entrypoint. The event payload carries nothing we use."""
    settings = get_settings()
    configure_logging(settings)
    asyncio.run(run_retention_pass(settings))


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Delete dated indexes past their retention window when cluster disk fills up."
    )
    parser.add_argument("--once", action="store_true", help="Run a single pass and exit")
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between passes (default: SCHEDULE_INTERVAL_SECONDS)",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)

    if args.once:
        asyncio.run(run_retention_pass(settings))
        return

    scheduler = RetentionScheduler(settings, check_interval=args.interval)
    try:
        asyncio.run(scheduler.run_scheduler())
    except KeyboardInterrupt:
        scheduler.stop()
        print("Scheduler stopped.")


if __name__ == "__main__":
    main()
