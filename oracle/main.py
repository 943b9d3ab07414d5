"""
Main entry point for the market-resolution oracle.

This module coordinates:
1. One-off sync passes over the stored markets
2. Scheduled sync passes at a fixed interval
3. One-shot outcome checks for ad-hoc questions
4. Seeding new markets with a default oracle state
"""

import argparse
import json
import logging
import signal
import sys
import time
import uuid
from typing import Optional

from oracle.ai_oracle import check_outcome
from oracle.config import Config, OracleConfig
from oracle.market_oracle import (
    SyncResult,
    create_default_ai_oracle_state,
    sync_stored_markets_with_oracle,
)
from oracle.models import Market, NewMarketMetadata, OutcomeOption, OutcomeRequest
from oracle.scheduler import get_scheduler, get_scheduler_status, start_scheduler, stop_scheduler
from oracle.storage import Storage
from oracle.utils import parse_timestamp


# Configure logging
def setup_logging() -> None:
    """Configure logging for the application."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if Config.LOG_FILE:
        Config.ensure_directories()
        handlers.append(logging.FileHandler(Config.LOG_FILE))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers
    )


logger = logging.getLogger(__name__)


def run_sync() -> SyncResult:
    """
    Run one sync pass against the default store.

    Used by the scheduler for scheduled executions.

    Returns:
        SyncResult of the pass
    """
    return sync_stored_markets_with_oracle(store=Storage(), config=OracleConfig.from_env())


def main() -> int:
    """
    Main entry point for the oracle.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(
        description="AI Market-Resolution Oracle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one sync pass over stored markets
  python -m oracle.main

  # Run in scheduled mode (every 5 minutes by default)
  python -m oracle.main --schedule --interval 10

  # Check a single question without touching the store
  python -m oracle.main --check "Will BTC close above $100k?" --unit USD

  # Seed a new market
  python -m oracle.main --seed "BTC price on Dec 31" --category crypto \\
      --expiry 2025-12-31T23:59:59Z --unit USD
        """
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Run in scheduled mode (continuous sync passes at intervals)"
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Minutes between sync passes (overrides SYNC_INTERVAL_MINUTES config)"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show scheduler status and exit"
    )
    parser.add_argument(
        "--check",
        metavar="QUESTION",
        help="Run a one-shot oracle check for QUESTION and print the verdict"
    )
    parser.add_argument(
        "--seed",
        metavar="TITLE",
        help="Store a new market titled TITLE with a default oracle state"
    )
    parser.add_argument("--market-id", help="Market identifier (--check, --seed)")
    parser.add_argument("--unit", help="Value unit, e.g. USD, %%, °C (--check, --seed)")
    parser.add_argument("--criteria", help="Resolution criteria (--check)")
    parser.add_argument("--deadline", help="ISO 8601 resolution deadline (--check)")
    parser.add_argument("--keywords", help="Comma-separated relevance keywords (--check)")
    parser.add_argument("--category", default="", help="Market category (--seed)")
    parser.add_argument("--expiry", help="ISO 8601 market expiry (--seed)")
    parser.add_argument("--description", help="Market description (--seed)")

    args = parser.parse_args()

    setup_logging()

    # Handle status check
    if args.status:
        status = get_scheduler_status()
        print("\nScheduler Status:")
        print(f"  Running: {status['is_running']}")
        print(f"  Has Sync Function: {status['has_sync_function']}")
        print(f"  Job Running: {status['job_running']}")
        print(f"  Interval: {status['interval_minutes']} minutes" if status['interval_minutes'] else "  Interval: N/A")
        print(f"  Next Run: {status['next_run_time'] or 'N/A'}")
        return 0

    is_valid, errors = Config.validate()
    if not is_valid:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return 1

    Config.ensure_directories()

    if args.check:
        return _run_check(args)

    if args.seed:
        return _run_seed(args)

    # Scheduled mode
    if args.schedule:
        return _run_scheduled_mode(args.interval)

    # Single run mode (default)
    return _run_single_mode()


def _run_check(args: argparse.Namespace) -> int:
    """Run a one-shot check and print the verdict as JSON."""
    keywords = tuple(k.strip() for k in (args.keywords or "").split(",") if k.strip())
    request = OutcomeRequest(
        market_id=args.market_id or "adhoc",
        question=args.check,
        resolution_criteria=args.criteria,
        resolution_deadline=parse_timestamp(args.deadline),
        options=(OutcomeOption(id="yes", label="YES", keywords=keywords),) if keywords else (),
        unit=args.unit,
    )

    try:
        verdict = check_outcome(request, OracleConfig.from_env())
    except KeyboardInterrupt:
        logger.info("Check interrupted by user")
        return 130

    print(json.dumps(verdict.to_dict(), indent=2, ensure_ascii=False))
    return 0


def _run_seed(args: argparse.Namespace) -> int:
    """Create and store a new market with a default oracle state."""
    metadata = NewMarketMetadata(
        id=args.market_id or uuid.uuid4().hex,
        title=args.seed,
        category=args.category,
        description=args.description,
        expiry=args.expiry,
        unit=args.unit,
    )
    oracle_state = create_default_ai_oracle_state(metadata)

    market = Market(
        id=metadata.id,
        title=metadata.title,
        category=metadata.category,
        description=metadata.description,
        expiry=metadata.expiry,
        unit=metadata.unit,
        domain=oracle_state.request.domain,
        oracle=oracle_state,
    )

    if not Storage().save_market(market):
        logger.error(f"Failed to store market {market.id}")
        return 1

    logger.info(f"Seeded market {market.id}: {market.title}")
    print(json.dumps(market.to_dict(), indent=2, ensure_ascii=False))
    return 0


def _run_single_mode() -> int:
    """
    Run one sync pass and exit.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        result = run_sync()
        logger.info(f"Sync pass finished: {len(result.markets)} markets, updated: {result.updated}")
        return 0

    except KeyboardInterrupt:
        logger.info("Sync interrupted by user")
        return 130

    except Exception as e:
        logger.error(f"Fatal error in sync pass: {e}", exc_info=True)
        return 1


def _run_scheduled_mode(interval_minutes: Optional[int] = None) -> int:
    """
    Run in scheduled mode with continuous execution.

    Args:
        interval_minutes: Minutes between passes. If None, uses Config.SYNC_INTERVAL_MINUTES

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    logger.info("Starting in scheduled mode")

    # Setup signal handlers for graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        stop_scheduler(wait=True)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        if not start_scheduler(run_sync, interval_minutes=interval_minutes):
            logger.error("Failed to start scheduler")
            return 1

        status = get_scheduler_status()
        logger.info(f"Interval: {status['interval_minutes']} minutes")
        if status['next_run_time']:
            logger.info(f"Next run: {status['next_run_time']}")

        # Run initial pass immediately, through the scheduler's overlap guard
        logger.info("Running initial sync pass...")
        get_scheduler().run_once()

        logger.info("Scheduler is running. Press Ctrl+C to stop.")

        try:
            while True:
                time.sleep(1)  # Signal handlers interrupt this

        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
            stop_scheduler(wait=True)
            return 0

    except Exception as e:
        logger.error(f"Fatal error in scheduled mode: {e}", exc_info=True)
        stop_scheduler(wait=False)
        return 1


if __name__ == "__main__":
    sys.exit(main())
