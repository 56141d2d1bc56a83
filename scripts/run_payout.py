#!/usr/bin/env python3
"""
Manual payout operations.

Usage:
    python scripts/run_payout.py run                   # pay yesterday
    python scripts/run_payout.py run --date 2026-01-31
    python scripts/run_payout.py recalc                # refresh income caches
    python scripts/run_payout.py ranks                 # evaluate rank rewards
    python scripts/run_payout.py start|stop|status     # daily schedule
    python scripts/run_payout.py reverse 42 --reason "duplicate"
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from payout_engine.config.database import async_engine, async_session_maker
from payout_engine.models.enums import TriggerSource
from payout_engine.services.payout.daily_runner import DailyPayoutRunner
from payout_engine.services.payout.poster import PayoutPoster
from payout_engine.services.rank.service import RankService
from payout_engine.services.scheduler.coordinator import (
    PayoutScheduleCoordinator,
)
from payout_engine.utils.exceptions import PayoutEngineError

# Configure logger
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


async def execute(args: argparse.Namespace) -> int:
    """Run the selected command. Returns the process exit code."""
    try:
        if args.command == "run":
            runner = DailyPayoutRunner(async_session_maker)
            summary = await runner.run(
                for_date=date.fromisoformat(args.date) if args.date else None,
                trigger=TriggerSource.MANUAL,
            )
            logger.success(f"Payout for {summary.for_date}: {summary}")

        elif args.command == "recalc":
            refreshed = await DailyPayoutRunner(async_session_maker).recalculate_caches()
            logger.success(f"Income caches refreshed for {refreshed} users")

        elif args.command == "ranks":
            summary = await RankService(async_session_maker).evaluate_all()
            logger.success(f"Rank evaluation: {summary}")

        elif args.command == "reverse":
            async with async_session_maker() as session:
                entry = await PayoutPoster(session).reverse(args.entry_id, args.reason)
            logger.success(f"Entry {args.entry_id} reversed by entry {entry.id}")

        else:
            coordinator = PayoutScheduleCoordinator(async_session_maker)
            if args.command == "start":
                state = await coordinator.start()
            elif args.command == "stop":
                state = await coordinator.stop("stopped from command line")
            else:
                state = await coordinator.get_state()
            logger.info(
                f"Scheduler: running={state.is_running}, status={state.status}, "
                f"next_run={state.next_run}, last_run={state.last_run}, "
                f"last_error={state.last_error}"
            )
    except PayoutEngineError as e:
        logger.error(str(e))
        return 1
    finally:
        await async_engine.dispose()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Manual payout operations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the daily payout")
    run_parser.add_argument(
        "--date",
        help="Calendar day to pay, YYYY-MM-DD (default: yesterday)",
    )
    subparsers.add_parser("recalc", help="Recalculate income display caches")
    subparsers.add_parser("ranks", help="Evaluate ranks and pay rewards")
    subparsers.add_parser("start", help="Arm the daily payout schedule")
    subparsers.add_parser("stop", help="Disarm the daily payout schedule")
    subparsers.add_parser("status", help="Show scheduler state")

    reverse_parser = subparsers.add_parser("reverse", help="Reverse a ledger entry")
    reverse_parser.add_argument("entry_id", type=int)
    reverse_parser.add_argument("--reason", required=True)

    args = parser.parse_args()
    sys.exit(asyncio.run(execute(args)))


if __name__ == "__main__":
    main()
