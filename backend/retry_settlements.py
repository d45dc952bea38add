#!/usr/bin/env python3
"""
Retry settlement tasks left pending after payment verification.

Usage:
    python retry_settlements.py [--limit N]

Each pending task re-runs only its unfinished steps (payment record,
referral commission, coupon redemption). Tasks that keep failing are marked
failed once they reach settlement.max_attempts in config.json.
"""

import argparse
import asyncio
import logging
from db.session import engine
from services.settlement_service import process_pending_settlements

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("settlements")


async def main(limit: int):
    logger.info("Starting settlement retry pass...")
    try:
        summary = await process_pending_settlements(limit)
        logger.info("=" * 50)
        logger.info("Settlement Summary:")
        logger.info(f"Tasks processed: {summary['processed']}")
        logger.info(f"Completed: {summary['done']}")
        logger.info(f"Still pending: {summary['pending']}")
        logger.info(f"Gave up: {summary['failed']}")
        logger.info("=" * 50)
    except Exception as e:
        logger.error(f"Settlement retry failed: {e}", exc_info=True)
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Retry pending settlement tasks")
    parser.add_argument("--limit", type=int, default=50, help="Maximum number of tasks to process")
    args = parser.parse_args()
    asyncio.run(main(args.limit))
